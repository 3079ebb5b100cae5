import os
import logging
from flask import Flask, request, jsonify
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool
from dotenv import load_dotenv

import drivers
import reviews
from handles import EMPTY, SearchFilters, plan_search
from locations import best_state_matches, city_suggestions
from models import Base
from moderation import Moderator, parse_word_list

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///ratedwheels.db")
IP_HASH_SALT = os.getenv("IP_HASH_SALT", "ratedwheels")
SLUR_BLOCKLIST = parse_word_list(os.getenv("SLUR_BLOCKLIST"))
PROFANITY_CENSOR_LIST = parse_word_list(os.getenv("PROFANITY_CENSOR_LIST"))
TRUST_PROXY = os.getenv("TRUST_PROXY", "0") == "1"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

if not SLUR_BLOCKLIST:
    logger.warning("SLUR_BLOCKLIST is empty; only contact info and profanity are moderated.")

app = Flask(__name__)

if TRUST_PROXY:
    # Trust proxy headers for remote_addr / scheme
    from werkzeug.middleware.proxy_fix import ProxyFix
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

# --- Database setup ---
def make_engine(url: str):
    if url in ("sqlite://", "sqlite:///:memory:"):
        # one shared in-memory database for every session
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


engine = make_engine(DATABASE_URL)
if engine.dialect.name == "sqlite":
    # hosted Postgres is migrated separately
    Base.metadata.create_all(engine)

moderator = Moderator(slurs=SLUR_BLOCKLIST, censor_words=PROFANITY_CENSOR_LIST)


# --- Helpers ---
def get_client_ip() -> str:
    if TRUST_PROXY:
        # ProxyFix already resolved the address our own proxy saw
        return request.remote_addr or "0.0.0.0"
    xff = request.headers.get("X-Forwarded-For")
    if xff:
        return xff.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or request.remote_addr or "0.0.0.0"


def error(message: str, status: int):
    return jsonify(error=message), status


# --- Routes ---
@app.get("/search")
def search():
    raw = (request.args.get("q") or "").strip()
    filters = SearchFilters.from_args(request.args)
    sort = reviews.normalize_sort(request.args.get("sort"))
    plan = plan_search(raw, filters)

    result = {"query": plan.handle, "kind": plan.kind, "sort": sort, "message": plan.message,
              "driver": None, "matches": []}
    if plan.kind == EMPTY:
        result["message"] = "Type a handle to search."
        return jsonify(result)

    with Session(engine) as sess:
        driver, matches = drivers.find(sess, plan, filters)
        if driver is None:
            result["matches"] = [drivers.driver_to_dict(m) for m in matches]
            return jsonify(result)

        stats = drivers.get_stats(sess, [driver.id]).get(driver.id, {"avg_stars": None, "review_count": 0})
        rows = reviews.list_reviews(sess, driver.id, sort)
        result["driver"] = drivers.driver_to_dict(driver, stats)
        result["reviews"] = [reviews.review_to_dict(r) for r in rows]
        result["traits"] = reviews.aggregate_traits(rows)
        return jsonify(result)


@app.get("/drivers")
def list_drivers():
    with Session(engine) as sess:
        return jsonify(drivers=drivers.list_drivers(sess))


@app.post("/drivers")
def create_driver():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        body = {}
    try:
        with Session(engine) as sess:
            d = drivers.create_driver(sess, body, moderator)
            return jsonify(ok=True, driver=drivers.driver_to_dict(d)), 201
    except drivers.DriverError as e:
        return error(e.message, e.status)
    except Exception as e:
        logger.exception("driver creation failed")
        return error(str(e) or "Server error", 500)


@app.get("/api/tags")
def tags():
    with Session(engine) as sess:
        return jsonify(reviews.active_tags(sess))


@app.get("/api/states")
def states():
    matches = best_state_matches(request.args.get("q", ""))
    return jsonify(states=[{"code": c, "name": n} for c, n in matches])


@app.get("/api/cities")
def cities():
    with Session(engine) as sess:
        try:
            names = city_suggestions(sess, request.args.get("state", ""), request.args.get("q", ""))
        except Exception as e:
            logger.warning("city_suggestions failed: %s", e)
            names = []
    return jsonify(cities=names)


@app.post("/api/reviews")
def post_review():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        body = {}
    ip_hash = reviews.hash_ip(get_client_ip(), IP_HASH_SALT)
    try:
        with Session(engine) as sess:
            review = reviews.submit_review(sess, body, ip_hash, moderator)
            return jsonify(ok=True, review=reviews.review_to_dict(review))
    except reviews.SubmissionError as e:
        return error(e.message, e.status)
    except Exception as e:
        logger.exception("review submission failed")
        return error(str(e) or "Server error", 500)


if __name__ == "__main__":
    app.run(debug=True)
