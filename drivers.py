# drivers.py
# Driver lookups, prefix search, directory listing and creation.

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from handles import (
    EXACT,
    HANDLE_HINT,
    PREFIX,
    SEARCH_LIMIT,
    SearchFilters,
    SearchPlan,
    is_valid_handle,
    normalize_handle,
)
from locations import is_state_code, normalize_city_label
from models import Driver, Review
from moderation import Moderator, normalize_text

logger = logging.getLogger(__name__)


class DriverError(Exception):
    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.message = message
        self.status = status


def is_unique_violation(exc: IntegrityError) -> bool:
    # Postgres reports SQLSTATE 23505 (pgcode); SQLite only has the message text
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None)
    if code:
        return code == "23505"
    return "unique" in str(orig).lower()


def format_avg(avg) -> str:
    if avg is None:
        return "—"
    return f"{float(avg):.1f}"


def driver_stats_query():
    """Same shape as the hosted driver_stats view: driver_id, avg_stars, review_count."""
    return (
        select(
            Review.driver_id.label("driver_id"),
            func.avg(Review.stars).label("avg_stars"),
            func.count(Review.id).label("review_count"),
        )
        .group_by(Review.driver_id)
    )


def get_stats(sess: Session, driver_ids: list[str]) -> dict[str, dict]:
    if not driver_ids:
        return {}
    rows = sess.execute(driver_stats_query().where(Review.driver_id.in_(driver_ids))).all()
    return {
        r.driver_id: {
            "avg_stars": float(r.avg_stars) if r.avg_stars is not None else None,
            "review_count": int(r.review_count or 0),
        }
        for r in rows
    }


def driver_to_dict(d: Driver, stats: dict | None = None) -> dict:
    out = {
        "id": d.id,
        "driver_handle": d.driver_handle,
        "display_name": d.display_name,
        "city": d.city,
        "state": d.state,
        "car_color": d.car_color,
        "car_make": d.car_make,
        "car_model": d.car_model,
    }
    if stats is not None:
        out["avg_stars"] = stats.get("avg_stars")
        out["avg_display"] = format_avg(stats.get("avg_stars"))
        out["review_count"] = stats.get("review_count", 0)
    return out


def get_by_handle(sess: Session, handle: str) -> Driver | None:
    return sess.execute(
        select(Driver).where(Driver.driver_handle == handle)
    ).scalars().first()


def search_prefix(sess: Session, prefix: str, filters: SearchFilters, limit: int = SEARCH_LIMIT) -> list[Driver]:
    stmt = select(Driver).where(Driver.driver_handle.ilike(f"{prefix}%"))
    if filters.state:
        stmt = stmt.where(Driver.state == filters.state)
    if filters.city:
        stmt = stmt.where(Driver.city.ilike(f"%{filters.city}%"))
    if filters.color:
        stmt = stmt.where(Driver.car_color.ilike(f"%{filters.color}%"))
    if filters.make:
        stmt = stmt.where(Driver.car_make.ilike(f"%{filters.make}%"))
    if filters.model:
        stmt = stmt.where(Driver.car_model.ilike(f"%{filters.model}%"))
    stmt = stmt.order_by(Driver.driver_handle).limit(limit)
    return list(sess.execute(stmt).scalars().all())


def find(sess: Session, plan: SearchPlan, filters: SearchFilters) -> tuple[Driver | None, list[Driver]]:
    """Returns (exact driver or None, possible matches)."""
    if plan.kind == EXACT:
        driver = get_by_handle(sess, plan.handle)
        if driver:
            return driver, []
        return None, search_prefix(sess, plan.prefix, filters)
    if plan.kind == PREFIX:
        return None, search_prefix(sess, plan.prefix, filters)
    return None, []


def list_drivers(sess: Session) -> list[dict]:
    drivers = sess.execute(
        select(Driver).order_by(Driver.created_at.desc())
    ).scalars().all()
    stats = get_stats(sess, [d.id for d in drivers])
    empty = {"avg_stars": None, "review_count": 0}
    return [driver_to_dict(d, stats.get(d.id, empty)) for d in drivers]


def _opt(v, max_len: int) -> str | None:
    v = normalize_text(v)[:max_len]
    return v or None


def create_driver(sess: Session, data: dict, moderator: Moderator) -> Driver:
    handle = normalize_handle(data.get("handle") or data.get("driver_handle") or "")
    if not is_valid_handle(handle):
        raise DriverError(f"Driver handle format is invalid. {HANDLE_HINT}")

    state = str(data.get("state") or "").strip().upper()
    if not is_state_code(state):
        raise DriverError("Please select a state.")

    city = None if data.get("cityNotListed") else _opt(normalize_city_label(data.get("city") or ""), 80)
    display_name = moderator.sanitize_display_name(data.get("displayName") or "", fallback=handle)

    driver = Driver(
        driver_handle=handle,
        display_name=display_name,
        city=city,
        state=state,
        car_color=_opt(data.get("carColor"), 40),
        car_make=_opt(data.get("carMake"), 40),
        car_model=_opt(data.get("carModel"), 60),
    )
    sess.add(driver)
    try:
        sess.commit()
    except IntegrityError as e:
        sess.rollback()
        if is_unique_violation(e):
            raise DriverError("A driver with this handle already exists.", status=409)
        raise
    sess.refresh(driver)
    logger.info("created driver %s", driver.driver_handle)
    return driver
