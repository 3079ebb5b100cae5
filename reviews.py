# reviews.py
# Review submission (validate, moderate, dedupe, persist) and review reads.

import hashlib
import logging
import math

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from drivers import is_unique_violation
from models import TAG_CATEGORIES, Driver, Review, ReviewRateLimit, ReviewTag, Tag
from moderation import ModerationError, Moderator

logger = logging.getLogger(__name__)

SORT_MODES = ("newest", "oldest", "highest", "lowest")
TOP_TAGS_PER_CATEGORY = 15


class SubmissionError(Exception):
    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.message = message
        self.status = status


def hash_ip(ip: str, salt: str) -> str:
    return hashlib.sha256(f"{salt}:{ip}".encode("utf-8")).hexdigest()


def parse_stars(value) -> int:
    if isinstance(value, bool):
        raise SubmissionError("Stars must be 1–5.")
    try:
        stars = float(value)
    except (TypeError, ValueError, OverflowError):
        raise SubmissionError("Stars must be 1–5.")
    if not math.isfinite(stars) or stars != int(stars) or not 1 <= stars <= 5:
        raise SubmissionError("Stars must be 1–5.")
    return int(stars)


def _active_tag_ids(sess: Session, raw_ids) -> list[str]:
    wanted = []
    for tid in raw_ids:
        tid = str(tid or "").strip()
        if tid and tid not in wanted:
            wanted.append(tid)
    if not wanted:
        return []
    found = set(sess.execute(
        select(Tag.id).where(Tag.id.in_(wanted), Tag.is_active.is_(True))
    ).scalars().all())
    return [tid for tid in wanted if tid in found]


def submit_review(sess: Session, body: dict, ip_hash: str, moderator: Moderator) -> Review:
    """
    Validate, moderate and store one review.
      400: bad input or moderated out
      429: this network already reviewed this driver
    """
    driver_id = str(body.get("driverId") or "").strip()
    if not driver_id:
        raise SubmissionError("Missing driverId.")

    stars = parse_stars(body.get("stars"))

    try:
        comment = moderator.clean_comment(body.get("comment") or "")
    except ModerationError as e:
        raise SubmissionError(str(e))

    tag_ids = body.get("tagIds")
    if not isinstance(tag_ids, list):
        tag_ids = []

    if sess.get(Driver, driver_id) is None:
        raise SubmissionError("Unknown driver.")

    # Rate limit: one review per driver per network, forever
    sess.add(ReviewRateLimit(driver_id=driver_id, ip_hash=ip_hash))
    try:
        sess.commit()
    except IntegrityError as e:
        sess.rollback()
        if is_unique_violation(e):
            logger.info("rate limited review for driver %s", driver_id)
            raise SubmissionError("You already reviewed this driver from this network.", status=429)
        raise

    review = Review(driver_id=driver_id, stars=stars, comment=comment)
    sess.add(review)
    sess.flush()
    for tid in _active_tag_ids(sess, tag_ids):
        sess.add(ReviewTag(review_id=review.id, tag_id=tid))
    sess.commit()
    sess.refresh(review)
    return review


def review_to_dict(r: Review, with_tags: bool = True) -> dict:
    out = {
        "id": r.id,
        "driver_id": r.driver_id,
        "stars": r.stars,
        "comment": r.comment,
        "created_at": r.created_at.isoformat() if r.created_at else None,
    }
    if with_tags:
        out["tags"] = [tag_to_dict(rt.tag) for rt in r.review_tags if rt.tag]
    return out


def tag_to_dict(t: Tag) -> dict:
    return {"id": t.id, "label": t.label, "slug": t.slug, "category": t.category}


def normalize_sort(raw) -> str:
    s = str(raw or "newest").strip().lower()
    return s if s in SORT_MODES else "newest"


def list_reviews(sess: Session, driver_id: str, sort: str = "newest") -> list[Review]:
    stmt = (
        select(Review)
        .where(Review.driver_id == driver_id)
        .options(selectinload(Review.review_tags).selectinload(ReviewTag.tag))
    )
    sort = normalize_sort(sort)
    if sort == "highest":
        stmt = stmt.order_by(Review.stars.desc(), Review.created_at.desc())
    elif sort == "lowest":
        stmt = stmt.order_by(Review.stars.asc(), Review.created_at.desc())
    elif sort == "oldest":
        stmt = stmt.order_by(Review.created_at.asc())
    else:
        stmt = stmt.order_by(Review.created_at.desc())
    return list(sess.execute(stmt).scalars().all())


def aggregate_traits(reviews: list[Review]) -> dict:
    """Count tags per category and per tag across a driver's reviews."""
    trait_counts = {c: 0 for c in TAG_CATEGORIES}
    freq: dict[str, dict] = {}

    for r in reviews:
        for rt in r.review_tags:
            tag = rt.tag
            if tag is None:
                continue
            cat = str(tag.category or "").strip().lower()
            if cat in trait_counts:
                trait_counts[cat] += 1
            entry = freq.setdefault(tag.id, {"label": tag.label, "category": cat, "count": 0})
            entry["count"] += 1

    by_category = {c: [] for c in TAG_CATEGORIES}
    for entry in freq.values():
        if entry["category"] in by_category:
            by_category[entry["category"]].append({"label": entry["label"], "count": entry["count"]})
    for cat in by_category:
        by_category[cat].sort(key=lambda t: t["count"], reverse=True)
        by_category[cat] = by_category[cat][:TOP_TAGS_PER_CATEGORY]

    return {
        "counts": trait_counts,
        "max": max(max(trait_counts.values()), 1),
        "tags": by_category,
    }


def active_tags(sess: Session) -> dict:
    tags = sess.execute(
        select(Tag).where(Tag.is_active.is_(True)).order_by(Tag.category, Tag.label)
    ).scalars().all()
    grouped = {c: [] for c in ("negative", "neutral", "positive")}
    for t in tags:
        grouped.setdefault(str(t.category or "").lower(), []).append(tag_to_dict(t))
    return {"tags": [tag_to_dict(t) for t in tags], "grouped": grouped}
