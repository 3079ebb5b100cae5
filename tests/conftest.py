"""
Pytest configuration and shared fixtures.
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Flat layout: modules live at the project root
PROJ_ROOT = Path(__file__).resolve().parent.parent
if str(PROJ_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJ_ROOT))

# Must be set before app is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SLUR_BLOCKLIST"] = "grimble, Zorpface"
os.environ["PROFANITY_CENSOR_LIST"] = "blarg"
os.environ["IP_HASH_SALT"] = "test-salt"

import app as app_module  # noqa: E402
from models import Base, Driver, Review, ReviewTag, Tag  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402


@pytest.fixture
def engine():
    Base.metadata.drop_all(app_module.engine)
    Base.metadata.create_all(app_module.engine)
    return app_module.engine


@pytest.fixture
def sess(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture
def client(engine):
    app_module.app.config.update(TESTING=True)
    return app_module.app.test_client()


@pytest.fixture
def moderator():
    return app_module.moderator


@pytest.fixture
def tags(sess):
    """Three active tags and one retired one."""
    rows = [
        Tag(id="t-safe", label="Safe driver", slug="safe-driver", category="positive"),
        Tag(id="t-clean", label="Clean car", slug="clean-car", category="positive"),
        Tag(id="t-quiet", label="Quiet", slug="quiet", category="neutral"),
        Tag(id="t-late", label="Late pickup", slug="late-pickup", category="negative"),
        Tag(id="t-old", label="Retired", slug="retired", category="neutral", is_active=False),
    ]
    sess.add_all(rows)
    sess.commit()
    return {t.id: t for t in rows}


@pytest.fixture
def make_driver(sess):
    def _make(handle, **kw):
        d = Driver(driver_handle=handle, display_name=kw.pop("display_name", handle), **kw)
        sess.add(d)
        sess.commit()
        return d
    return _make


@pytest.fixture
def make_review(sess):
    base = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def _make(driver, stars, minutes=0, comment=None, tag_ids=()):
        r = Review(driver_id=driver.id, stars=stars, comment=comment,
                   created_at=base + timedelta(minutes=minutes))
        sess.add(r)
        sess.flush()
        for tid in tag_ids:
            sess.add(ReviewTag(review_id=r.id, tag_id=tid))
        sess.commit()
        return r
    return _make
