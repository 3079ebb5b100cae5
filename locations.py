# locations.py
# US states for the state picker, and city suggestions from the database.

import logging
import re

from sqlalchemy import func, select
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

CITY_SUGGESTION_LIMIT = 10
STATE_MATCH_LIMIT = 8

STATES: list[tuple[str, str]] = [
    ("AL", "Alabama"), ("AK", "Alaska"), ("AZ", "Arizona"), ("AR", "Arkansas"),
    ("CA", "California"), ("CO", "Colorado"), ("CT", "Connecticut"), ("DE", "Delaware"),
    ("DC", "District of Columbia"), ("FL", "Florida"), ("GA", "Georgia"), ("HI", "Hawaii"),
    ("ID", "Idaho"), ("IL", "Illinois"), ("IN", "Indiana"), ("IA", "Iowa"),
    ("KS", "Kansas"), ("KY", "Kentucky"), ("LA", "Louisiana"), ("ME", "Maine"),
    ("MD", "Maryland"), ("MA", "Massachusetts"), ("MI", "Michigan"), ("MN", "Minnesota"),
    ("MS", "Mississippi"), ("MO", "Missouri"), ("MT", "Montana"), ("NE", "Nebraska"),
    ("NV", "Nevada"), ("NH", "New Hampshire"), ("NJ", "New Jersey"), ("NM", "New Mexico"),
    ("NY", "New York"), ("NC", "North Carolina"), ("ND", "North Dakota"), ("OH", "Ohio"),
    ("OK", "Oklahoma"), ("OR", "Oregon"), ("PA", "Pennsylvania"), ("RI", "Rhode Island"),
    ("SC", "South Carolina"), ("SD", "South Dakota"), ("TN", "Tennessee"), ("TX", "Texas"),
    ("UT", "Utah"), ("VT", "Vermont"), ("VA", "Virginia"), ("WA", "Washington"),
    ("WV", "West Virginia"), ("WI", "Wisconsin"), ("WY", "Wyoming"),
]
STATE_CODES = {code for code, _ in STATES}

CITY_SUFFIX_RE = re.compile(r"\s+(city|town|village|borough|cdp)$", re.IGNORECASE)


def is_state_code(code: str) -> bool:
    return str(code or "").strip().upper() in STATE_CODES


def best_state_matches(q: str, limit: int = STATE_MATCH_LIMIT) -> list[tuple[str, str]]:
    """Prefix matches on code or name first, then substring matches."""
    q = str(q or "").strip().lower()
    if not q:
        return STATES[:limit]

    starts, contains = [], []
    for code, name in STATES:
        c, n = code.lower(), name.lower()
        if c.startswith(q) or n.startswith(q):
            starts.append((code, name))
        elif q in c or q in n:
            contains.append((code, name))
    return (starts + contains)[:limit]


def normalize_city_label(name: str) -> str:
    # "Springfield city" -> "Springfield"
    return CITY_SUFFIX_RE.sub("", str(name or "").strip())


def fetch_city_rows(sess: Session, state: str, query: str, limit: int) -> list[dict]:
    # city_suggestions(p_state, p_query, p_limit) -> setof (name, display_name)
    fn = func.city_suggestions(state, query, limit).table_valued("name", "display_name")
    rows = sess.execute(select(fn.c.name, fn.c.display_name)).mappings().all()
    return [dict(r) for r in rows]


def city_suggestions(sess: Session, state: str, query: str, limit: int = CITY_SUGGESTION_LIMIT) -> list[str]:
    state = str(state or "").strip().upper()
    query = str(query or "").strip()
    if not is_state_code(state) or not query:
        return []

    rows = fetch_city_rows(sess, state, query, limit)
    names = []
    for row in rows:
        label = normalize_city_label(row.get("name") or "")
        if label and label not in names:
            names.append(label)
    logger.debug("city_suggestions state=%s q=%r -> %d", state, query, len(names))
    return names[:limit]
