# handles.py
# Driver handle normalization and search planning.

import re
from dataclasses import dataclass

# DB constraint: ^[a-z0-9]{1,4}-[a-z]{2,24}$
HANDLE_RE = re.compile(r"^[a-z0-9]{1,4}-[a-z]{2,24}$")
PLATE_LEADING_RE = re.compile(r"^(?P<plate>\d{4})(-(?P<name>[a-z]{1,24}))?$")

SEPARATOR_RE = re.compile(r"[\s_\-]+")
DISALLOWED_RE = re.compile(r"[^a-z0-9-]")

SEARCH_LIMIT = 20

HANDLE_HINT = 'It must look like "8841-mike" (1-4 letters/numbers, dash, 2-24 letters).'
NEEDS_DISAMBIGUATOR_MSG = (
    "Plate-only searches need one more detail. Add the driver's first name, "
    "or a state, city or car detail."
)
UNRECOGNIZED_MSG = "Search with the last 4 of the license plate and a first name (ex: 8841 mike)."

# Plan kinds
EMPTY = "empty"
EXACT = "exact"
PREFIX = "prefix"
NEEDS_DISAMBIGUATOR = "needs_disambiguator"
UNRECOGNIZED = "unrecognized"


def normalize_handle(raw: str) -> str:
    """'  8841  Mike ' -> '8841-mike'. Idempotent on canonical handles."""
    h = str(raw or "").strip().lower()
    h = SEPARATOR_RE.sub("-", h)
    h = DISALLOWED_RE.sub("", h)
    h = re.sub(r"-{2,}", "-", h)
    return h.strip("-")


def is_valid_handle(handle: str) -> bool:
    return bool(HANDLE_RE.match(handle or ""))


def split_handle(handle: str) -> tuple[str, str]:
    plate, _, name = (handle or "").partition("-")
    return plate, name


def _clean(v) -> str:
    return str(v or "").strip()


@dataclass(frozen=True)
class SearchFilters:
    state: str = ""
    city: str = ""
    color: str = ""
    make: str = ""
    model: str = ""

    @classmethod
    def from_args(cls, args) -> "SearchFilters":
        return cls(
            state=_clean(args.get("state")).upper()[:2],
            city=_clean(args.get("city")),
            color=_clean(args.get("color")),
            make=_clean(args.get("make")),
            model=_clean(args.get("model")),
        )

    @property
    def has_disambiguator(self) -> bool:
        return any((self.state, self.city, self.color, self.make, self.model))


@dataclass(frozen=True)
class SearchPlan:
    kind: str
    handle: str = ""
    prefix: str = ""
    message: str | None = None


def plan_search(raw: str, filters: SearchFilters | None = None) -> SearchPlan:
    """
    Decide how a free-text query is looked up.

      exact               canonical handle; equality, then prefix fallback
      prefix              plate + partial name (or bare plate + a filter); ILIKE 'plate-name%'
      needs_disambiguator bare plate with nothing to narrow it
      unrecognized        anything else
    """
    filters = filters or SearchFilters()
    handle = normalize_handle(raw)
    if not handle:
        return SearchPlan(EMPTY)

    if is_valid_handle(handle):
        return SearchPlan(EXACT, handle=handle, prefix=handle)

    m = PLATE_LEADING_RE.match(handle)
    if m:
        plate, name = m.group("plate"), m.group("name") or ""
        if not name and not filters.has_disambiguator:
            return SearchPlan(NEEDS_DISAMBIGUATOR, handle=handle, message=NEEDS_DISAMBIGUATOR_MSG)
        return SearchPlan(PREFIX, handle=handle, prefix=f"{plate}-{name}")

    return SearchPlan(UNRECOGNIZED, handle=handle, message=UNRECOGNIZED_MSG)
