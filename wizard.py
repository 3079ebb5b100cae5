# wizard.py
# State machine behind the "create driver + first review" form:
# pick a state, then an optional city, then submit.

from dataclasses import dataclass, field

from handles import is_valid_handle, normalize_handle
from locations import STATE_CODES, best_state_matches
from moderation import MAX_COMMENT_CHARS

IDLE = "idle"
CHOOSING_STATE = "choosing_state"
CHOOSING_CITY = "choosing_city"
SUBMITTING = "submitting"
BANNER_SHOWN = "banner_shown"

NOT_LISTED = -1  # city list row for "City not listed"


class WizardError(Exception):
    pass


def next_state_index(prev: int, key: str, count: int) -> int:
    """Arrow keys over the state list; wraps around 0..count-1."""
    if count <= 0:
        return 0
    last = count - 1
    if key == "ArrowDown":
        return prev + 1 if prev < last else 0
    if key == "ArrowUp":
        return prev - 1 if prev > 0 else last
    return prev


def next_city_index(prev: int, key: str, count: int) -> int:
    """Arrow keys over the city list; -1 is the "City not listed" row."""
    last = count - 1
    if key == "ArrowDown":
        return prev + 1 if prev < last else NOT_LISTED
    if key == "ArrowUp":
        return last if prev == NOT_LISTED else prev - 1
    return prev


@dataclass
class CreateDriverWizard:
    raw_query: str
    mode: str = IDLE
    state_input: str = ""
    state: str = ""
    state_open: bool = False
    state_index: int = 0
    city_input: str = ""
    city_value: str | None = None
    city_not_listed: bool = False
    city_open: bool = False
    city_index: int = NOT_LISTED
    city_suggestions: list[str] = field(default_factory=list)
    display_name: str | None = None
    stars: int = 5
    comment: str = ""
    tag_ids: list[str] = field(default_factory=list)
    banner: str | None = None
    banner_ok: bool = False

    def __post_init__(self):
        if self.display_name is None:
            self.display_name = self.raw_query.strip()

    @property
    def handle(self) -> str:
        return normalize_handle(self.raw_query)

    @property
    def handle_valid(self) -> bool:
        return is_valid_handle(self.handle)

    @property
    def state_picked(self) -> bool:
        return len(self.state) == 2

    @property
    def state_matches(self) -> list[tuple[str, str]]:
        return best_state_matches(self.state_input)

    @property
    def can_submit(self) -> bool:
        return (
            self.mode != SUBMITTING
            and self.state_picked
            and self.handle_valid
            and len(self.comment) <= MAX_COMMENT_CHARS
        )

    @property
    def city_to_save(self) -> str | None:
        if self.city_not_listed:
            return None
        return (self.city_value or "").strip() or None

    # --- state picker

    def _reset_city(self):
        self.city_input = ""
        self.city_value = None
        self.city_not_listed = False
        self.city_suggestions = []
        self.city_open = False
        self.city_index = NOT_LISTED

    def focus_state(self):
        self.mode = CHOOSING_STATE
        self.state_open = True
        self.state_index = 0

    def type_state(self, value: str):
        cleaned = "".join(ch for ch in value.upper() if ch.isalpha() or ch == " ")
        self.state_input = cleaned
        self.mode = CHOOSING_STATE
        self.state_open = True
        self.state_index = 0

        maybe = cleaned.strip()[:2]
        if maybe in STATE_CODES and len(cleaned.strip()) <= 2:
            self.state = maybe
        else:
            # unselecting the state locks the city again
            self.state = ""
            self._reset_city()

    def pick_state(self, code: str):
        code = code.strip().upper()
        if code not in STATE_CODES:
            raise WizardError(f"Unknown state: {code}")
        self.state = code
        self.state_input = code
        self.state_open = False
        self._reset_city()
        self.mode = CHOOSING_CITY

    def state_key(self, key: str):
        matches = self.state_matches
        if key == "Escape":
            self.state_open = False
            return
        if key in ("ArrowDown", "ArrowUp"):
            if not self.state_open:
                self.state_open = True
                self.state_index = 0
                return
            self.state_index = next_state_index(self.state_index, key, len(matches))
            return
        if key in ("Enter", "Tab") and self.state_open:
            if 0 <= self.state_index < len(matches):
                self.pick_state(matches[self.state_index][0])

    # --- city picker

    def type_city(self, value: str):
        if not self.state_picked:
            raise WizardError("Pick a state first.")
        self.city_input = value
        self.city_value = value if value.strip() else None
        self.city_not_listed = False
        self.city_open = True
        self.mode = CHOOSING_CITY

    def set_city_suggestions(self, names: list[str]):
        self.city_suggestions = list(names)
        self.city_index = NOT_LISTED
        if names:
            self.city_open = True

    def pick_city(self, name: str):
        self.city_input = name
        self.city_value = name
        self.city_not_listed = False
        self.city_open = False
        self.city_index = NOT_LISTED

    def choose_not_listed(self):
        self.city_input = ""
        self.city_value = None
        self.city_not_listed = True
        self.city_open = False
        self.city_index = NOT_LISTED

    def city_key(self, key: str):
        if not self.state_picked:
            return
        has_menu = self.city_open and not self.city_not_listed
        if key == "Escape":
            self.city_open = False
            self.city_index = NOT_LISTED
            return
        if key in ("ArrowDown", "ArrowUp"):
            if not has_menu:
                self.city_open = True
                self.city_index = NOT_LISTED
                return
            self.city_index = next_city_index(self.city_index, key, len(self.city_suggestions))
            return
        if key == "Enter" and has_menu:
            if self.city_index == NOT_LISTED:
                self.choose_not_listed()
            elif 0 <= self.city_index < len(self.city_suggestions):
                self.pick_city(self.city_suggestions[self.city_index])

    # --- review fields

    def set_stars(self, value: int):
        if isinstance(value, bool) or value not in (1, 2, 3, 4, 5):
            raise WizardError("Stars must be 1–5.")
        self.stars = value

    def toggle_tag(self, tag_id: str):
        if tag_id in self.tag_ids:
            self.tag_ids.remove(tag_id)
        else:
            self.tag_ids.append(tag_id)

    # --- submit / banner

    def submit(self, with_review: bool = True) -> dict:
        """
        Move to submitting and return what to post.

        `driver` goes to driver creation. `review` is None for "create only";
        otherwise the caller adds the new driver's id as driverId before posting it.
        """
        if with_review and len(self.comment) > MAX_COMMENT_CHARS:
            raise WizardError(
                f"Please shorten your comment to {MAX_COMMENT_CHARS} characters or less to submit."
            )
        if self.mode == SUBMITTING:
            raise WizardError("Already submitting.")
        if not self.state_picked:
            raise WizardError("Please select a state.")
        if not self.handle_valid:
            raise WizardError("Driver handle format is invalid.")
        self.mode = SUBMITTING
        self.state_open = False
        self.city_open = False

        driver = {
            "handle": self.handle,
            "displayName": (self.display_name or "").strip() or self.handle,
            "state": self.state,
            "city": self.city_to_save,
            "cityNotListed": self.city_not_listed,
        }
        review = None
        if with_review:
            review = {"stars": self.stars, "comment": self.comment, "tagIds": list(self.tag_ids)}
        return {"driver": driver, "review": review}

    def finish(self, ok: bool, message: str):
        self.mode = BANNER_SHOWN
        self.banner = message
        self.banner_ok = ok

    def dismiss(self):
        self.banner = None
        self.banner_ok = False
        self.mode = CHOOSING_CITY if self.state_picked else IDLE
