# moderation.py
# Comment moderation: slur hard-block, contact-info hard-block, profanity soft-censor.

import re
import unicodedata
from typing import Iterable

from better_profanity import Profanity

MAX_COMMENT_CHARS = 500

# --- Utility: basic leetspeak mapping (expand as needed)
LEET_MAP = str.maketrans({
    "0": "o",
    "1": "i",
    "3": "e",
    "4": "a",
    "5": "s",
    "7": "t",
    "8": "b",
    "@": "a",
    "$": "s",
    "!": "i",
})

ZERO_WIDTH_RE = re.compile(r"[\u200B-\u200F\u202A-\u202E\u2060-\u206F\uFEFF]")
WHITESPACE_RE = re.compile(r"\s+")

# Contact info is never allowed in a review
URL_RE = re.compile(
    r"(https?://|www\.)\S+|\b[a-z0-9-]+\.(com|net|org|io|co|ly|app|info|biz)\b",
    re.IGNORECASE,
)
EMAIL_RE = re.compile(r"\b[\w.+-]+@[\w-]+(\.[\w-]+)+\b")
AT_HANDLE_RE = re.compile(r"(?<![\w@])@[A-Za-z0-9_.]{2,}")


class ModerationError(ValueError):
    """Raised when text must be rejected outright."""


def normalize_text(s: str) -> str:
    # NFKC, strip zero-width, collapse whitespace
    s = unicodedata.normalize("NFKC", str(s or ""))
    s = ZERO_WIDTH_RE.sub("", s)
    return WHITESPACE_RE.sub(" ", s).strip()


def _for_detection(s: str) -> str:
    return normalize_text(s).lower().translate(LEET_MAP)


def parse_word_list(raw: str | None) -> list[str]:
    """Split a comma separated env value into lowercase entries."""
    if not raw:
        return []
    return [w.strip().lower() for w in raw.split(",") if w.strip()]


class Moderator:
    """
    Holds the operator word lists and runs text through them.

    `slurs` are hard blocks (substring match, case-insensitive).
    `censor_words` extend the better_profanity default wordlist for the soft censor.
    """

    def __init__(self, slurs: Iterable[str] = (), censor_words: Iterable[str] = ()):
        self.slurs = [w.strip().lower() for w in slurs if w and w.strip()]
        self.censor_words = [w.strip().lower() for w in censor_words if w and w.strip()]
        # own word set per instance; the module-level `profanity` is shared process-wide
        self._profanity = Profanity()
        self._profanity.load_censor_words()
        if self.censor_words:
            self._profanity.add_censor_words(self.censor_words)

    def contains_slur(self, text: str) -> bool:
        if not text or not self.slurs:
            return False
        lower = normalize_text(text).lower()
        folded = _for_detection(text)
        return any(slur in lower or slur in folded for slur in self.slurs)

    @staticmethod
    def contains_contact_info(text: str) -> bool:
        if not text:
            return False
        return bool(EMAIL_RE.search(text) or URL_RE.search(text) or AT_HANDLE_RE.search(text))

    def soft_censor(self, text: str) -> str:
        if self._profanity.contains_profanity(text):
            return self._profanity.censor(text)
        return text

    def clean_comment(self, raw) -> str | None:
        """
        Run a review comment through the pipeline.
          - normalize
          - enforce length cap
          - hard block slurs, then links/emails/@handles
          - soft censor mild profanity
        Returns None for an empty comment.
        """
        comment = normalize_text(raw)
        if not comment:
            return None
        if len(comment) > MAX_COMMENT_CHARS:
            raise ModerationError(f"Comments are limited to {MAX_COMMENT_CHARS} characters.")
        if self.contains_slur(comment):
            raise ModerationError("Your comment contains prohibited language.")
        if self.contains_contact_info(comment):
            raise ModerationError("Links, emails and @handles are not allowed in comments.")
        return self.soft_censor(comment)

    def _mask_offensive_tokens(self, s: str) -> str:
        # Mask whole tokens that carry a slur or profanity; keep spacing readable
        tokens = re.split(r"(\s+)", s)
        out = []
        for tok in tokens:
            if not tok or tok.isspace():
                out.append(tok)
                continue
            if self.contains_slur(tok) or self._profanity.contains_profanity(tok):
                out.append("*" * len(tok))
            else:
                out.append(tok)
        return "".join(out)

    def sanitize_display_name(self, raw: str, fallback: str, max_len: int = 40) -> str:
        """
        - Trim + cut length
        - If blocked content present -> mask
        - Drop contact info entirely
        - Return `fallback` if result is basically all stars/empty
        """
        disp = normalize_text(raw)[:max_len]
        if not disp:
            return fallback

        if self.contains_contact_info(disp):
            return fallback

        disp = self._mask_offensive_tokens(disp)

        visible = re.sub(r"[\s\*]", "", disp)
        if len(visible) < 2:
            return fallback
        return disp
