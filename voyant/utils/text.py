import re
import unicodedata

_WS = re.compile(r"\s+")


def normalize_name(value: str | None) -> str:
    """Case, diacritic and whitespace insensitive key ('  São  Paulo' -> 'sao paulo')."""
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFKD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WS.sub(" ", stripped).strip().casefold()


def collapse_ws(value: str | None) -> str:
    return _WS.sub(" ", value or "").strip()


def is_blank_or_emoji(text: str | None) -> bool:
    """True when there's nothing but whitespace, punctuation, symbols or emoji."""
    if not text or not text.strip():
        return True
    for ch in text:
        if ch.isspace():
            continue
        cat = unicodedata.category(ch)
        # letters and digits carry meaning
        if cat[0] in ("L", "N"):
            return False
    return True
