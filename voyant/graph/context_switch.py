import logging
import re
from typing import Awaitable, Callable

from voyant.graph.cascade import ExtractionResult
from voyant.graph.intent import normalize_yes_no
from voyant.utils.text import normalize_name

logger = logging.getLogger(__name__)

TYPE_OVERLAP_MIN = 0.3
TOKEN_OVERLAP_MIN = 0.2

QUESTION_WORDS = (
    "what", "where", "how", "when", "which", "who", "why",
    "can", "could", "would", "is", "are", "do", "does", "should", "tell",
)

Extractor = Callable[[str], Awaitable[ExtractionResult]]


def _entity_types(result: ExtractionResult, other: ExtractionResult) -> set[str]:
    """
    Types present in `result`, except that "location" only counts when the
    two messages share a place; a different destination is not an overlap.
    """
    types = result.types()
    if "location" in types:
        mine = {normalize_name(x) for x in result.location_names()}
        theirs = {normalize_name(x) for x in other.location_names()}
        if theirs and not (mine & theirs):
            types = (types - {"location"}) | {f"location:{sorted(mine)[0]}"}
    return types


def _tokens(text: str) -> set[str]:
    return {w for w in re.findall(r"[a-z0-9']+", (text or "").lower()) if len(w) > 2}


def starts_with_question(text: str) -> bool:
    first = (text or "").strip().lower().split(" ", 1)[0]
    return first.rstrip("?,!.") in QUESTION_WORDS


async def is_context_switch(current: str, pending: str, extract: Extractor) -> bool:
    """
    Decide whether `current` abandons the `pending` request. Conservative: weak
    signal means "not a switch", so a pending request isn't thrown away on a noisy read.
    """
    cur = " ".join((current or "").lower().split())
    pen = " ".join((pending or "").lower().split())

    # 1. same text
    if cur == pen:
        return False

    # 2. a consent reply ("yes", "no thanks")
    if normalize_yes_no(current) is not None:
        return False

    # 3. entity-type overlap
    entities_failed = False
    try:
        a = await extract(current)
        b = await extract(pending)
        types_a = _entity_types(a, b)
        types_b = _entity_types(b, a)
        larger = max(len(types_a), len(types_b))
        # nothing extracted from the reply itself: inconclusive, fall through
        if a.has_signal and larger:
            overlap = len(types_a & types_b) / larger
            logger.debug("context switch: type overlap %.2f (%s vs %s)", overlap, types_a, types_b)
            if overlap < TYPE_OVERLAP_MIN:
                return True
        else:
            entities_failed = True
    except Exception as e:
        logger.warning("context switch entity check failed: %s", e)
        entities_failed = True

    # 4. lexical overlap for question-shaped messages
    if entities_failed and starts_with_question(current):
        ta, tb = _tokens(current), _tokens(pending)
        larger = max(len(ta), len(tb))
        if larger:
            ratio = len(ta & tb) / larger
            logger.debug("context switch: token overlap %.2f", ratio)
            if ratio < TOKEN_OVERLAP_MIN:
                return True

    # 5. continuation
    return False
