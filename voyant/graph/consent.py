"""
Consent sub-protocol: NONE -> AWAITING(kind, pending_query) -> NONE.

Only one consent can be outstanding per thread; ThreadState holds a single
ConsentState, so starting a new request replaces whatever was pending.
"""
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from voyant.graph.intent import normalize_yes_no
from voyant.graph.state import ConsentKind, ConsentState, ThreadState
from voyant.llm import prompts
from voyant.llm.client import safe_json_parse

logger = logging.getLogger(__name__)

WEB_SEARCH_PROMPT = "I can search the web to find current flight and airline information. Would you like me to do that?"
DEEP_RESEARCH_PROMPT = (
    "This request has several constraints and would benefit from a deeper web research pass. "
    "If you're okay with it, reply \"yes\" and I'll gather tailored options. "
    "Otherwise, feel free to refine the details."
)
SEARCH_DECLINED_REPLY = "No problem! Is there something else about travel planning I can help with?"
WEB_AFTER_RAG_DECLINED_REPLY = "Understood. Feel free to ask me anything else!"
DEEP_RESEARCH_DECLINED_REPLY = "No problem, here's a standard answer instead. "


def web_after_rag_prompt(reason: Optional[str] = None) -> str:
    if reason:
        prefix = f"I couldn't find sufficient information in our internal knowledge base ({reason})."
    else:
        prefix = "I couldn't find sufficient information in our internal knowledge base."
    return (
        f"{prefix} If you're okay with it, reply \"yes\" and I'll search for current information; "
        "otherwise, feel free to refine the question."
    )


def consent_prompt(consent: ConsentState) -> str:
    if consent.kind is ConsentKind.DEEP_RESEARCH:
        return DEEP_RESEARCH_PROMPT
    if consent.kind is ConsentKind.WEB_AFTER_RAG:
        return web_after_rag_prompt(consent.reasoning or None)
    return WEB_SEARCH_PROMPT


def begin_consent(thread: ThreadState, kind: ConsentKind, pending_query: str, reasoning: str = "") -> str:
    """Switch to AWAITING(kind); returns the question to show the user."""
    thread.consent = ConsentState(awaiting=True, kind=kind, pending_query=pending_query, reasoning=reasoning)
    return consent_prompt(thread.consent)


def clear_consent(thread: ThreadState) -> None:
    thread.consent = ConsentState()


async def classify_consent_reply(message: str, llm=None) -> str:
    """'yes' | 'no' | 'unclear'. Exact tokens first; the LLM only sees ambiguous replies."""
    token = normalize_yes_no(message)
    if token:
        return token
    if llm is None:
        return "unclear"
    try:
        raw = await llm.complete(prompts.CONSENT_DETECTOR_PROMPT.replace("{message}", message), response_format="json")
    except Exception as e:
        logger.warning("consent classifier failed: %s", e)
        return "unclear"
    answer = (safe_json_parse(raw).get("answer") or "").strip().lower()
    return answer if answer in ("yes", "no") else "unclear"


@dataclass
class ConsentOutcome:
    action: str                  # none | switch | reprompt | accept | decline
    kind: ConsentKind = ConsentKind.NONE
    pending_query: str = ""
    reply: Optional[str] = None


SwitchCheck = Callable[[str, str], Awaitable[bool]]


async def evaluate_consent(thread: ThreadState, message: str, is_switch: SwitchCheck, llm=None) -> ConsentOutcome:
    """
    Resolve a pending consent against this turn's message. The thread's consent
    is cleared for every outcome except a re-prompt.
    """
    consent = thread.consent
    if not consent.awaiting or consent.kind is ConsentKind.NONE:
        return ConsentOutcome(action="none")

    pending = consent.pending_query
    kind = consent.kind

    if await is_switch(message, pending):
        logger.debug("consent %s dropped: context switch", kind.value)
        clear_consent(thread)
        return ConsentOutcome(action="switch", kind=kind, pending_query=pending)

    verdict = await classify_consent_reply(message, llm)
    if verdict == "unclear":
        return ConsentOutcome(action="reprompt", kind=kind, pending_query=pending, reply=consent_prompt(consent))

    clear_consent(thread)
    if verdict == "yes":
        return ConsentOutcome(action="accept", kind=kind, pending_query=pending)

    if kind is ConsentKind.DEEP_RESEARCH:
        reply = DEEP_RESEARCH_DECLINED_REPLY
    elif kind is ConsentKind.WEB_AFTER_RAG:
        reply = WEB_AFTER_RAG_DECLINED_REPLY
    else:
        reply = SEARCH_DECLINED_REPLY
    return ConsentOutcome(action="decline", kind=kind, pending_query=pending, reply=reply)
