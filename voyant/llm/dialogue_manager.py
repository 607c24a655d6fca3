# voyant/llm/dialogue_manager.py
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from voyant.graph.intent import detect_intent_and_slots
from voyant.graph.state import INTENTS
from voyant.llm import prompts
from voyant.llm.client import LLMClient, safe_json_parse

logger = logging.getLogger(__name__)


@dataclass
class RouteResult:
    intent: str
    slots: Dict[str, str] = field(default_factory=dict)
    confidence: float = 0.0
    source: str = "pattern"


class IntentRouter(ABC):
    @abstractmethod
    async def route(
        self,
        message: str,
        slots: Dict[str, str],
        history: Optional[List[dict]] = None,
        hint: Optional[str] = None,
    ) -> RouteResult:
        ...


def _clean_slots(raw: Any) -> Dict[str, str]:
    out: Dict[str, str] = {}
    if not isinstance(raw, dict):
        return out
    for k, v in raw.items():
        if v is None or isinstance(v, (dict, list)):
            continue
        s = str(v).strip()
        if s:
            out[str(k)] = s
    return out


class DialogueRouter(IntentRouter):
    """
    Hybrid router:
    - LLM handles intent + slot extraction when configured
    - deterministic patterns otherwise, or when the LLM call fails
    Pattern slots fill in anything the LLM left out.
    """

    def __init__(self, llm: Optional[LLMClient] = None):
        self.llm = llm

    async def route(self, message, slots, history=None, hint=None) -> RouteResult:
        pattern_intent, pattern_slots = detect_intent_and_slots(message)

        if self.llm is not None:
            try:
                payload = json.dumps(
                    {"user_input": message, "slots": slots or {}, "history": (history or [])[-6:]},
                    ensure_ascii=False,
                )
                raw = await self.llm.complete(payload, response_format="json", system=prompts.ROUTER_SYSTEM_PROMPT)
                plan = safe_json_parse(raw)
                intent = (plan.get("intent") or "unknown").strip().lower()
                if intent not in INTENTS:
                    intent = "unknown"
                merged = dict(pattern_slots)
                merged.update(_clean_slots(plan.get("slots")))
                try:
                    confidence = float(plan.get("confidence") or 0.0)
                except (TypeError, ValueError):
                    confidence = 0.0
                if intent == "unknown" and hint and hint != "unknown":
                    intent = hint
                return RouteResult(intent=intent, slots=merged, confidence=confidence, source="llm")
            except Exception as e:
                logger.warning("LLM router failed, using patterns: %s", e)

        intent = pattern_intent
        if intent == "unknown" and hint:
            intent = hint
        return RouteResult(intent=intent, slots=pattern_slots, confidence=0.6, source="pattern")


def build_clarifying_question(missing: List[str], slots: Optional[Dict[str, str]] = None) -> str:
    slots = slots or {}
    missing = set(missing or [])
    if "city" in missing and "dates" in missing:
        return "Could you share the city and month/dates?"
    if "dates" in missing:
        city = slots.get("city")
        if city:
            return f"Which month or travel dates are you considering for {city}?"
        return "Which month or travel dates?"
    if "city" in missing:
        return "Which city are you asking about?"
    return "Could you provide more details about your travel plans?"


def format_facts(facts: List[dict]) -> str:
    lines = []
    for f in facts:
        src = f.get("source") or "tool"
        lines.append(f"- [{src}] {f.get('key')}: {f.get('value')}")
    return "\n".join(lines)


async def compose_reply(
    llm: Optional[LLMClient],
    message: str,
    intent: str,
    slots: Dict[str, str],
    facts: List[dict],
    fallback: str,
) -> str:
    """Blend tool facts into a natural answer; keep the deterministic text when there's no LLM."""
    if llm is None or not facts:
        return fallback
    prompt = (
        prompts.COMPOSE_PROMPT
        .replace("{message}", message)
        .replace("{intent}", intent)
        .replace("{slots}", json.dumps(slots, ensure_ascii=False))
        .replace("{facts}", format_facts(facts))
    )
    try:
        text = (await llm.complete(prompt)).strip()
    except Exception as e:
        logger.warning("compose failed, using tool summary: %s", e)
        return fallback
    return text or fallback
