"""
Intent handlers. Each one gets the merged slots and the thread by reference,
calls its tool, records receipts and returns {"reply", "citations"} with the
turn's disclaimers already prepended.
"""
import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from voyant.agents.attractions import run_attractions_agent
from voyant.agents.country import run_country_agent
from voyant.agents.flights import run_flights_agent
from voyant.agents.packing import run_packing_agent
from voyant.agents.research import perform_web_search
from voyant.agents.weather import run_weather_agent
from voyant.graph.consent import begin_consent
from voyant.graph.intent import parse_date_maybe
from voyant.graph.state import ConsentKind, Fact, Receipts, ThreadState
from voyant.llm.dialogue_manager import compose_reply
from voyant.providers.amadeus_flights import UnknownLocationError
from voyant.providers.base import ProviderError

logger = logging.getLogger(__name__)

SYSTEM_REPLY = (
    "I'm an AI travel assistant. I can help you with weather, destinations, packing, and attractions. "
    "What would you like to know?"
)
UNKNOWN_REPLY = (
    "I'm not sure what you're asking. I can help with weather, destinations, packing, and attractions. "
    "Could you rephrase your question?"
)


@dataclass
class HandlerContext:
    services: Any
    thread: ThreadState
    message: str
    slots: dict[str, str]
    disclaimers: str = ""
    decisions: list[str] = field(default_factory=list)


def _finish(ctx: HandlerContext, reply: str, facts: Optional[list[Fact]] = None,
            citations: Optional[list[dict]] = None) -> dict:
    reply = f"{ctx.disclaimers}{reply}" if ctx.disclaimers else reply
    ctx.thread.last_receipts = Receipts(facts=list(facts or []), decisions=list(ctx.decisions), reply=reply)
    return {"reply": reply, "citations": citations}


async def _run_tool(fn, *args, **kwargs) -> dict:
    """Tools are blocking; failures come back as {ok: False} instead of raising."""
    try:
        return await asyncio.to_thread(fn, *args, **kwargs)
    except ProviderError as e:
        logger.warning("%s failed: %s", getattr(fn, "__name__", fn), e)
        return {"ok": False, "reason": str(e)}


def _fact(res: dict, key: str) -> Fact:
    return Fact(source=res.get("source") or "tool", key=key, value=res.get("summary"), url=res.get("url"))


async def _compose(ctx: HandlerContext, intent: str, facts: list[Fact], fallback: str) -> str:
    return await compose_reply(
        ctx.services.llm,
        ctx.message,
        intent,
        ctx.slots,
        [{"source": f.source, "key": f.key, "value": f.value} for f in facts],
        fallback,
    )


# ---------------------------
# Intent handlers
# ---------------------------
async def handle_weather(ctx: HandlerContext) -> dict:
    city = ctx.slots.get("city")
    month = ctx.slots.get("month")
    ctx.decisions.append(f"weather for {city}" + (f" in {month}" if month else ""))
    if ctx.services.weather is None:
        return _finish(ctx, f"I couldn't find weather data for \"{city}\". Could you provide a valid city name?")

    res = await _run_tool(run_weather_agent, ctx.services.weather, city, month)
    if not res.get("ok"):
        ctx.decisions.append(f"weather tool: {res.get('reason')}")
        return _finish(ctx, f"I couldn't find weather data for \"{city}\". Could you provide a valid city name?")

    facts = [_fact(res, "weather")]
    reply = await _compose(ctx, "weather", facts, res["summary"])
    return _finish(ctx, reply, facts)


async def handle_destinations(ctx: HandlerContext) -> dict:
    place = ctx.slots.get("city") or ctx.slots.get("originCity")
    month = ctx.slots.get("month")
    facts: list[Fact] = []
    parts = []

    if ctx.services.countries is not None:
        res = await _run_tool(run_country_agent, ctx.services.countries, place, ctx.services.geocoder)
        if res.get("ok"):
            facts.append(_fact(res, "country"))
            parts.append(res["summary"])
        else:
            ctx.decisions.append(f"country facts: {res.get('reason')}")

    if ctx.services.weather is not None:
        wx = await _run_tool(run_weather_agent, ctx.services.weather, place, month)
        if wx.get("ok"):
            facts.append(_fact(wx, "weather"))
            parts.append(wx["summary"])

    if not facts:
        return _finish(ctx, f"I couldn't find details about {place}. Could you try another destination?")

    ctx.decisions.append(f"destination facts for {place}")
    reply = await _compose(ctx, "destinations", facts, "\n".join(parts))
    return _finish(ctx, reply, facts)


async def handle_packing(ctx: HandlerContext) -> dict:
    city = ctx.slots.get("city")
    if ctx.services.weather is None:
        return _finish(ctx, f"I couldn't get the weather for {city} to plan your packing. Could you try another city?")

    res = await _run_tool(
        run_packing_agent,
        ctx.services.weather,
        city,
        ctx.slots.get("month"),
        ctx.slots.get("travelerProfile"),
        ctx.message,
        ctx.slots.get("interests"),
    )
    if not res.get("ok"):
        ctx.decisions.append(f"packing tool: {res.get('reason')}")
        return _finish(ctx, f"I couldn't get the weather for {city} to plan your packing. Could you try another city?")

    ctx.decisions.append(f"packing band {res['band']}")
    facts = [Fact(source=res.get("source") or "open-meteo.com", key="weather", value=res["weather"], url=res.get("url")),
             Fact(source="packing", key="packing_list", value=res["summary"])]
    reply = await _compose(ctx, "packing", facts, res["summary"])
    return _finish(ctx, reply, facts)


async def handle_attractions(ctx: HandlerContext) -> dict:
    city = ctx.slots.get("city")
    if ctx.services.attractions is None or ctx.services.geocoder is None:
        return _finish(ctx, f"I can't look up attractions for {city} right now. Is there something else I can help with?")

    res = await _run_tool(
        run_attractions_agent, ctx.services.geocoder, ctx.services.attractions, city, ctx.slots.get("travelerProfile")
    )
    if not res.get("ok"):
        ctx.decisions.append(f"attractions tool: {res.get('reason')}")
        return _finish(ctx, f"I couldn't find attractions for {city}. Could you try a nearby city?")

    facts = [_fact(res, "attractions")]
    reply = await _compose(ctx, "attractions", facts, res["summary"])
    return _finish(ctx, reply, facts)


_CORPUS_HINTS = (
    (re.compile(r"\b(visa|passport|entry requirements?|esta|etias)\b", re.IGNORECASE), "visas"),
    (re.compile(r"\b(baggage|luggage|carry[- ]on|refund|cancel\w*|airline)\b", re.IGNORECASE), "airlines"),
    (re.compile(r"\b(hotel|check[- ]?in|check[- ]?out)\b", re.IGNORECASE), "hotels"),
)


def corpus_hint(message: str) -> Optional[str]:
    for rx, hint in _CORPUS_HINTS:
        if rx.search(message or ""):
            return hint
    return None


async def handle_policy(ctx: HandlerContext) -> dict:
    """RAG over the policy corpora; nothing found starts a web-after-RAG consent."""
    if ctx.services.rag is None:
        ctx.decisions.append("policy knowledge base not configured")
        return _finish(ctx, begin_consent(ctx.thread, ConsentKind.WEB_AFTER_RAG, ctx.message, "not available"))

    hint = corpus_hint(ctx.message)
    try:
        res = await asyncio.to_thread(ctx.services.rag.query, ctx.message, hint)
    except ProviderError as e:
        logger.warning("policy RAG failed: %s", e)
        ctx.decisions.append("policy RAG failed")
        return _finish(ctx, begin_consent(ctx.thread, ConsentKind.WEB_AFTER_RAG, ctx.message, "search error"))

    citations = res.get("citations") or []
    summary = (res.get("summary") or "").strip()
    if not citations:
        ctx.decisions.append("policy RAG returned no citations")
        return _finish(ctx, begin_consent(ctx.thread, ConsentKind.WEB_AFTER_RAG, ctx.message, "no results"))

    ctx.decisions.append(f"policy RAG corpus={hint or 'default'}")
    if not summary:
        summary = "\n".join(f"- {c.get('snippet')}" for c in citations[:3] if c.get("snippet"))
    sources = "\n".join(f"- {c.get('title') or c.get('url')}: {c.get('url')}" for c in citations[:5])
    facts = [Fact(source="vectara", key="policy", value=c.get("snippet"), url=c.get("url")) for c in citations[:5]]
    out_citations = [{"source": "vectara", "url": c.get("url"), "title": c.get("title")} for c in citations]
    return _finish(ctx, f"{summary}\n\nSources:\n{sources}", facts, out_citations)


async def handle_flights(ctx: HandlerContext) -> dict:
    s = ctx.slots
    origin = s.get("originCity")
    destination = s.get("destinationCity") or s.get("city")
    date_iso = parse_date_maybe(s.get("departureDate") or s.get("dates") or "")

    if ctx.services.flights is None:
        ctx.decisions.append("flight search not configured")
        return _finish(ctx, "Flight search isn't available right now. Is there something else I can help with?")

    missing, expected = [], []
    if not origin:
        missing.append("where you're flying from")
        expected.append("originCity")
    if not date_iso:
        missing.append("the departure date")
        expected.append("departureDate")
    if missing:
        ctx.decisions.append("flights missing: " + ", ".join(expected))
        # the next message can answer with just "from Boston" or a date
        ctx.thread.expected_missing = expected
        return _finish(ctx, f"I can search flights to {destination}, but I still need {' and '.join(missing)}.")

    try:
        data = await asyncio.to_thread(run_flights_agent, ctx.services.flights, origin, destination, date_iso)
    except UnknownLocationError as e:
        ctx.decisions.append(f"unknown {e.field}: {e.query}")
        if e.suggestions:
            opts = "\n".join(
                f"- {x.get('name')} ({x.get('iataCode')})" + (f", {x.get('countryCode')}" if x.get("countryCode") else "")
                for x in e.suggestions[:5]
            )
            q = (
                f"I couldn't find a matching {e.field} for \"{e.query}\". Did you mean one of these?\n"
                f"{opts}\n\nReply with the correct one."
            )
        else:
            q = (
                f"I couldn't find a matching {e.field} for \"{e.query}\". "
                "Please tell me a nearby major airport or city."
            )
        return _finish(ctx, q)
    except ProviderError as e:
        logger.warning("flight search failed: %s", e)
        ctx.decisions.append("flight search failed")
        return _finish(ctx, "Flight search failed right now. Try a different date or city?")

    if not data.get("ok"):
        return _finish(ctx, f"No flights found for {origin} → {destination} on {date_iso}. Try another date?")

    ctx.decisions.append(f"flights {origin}->{destination} on {date_iso}")
    facts = [Fact(source=data["source"], key="flights", value=data["summary"])]
    reply = await _compose(ctx, "flights", facts, data["summary"])
    return _finish(ctx, reply, facts)


async def handle_system(ctx: HandlerContext) -> dict:
    return _finish(ctx, SYSTEM_REPLY)


async def handle_web_search(ctx: HandlerContext) -> dict:
    """The user asked for a search outright, so there's nothing to consent to."""
    res = await perform_web_search(ctx.services.search, ctx.services.llm, ctx.message, ctx.services.search_summary)
    ctx.decisions.append("web search" if res["ok"] else "web search returned nothing")
    facts = [Fact(source=c.get("source") or "web", key="result", value=c.get("title"), url=c.get("url"))
             for c in res["citations"]]
    return _finish(ctx, res["reply"], facts, res["citations"] or None)


async def handle_unknown(ctx: HandlerContext) -> dict:
    return _finish(ctx, UNKNOWN_REPLY)


HANDLERS = {
    "weather": handle_weather,
    "destinations": handle_destinations,
    "packing": handle_packing,
    "attractions": handle_attractions,
    "policy": handle_policy,
    "flights": handle_flights,
    "system": handle_system,
    "web_search": handle_web_search,
    "unknown": handle_unknown,
}


# ---------------------------
# Receipts explain-back
# ---------------------------
RECEIPTS_RE = re.compile(
    r"^\s*(/why|why\??|show (me )?(the )?(receipts|sources)|receipts|where did (that|you get that)( come from)?\??|"
    r"what are your sources\??|how do you know( that)?\??)\s*$",
    re.IGNORECASE,
)


def wants_receipts(message: str) -> bool:
    return bool(RECEIPTS_RE.match(message or ""))


def explain_receipts(receipts: Receipts) -> str:
    if not receipts.facts and not receipts.decisions:
        return "I don't have any sources to show yet. Ask me a travel question first."
    lines = ["Here's what my last answer was based on:"]
    for f in receipts.facts:
        src = f"{f.source} ({f.url})" if f.url else f.source
        lines.append(f"- {f.key} from {src}")
    if receipts.decisions:
        lines.append("")
        lines.append("Decisions:")
        lines += [f"- {d}" for d in receipts.decisions]
    return "\n".join(lines)
