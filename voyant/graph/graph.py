import logging
from typing import Optional

from langgraph.graph import StateGraph, END

from voyant.agents.research import optimize_search_query, perform_deep_research, perform_web_search
from voyant.graph.cascade import TurnCache
from voyant.graph.consent import begin_consent, evaluate_consent
from voyant.graph.context_switch import is_context_switch
from voyant.graph.handlers import (
    HANDLERS,
    SYSTEM_REPLY,
    HandlerContext,
    explain_receipts,
    wants_receipts,
)
from voyant.graph.intent import clean_location, correct_spelling, extract_slots, origin_answer
from voyant.graph.signals import derive_signals
from voyant.graph.slots import compute_missing, merge_slots, resolve_intent
from voyant.graph.state import ConsentKind, Fact, Receipts, TurnState
from voyant.llm.dialogue_manager import RouteResult, build_clarifying_question
from voyant.utils.text import is_blank_or_emoji, normalize_name

logger = logging.getLogger(__name__)

EMPTY_REPLY = "Please ask a travel question, like the weather in a city or what to pack for a trip."
UNRELATED_REPLY = (
    "I focus on travel planning. Is there something about weather, destinations, packing, "
    "or attractions I can help with?"
)
ERROR_REPLY = "Sorry, something went wrong on my side. Could you try asking again?"


# ---------------------------
# Utilities
# ---------------------------
def add_trace(state: TurnState, node: str, detail: dict):
    state.setdefault("trace", [])
    state["trace"].append({"node": node, "detail": detail})


def _end(state: TurnState, reply: str, citations: Optional[list] = None) -> TurnState:
    state["reply"] = reply
    state["citations"] = citations
    state["done"] = True
    return state


def _next_or_end(state: TurnState) -> str:
    return "end" if state.get("done") else "next"


# ---------------------------
# Build graph
# ---------------------------
def build_graph(services):
    """
    One compiled graph per Services. Per-turn data (thread, cache) rides in
    the state, so the graph itself is safe to reuse across turns.
    """
    cascade = services.cascade

    async def node_gate(state: TurnState) -> TurnState:
        text = (state.get("message") or "").strip()
        thread = state["thread"]
        cache = state["cache"]

        if is_blank_or_emoji(text):
            add_trace(state, "gate", {"empty": True})
            return _end(state, EMPTY_REPLY)

        fixed, corrections = correct_spelling(text)
        if corrections:
            add_trace(state, "spelling", {"corrections": corrections})
        state["message"] = fixed

        if wants_receipts(fixed):
            add_trace(state, "receipts", {"facts": len(thread.last_receipts.facts)})
            return _end(state, explain_receipts(thread.last_receipts))

        content = await cascade.content_type(fixed, cache)
        state["content_type"] = content
        if content.label == "unrelated":
            add_trace(state, "gate", {"unrelated": True, "confidence": content.confidence})
            return _end(state, UNRELATED_REPLY)

        intent = await cascade.classify_intent(fixed, cache)
        state["intent_signal"] = intent
        if intent.label == "system" and content.label != "refinement":
            add_trace(state, "gate", {"system": True})
            return _end(state, SYSTEM_REPLY)
        return state

    async def node_consent(state: TurnState) -> TurnState:
        thread = state["thread"]
        if not thread.consent.awaiting:
            return state
        cache = state["cache"]

        async def switch(current: str, pending: str) -> bool:
            return await is_context_switch(current, pending, lambda t: cascade.extract(t, cache))

        outcome = await evaluate_consent(thread, state["message"], switch, services.llm)
        add_trace(state, "consent", {"action": outcome.action, "kind": outcome.kind.value})

        if outcome.action == "switch":
            return state
        if outcome.action == "reprompt":
            return _end(state, outcome.reply)

        if outcome.action == "accept":
            query = await optimize_search_query(services.llm, outcome.pending_query, thread.slots)
            add_trace(state, "search_query", {"pending": outcome.pending_query, "query": query})
            if outcome.kind is ConsentKind.DEEP_RESEARCH:
                res = await perform_deep_research(services.search, services.llm, query)
                decision = "deep research accepted"
            else:
                res = await perform_web_search(services.search, services.llm, query, services.search_summary)
                decision = f"{outcome.kind.value} accepted"
            facts = [Fact(source=c.get("source") or "web", key="result", value=c.get("title"), url=c.get("url"))
                     for c in res["citations"]]
            thread.last_receipts = Receipts(facts=facts, decisions=[decision], reply=res["reply"])
            thread.last_intent = "web_search"
            return _end(state, res["reply"], res["citations"] or None)

        # declined
        if outcome.kind is ConsentKind.DEEP_RESEARCH and outcome.pending_query:
            state["message"] = outcome.pending_query
            state["skip_complexity"] = True
            state["preface"] = outcome.reply
            add_trace(state, "consent_reroute", {"query": outcome.pending_query})
            return state
        return _end(state, outcome.reply)

    async def node_analyze(state: TurnState) -> TurnState:
        text = state["message"]
        cache = state["cache"]
        thread = state["thread"]

        # re-routed pending queries haven't been classified yet; the rest are cache hits
        content = await cascade.content_type(text, cache)
        intent = await cascade.classify_intent(text, cache)
        entities = await cascade.extract(text, cache)
        origin = origin_answer(text) if "originCity" in thread.expected_missing else None
        state["answered_origin"] = origin
        signals = await derive_signals(text, entities, content, thread.slots, services.language, origin)
        state["content_type"] = content
        state["intent_signal"] = intent
        state["entities"] = entities
        state["signals"] = signals
        add_trace(state, "analyze", {
            "content": [content.label, content.stage, content.confidence],
            "intent": [intent.label, intent.stage, intent.confidence],
            "locations": entities.location_names(),
            "categories": signals.constraint_categories,
            "short_timeframe": signals.short_timeframe,
        })

        conflict = signals.conflict_reply()
        if conflict:
            add_trace(state, "conflict", {"cities": signals.multi_city, "seasons": signals.multi_season})
            return _end(state, conflict)
        return state

    async def node_complexity(state: TurnState) -> TurnState:
        signals = state["signals"]
        thread = state["thread"]
        if (
            not signals.complex_query
            or state.get("skip_complexity")
            or not services.deep_research_enabled
            or services.search is None
            or thread.consent.awaiting
        ):
            return state
        prompt = begin_consent(thread, ConsentKind.DEEP_RESEARCH, state["message"], signals.complexity_reasoning)
        thread.last_receipts = Receipts(decisions=[signals.complexity_reasoning], reply=prompt)
        add_trace(state, "complexity", {"categories": signals.constraint_categories})
        return _end(state, prompt)

    async def node_route(state: TurnState) -> TurnState:
        text = state["message"]
        thread = state["thread"]
        hint = state["intent_signal"]
        try:
            history = await services.store.history(state["thread_id"])
            rr = await services.router.route(text, thread.slots, history, hint=hint.label)
        except Exception as e:
            logger.warning("router failed, using cascade intent: %s", e)
            rr = RouteResult(intent=hint.label or "unknown", slots=extract_slots(text), source="fallback")

        raw_intent = rr.intent
        # a confident model-stage intent beats the keyword router
        if rr.source == "pattern" and hint.has_signal and hint.stage != "pattern":
            raw_intent = hint.label

        patch = dict(rr.slots)
        origin = state.get("answered_origin")
        if origin:
            patch["originCity"] = origin
            for key in ("city", "destinationCity"):
                if normalize_name(patch.get(key)) == normalize_name(origin):
                    patch.pop(key)
        if not any(patch.get(k) for k in ("city", "destinationCity", "originCity")):
            names = state["entities"].location_names()
            if names:
                patch["city"] = names[0]

        state["route_intent"] = raw_intent
        state["route_slots"] = patch
        add_trace(state, "route", {"intent": raw_intent, "source": rr.source, "slots": patch})
        return state

    async def node_merge(state: TurnState) -> TurnState:
        text = state["message"]
        thread = state["thread"]
        signals = state["signals"]
        patch = state["route_slots"]

        intent, reason = resolve_intent(
            state["route_intent"],
            text,
            thread.slots,
            thread.last_intent,
            thread.expected_missing,
            new_city=clean_location(patch.get("city")),
        )
        if reason:
            add_trace(state, "intent_override", {"intent": intent, "reason": reason})

        slots = merge_slots(thread.slots, patch, intent)
        check = compute_missing(intent, slots, text, signals.short_timeframe)
        thread.slots = slots
        thread.last_intent = intent

        state["intent"] = intent
        state["slots"] = slots
        state["missing"] = check.missing
        state["disclaimers"] = (state.get("preface") or "") + signals.disclaimers(check.dates_waived_for_short_trip)
        add_trace(state, "merge", {"intent": intent, "missing": check.missing, "slots": slots})

        content = state["content_type"]
        if (
            intent == "destinations"
            and content.label == "flight"
            and "dates" in check.missing
            and services.search is not None
            and not thread.consent.awaiting
        ):
            thread.expected_missing = []
            prompt = begin_consent(thread, ConsentKind.WEB_SEARCH, text)
            thread.last_receipts = Receipts(decisions=["flight question without dates: web search offered"], reply=prompt)
            return _end(state, prompt)

        thread.expected_missing = list(check.missing)
        return state

    async def node_clarify(state: TurnState) -> TurnState:
        thread = state["thread"]
        q = build_clarifying_question(state["missing"], state["slots"])
        reply = f"{state.get('disclaimers') or ''}{q}"
        thread.last_receipts = Receipts(decisions=[f"missing: {', '.join(state['missing'])}"], reply=reply)
        add_trace(state, "clarify", {"missing": state["missing"]})
        return _end(state, reply)

    def make_handler_node(intent: str):
        handler = HANDLERS[intent]

        async def node(state: TurnState) -> TurnState:
            ctx = HandlerContext(
                services=services,
                thread=state["thread"],
                message=state["message"],
                slots=state["slots"],
                disclaimers=state.get("disclaimers") or "",
                decisions=[f"intent={intent}"],
            )
            try:
                out = await handler(ctx)
            except Exception as e:
                logger.exception("%s handler failed", intent)
                add_trace(state, f"{intent}_error", {"error": str(e)})
                return _end(state, ERROR_REPLY)
            add_trace(state, intent, {"decisions": ctx.decisions})
            return _end(state, out["reply"], out.get("citations"))

        return node

    def node_dispatch(state: TurnState) -> str:
        if state.get("done"):
            return "end"
        if state.get("missing"):
            return "clarify"
        return state["intent"] if state["intent"] in HANDLERS else "unknown"

    g = StateGraph(TurnState)

    g.add_node("gate", node_gate)
    g.add_node("consent_gate", node_consent)
    g.add_node("analyze", node_analyze)
    g.add_node("complexity_gate", node_complexity)
    g.add_node("route", node_route)
    g.add_node("merge", node_merge)
    g.add_node("clarify", node_clarify)
    for name in HANDLERS:
        g.add_node(name, make_handler_node(name))

    g.set_entry_point("gate")

    g.add_conditional_edges("gate", _next_or_end, {"next": "consent_gate", "end": END})
    g.add_conditional_edges("consent_gate", _next_or_end, {"next": "analyze", "end": END})
    g.add_conditional_edges("analyze", _next_or_end, {"next": "complexity_gate", "end": END})
    g.add_conditional_edges("complexity_gate", _next_or_end, {"next": "route", "end": END})
    g.add_edge("route", "merge")
    g.add_conditional_edges("merge", node_dispatch, {
        "end": END,
        "clarify": "clarify",
        **{name: name for name in HANDLERS},
    })

    g.add_edge("clarify", END)
    for name in HANDLERS:
        g.add_edge(name, END)

    return g.compile()


# ---------------------------
# Entry point
# ---------------------------
_default = None


def default_runtime():
    global _default
    if _default is None:
        from voyant.services import build_services

        services = build_services()
        _default = (services, build_graph(services))
    return _default


async def process_turn(message: str, thread_id: str, services=None, graph=None) -> dict:
    """
    Run one user message through the dispatcher. Always answers with
    {"done": True, "reply", "citations", "trace"}; the thread is loaded once
    and saved once.
    """
    if services is None:
        services, default_graph = default_runtime()
        graph = graph or default_graph
    elif graph is None:
        graph = build_graph(services)

    store = services.store
    thread = await store.load_thread(thread_id)
    state: TurnState = {
        "thread_id": thread_id,
        "message": message or "",
        "original_message": message or "",
        "thread": thread,
        "cache": TurnCache(),
        "skip_complexity": False,
        "preface": "",
        "done": False,
        "trace": [],
    }
    out = await graph.ainvoke(state)

    thread = out["thread"]
    reply = out.get("reply") or ERROR_REPLY
    thread.last_user_message = message
    await store.save_thread(thread_id, thread)
    if (message or "").strip():
        await store.record(thread_id, "user", message)
        await store.record(thread_id, "assistant", reply, {"trace": out.get("trace", [])})

    logger.debug("turn %s: %s", thread_id, [t["node"] for t in out.get("trace", [])])
    return {"done": True, "reply": reply, "citations": out.get("citations"), "trace": out.get("trace", [])}
