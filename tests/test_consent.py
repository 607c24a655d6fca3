import asyncio
import json

import pytest

from voyant.graph.consent import (
    DEEP_RESEARCH_DECLINED_REPLY,
    DEEP_RESEARCH_PROMPT,
    SEARCH_DECLINED_REPLY,
    WEB_SEARCH_PROMPT,
    begin_consent,
    classify_consent_reply,
    clear_consent,
    evaluate_consent,
    web_after_rag_prompt,
)
from voyant.graph.state import ConsentKind, ConsentState, ThreadState

from conftest import ScriptedLLM


async def _never_switch(current, pending):
    return False


async def _always_switch(current, pending):
    return True


def _awaiting(kind=ConsentKind.WEB_SEARCH, pending="flights to Tokyo"):
    thread = ThreadState()
    begin_consent(thread, kind, pending)
    return thread


class TestBeginConsent:
    def test_prompts_per_kind(self):
        assert begin_consent(ThreadState(), ConsentKind.WEB_SEARCH, "q") == WEB_SEARCH_PROMPT
        assert begin_consent(ThreadState(), ConsentKind.DEEP_RESEARCH, "q") == DEEP_RESEARCH_PROMPT
        assert begin_consent(ThreadState(), ConsentKind.WEB_AFTER_RAG, "q", "no results") == web_after_rag_prompt("no results")

    def test_new_consent_replaces_old(self):
        thread = _awaiting(ConsentKind.WEB_SEARCH, "q1")
        begin_consent(thread, ConsentKind.DEEP_RESEARCH, "q2")
        assert thread.consent == ConsentState(awaiting=True, kind=ConsentKind.DEEP_RESEARCH, pending_query="q2")

    def test_clear(self):
        thread = _awaiting()
        clear_consent(thread)
        assert thread.consent.awaiting is False
        assert thread.consent.kind is ConsentKind.NONE


class TestClassifyReply:
    @pytest.mark.parametrize("text,expected", [
        ("yes", "yes"), ("Sure.", "yes"), ("go ahead", "yes"), ("yes please", "yes"),
        ("no", "no"), ("nope", "no"), ("not now", "no"), ("no thanks, maybe later", "no"),
    ])
    def test_exact_tokens_skip_the_llm(self, text, expected):
        llm = ScriptedLLM()
        assert asyncio.run(classify_consent_reply(text, llm)) == expected
        assert llm.prompts == []

    def test_ambiguous_reply_asks_the_llm(self):
        llm = ScriptedLLM(json.dumps({"answer": "yes"}))
        assert asyncio.run(classify_consent_reply("that would be lovely", llm)) == "yes"
        assert len(llm.prompts) == 1

    def test_llm_failure_is_unclear(self):
        llm = ScriptedLLM(RuntimeError("boom"))
        assert asyncio.run(classify_consent_reply("that would be lovely", llm)) == "unclear"

    def test_no_llm_is_unclear(self):
        assert asyncio.run(classify_consent_reply("hmm maybe", None)) == "unclear"

    def test_search_alone_is_yes_but_search_for_is_not(self):
        assert asyncio.run(classify_consent_reply("search", None)) == "yes"
        assert asyncio.run(classify_consent_reply("search for hotels", None)) == "unclear"


class TestEvaluateConsent:
    def test_nothing_pending(self):
        outcome = asyncio.run(evaluate_consent(ThreadState(), "yes", _never_switch))
        assert outcome.action == "none"

    def test_accept_clears_and_returns_pending(self):
        thread = _awaiting(pending="flights to Tokyo")
        outcome = asyncio.run(evaluate_consent(thread, "yes", _never_switch))
        assert outcome.action == "accept"
        assert outcome.pending_query == "flights to Tokyo"
        assert thread.consent.awaiting is False

    def test_decline_web_search(self):
        thread = _awaiting()
        outcome = asyncio.run(evaluate_consent(thread, "no", _never_switch))
        assert outcome.action == "decline"
        assert outcome.reply == SEARCH_DECLINED_REPLY
        assert thread.consent.awaiting is False

    def test_decline_deep_research_keeps_query_for_rerouting(self):
        thread = _awaiting(ConsentKind.DEEP_RESEARCH, "cheap family trip to Rome")
        outcome = asyncio.run(evaluate_consent(thread, "no", _never_switch))
        assert outcome.reply == DEEP_RESEARCH_DECLINED_REPLY
        assert outcome.pending_query == "cheap family trip to Rome"

    def test_unclear_reprompts_and_stays_awaiting(self):
        thread = _awaiting()
        outcome = asyncio.run(evaluate_consent(thread, "hmm", _never_switch, ScriptedLLM(json.dumps({"answer": "unclear"}))))
        assert outcome.action == "reprompt"
        assert outcome.reply == WEB_SEARCH_PROMPT
        assert thread.consent.awaiting is True

    def test_switch_is_checked_before_consent(self):
        thread = _awaiting()
        llm = ScriptedLLM()
        outcome = asyncio.run(evaluate_consent(thread, "weather in Rome", _always_switch, llm))
        assert outcome.action == "switch"
        assert thread.consent.awaiting is False
        assert llm.prompts == []
