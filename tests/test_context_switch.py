import asyncio

import pytest

from voyant.graph.cascade import ClassificationCascade, TurnCache
from voyant.graph.context_switch import is_context_switch

PENDING = "flights from NYC to Tokyo in March"


def _switch(current, pending=PENDING):
    cascade = ClassificationCascade()
    cache = TurnCache()
    return asyncio.run(is_context_switch(current, pending, lambda t: cascade.extract(t, cache)))


@pytest.mark.parametrize("reply", ["yes", "Yes!", "ok", "no", "not now", "yes please", "no thanks"])
def test_consent_tokens_are_not_a_switch(reply):
    assert _switch(reply) is False


def test_same_text_is_not_a_switch():
    assert _switch("  Flights from NYC to   Tokyo in March ") is False


def test_different_destination_is_a_switch():
    assert _switch("what about hotels in Rome") is True


def test_refining_the_same_request_is_not_a_switch():
    assert _switch("what about Tokyo in April") is False


def test_unrelated_question_without_entities_is_a_switch():
    assert _switch("what should I wear to a wedding") is True


def test_non_question_without_entities_stays_conservative():
    assert _switch("hmm let me think") is False


def test_failing_extractor_falls_back_to_token_overlap():
    async def broken(_):
        raise RuntimeError("ner down")

    assert asyncio.run(is_context_switch("how do visas work", PENDING, broken)) is True
    assert asyncio.run(is_context_switch("what flights to tokyo", PENDING, broken)) is False
