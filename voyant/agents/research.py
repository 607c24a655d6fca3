"""
Web search and deep research runners. Both are only reached after the user
said yes to the matching consent prompt.
"""
import asyncio
import json
import logging
import re
from typing import Optional
from urllib.parse import urlparse

from voyant.llm import prompts
from voyant.llm.client import LLMClient, safe_json_parse
from voyant.providers.base import SearchProvider
from voyant.utils.text import normalize_name

logger = logging.getLogger(__name__)

NO_RESULTS_REPLY = "I couldn't find any relevant results for that. Could you try rephrasing your question?"
SEARCH_UNAVAILABLE_REPLY = "Web search is not available right now. Please try again later."
RESEARCH_FAILED_REPLY = (
    "I ran into an issue while doing deep research. I can try a standard search instead if you like."
)

MAX_QUERIES = 3
MIN_QUERY_CONFIDENCE = 0.4


def _citations(results: list[dict]) -> list[dict]:
    return [{"source": "Brave Search", "url": r.get("url"), "title": r.get("title")} for r in results if r.get("url")]


def format_results(results: list[dict]) -> str:
    lines = ["Based on web search results:", ""]
    for r in results[:3]:
        desc = (r.get("description") or "")[:100]
        lines.append(f"• {r.get('title')} - {desc}...")
    lines += ["", "Sources: Brave Search"]
    return "\n".join(lines)


def _numbered(results: list[dict]) -> str:
    return "\n".join(
        f"[{i}] {r.get('title')} ({r.get('url')}): {r.get('description') or ''}"
        for i, r in enumerate(results, start=1)
    )


async def perform_web_search(
    search: Optional[SearchProvider],
    llm: Optional[LLMClient],
    query: str,
    summarize: bool = True,
) -> dict:
    if search is None:
        return {"ok": False, "reply": SEARCH_UNAVAILABLE_REPLY, "citations": []}
    try:
        results = await asyncio.to_thread(search.search, query, 5)
    except Exception as e:
        logger.warning("web search failed: %s", e)
        return {"ok": False, "reply": SEARCH_UNAVAILABLE_REPLY, "citations": []}

    if not results:
        return {"ok": False, "reply": NO_RESULTS_REPLY, "citations": []}

    reply = format_results(results)
    if summarize and llm is not None:
        prompt = prompts.SEARCH_SUMMARY_PROMPT.replace("{query}", query).replace("{results}", _numbered(results))
        try:
            text = (await llm.complete(prompt)).strip()
            if text:
                reply = text
        except Exception as e:
            logger.warning("search summary failed, using raw results: %s", e)
    return {"ok": True, "reply": reply, "citations": _citations(results)}


def _mentions(query: str, value: str) -> bool:
    return normalize_name(value) in normalize_name(query)


def enrich_query(query: str, slots: Optional[dict]) -> str:
    """Append the trip details a follow-up question leaves out."""
    slots = slots or {}
    parts = [query.strip()]
    city = slots.get("city") or slots.get("destinationCity")
    when = slots.get("month") or slots.get("season") or slots.get("dates")
    for value in (city, when):
        if value and not _mentions(query, value):
            parts.append(value)
    if re.search(r"\b(family|kids?)\b", slots.get("travelerProfile") or "", re.IGNORECASE):
        parts.append("family friendly")
    return " ".join(p for p in parts if p)


async def optimize_search_query(llm: Optional[LLMClient], query: str, slots: Optional[dict]) -> str:
    """
    Rewrite a pending query with the thread's slots before it is searched.
    The LLM rewrite is used when it is confident; otherwise the slots are appended.
    """
    if not (query or "").strip():
        return query
    if llm is not None and slots:
        prompt = prompts.SEARCH_QUERY_PROMPT.replace("{query}", query).replace("{slots}", json.dumps(slots))
        try:
            data = safe_json_parse(await llm.complete(prompt, response_format="json"))
            rewritten = (data.get("optimizedQuery") or "").strip()
            if rewritten and float(data.get("confidence") or 0) > MIN_QUERY_CONFIDENCE:
                return rewritten
        except Exception as e:
            logger.debug("query rewrite failed: %s", e)
    return enrich_query(query, slots)


def _domain(url: Optional[str]) -> str:
    host = urlparse(url or "").netloc.lower()
    return host[4:] if host.startswith("www.") else host


async def _plan_queries(llm: LLMClient, query: str) -> list[str]:
    raw = await llm.complete(prompts.RESEARCH_QUERIES_PROMPT.replace("{query}", query), response_format="json")
    queries = [q.strip() for q in safe_json_parse(raw).get("queries") or [] if isinstance(q, str) and q.strip()]
    return queries[:MAX_QUERIES] or [query]


async def perform_deep_research(
    search: Optional[SearchProvider],
    llm: Optional[LLMClient],
    query: str,
) -> dict:
    """
    Fan the request out into a few focused searches, keep one source per
    domain and ask the LLM for a cited brief. Without an LLM this degrades to
    a single ordinary search.
    """
    if search is None:
        return {"ok": False, "reply": RESEARCH_FAILED_REPLY, "citations": []}
    if llm is None:
        return await perform_web_search(search, None, query, summarize=False)

    try:
        queries = await _plan_queries(llm, query)
        batches = await asyncio.gather(*(asyncio.to_thread(search.search, q, 5) for q in queries))

        sources: list[dict] = []
        seen = set()
        for batch in batches:
            for r in batch:
                d = _domain(r.get("url"))
                if d and d not in seen:
                    seen.add(d)
                    sources.append(r)
        if not sources:
            return {"ok": False, "reply": NO_RESULTS_REPLY, "citations": []}

        prompt = prompts.RESEARCH_SYNTHESIS_PROMPT.replace("{query}", query).replace("{sources}", _numbered(sources[:8]))
        brief = (await llm.complete(prompt)).strip()
    except Exception as e:
        logger.error("deep research failed: %s", e)
        return {"ok": False, "reply": RESEARCH_FAILED_REPLY, "citations": []}

    if not brief:
        return {"ok": False, "reply": RESEARCH_FAILED_REPLY, "citations": []}
    citations = [{"source": _domain(r.get("url")), "url": r.get("url"), "title": r.get("title")} for r in sources[:8]]
    return {"ok": True, "reply": brief, "citations": citations, "queries": queries}
