# Prompt templates. Placeholders are substituted with str.replace so the
# literal JSON braces below stay untouched.

CONTENT_CLASSIFIER_PROMPT = """
Classify the content type of this message sent to a travel assistant.

Message: "{message}"

Labels:
- travel: a travel planning question (weather, destinations, packing, attractions)
- budget: asks about prices, costs, cheap options or a spending limit
- unrelated: not about travel at all (cooking, programming, sports, ...)
- refinement: a short follow-up adjusting the previous request ("what about with kids?")
- system: asks about the assistant itself ("are you a bot?")
- policy: visas, baggage rules, refunds, cancellations
- flight: flights, airlines, airfare

Return ONLY JSON: {"label": "<one label>", "confidence": <0..1>}
"""

INTENT_CLASSIFIER_PROMPT = """
Classify the intent of this travel assistant message.

Message: "{message}"

Intents: weather, destinations, packing, attractions, policy, flights, system, web_search, unknown.
- system: questions about the assistant itself
- web_search: the user explicitly asks you to search the web
- unknown: none of the above fits

Return ONLY JSON: {"label": "<intent>", "confidence": <0..1>}
"""

ENTITY_EXTRACTION_PROMPT = """
Extract entities from this message.

Message: "{message}"

Return ONLY JSON with this shape (empty lists when nothing is present):
{
  "locations": [{"text": "city or country", "score": 0.0}],
  "dates": [{"text": "date, month, season or relative date", "score": 0.0}],
  "money": [{"text": "amount with currency", "score": 0.0}],
  "durations": [{"text": "length of stay or trip", "score": 0.0}]
}
Only include real place names as locations, never words like "there", "today" or brand names.
"""

CONSENT_DETECTOR_PROMPT = """
The assistant asked the user whether to proceed with an operation and the user replied:

Reply: "{message}"

Does the reply agree, decline, or is it unclear?
Return ONLY JSON: {"answer": "yes" | "no" | "unclear"}
"""

ROUTER_SYSTEM_PROMPT = """
You are the Dialogue Manager for a travel assistant.

You read the user's message, the slots remembered so far and recent history,
and decide the intent plus any slot values the message provides.

You must output ONLY valid JSON (no markdown, no explanations).

Allowed intents:
- "weather"       (current or seasonal weather for a city)
- "destinations"  (where to go, trip ideas, what a place is like)
- "packing"       (what to pack / wear)
- "attractions"   (things to do, sights, museums)
- "policy"        (visas, baggage, refunds, airline or hotel rules)
- "flights"       (flight search)
- "web_search"    (user explicitly asks to search the web)
- "system"        (questions about the assistant)
- "unknown"

Slots you may produce (only when the CURRENT message states them):
- city, country, originCity, destinationCity
- dates (free text), month, season, departureDate (YYYY-MM-DD)
- travelerProfile ("family with kids", "business", "couple", "solo", "seniors")
- groupSize, children, budget, duration, interests

Rules:
1) Never invent values; never output placeholders like "unknown" or "there".
2) A follow-up like "what about in August?" keeps the previous intent.
3) Keep city names clean ("Paris", not "Paris today").

Output JSON schema:
{
  "intent": "<intent>",
  "slots": { ... },
  "confidence": <0..1>
}
"""

COMPOSE_PROMPT = """
You are a friendly travel assistant. Answer the user's question using ONLY the facts below.
Do not invent prices, dates or places that are not in the facts. Keep it under 150 words.

Question: {message}
Intent: {intent}
Known trip details: {slots}

Facts:
{facts}
"""

SEARCH_SUMMARY_PROMPT = """
Summarize these web search results to answer the user's question in 3-5 sentences.
Refer to sources by number like [1], [2]. Do not add facts that are not in the results.

Question: {query}

Results:
{results}
"""

RESEARCH_QUERIES_PROMPT = """
Break this travel request into 3 focused web search queries that together cover
all of its constraints (destination, dates, budget, group, transport).

Request: "{query}"

Return ONLY JSON: {"queries": ["...", "...", "..."]}
"""

RESEARCH_SYNTHESIS_PROMPT = """
You are preparing a short research brief for a traveler.

Request: {query}

Sources:
{sources}

Write a concise answer (under 200 words) that addresses every constraint in the
request. Cite sources by number like [1]. Say plainly when the sources do not
cover something.
"""

SEARCH_QUERY_PROMPT = """
Rewrite this travel question as a single web search query. Fill in the
destination, month and traveler details from the known trip details when the
question leaves them out. Keep it under 15 words.

Question: "{query}"
Known trip details: {slots}

Return ONLY JSON: {"optimizedQuery": "...", "confidence": <0..1>}
"""
