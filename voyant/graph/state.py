from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import TypedDict, Optional, Any

INTENTS = (
    "weather",
    "destinations",
    "packing",
    "attractions",
    "policy",
    "flights",
    "unknown",
    "web_search",
    "system",
)


class ConsentKind(str, Enum):
    NONE = "none"
    WEB_SEARCH = "web_search"
    DEEP_RESEARCH = "deep_research"
    WEB_AFTER_RAG = "web_after_rag"


@dataclass
class ConsentState:
    awaiting: bool = False
    kind: ConsentKind = ConsentKind.NONE
    pending_query: str = ""
    reasoning: str = ""

    def to_dict(self) -> dict:
        return {
            "awaiting": self.awaiting,
            "kind": self.kind.value,
            "pending_query": self.pending_query,
            "reasoning": self.reasoning,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ConsentState":
        data = data or {}
        try:
            kind = ConsentKind(data.get("kind") or "none")
        except ValueError:
            kind = ConsentKind.NONE
        awaiting = bool(data.get("awaiting")) and kind is not ConsentKind.NONE
        if not awaiting:
            return cls()
        return cls(
            awaiting=True,
            kind=kind,
            pending_query=data.get("pending_query") or "",
            reasoning=data.get("reasoning") or "",
        )


@dataclass
class Fact:
    source: str
    key: str
    value: Any
    url: Optional[str] = None


@dataclass
class Receipts:
    facts: list[Fact] = field(default_factory=list)
    decisions: list[str] = field(default_factory=list)
    reply: str = ""

    def to_dict(self) -> dict:
        return {
            "facts": [asdict(f) for f in self.facts],
            "decisions": list(self.decisions),
            "reply": self.reply,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Receipts":
        data = data or {}
        facts = [Fact(**f) for f in data.get("facts") or [] if isinstance(f, dict)]
        return cls(facts=facts, decisions=list(data.get("decisions") or []), reply=data.get("reply") or "")


@dataclass
class SessionMetadata:
    created_at: float
    last_accessed_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass
class ThreadState:
    """Everything remembered about one conversation thread."""

    slots: dict[str, str] = field(default_factory=dict)
    last_intent: Optional[str] = None
    last_user_message: Optional[str] = None
    expected_missing: list[str] = field(default_factory=list)
    consent: ConsentState = field(default_factory=ConsentState)
    last_receipts: Receipts = field(default_factory=Receipts)
    metadata: Optional[SessionMetadata] = None

    def to_dict(self) -> dict:
        return {
            "slots": dict(self.slots),
            "last_intent": self.last_intent,
            "last_user_message": self.last_user_message,
            "expected_missing": list(self.expected_missing),
            "consent": self.consent.to_dict(),
            "last_receipts": self.last_receipts.to_dict(),
            "metadata": asdict(self.metadata) if self.metadata else None,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ThreadState":
        data = data or {}
        meta = data.get("metadata")
        last_intent = data.get("last_intent")
        return cls(
            slots={k: v for k, v in (data.get("slots") or {}).items() if isinstance(v, str) and v.strip()},
            last_intent=last_intent if last_intent in INTENTS else None,
            last_user_message=data.get("last_user_message"),
            expected_missing=list(data.get("expected_missing") or []),
            consent=ConsentState.from_dict(data.get("consent")),
            last_receipts=Receipts.from_dict(data.get("last_receipts")),
            metadata=SessionMetadata(**meta) if isinstance(meta, dict) else None,
        )


class TurnState(TypedDict, total=False):
    thread_id: str
    message: str                    # text being processed (may be a re-routed pending query)
    original_message: str           # what the user actually typed this turn

    # per-turn
    thread: ThreadState             # loaded once, saved once
    cache: Any                      # TurnCache
    skip_complexity: bool

    # cascade outputs
    content_type: Any               # Classification
    intent_signal: Any              # Classification
    entities: Any                   # ExtractionResult
    signals: Any                    # TurnSignals
    disclaimers: str
    preface: str                    # acknowledgement carried into a re-routed turn

    # routing
    route_intent: str
    answered_origin: Optional[str]  # reply to a pending "where are you flying from?"
    route_slots: dict[str, str]
    intent: str
    slots: dict[str, str]
    missing: list[str]

    # outputs
    reply: str
    citations: Optional[list[dict]]
    done: bool
    trace: list[dict]
