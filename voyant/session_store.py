"""
Thread state persistence.

A thread is created lazily on first read and expires after SESSION_TTL_SEC of
inactivity; an expired or missing thread reads as empty state. The store does
no locking, so callers must serialize turns per thread id.
"""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

from voyant import config
from voyant.graph.slots import merge_slots
from voyant.graph.state import ConsentState, Receipts, SessionMetadata, ThreadState

logger = logging.getLogger(__name__)


class SlotStore(ABC):
    def __init__(self, ttl_sec: int = config.SESSION_TTL_SEC, clock: Callable[[], float] = time.time,
                 history_limit: int = config.HISTORY_LIMIT):
        self.ttl_sec = ttl_sec
        self.clock = clock
        self.history_limit = history_limit

    # ---------------------------
    # backend hooks (blocking)
    # ---------------------------
    @abstractmethod
    def _read(self, thread_id: str) -> Optional[dict]:
        ...

    @abstractmethod
    def _write(self, thread_id: str, data: dict) -> None:
        ...

    @abstractmethod
    def _delete(self, thread_id: str) -> None:
        ...

    @abstractmethod
    def _thread_ids(self) -> list[str]:
        ...

    @abstractmethod
    def append_message(self, thread_id: str, role: str, content: str, meta: Optional[dict] = None) -> None:
        ...

    @abstractmethod
    def get_messages(self, thread_id: str, limit: Optional[int] = None) -> list[dict]:
        ...

    async def _call(self, fn, *args):
        return fn(*args)

    def _evict(self, thread_id: str) -> None:
        """Called when a thread is found expired; durable backends keep the rows."""

    # ---------------------------
    # thread lifecycle
    # ---------------------------
    def _fresh(self, now: float) -> ThreadState:
        return ThreadState(metadata=SessionMetadata(created_at=now, last_accessed_at=now, expires_at=now + self.ttl_sec))

    def load(self, thread_id: str) -> ThreadState:
        now = self.clock()
        data = self._read(thread_id)
        if data is None:
            return self._fresh(now)
        thread = ThreadState.from_dict(data)
        if thread.metadata is None or thread.metadata.is_expired(now):
            logger.info("thread %s expired; starting fresh", thread_id)
            self._evict(thread_id)
            return self._fresh(now)
        thread.metadata.last_accessed_at = now
        return thread

    def save(self, thread_id: str, thread: ThreadState) -> None:
        now = self.clock()
        if thread.metadata is None:
            thread.metadata = SessionMetadata(created_at=now, last_accessed_at=now, expires_at=now + self.ttl_sec)
        thread.metadata.last_accessed_at = now
        thread.metadata.expires_at = now + self.ttl_sec
        self._write(thread_id, thread.to_dict())

    def clear(self, thread_id: str) -> None:
        self._delete(thread_id)

    def list_threads(self) -> list[str]:
        now = self.clock()
        out = []
        for tid in self._thread_ids():
            meta = (self._read(tid) or {}).get("metadata") or {}
            if meta and now < meta.get("expires_at", 0):
                out.append(tid)
            else:
                self._evict(tid)
        return out

    # ---------------------------
    # async surface used by the dispatcher
    # ---------------------------
    async def load_thread(self, thread_id: str) -> ThreadState:
        return await self._call(self.load, thread_id)

    async def save_thread(self, thread_id: str, thread: ThreadState) -> None:
        await self._call(self.save, thread_id, thread)

    async def get(self, thread_id: str) -> dict[str, str]:
        return dict((await self.load_thread(thread_id)).slots)

    async def update(self, thread_id: str, patch: dict, missing: Optional[list] = None, intent: Optional[str] = None) -> None:
        thread = await self.load_thread(thread_id)
        thread.slots = merge_slots(thread.slots, patch, intent)
        thread.expected_missing = list(missing or [])
        await self.save_thread(thread_id, thread)

    async def set_last_intent(self, thread_id: str, intent: str) -> None:
        thread = await self.load_thread(thread_id)
        thread.last_intent = intent
        await self.save_thread(thread_id, thread)

    async def get_last_intent(self, thread_id: str) -> Optional[str]:
        return (await self.load_thread(thread_id)).last_intent

    async def set_receipts(self, thread_id: str, receipts: Receipts) -> None:
        thread = await self.load_thread(thread_id)
        thread.last_receipts = receipts
        await self.save_thread(thread_id, thread)

    async def get_receipts(self, thread_id: str) -> Receipts:
        return (await self.load_thread(thread_id)).last_receipts

    async def set_consent(self, thread_id: str, consent: ConsentState) -> None:
        thread = await self.load_thread(thread_id)
        thread.consent = consent
        await self.save_thread(thread_id, thread)

    async def get_consent(self, thread_id: str) -> ConsentState:
        return (await self.load_thread(thread_id)).consent

    async def history(self, thread_id: str) -> list[dict]:
        return await self._call(self.get_messages, thread_id, self.history_limit)

    async def record(self, thread_id: str, role: str, content: str, meta: Optional[dict] = None) -> None:
        await self._call(self.append_message, thread_id, role, content, meta)


class InMemorySlotStore(SlotStore):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._threads: dict[str, dict] = {}
        self._messages: dict[str, list[dict]] = {}

    def _read(self, thread_id):
        return self._threads.get(thread_id)

    def _write(self, thread_id, data):
        self._threads[thread_id] = data

    def _delete(self, thread_id):
        self._threads.pop(thread_id, None)
        self._messages.pop(thread_id, None)

    def _thread_ids(self):
        return list(self._threads.keys())

    def _evict(self, thread_id):
        self._delete(thread_id)

    def append_message(self, thread_id, role, content, meta=None):
        hist = self._messages.setdefault(thread_id, [])
        hist.append({"role": role, "content": content, "meta": meta or {}})
        del hist[:-self.history_limit]

    def get_messages(self, thread_id, limit=None):
        hist = self._messages.get(thread_id) or []
        return list(hist[-limit:] if limit else hist)


class SqlSlotStore(SlotStore):
    """Conversation.context holds the serialized ThreadState; Message rows hold the history."""

    def __init__(self, session_factory=None, **kwargs):
        super().__init__(**kwargs)
        if session_factory is None:
            from voyant.db import SessionLocal
            session_factory = SessionLocal
        self.session_factory = session_factory

    async def _call(self, fn, *args):
        return await asyncio.to_thread(fn, *args)

    def _read(self, thread_id):
        from voyant.models import Conversation

        db = self.session_factory()
        try:
            conv = db.get(Conversation, thread_id)
            if not conv or not conv.context:
                return None
            return dict(conv.context)
        finally:
            db.close()

    def _write(self, thread_id, data):
        from voyant.models import Conversation

        db = self.session_factory()
        try:
            conv = db.get(Conversation, thread_id)
            if not conv:
                conv = Conversation(id=thread_id, context=data)
                db.add(conv)
            else:
                conv.context = data
            db.commit()
        finally:
            db.close()

    def _delete(self, thread_id):
        from voyant.models import Conversation

        db = self.session_factory()
        try:
            conv = db.get(Conversation, thread_id)
            if conv:
                db.delete(conv)
                db.commit()
        finally:
            db.close()

    def _thread_ids(self):
        from sqlalchemy import select
        from voyant.models import Conversation

        db = self.session_factory()
        try:
            return list(db.scalars(select(Conversation.id)))
        finally:
            db.close()

    def append_message(self, thread_id, role, content, meta=None):
        from voyant.models import Conversation, Message

        db = self.session_factory()
        try:
            if not db.get(Conversation, thread_id):
                db.add(Conversation(id=thread_id, context={}))
                db.flush()
            db.add(Message(conversation_id=thread_id, role=role, content=content, meta=meta or {}))
            db.commit()
        finally:
            db.close()

    def get_messages(self, thread_id, limit=None):
        from sqlalchemy import select
        from voyant.models import Message

        db = self.session_factory()
        try:
            q = select(Message).where(Message.conversation_id == thread_id).order_by(Message.id.desc())
            if limit:
                q = q.limit(limit)
            rows = list(db.scalars(q))
            return [{"role": m.role, "content": m.content, "meta": m.meta or {}} for m in reversed(rows)]
        finally:
            db.close()


def build_store() -> SlotStore:
    if config.SESSION_STORE == "sql":
        return SqlSlotStore()
    return InMemorySlotStore()
