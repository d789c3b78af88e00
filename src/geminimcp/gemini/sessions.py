"""In-memory registry of live chat sessions."""

import asyncio
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from geminimcp.errors import NotFoundError

logger = logging.getLogger(__name__)


@dataclass
class ChatSession:
    """A provider chat handle plus the defaults it was started with.

    The handle owns the conversation history; the registry never copies it.
    """

    id: str
    model: str
    chat: Any
    generation_config: dict[str, Any] = field(default_factory=dict)
    safety_settings: list[dict[str, Any]] | None = None
    tools: list[dict[str, Any]] | None = None
    tool_config: dict[str, Any] | None = None
    created_at: float = 0.0
    last_used_at: float = 0.0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


class SessionRegistry:
    """Maps session ids to live chat sessions.

    Sessions idle for longer than ``ttl_seconds`` are dropped lazily, and the
    least recently used session is evicted once ``max_sessions`` is reached.
    Either limit is disabled with 0.
    """

    def __init__(
        self,
        ttl_seconds: float = 3600,
        max_sessions: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_sessions = max_sessions
        self._clock = clock
        self._sessions: OrderedDict[str, ChatSession] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired()
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            self._purge_expired()
            return session_id in self._sessions

    def _purge_expired(self) -> None:
        if not self.ttl_seconds:
            return
        cutoff = self._clock() - self.ttl_seconds
        expired = [sid for sid, s in self._sessions.items() if s.last_used_at < cutoff]
        for sid in expired:
            del self._sessions[sid]
            logger.info("Chat session %s expired after %ss idle", sid, self.ttl_seconds)

    def create(
        self,
        model: str,
        chat: Any,
        generation_config: dict[str, Any] | None = None,
        safety_settings: list[dict[str, Any]] | None = None,
        tools: list[dict[str, Any]] | None = None,
        tool_config: dict[str, Any] | None = None,
    ) -> ChatSession:
        """Register a chat handle under a fresh id."""
        now = self._clock()
        session = ChatSession(
            id=str(uuid4()),
            model=model,
            chat=chat,
            generation_config=dict(generation_config or {}),
            safety_settings=safety_settings,
            tools=tools,
            tool_config=tool_config,
            created_at=now,
            last_used_at=now,
        )
        with self._lock:
            self._purge_expired()
            while self.max_sessions and len(self._sessions) >= self.max_sessions:
                evicted, _ = self._sessions.popitem(last=False)
                logger.info("Evicted least recently used chat session %s", evicted)
            self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> ChatSession:
        """Return the live session or raise NotFoundError."""
        with self._lock:
            self._purge_expired()
            session = self._sessions.get(session_id)
            if session is None:
                logger.warning("Chat session not found: %s", session_id)
                raise NotFoundError(
                    f"Chat session {session_id} not found or has expired",
                    resource_id=session_id,
                )
            session.last_used_at = self._clock()
            self._sessions.move_to_end(session_id)
            return session

    def remove(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()
