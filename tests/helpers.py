"""Fake Gemini client and response builders shared by the tests."""

from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any


def text_part(text: str, thought: bool = False) -> SimpleNamespace:
    return SimpleNamespace(text=text, function_call=None, thought=thought)


def call_part(name: str, args: dict | None = None) -> SimpleNamespace:
    return SimpleNamespace(text=None, function_call=SimpleNamespace(name=name, args=args or {}))


def make_response(
    *parts: SimpleNamespace,
    finish_reason: str | None = "STOP",
    block_reason: str | None = None,
    candidates: bool = True,
    safety_ratings: list | None = None,
) -> SimpleNamespace:
    feedback = SimpleNamespace(block_reason=block_reason, safety_ratings=safety_ratings or [])
    if not candidates:
        return SimpleNamespace(prompt_feedback=feedback, candidates=[])
    candidate = SimpleNamespace(
        finish_reason=finish_reason,
        content=SimpleNamespace(role="model", parts=list(parts)),
        safety_ratings=safety_ratings or [],
    )
    return SimpleNamespace(prompt_feedback=feedback, candidates=[candidate])


def make_file(name: str = "files/abc123", **overrides: Any) -> SimpleNamespace:
    fields = dict(
        name=name,
        display_name="notes.txt",
        mime_type="text/plain",
        size_bytes=42,
        create_time=datetime(2025, 1, 1, tzinfo=timezone.utc),
        update_time=datetime(2025, 1, 2, tzinfo=timezone.utc),
        expiration_time=None,
        sha256_hash="deadbeef",
        uri=f"https://generativelanguage.googleapis.com/v1beta/{name}",
        state="ACTIVE",
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def make_cache(name: str = "cachedContents/xyz", **overrides: Any) -> SimpleNamespace:
    fields = dict(
        name=name,
        display_name="docs",
        model="models/gemini-1.5-flash-001",
        create_time=datetime(2025, 1, 1, tzinfo=timezone.utc),
        update_time=datetime(2025, 1, 1, tzinfo=timezone.utc),
        expire_time=datetime(2025, 1, 1, 1, tzinfo=timezone.utc),
        usage_metadata=SimpleNamespace(total_token_count=40000),
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


class _Stream:
    def __init__(self, chunks: list):
        self._chunks = iter(chunks)
        self.pulled = 0

    def __aiter__(self) -> "_Stream":
        return self

    async def __anext__(self) -> Any:
        try:
            chunk = next(self._chunks)
        except StopIteration as exc:
            raise StopAsyncIteration from exc
        self.pulled += 1
        return chunk


class FakeModels:
    def __init__(self) -> None:
        self.responses: list = []
        self.chunks: list = []
        self.calls: list[dict] = []
        self.error: Exception | None = None
        self.stream: _Stream | None = None

    async def generate_content(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return self.responses.pop(0)

    async def generate_content_stream(self, **kwargs: Any) -> _Stream:
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        self.stream = _Stream(self.chunks)
        return self.stream


class FakeChat:
    """Chat handle that records history and echoes ``<model>:<message>`` unless given replies."""

    def __init__(self, model: str, config: Any, history: Any) -> None:
        self.model = model
        self.config = config
        self.history = list(history or [])
        self.replies: list = []
        self.sent: list[tuple] = []
        self.error: Exception | None = None

    async def send_message(self, message: Any, config: Any = None) -> Any:
        self.sent.append((message, config))
        if self.error:
            raise self.error
        self.history.append({"role": "user", "message": message})
        if self.replies:
            return self.replies.pop(0)
        return make_response(text_part(f"{self.model}:{message}"))


class FakeChats:
    def __init__(self) -> None:
        self.created: list[FakeChat] = []

    def create(self, model: str, config: Any = None, history: Any = None) -> FakeChat:
        chat = FakeChat(model, config, history)
        self.created.append(chat)
        return chat


class FakeFiles:
    def __init__(self) -> None:
        self.store = {"files/abc123": make_file()}
        self.calls: list[tuple] = []

    async def upload(self, file: str, config: Any = None) -> Any:
        self.calls.append(("upload", file, config))
        display = (config or {}).get("display_name", "upload")
        return make_file("files/new1", display_name=display)

    async def list(self, config: Any = None) -> Any:
        self.calls.append(("list", config))
        return SimpleNamespace(page=list(self.store.values()), config={"page_token": "next-page"})

    async def get(self, name: str) -> Any:
        self.calls.append(("get", name))
        if name not in self.store:
            raise RuntimeError(f"File {name} not found")
        return self.store[name]

    async def delete(self, name: str) -> None:
        self.calls.append(("delete", name))
        if self.store.pop(name, None) is None:
            raise RuntimeError(f"File {name} not found")


class FakeCaches:
    def __init__(self) -> None:
        self.store = {"cachedContents/xyz": make_cache()}
        self.calls: list[tuple] = []

    async def create(self, model: str, config: Any = None) -> Any:
        self.calls.append(("create", model, config))
        return make_cache("cachedContents/new", model=f"models/{model}")

    async def list(self, config: Any = None) -> Any:
        self.calls.append(("list", config))
        return SimpleNamespace(page=list(self.store.values()), config={})

    async def get(self, name: str) -> Any:
        self.calls.append(("get", name))
        if name not in self.store:
            raise RuntimeError(f"CachedContent {name} not found")
        return self.store[name]

    async def update(self, name: str, config: Any = None) -> Any:
        self.calls.append(("update", name, config))
        return make_cache(name)

    async def delete(self, name: str) -> None:
        self.calls.append(("delete", name))
        self.store.pop(name, None)


class FakeClient:
    def __init__(self) -> None:
        self.aio = SimpleNamespace(
            models=FakeModels(),
            chats=FakeChats(),
            files=FakeFiles(),
            caches=FakeCaches(),
        )
