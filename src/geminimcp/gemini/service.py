"""Gemini request orchestration: generation, chat sessions, files and caches."""

import logging
from collections.abc import AsyncIterator, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from google import genai
from pydantic import BaseModel

from geminimcp.config import Settings
from geminimcp.errors import (
    ConfigurationError,
    GeminiMCPError,
    InvalidRequestError,
    UnexpectedResponseShape,
    translate_error,
)
from geminimcp.gemini.models import (
    CacheMetadata,
    FileMetadata,
    FunctionCalls,
    FunctionDeclaration,
    FunctionResponse,
    GenerationConfig,
    Outcome,
    SafetySetting,
    Text,
    ToolConfig,
    Turn,
)
from geminimcp.gemini.normalizer import enum_value, normalize, raise_for_safety
from geminimcp.gemini.sessions import ChatSession, SessionRegistry

logger = logging.getLogger(__name__)

FILE_PREFIX = "files/"
CACHE_PREFIX = "cachedContents/"


@contextmanager
def provider_errors(operation: str, resource_id: str | None = None) -> Iterator[None]:
    """Re-raise typed errors unchanged, translate everything else."""
    try:
        yield
    except GeminiMCPError:
        raise
    except Exception as exc:
        logger.error("Gemini %s failed: %s", operation, exc)
        raise translate_error(exc, resource_id=resource_id) from exc


def _dump(model: BaseModel | None) -> dict[str, Any]:
    return model.model_dump(exclude_none=True) if model is not None else {}


def _dump_all(models: list[BaseModel] | None) -> list[dict[str, Any]] | None:
    if models is None:
        return None
    return [m.model_dump(exclude_none=True) for m in models]


def _function_tools(declarations: list[FunctionDeclaration] | None) -> list[dict[str, Any]] | None:
    if not declarations:
        return None
    return [{"function_declarations": _dump_all(declarations)}]


def build_config(
    generation_config: dict[str, Any] | None = None,
    safety_settings: list[dict[str, Any]] | None = None,
    tools: list[dict[str, Any]] | None = None,
    tool_config: dict[str, Any] | None = None,
) -> dict[str, Any] | None:
    """Assemble the provider ``config`` argument, None when nothing is set."""
    config = dict(generation_config or {})
    if safety_settings is not None:
        config["safety_settings"] = safety_settings
    if tools is not None:
        config["tools"] = tools
    if tool_config:
        config["tool_config"] = tool_config
    return config or None


def _require_prefix(name: str, prefix: str) -> None:
    if not name or not name.startswith(prefix):
        raise InvalidRequestError(f'Invalid resource name "{name}": must start with "{prefix}"')


def _iso(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _require_fields(obj: Any, kind: str, fields: tuple[str, ...]) -> None:
    missing = [f for f in fields if getattr(obj, f, None) is None]
    if missing:
        logger.error("%s object missing fields %s: %r", kind, missing, obj)
        raise UnexpectedResponseShape(f"{kind} object missing required field(s): {', '.join(missing)}", obj)


def file_to_metadata(file: Any) -> FileMetadata:
    _require_fields(
        file,
        "File",
        ("name", "mime_type", "size_bytes", "create_time", "update_time", "sha256_hash", "uri", "state"),
    )
    return FileMetadata(
        name=file.name,
        display_name=file.display_name,
        mime_type=file.mime_type,
        size_bytes=str(file.size_bytes),
        create_time=_iso(file.create_time),
        update_time=_iso(file.update_time),
        expiration_time=_iso(file.expiration_time),
        sha256_hash=file.sha256_hash,
        uri=file.uri,
        state=enum_value(file.state) or "STATE_UNSPECIFIED",
    )


def cache_to_metadata(cache: Any) -> CacheMetadata:
    _require_fields(cache, "CachedContent", ("name", "model", "create_time", "update_time"))
    usage = cache.usage_metadata
    return CacheMetadata(
        name=cache.name,
        display_name=cache.display_name,
        model=cache.model,
        create_time=_iso(cache.create_time),
        update_time=_iso(cache.update_time),
        expire_time=_iso(cache.expire_time),
        total_token_count=usage.total_token_count if usage is not None else None,
    )


class GeminiService:
    """Builds provider calls from layered configuration and normalizes the results.

    Every call shape issues exactly one provider request; nothing is retried
    here. Blocked and safety-stopped outcomes are raised as SafetyError.
    """

    def __init__(
        self,
        client: Any,
        default_model: str | None = None,
        sessions: SessionRegistry | None = None,
    ):
        self._client = client
        self.default_model = default_model
        self.sessions = sessions if sessions is not None else SessionRegistry()
        logger.info("Gemini service ready. Default model: %s", default_model or "not set")

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeminiService":
        client = genai.Client(api_key=settings.api_key)
        sessions = SessionRegistry(
            ttl_seconds=settings.session_ttl_seconds,
            max_sessions=settings.max_sessions,
        )
        return cls(client, default_model=settings.default_model, sessions=sessions)

    def resolve_model(self, model: str | None = None) -> str:
        """Explicit model, else the process default; never touches the network."""
        effective = model or self.default_model
        if not effective:
            raise ConfigurationError(
                "Model name must be provided as a parameter or via GOOGLE_GEMINI_MODEL"
            )
        return effective

    # ── Single-shot generation ───────────────────────────────────

    async def generate(
        self,
        prompt: str,
        model: str | None = None,
        generation_config: GenerationConfig | None = None,
        safety_settings: list[SafetySetting] | None = None,
    ) -> Outcome:
        effective_model = self.resolve_model(model)
        config = build_config(_dump(generation_config), _dump_all(safety_settings))
        logger.debug("generate_content with model %s", effective_model)
        with provider_errors("generate_content"):
            response = await self._client.aio.models.generate_content(
                model=effective_model, contents=prompt, config=config
            )
        return raise_for_safety(normalize(response))

    async def generate_stream(
        self,
        prompt: str,
        model: str | None = None,
        generation_config: GenerationConfig | None = None,
        safety_settings: list[SafetySetting] | None = None,
    ) -> AsyncIterator[str]:
        """Yield text fragments as chunks arrive.

        A prompt block or safety stop raises SafetyError at the chunk where it
        appears; fragments already yielded stay with the caller.
        """
        effective_model = self.resolve_model(model)
        config = build_config(_dump(generation_config), _dump_all(safety_settings))
        logger.debug("generate_content_stream with model %s", effective_model)
        with provider_errors("generate_content_stream"):
            stream = await self._client.aio.models.generate_content_stream(
                model=effective_model, contents=prompt, config=config
            )
            async for chunk in stream:
                outcome = raise_for_safety(normalize(chunk, partial=True))
                if isinstance(outcome, Text):
                    if outcome.text:
                        yield outcome.text
                elif isinstance(outcome, FunctionCalls):
                    logger.warning(
                        "Ignoring function call chunk in text stream: %s",
                        [c.name for c in outcome.calls],
                    )
        logger.debug("Stream finished for model %s", effective_model)

    async def generate_function_call(
        self,
        prompt: str,
        function_declarations: list[FunctionDeclaration],
        model: str | None = None,
        generation_config: GenerationConfig | None = None,
        safety_settings: list[SafetySetting] | None = None,
        tool_config: ToolConfig | None = None,
    ) -> Outcome:
        if not function_declarations:
            raise InvalidRequestError("At least one function declaration is required")
        effective_model = self.resolve_model(model)
        config = build_config(
            _dump(generation_config),
            _dump_all(safety_settings),
            _function_tools(function_declarations),
            _dump(tool_config),
        )
        logger.debug("generate_content with %d function(s), model %s", len(function_declarations), effective_model)
        with provider_errors("generate_function_call"):
            response = await self._client.aio.models.generate_content(
                model=effective_model, contents=prompt, config=config
            )
        return raise_for_safety(normalize(response))

    # ── Chat sessions ────────────────────────────────────────────

    def start_chat(
        self,
        model: str | None = None,
        history: list[Turn] | None = None,
        generation_config: GenerationConfig | None = None,
        safety_settings: list[SafetySetting] | None = None,
        function_declarations: list[FunctionDeclaration] | None = None,
        tool_config: ToolConfig | None = None,
    ) -> str:
        """Create a provider chat and register it; returns the new session id."""
        effective_model = self.resolve_model(model)
        defaults = _dump(generation_config)
        safety = _dump_all(safety_settings)
        tools = _function_tools(function_declarations)
        calling = _dump(tool_config) or None
        with provider_errors("start_chat"):
            chat = self._client.aio.chats.create(
                model=effective_model,
                config=build_config(defaults, safety, tools, calling),
                history=_dump_all(history),
            )
        session = self.sessions.create(
            effective_model,
            chat,
            generation_config=defaults,
            safety_settings=safety,
            tools=tools,
            tool_config=calling,
        )
        logger.info("Started chat session %s with model %s", session.id, effective_model)
        return session.id

    def _session_config(
        self,
        session: ChatSession,
        generation_config: GenerationConfig | None,
        safety_settings: list[SafetySetting] | None,
        function_declarations: list[FunctionDeclaration] | None = None,
        tool_config: ToolConfig | None = None,
    ) -> dict[str, Any] | None:
        # The chat handle replaces its config wholesale when one is passed,
        # so session defaults are merged in here.
        safety = _dump_all(safety_settings)
        tools = _function_tools(function_declarations)
        return build_config(
            {**session.generation_config, **_dump(generation_config)},
            safety if safety is not None else session.safety_settings,
            tools if tools is not None else session.tools,
            _dump(tool_config) or session.tool_config,
        )

    async def _send(self, session: ChatSession, message: Any, config: dict[str, Any] | None) -> Outcome:
        async with session.lock:
            with provider_errors("send_message", resource_id=session.id):
                response = await session.chat.send_message(message, config=config)
        logger.debug("Received response for session %s", session.id)
        return raise_for_safety(normalize(response))

    async def send_message(
        self,
        session_id: str,
        message: str,
        generation_config: GenerationConfig | None = None,
        safety_settings: list[SafetySetting] | None = None,
        function_declarations: list[FunctionDeclaration] | None = None,
        tool_config: ToolConfig | None = None,
    ) -> Outcome:
        session = self.sessions.get(session_id)
        logger.debug("Sending message to session %s", session_id)
        config = self._session_config(
            session, generation_config, safety_settings, function_declarations, tool_config
        )
        return await self._send(session, message, config)

    async def send_function_result(
        self,
        session_id: str,
        function_responses: list[FunctionResponse],
        generation_config: GenerationConfig | None = None,
        safety_settings: list[SafetySetting] | None = None,
    ) -> Outcome:
        if not function_responses:
            raise InvalidRequestError("At least one function response is required")
        session = self.sessions.get(session_id)
        logger.debug("Sending %d function result(s) to session %s", len(function_responses), session_id)
        parts = [
            {"function_response": {"name": fr.name, "response": fr.response}}
            for fr in function_responses
        ]
        config = self._session_config(session, generation_config, safety_settings)
        return await self._send(session, parts, config)

    def end_chat(self, session_id: str) -> bool:
        removed = self.sessions.remove(session_id)
        if removed:
            logger.info("Ended chat session %s", session_id)
        return removed

    # ── Files ────────────────────────────────────────────────────

    async def upload_file(
        self,
        file_path: str,
        display_name: str | None = None,
        mime_type: str | None = None,
    ) -> FileMetadata:
        path = Path(file_path)
        if not path.is_file():
            raise InvalidRequestError(f"{file_path} is not a file")
        config = {k: v for k, v in {"display_name": display_name, "mime_type": mime_type}.items() if v}
        with provider_errors("upload_file"):
            uploaded = await self._client.aio.files.upload(file=str(path), config=config or None)
        logger.info("File uploaded: %s", uploaded.name)
        return file_to_metadata(uploaded)

    async def list_files(
        self, page_size: int | None = None, page_token: str | None = None
    ) -> dict[str, Any]:
        """Return one page of files and the token for the next page, if any."""
        config = {k: v for k, v in {"page_size": page_size, "page_token": page_token}.items() if v}
        with provider_errors("list_files"):
            pager = await self._client.aio.files.list(config=config or None)
        files = [file_to_metadata(f) for f in pager.page]
        return {"files": files, "next_page_token": pager.config.get("page_token") or None}

    async def get_file(self, name: str) -> FileMetadata:
        _require_prefix(name, FILE_PREFIX)
        with provider_errors("get_file", resource_id=name):
            file = await self._client.aio.files.get(name=name)
        return file_to_metadata(file)

    async def delete_file(self, name: str) -> dict[str, bool]:
        _require_prefix(name, FILE_PREFIX)
        with provider_errors("delete_file", resource_id=name):
            await self._client.aio.files.delete(name=name)
        logger.info("Deleted file %s", name)
        return {"success": True}

    # ── Cached content ───────────────────────────────────────────

    async def create_cache(
        self,
        contents: list[Turn],
        model: str | None = None,
        display_name: str | None = None,
        system_instruction: str | None = None,
        ttl: str | None = None,
    ) -> CacheMetadata:
        effective_model = self.resolve_model(model)
        config: dict[str, Any] = {"contents": _dump_all(contents)}
        if display_name:
            config["display_name"] = display_name
        if system_instruction:
            config["system_instruction"] = system_instruction
        if ttl:
            config["ttl"] = ttl
        with provider_errors("create_cache"):
            cache = await self._client.aio.caches.create(model=effective_model, config=config)
        logger.info("Cache created: %s", cache.name)
        return cache_to_metadata(cache)

    async def list_caches(
        self, page_size: int | None = None, page_token: str | None = None
    ) -> dict[str, Any]:
        config = {k: v for k, v in {"page_size": page_size, "page_token": page_token}.items() if v}
        with provider_errors("list_caches"):
            pager = await self._client.aio.caches.list(config=config or None)
        caches = [cache_to_metadata(c) for c in pager.page]
        return {"caches": caches, "next_page_token": pager.config.get("page_token") or None}

    async def get_cache(self, name: str) -> CacheMetadata:
        _require_prefix(name, CACHE_PREFIX)
        with provider_errors("get_cache", resource_id=name):
            cache = await self._client.aio.caches.get(name=name)
        return cache_to_metadata(cache)

    async def update_cache(
        self, name: str, ttl: str | None = None, expire_time: str | None = None
    ) -> CacheMetadata:
        _require_prefix(name, CACHE_PREFIX)
        config = {k: v for k, v in {"ttl": ttl, "expire_time": expire_time}.items() if v}
        if not config:
            raise InvalidRequestError("Provide ttl or expire_time to update a cache")
        with provider_errors("update_cache", resource_id=name):
            cache = await self._client.aio.caches.update(name=name, config=config)
        logger.info("Updated cache %s", name)
        return cache_to_metadata(cache)

    async def delete_cache(self, name: str) -> dict[str, bool]:
        _require_prefix(name, CACHE_PREFIX)
        with provider_errors("delete_cache", resource_id=name):
            await self._client.aio.caches.delete(name=name)
        logger.info("Deleted cache %s", name)
        return {"success": True}
