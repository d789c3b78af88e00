"""MCP server exposing Gemini generation, chat, file and cache tools."""

import logging

from mcp.server.fastmcp import FastMCP

from geminimcp.config import load_settings
from geminimcp.gemini.models import (
    FunctionDeclaration,
    FunctionResponse,
    GenerationConfig,
    SafetySetting,
    ToolConfig,
    Turn,
)
from geminimcp.gemini.service import GeminiService

logger = logging.getLogger(__name__)

mcp = FastMCP("geminimcp")
service: GeminiService | None = None


def get_service() -> GeminiService:
    """Return the process-wide service, building it from settings on first use."""
    global service
    if service is None:
        logger.info("Building Gemini service from environment settings")
        service = GeminiService.from_settings(load_settings())
    return service


@mcp.tool()
async def generate_content(
    prompt: str,
    model: str | None = None,
    generation_config: GenerationConfig | None = None,
    safety_settings: list[SafetySetting] | None = None,
) -> dict:
    """Generate a single response from a Gemini model.

    Args:
        prompt: The input prompt
        model: Optional model name (e.g. "gemini-1.5-flash"); defaults to GOOGLE_GEMINI_MODEL
        generation_config: Optional sampling settings (temperature, top_p, max_output_tokens, ...)
        safety_settings: Optional per-category block thresholds
    """
    outcome = await get_service().generate(prompt, model, generation_config, safety_settings)
    return outcome.model_dump()


@mcp.tool()
async def generate_content_stream(
    prompt: str,
    model: str | None = None,
    generation_config: GenerationConfig | None = None,
    safety_settings: list[SafetySetting] | None = None,
) -> dict:
    """Generate a response using the streaming API and return the assembled text.

    Useful for long outputs; fragments are collected as they arrive.

    Args:
        prompt: The input prompt
        model: Optional model name; defaults to GOOGLE_GEMINI_MODEL
        generation_config: Optional sampling settings
        safety_settings: Optional per-category block thresholds
    """
    fragments = []
    async for fragment in get_service().generate_stream(
        prompt, model, generation_config, safety_settings
    ):
        fragments.append(fragment)
    if not fragments:
        return {"kind": "empty", "chunks": 0}
    return {"kind": "text", "text": "".join(fragments), "chunks": len(fragments)}


@mcp.tool()
async def function_call(
    prompt: str,
    function_declarations: list[FunctionDeclaration],
    model: str | None = None,
    generation_config: GenerationConfig | None = None,
    safety_settings: list[SafetySetting] | None = None,
    tool_config: ToolConfig | None = None,
) -> dict:
    """Ask the model to answer or request one or more of the declared functions.

    Returns either the requested function calls (name and arguments) or text.
    The caller runs the functions; nothing is executed server-side.

    Args:
        prompt: The input prompt
        function_declarations: Functions the model may call (name, description, parameters schema)
        model: Optional model name; defaults to GOOGLE_GEMINI_MODEL
        generation_config: Optional sampling settings
        safety_settings: Optional per-category block thresholds
        tool_config: Optional function calling mode (AUTO, ANY, NONE) and allowed names
    """
    outcome = await get_service().generate_function_call(
        prompt, function_declarations, model, generation_config, safety_settings, tool_config
    )
    return outcome.model_dump()


@mcp.tool()
def start_chat(
    model: str | None = None,
    history: list[Turn] | None = None,
    generation_config: GenerationConfig | None = None,
    safety_settings: list[SafetySetting] | None = None,
    function_declarations: list[FunctionDeclaration] | None = None,
    tool_config: ToolConfig | None = None,
) -> dict:
    """Start a stateful chat session and return its session ID.

    The session keeps its model and default settings for every later message.
    Sessions live in memory and expire after a period of inactivity.

    Args:
        model: Optional model name; defaults to GOOGLE_GEMINI_MODEL
        history: Optional initial turns ({role, parts: [{text}]})
        generation_config: Default sampling settings for the session
        safety_settings: Default safety thresholds for the session
        function_declarations: Functions the model may call during the session
        tool_config: Default function calling mode for the session
    """
    session_id = get_service().start_chat(
        model, history, generation_config, safety_settings, function_declarations, tool_config
    )
    return {"session_id": session_id}


@mcp.tool()
async def send_message(
    session_id: str,
    message: str,
    generation_config: GenerationConfig | None = None,
    safety_settings: list[SafetySetting] | None = None,
    function_declarations: list[FunctionDeclaration] | None = None,
    tool_config: ToolConfig | None = None,
) -> dict:
    """Send a message to an existing chat session.

    Per-call settings override the session defaults for this message only.

    Args:
        session_id: ID returned by start_chat
        message: The user message
        generation_config: Optional overrides for this message
        safety_settings: Optional overrides for this message
        function_declarations: Optional functions for this message
        tool_config: Optional function calling mode for this message
    """
    outcome = await get_service().send_message(
        session_id, message, generation_config, safety_settings, function_declarations, tool_config
    )
    return outcome.model_dump()


@mcp.tool()
async def send_function_result(
    session_id: str,
    function_responses: list[FunctionResponse],
    generation_config: GenerationConfig | None = None,
    safety_settings: list[SafetySetting] | None = None,
) -> dict:
    """Send the results of requested function calls back to a chat session.

    Args:
        session_id: ID returned by start_chat
        function_responses: One entry per executed function ({name, response})
        generation_config: Optional overrides for this turn
        safety_settings: Optional overrides for this turn
    """
    outcome = await get_service().send_function_result(
        session_id, function_responses, generation_config, safety_settings
    )
    return outcome.model_dump()


@mcp.tool()
def end_chat(session_id: str) -> dict:
    """Close a chat session and free its history.

    Args:
        session_id: ID returned by start_chat
    """
    return {"session_id": session_id, "ended": get_service().end_chat(session_id)}


@mcp.tool()
async def upload_file(
    file_path: str,
    display_name: str | None = None,
    mime_type: str | None = None,
) -> dict:
    """Upload a local file to the Gemini Files API.

    Args:
        file_path: Absolute path to the file on this machine
        display_name: Optional human-readable name
        mime_type: Optional MIME type; inferred when omitted
    """
    return (await get_service().upload_file(file_path, display_name, mime_type)).model_dump()


@mcp.tool()
async def list_files(page_size: int | None = None, page_token: str | None = None) -> dict:
    """List files uploaded to the Gemini Files API.

    Args:
        page_size: Optional maximum number of files to return
        page_token: Optional token from a previous call
    """
    result = await get_service().list_files(page_size, page_token)
    return {
        "files": [f.model_dump() for f in result["files"]],
        "next_page_token": result["next_page_token"],
    }


@mcp.tool()
async def get_file(name: str) -> dict:
    """Get metadata for an uploaded file.

    Args:
        name: File name, e.g. "files/abc123"
    """
    return (await get_service().get_file(name)).model_dump()


@mcp.tool()
async def delete_file(name: str) -> dict:
    """Delete an uploaded file.

    Args:
        name: File name, e.g. "files/abc123"
    """
    return await get_service().delete_file(name)


@mcp.tool()
async def create_cache(
    contents: list[Turn],
    model: str | None = None,
    display_name: str | None = None,
    system_instruction: str | None = None,
    ttl: str | None = None,
) -> dict:
    """Cache content for reuse across requests to a compatible model.

    Args:
        contents: Turns to cache ({role, parts: [{text}]})
        model: Optional model name; defaults to GOOGLE_GEMINI_MODEL
        display_name: Optional human-readable name
        system_instruction: Optional system instruction stored with the cache
        ttl: Optional time to live, e.g. "3600s"
    """
    cache = await get_service().create_cache(contents, model, display_name, system_instruction, ttl)
    return cache.model_dump()


@mcp.tool()
async def list_caches(page_size: int | None = None, page_token: str | None = None) -> dict:
    """List cached contents.

    Args:
        page_size: Optional maximum number of caches to return
        page_token: Optional token from a previous call
    """
    result = await get_service().list_caches(page_size, page_token)
    return {
        "caches": [c.model_dump() for c in result["caches"]],
        "next_page_token": result["next_page_token"],
    }


@mcp.tool()
async def get_cache(name: str) -> dict:
    """Get metadata for cached content.

    Args:
        name: Cache name, e.g. "cachedContents/abc123"
    """
    return (await get_service().get_cache(name)).model_dump()


@mcp.tool()
async def update_cache(name: str, ttl: str | None = None, expire_time: str | None = None) -> dict:
    """Extend or shorten the lifetime of cached content.

    Args:
        name: Cache name, e.g. "cachedContents/abc123"
        ttl: New time to live, e.g. "7200s"
        expire_time: New absolute expiry as an RFC 3339 timestamp
    """
    return (await get_service().update_cache(name, ttl, expire_time)).model_dump()


@mcp.tool()
async def delete_cache(name: str) -> dict:
    """Delete cached content.

    Args:
        name: Cache name, e.g. "cachedContents/abc123"
    """
    return await get_service().delete_cache(name)
