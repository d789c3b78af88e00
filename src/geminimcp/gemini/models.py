"""Request and result models shared by the service and the MCP tools."""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field


class GenerationConfig(BaseModel):
    """Sampling knobs passed through to the provider."""

    temperature: float | None = Field(default=None, ge=0, le=2)
    top_p: float | None = Field(default=None, ge=0, le=1)
    top_k: int | None = Field(default=None, ge=1)
    max_output_tokens: int | None = Field(default=None, ge=1)
    stop_sequences: list[str] | None = None
    candidate_count: int | None = Field(default=None, ge=1)
    response_mime_type: str | None = None


class SafetySetting(BaseModel):
    category: str = Field(description="Harm category, e.g. HARM_CATEGORY_HARASSMENT")
    threshold: str = Field(description="Block threshold, e.g. BLOCK_MEDIUM_AND_ABOVE")


class FunctionDeclaration(BaseModel):
    """A function the model may ask the caller to run."""

    name: str
    description: str | None = None
    parameters: dict[str, Any] | None = Field(
        default=None, description="OpenAPI-style object schema for the arguments"
    )


class FunctionCallingConfig(BaseModel):
    mode: Literal["AUTO", "ANY", "NONE"] = "AUTO"
    allowed_function_names: list[str] | None = None


class ToolConfig(BaseModel):
    function_calling_config: FunctionCallingConfig | None = None


class FunctionResponse(BaseModel):
    """The result of running a function the model asked for."""

    name: str
    response: dict[str, Any]


class Part(BaseModel):
    text: str | None = None
    function_call: dict[str, Any] | None = None
    function_response: dict[str, Any] | None = None


class Turn(BaseModel):
    """One role-tagged unit of conversation content.

    Function responses travel in ``user`` turns.
    """

    role: Literal["user", "model"] = "user"
    parts: list[Part]


# Normalized outcomes


class FunctionCall(BaseModel):
    name: str
    args: dict[str, Any] = Field(default_factory=dict)


class Blocked(BaseModel):
    kind: Literal["blocked"] = "blocked"
    reason: str
    safety_ratings: list[dict[str, Any]] = Field(default_factory=list)


class SafetyStopped(BaseModel):
    kind: Literal["safety_stopped"] = "safety_stopped"
    reason: str
    safety_ratings: list[dict[str, Any]] = Field(default_factory=list)


class FunctionCalls(BaseModel):
    kind: Literal["function_calls"] = "function_calls"
    calls: list[FunctionCall]


class Text(BaseModel):
    kind: Literal["text"] = "text"
    text: str = ""


class Empty(BaseModel):
    kind: Literal["empty"] = "empty"
    finish_reason: str | None = None


Outcome = Annotated[
    Union[Blocked, SafetyStopped, FunctionCalls, Text, Empty],
    Field(discriminator="kind"),
]


# Remote resources


class FileMetadata(BaseModel):
    name: str
    display_name: str | None = None
    mime_type: str
    size_bytes: str
    create_time: str
    update_time: str
    expiration_time: str | None = None
    sha256_hash: str
    uri: str
    state: str


class CacheMetadata(BaseModel):
    name: str
    display_name: str | None = None
    model: str
    create_time: str
    update_time: str
    expire_time: str | None = None
    total_token_count: int | None = None
