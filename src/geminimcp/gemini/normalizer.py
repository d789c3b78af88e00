"""Turn raw Gemini responses into a single normalized outcome.

The decision order is fixed and first match wins:

1. prompt-level block            -> Blocked
2. no candidate                  -> Empty
3. first candidate SAFETY stop   -> SafetyStopped
4. any function-call part        -> FunctionCalls (shadows co-occurring text)
5. any text part                 -> Text (all text parts joined in order)
6. nothing usable: STOP or MAX_TOKENS (or any stream chunk) -> Empty,
   anything else is an UnexpectedResponseShape.
"""

import logging
from typing import Any

from geminimcp.errors import SafetyError, UnexpectedResponseShape
from geminimcp.gemini.models import (
    Blocked,
    Empty,
    FunctionCall,
    FunctionCalls,
    Outcome,
    SafetyStopped,
    Text,
)

logger = logging.getLogger(__name__)

SAFETY = "SAFETY"
NORMAL_FINISH_REASONS = frozenset({"STOP", "MAX_TOKENS"})
UNSPECIFIED_REASONS = frozenset({"BLOCKED_REASON_UNSPECIFIED", "FINISH_REASON_UNSPECIFIED"})


def enum_value(value: Any) -> str | None:
    """Return the wire name of an SDK enum (or plain string), None when unset."""
    if value is None:
        return None
    name = str(getattr(value, "value", value))
    if not name or name in UNSPECIFIED_REASONS:
        return None
    return name


def to_dict(obj: Any) -> dict[str, Any]:
    if isinstance(obj, dict):
        return obj
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json", exclude_none=True)
    return {k: v for k, v in vars(obj).items() if v is not None}


def _ratings(holder: Any) -> list[dict[str, Any]]:
    return [to_dict(r) for r in (getattr(holder, "safety_ratings", None) or [])]


def _dump(response: Any) -> str:
    if hasattr(response, "model_dump_json"):
        return response.model_dump_json(exclude_none=True)
    return repr(response)


def normalize(response: Any, partial: bool = False) -> Outcome:
    """Map a provider response (or stream chunk) to exactly one outcome.

    ``partial`` is set for stream chunks. A chunk with nothing usable is Empty
    whatever its stop reason, so fragments already streamed are kept.
    """
    feedback = getattr(response, "prompt_feedback", None)
    block_reason = enum_value(getattr(feedback, "block_reason", None))
    if block_reason:
        logger.warning("Prompt blocked by provider: %s", block_reason)
        return Blocked(reason=block_reason, safety_ratings=_ratings(feedback))

    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        logger.warning("Response has no candidates; treating as empty")
        return Empty()

    candidate = candidates[0]
    finish_reason = enum_value(getattr(candidate, "finish_reason", None))
    if finish_reason == SAFETY:
        logger.warning("Generation stopped by safety policy")
        return SafetyStopped(reason=finish_reason, safety_ratings=_ratings(candidate))
    if finish_reason and finish_reason not in NORMAL_FINISH_REASONS:
        logger.warning("Candidate finished with reason %s; keeping partial content", finish_reason)

    content = getattr(candidate, "content", None)
    parts = getattr(content, "parts", None) or []

    calls = []
    texts = []
    for part in parts:
        function_call = getattr(part, "function_call", None)
        if function_call is not None:
            calls.append(
                FunctionCall(name=function_call.name, args=dict(function_call.args or {}))
            )
            continue
        text = getattr(part, "text", None)
        if isinstance(text, str) and not getattr(part, "thought", False):
            texts.append(text)

    if calls:
        logger.debug("Model requested %d function call(s): %s", len(calls), [c.name for c in calls])
        return FunctionCalls(calls=calls)
    if texts:
        return Text(text="".join(texts))
    if partial or finish_reason in NORMAL_FINISH_REASONS:
        return Empty(finish_reason=finish_reason)

    logger.error("Unexpected response shape (finish reason %s): %s", finish_reason, _dump(response))
    raise UnexpectedResponseShape(
        f"Response contained neither text nor function calls (finish reason: {finish_reason})",
        response=response,
    )


def raise_for_safety(outcome: Outcome) -> Outcome:
    """Raise SafetyError for Blocked / SafetyStopped outcomes, else return unchanged."""
    if isinstance(outcome, Blocked):
        raise SafetyError(
            f"Prompt blocked by safety policy ({outcome.reason})",
            reason=outcome.reason,
            safety_ratings=outcome.safety_ratings,
        )
    if isinstance(outcome, SafetyStopped):
        raise SafetyError(
            "Content generation stopped by safety policy",
            reason=outcome.reason,
            safety_ratings=outcome.safety_ratings,
        )
    return outcome
