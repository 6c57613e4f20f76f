"""Resilient Anthropic Client — wraps AsyncAnthropic streaming with error mapping.

Invariants:
    - Every SDK failure (setup or mid-stream) surfaces as AnthropicAPIError
    - Rate limits carry retry_after_ms from the Retry-After header when present
    - CancelledError (BaseException) passes through uncaught
    - SDK-level retries (max_retries) handle transient connection failures

Design Decisions:
    - Wrapper over raw client: isolates error mapping from the agent engine
      (ADR: single responsibility)
    - No manual retry around a started stream: tokens already forwarded to the
      browser cannot be retracted, so a mid-stream failure ends the turn
"""

import logging
from contextlib import asynccontextmanager

import anthropic
from anthropic import (
    APIError,
    APIConnectionError,
    APIStatusError,
    RateLimitError,
    APITimeoutError,
    InternalServerError,
)

from chatstream.core.errors import AnthropicAPIError, ErrorContext

logger = logging.getLogger(__name__)

# ADR: OverloadedError (HTTP 529) is not re-exported by every SDK release.
# Detect via status code on APIStatusError instead of relying on private import.
_OVERLOADED_STATUS = 529


def _is_overloaded(e: APIError) -> bool:
    """Check if error is Anthropic 529 Overloaded."""
    return isinstance(e, APIStatusError) and e.status_code == _OVERLOADED_STATUS


class ResilientAnthropicClient:
    """Wraps the Anthropic client with timeouts and error mapping."""

    def __init__(
        self,
        api_key: str,
        max_retries: int = 3,
        timeout_seconds: int = 300,
    ):
        self.client = anthropic.AsyncAnthropic(
            api_key=api_key,
            max_retries=max_retries,
            timeout=timeout_seconds,
        )

    @asynccontextmanager
    async def stream_message(
        self,
        *,
        model: str,
        max_tokens: int,
        system: str,
        tools: list,
        messages: list,
        context: ErrorContext | None = None,
    ):
        """Stream message with Anthropic error → AnthropicAPIError mapping.

        Catches errors from both connection setup AND mid-stream (errors from
        caller's async for propagate through the yield in asynccontextmanager).
        """
        kwargs = {
            "model": model, "max_tokens": max_tokens,
            "system": system, "messages": messages,
        }
        if tools:
            kwargs["tools"] = tools
        try:
            async with self.client.messages.stream(**kwargs) as stream:
                yield stream
        except APIError as e:
            mapped = to_api_error(e, context)
            logger.warning("Anthropic stream failed: %s", mapped.api_error_type,
                extra={"thread_id": mapped.context.thread_id,
                       "error_code": mapped.code})
            raise mapped from e


def retry_after_ms(error: APIError) -> int | None:
    """Retry-After header of a rate-limit response, in milliseconds."""
    response = getattr(error, "response", None)
    if response is None:
        return None
    val = response.headers.get("retry-after")
    try:
        return int(float(val) * 1000) if val else None
    except (TypeError, ValueError):
        logger.debug("Unparseable retry-after header: %r", val)
        return None


def to_api_error(e: APIError, context: ErrorContext | None = None) -> AnthropicAPIError:
    """Map an SDK failure to AnthropicAPIError.

    Order matters: APITimeoutError subclasses APIConnectionError.
    """
    if isinstance(e, RateLimitError):
        return AnthropicAPIError(
            "Rate limit exceeded (streaming)", "rate_limit",
            retry_after_ms=retry_after_ms(e), context=context,
        )
    if isinstance(e, APITimeoutError):
        return AnthropicAPIError("API timeout during stream", "timeout", context=context)
    if isinstance(e, (APIConnectionError, InternalServerError)):
        return AnthropicAPIError(
            f"Connection error during stream: {e}", "connection_error", context=context,
        )
    if _is_overloaded(e):
        return AnthropicAPIError("Anthropic API overloaded (529)", "overloaded", context=context)
    return AnthropicAPIError(str(e), "client_error", context=context)
