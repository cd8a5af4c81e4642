import asyncio
import time
import traceback
from typing import Any, AsyncIterator, Callable, Optional

from ..utils.logger import JSONLLogger
from .events import (
    DONE_LINE,
    GENERIC_ERROR_MESSAGE,
    CompleteEvent,
    ErrorEvent,
    StartEvent,
    StreamEvent,
    encode_event,
)

TIMEOUT_ERROR_MESSAGE = "Generation timed out"


def run_hook(
    name: str,
    hook: Optional[Callable[[Any], None]],
    argument: Any,
    logger: Optional[JSONLLogger] = None,
) -> Optional[str]:
    """Call a stream hook; a failure is logged and returned as its detail."""
    if hook is None:
        return None
    try:
        hook(argument)
    except Exception as e:
        detail = str(e) or type(e).__name__
        print(f"[Error: stream {name} hook failed: {detail}]")
        if logger is not None:
            logger.log_agent_error(
                agent_name=f"event_stream.{name}",
                error_message=detail,
                traceback=traceback.format_exc(),
            )
        return detail
    return None


async def event_stream(
    events: AsyncIterator[StreamEvent],
    budget_seconds: float,
    on_complete: Optional[Callable[[CompleteEvent], None]] = None,
    on_error: Optional[Callable[[str], None]] = None,
    logger: Optional[JSONLLogger] = None,
) -> AsyncIterator[str]:
    """
    Frame an event source as server-sent events.

    Emits `start`, relays the source, and after `complete` emits the `[DONE]`
    sentinel. An exception, an exhausted budget, or a source that ends without
    `complete` all end the stream with exactly one `error` event. Cancellation
    of the consumer is propagated into the source.

    Once `complete` has been sent the stream always closes with `[DONE]`: a
    failing `on_complete` hook is logged and reported through `on_error`
    instead of reaching the client.
    """
    deadline = time.monotonic() + budget_seconds
    completed: Optional[CompleteEvent] = None
    error_message: Optional[str] = None
    detail: Optional[str] = None

    yield encode_event(StartEvent())
    try:
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise asyncio.TimeoutError()
            try:
                event = await asyncio.wait_for(events.__anext__(), timeout=remaining)
            except StopAsyncIteration:
                error_message = GENERIC_ERROR_MESSAGE
                detail = "event source ended without a complete event"
                break

            if isinstance(event, StartEvent):
                continue
            if isinstance(event, ErrorEvent):
                error_message = event.message
                detail = event.message
                break

            yield encode_event(event)

            if isinstance(event, CompleteEvent):
                completed = event
                break
    except asyncio.TimeoutError:
        error_message = TIMEOUT_ERROR_MESSAGE
        detail = f"stream budget of {budget_seconds}s exhausted"
    except Exception as e:
        error_message = GENERIC_ERROR_MESSAGE
        detail = str(e) or type(e).__name__
        if logger is not None:
            logger.log_agent_error(
                agent_name="event_stream",
                error_message=detail,
                traceback=traceback.format_exc(),
            )
    finally:
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()

    if completed is not None:
        hook_failure = run_hook("on_complete", on_complete, completed, logger)
        if hook_failure is not None:
            run_hook("on_error", on_error, hook_failure, logger)
        yield DONE_LINE
        return

    print(f"[Error: stream aborted: {detail}]")
    run_hook("on_error", on_error, detail, logger)
    yield encode_event(ErrorEvent(message=error_message))
