"""Event-stream rewriter - the one transform this package exists for.

Takes a complete, successful upstream body in event-stream framing,
decodes the JSON-RPC message(s) in the data segments, coerces the
configured fields (the `id`, by default) and rebuilds the stream.

This is a pure function of its input: no I/O, no logging, no state.
The proxy decides when to call it and what to do with the result.
"""

import json
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .coerce import DEFAULT_COERCIONS, Coercion, apply_coercions
from .sse import StreamEvent, last_event, parse_events, render

EVENT_STREAM_CONTENT_TYPE = "text/event-stream; charset=utf-8"

# Used only when the body isn't valid UTF-8, to decide pass-through vs error
_DATA_LINE_BYTES = re.compile(rb"(?:^|[\r\n])data:")


class ParseMode(str, Enum):
    """How the body is split into events."""

    BLOCKS = "blocks"  # one event per blank-line-terminated block
    LAST = "last"  # last event: line + last data: line in the whole body


class StreamDecodeError(ValueError):
    """A data segment could not be decoded. Fatal for the response."""

    def __init__(self, message: str, data: str = ""):
        self.data = data
        excerpt = data if len(data) <= 200 else data[:200] + "..."
        super().__init__(f"{message}: {excerpt!r}" if data else message)


@dataclass
class RewriteResult:
    """Output of rewrite_body()."""

    body: bytes
    transformed: bool = False  # caller should relabel as text/event-stream
    events: int = 0
    coerced: int = 0


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def _parse_float(text: str) -> float:
    value = float(text)
    if math.isinf(value):
        raise ValueError(f"Number out of range: {text}")
    return value


def _decode_document(data: str) -> Any:
    text = data.strip()
    try:
        return json.loads(text, parse_constant=_reject_constant, parse_float=_parse_float)
    except json.JSONDecodeError as e:
        raise StreamDecodeError(f"Invalid JSON in data segment ({e.msg})", text) from e
    except ValueError as e:
        raise StreamDecodeError(f"Invalid JSON in data segment ({e})", text) from e


def _encode_document(document: Any) -> str:
    try:
        return json.dumps(document, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except ValueError as e:
        raise StreamDecodeError(f"Message cannot be re-encoded as JSON ({e})") from e


def rewrite_body(
    response_body: bytes,
    status_is_success: bool,
    mode: ParseMode = ParseMode.BLOCKS,
    coercions: tuple[Coercion, ...] = DEFAULT_COERCIONS,
) -> RewriteResult:
    """Rewrite an event-stream body, reporting what happened.

    Args:
        response_body: The complete upstream response body
        status_is_success: Whether the upstream status was 2xx. If not,
            the body is returned untouched without parsing.
        mode: ParseMode.BLOCKS (every event) or ParseMode.LAST (last
            event/data pair only)
        coercions: Field coercions to apply to each decoded message

    Returns:
        RewriteResult. When no data segment is found, `body` is the input
        object itself and `transformed` is False.

    Raises:
        StreamDecodeError: A data segment is not valid JSON (or the body
            carries data but is not valid UTF-8)
    """
    if not status_is_success:
        return RewriteResult(body=response_body)

    try:
        text = response_body.decode("utf-8")
    except UnicodeDecodeError as e:
        if _DATA_LINE_BYTES.search(response_body) is None:
            return RewriteResult(body=response_body)
        raise StreamDecodeError(f"Event stream is not valid UTF-8 ({e.reason})") from e

    if mode == ParseMode.LAST:
        event = last_event(text)
        events: list[StreamEvent] = [event] if event is not None else []
    else:
        events = parse_events(text)

    if not events:
        return RewriteResult(body=response_body)

    payloads = []
    coerced = 0
    for event in events:
        document = _decode_document(event.data)
        coerced += apply_coercions(document, coercions)
        payloads.append(_encode_document(document))

    return RewriteResult(
        body=render(events, payloads).encode("utf-8"),
        transformed=True,
        events=len(events),
        coerced=coerced,
    )


def rewrite(
    response_body: bytes,
    status_is_success: bool,
    mode: ParseMode = ParseMode.BLOCKS,
    coercions: tuple[Coercion, ...] = DEFAULT_COERCIONS,
) -> bytes:
    """Rewrite an event-stream body and return the new bytes.

    Same as rewrite_body() but returns only the body.
    """
    return rewrite_body(response_body, status_is_success, mode, coercions).body
