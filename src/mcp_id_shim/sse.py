"""Event-stream framing: splitting a buffered body into events and back.

The wire format is line oriented:

    event: message
    data: {"jsonrpc": "2.0", "id": 1, "result": {}}

Each block carries an optional `event:` line and one or more `data:`
lines, and ends at a blank line. Line endings may be \\n, \\r\\n or a bare \\r.

Two readers live here:
- parse_events() groups lines into blocks (the normal case)
- last_event() keeps only the last `event:` and `data:` line in the whole
  body, for upstreams known to send exactly one message per response
"""

import re
from dataclasses import dataclass, field

EVENT_PREFIX = "event:"
DATA_PREFIX = "data:"

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


@dataclass
class StreamEvent:
    """One event from the stream."""

    data: str
    event_line: str | None = None  # verbatim, e.g. "event: message"
    fields: list[str] = field(default_factory=list)  # non-data lines, in wire order

    @property
    def event_name(self) -> str | None:
        """The event name, without the `event:` prefix."""
        if self.event_line is None:
            return None
        return _field_value(self.event_line[len(EVENT_PREFIX):])

    def encode(self, data: str | None = None) -> str:
        """Serialize back to wire format, optionally with replacement data.

        The data always goes out on a single line, so it must not
        contain line breaks (compact JSON never does).
        """
        lines = list(self.fields)
        if self.event_line is not None and self.event_line not in lines:
            lines.insert(0, self.event_line)

        parts = []
        for line in lines:
            parts.append(line + "\n")
        parts.append(f"{DATA_PREFIX} {self.data if data is None else data}\n\n")
        return "".join(parts)


def _field_value(raw: str) -> str:
    # Framing rule: a single space after the colon is not part of the value
    return raw[1:] if raw.startswith(" ") else raw


def split_lines(text: str) -> list[str]:
    """Split on any line ending, dropping empty lines."""
    return [line for line in _LINE_BREAK.split(text) if line]


def last_event(text: str) -> StreamEvent | None:
    """Last-line-wins reader.

    Scans every line; the last `event:` line and the last `data:` line
    win, regardless of which block they came from. Returns None when
    there is no `data:` line at all.
    """
    event_line = None
    data_line = None

    for line in split_lines(text):
        if line.startswith(EVENT_PREFIX):
            event_line = line
        elif line.startswith(DATA_PREFIX):
            data_line = line

    if data_line is None:
        return None

    return StreamEvent(
        data=data_line[len(DATA_PREFIX):].strip(),
        event_line=event_line,
    )


def parse_events(text: str) -> list[StreamEvent]:
    """Block-aware reader.

    Splits the body into blocks on blank lines and pairs the lines of
    each block. Multiple `data:` lines in a block are joined with \\n.
    Other lines (`event:`, `id:`, `retry:`) keep their original order and
    are written back ahead of the data. Comment lines (leading colon) are
    skipped. Blocks with no `data:` line are never dispatched as events,
    so they are not returned.
    """
    events: list[StreamEvent] = []

    event_line: str | None = None
    data_parts: list[str] = []
    fields: list[str] = []

    def flush() -> None:
        nonlocal event_line, data_parts, fields
        if data_parts:
            events.append(StreamEvent(
                data="\n".join(data_parts),
                event_line=event_line,
                fields=fields,
            ))
        event_line = None
        data_parts = []
        fields = []

    for line in _LINE_BREAK.split(text):
        if not line:
            flush()
            continue

        if line.startswith(":"):
            continue

        if line.startswith(DATA_PREFIX):
            data_parts.append(_field_value(line[len(DATA_PREFIX):]))
            continue

        if line.startswith(EVENT_PREFIX):
            event_line = line
        fields.append(line)

    # A trailing block without its blank-line terminator still counts
    flush()
    return events


def render(events: list[StreamEvent], payloads: list[str] | None = None) -> str:
    """Serialize events in order, optionally swapping in new payloads."""
    if payloads is None:
        return "".join(event.encode() for event in events)
    return "".join(event.encode(data) for event, data in zip(events, payloads, strict=True))
