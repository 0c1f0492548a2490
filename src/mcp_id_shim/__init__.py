"""mcp_id_shim - string-typed JSON-RPC ids for strict MCP clients.

Architecture:
- rewriter: pure transform of one event-stream body (the actual fix)
- sse / coerce: framing and field coercion it is built from
- proxy: aiohttp server that forwards to the MCP server and applies it
- dispatch: operation ID -> handler routing table
"""

from .coerce import Coercion, DEFAULT_COERCIONS, apply_coercions
from .config import ShimConfig
from .dispatch import OperationRouter
from .observability import configure as configure_observability
from .proxy import IdShimProxy
from .rewriter import ParseMode, RewriteResult, StreamDecodeError, rewrite, rewrite_body
from .sse import StreamEvent, last_event, parse_events

__all__ = [
    # The transform
    "rewrite",
    "rewrite_body",
    "RewriteResult",
    "StreamDecodeError",
    "ParseMode",
    # Building blocks
    "StreamEvent",
    "parse_events",
    "last_event",
    "Coercion",
    "DEFAULT_COERCIONS",
    "apply_coercions",
    # Proxy
    "IdShimProxy",
    "OperationRouter",
    "ShimConfig",
    # Observability
    "configure_observability",
]
__version__ = "0.1.0"
