"""Run the ID shim proxy from the command line.

    python -m mcp_id_shim --upstream https://mcp.example.com --port 8080

Flags override the MCP_ID_SHIM_* environment variables.
"""

import argparse
import asyncio
import sys

import logfire

from .config import ShimConfig
from .observability import configure
from .proxy import IdShimProxy
from .rewriter import ParseMode


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcp-id-shim",
        description="Proxy that rewrites numeric JSON-RPC ids to strings in event-stream responses.",
    )
    parser.add_argument("--upstream", dest="upstream_url", help="Upstream MCP server base URL")
    parser.add_argument("--host", help="Interface to bind (default 127.0.0.1)")
    parser.add_argument("--port", type=int, help="Port to bind (default: any free port)")
    parser.add_argument(
        "--mode",
        dest="parse_mode",
        choices=[m.value for m in ParseMode],
        help="Event parsing: every block, or only the last event/data pair",
    )
    parser.add_argument("--debug", action="store_true", default=None, help="Log to console")
    return parser


async def serve(proxy: IdShimProxy) -> None:
    """Start the proxy and run until cancelled."""
    await proxy.start()
    print(f"mcp-id-shim listening on {proxy.base_url} -> {proxy.config.upstream_url}", flush=True)
    try:
        await asyncio.Event().wait()
    finally:
        await proxy.stop()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = ShimConfig.from_env(**vars(args))
    except ValueError as e:
        print(f"mcp-id-shim: {e}", file=sys.stderr)
        return 2

    configure(debug=config.debug)

    try:
        asyncio.run(serve(IdShimProxy(config)))
    except KeyboardInterrupt:
        logfire.info("Interrupted, shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
