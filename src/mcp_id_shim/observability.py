"""Observability setup - Logfire configuration.

Each proxied request gets an `id_shim.forward` span (operation ID,
upstream status, how many events were rewritten), and the upstream
httpx call nests under it with trace context propagated to the MCP
server. Logs go through logfire.info/warn/error/debug so they stay
attached to that span.
"""

import logfire


def configure(service_name: str = "mcp_id_shim", debug: bool = False) -> None:
    """Configure Logfire for observability.

    Args:
        service_name: Name to identify this service in traces.
        debug: If True, also log to console. Default False (quiet mode).
    """
    logfire.configure(
        service_name=service_name,
        distributed_tracing=True,
        scrubbing=False,  # JSON-RPC payloads trip the default patterns
        send_to_logfire="if-token-present",
        console=debug,
    )

    logfire.instrument_httpx()
