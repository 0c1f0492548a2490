"""Proxy configuration, read from MCP_ID_SHIM_* environment variables."""

import os
from dataclasses import dataclass
from typing import Mapping

from .rewriter import ParseMode

ENV_PREFIX = "MCP_ID_SHIM_"

DEFAULT_OPERATION_ID = "InvokeMCP"
DEFAULT_OPERATION_HEADER = "x-operation-id"
DEFAULT_TIMEOUT = 300.0

_TRUTHY = ("1", "true", "yes")


@dataclass
class ShimConfig:
    """Settings for IdShimProxy.

    port=0 means "pick a free port at start()".
    """

    upstream_url: str
    host: str = "127.0.0.1"
    port: int = 0
    operation_id: str = DEFAULT_OPERATION_ID
    operation_header: str = DEFAULT_OPERATION_HEADER
    parse_mode: ParseMode = ParseMode.BLOCKS
    timeout: float = DEFAULT_TIMEOUT
    debug: bool = False

    def __post_init__(self):
        if not self.upstream_url:
            raise ValueError(f"{ENV_PREFIX}UPSTREAM_URL is required")
        if not self.upstream_url.startswith(("http://", "https://")):
            raise ValueError(f"Upstream URL must be http(s): {self.upstream_url!r}")
        self.upstream_url = self.upstream_url.rstrip("/")

        if not 0 <= self.port <= 65535:
            raise ValueError(f"Port out of range: {self.port}")
        if self.timeout <= 0:
            raise ValueError(f"Timeout must be positive: {self.timeout}")

        self.parse_mode = ParseMode(self.parse_mode)
        self.operation_header = self.operation_header.lower()

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> "ShimConfig":
        """Build a config from the environment.

        Args:
            environ: Mapping to read from (defaults to os.environ)
            **overrides: Field values that win over the environment
                (None values are ignored, so CLI flags can pass through)

        Raises:
            ValueError: A variable is missing or malformed
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            value = env.get(ENV_PREFIX + name)
            return value.strip() if value is not None and value.strip() else None

        values: dict = {"upstream_url": get("UPSTREAM_URL") or ""}

        host = get("HOST")
        if host is not None:
            values["host"] = host

        port = get("PORT")
        if port is not None:
            try:
                values["port"] = int(port)
            except ValueError:
                raise ValueError(f"{ENV_PREFIX}PORT must be an integer, got {port!r}") from None

        operation_id = get("OPERATION_ID")
        if operation_id is not None:
            values["operation_id"] = operation_id

        header = get("OPERATION_HEADER")
        if header is not None:
            values["operation_header"] = header

        mode = get("PARSE_MODE")
        if mode is not None:
            try:
                values["parse_mode"] = ParseMode(mode.lower())
            except ValueError:
                choices = ", ".join(m.value for m in ParseMode)
                raise ValueError(f"{ENV_PREFIX}PARSE_MODE must be one of {choices}, got {mode!r}") from None

        timeout = get("TIMEOUT")
        if timeout is not None:
            try:
                values["timeout"] = float(timeout)
            except ValueError:
                raise ValueError(f"{ENV_PREFIX}TIMEOUT must be a number, got {timeout!r}") from None

        debug = get("DEBUG")
        if debug is not None:
            values["debug"] = debug.lower() in _TRUTHY

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
