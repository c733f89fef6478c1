"""Application configuration.

AppConfig is a frozen dataclass — immutable after creation, IDE-autocompletable,
no string-key dict lookups.
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, port=8081, template_dir="views")
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False

    # Templates
    template_dir: str | Path = "templates"
    autoescape: bool = True

    # Static files (mounted automatically when the directory exists)
    static_dir: str | Path | None = "static"
    static_url: str = "/static"

    # Logging
    log_level: str = "info"

    # Limits
    max_content_length: int = 16 * 1024 * 1024  # 16 MB

    @property
    def address(self) -> str:
        """The bind address as a ``host:port`` string."""
        return f"{self.host}:{self.port}"


def parse_address(addr: str, *, default_host: str = "0.0.0.0") -> tuple[str, int]:
    """Split an address flag like ``":8081"`` or ``"127.0.0.1:8000"``.

    An empty host means every interface (``default_host``).

    Raises ``ValueError`` for a missing or non-numeric port.
    """
    host, sep, port_str = addr.rpartition(":")
    if not sep:
        msg = f"Address {addr!r} must be HOST:PORT or :PORT"
        raise ValueError(msg)
    if not port_str.isdigit() or not 0 < int(port_str) < 65536:
        msg = f"Address {addr!r} has an invalid port {port_str!r}"
        raise ValueError(msg)
    return host.strip("[]") or default_host, int(port_str)
