# imapreader/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv

from imapreader.errors import ConfigError

IMAPS_PORT = 993
IMAP_PORT = 143

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def split_addr(addr: str, *, use_ssl: bool = True) -> Tuple[str, int]:
    """
    Split "host:port" (or "[v6addr]:port") into (host, port).
    A bare host gets the default port for the transport kind.
    """
    addr = (addr or "").strip()
    if not addr:
        raise ConfigError("IMAP address required")

    default_port = IMAPS_PORT if use_ssl else IMAP_PORT

    if addr.startswith("["):
        end = addr.find("]")
        if end == -1:
            raise ConfigError(f"Invalid IMAP address: {addr!r}")
        host = addr[1:end]
        rest = addr[end + 1 :]
        if not rest:
            return host, default_port
        if not rest.startswith(":"):
            raise ConfigError(f"Invalid IMAP address: {addr!r}")
        port_str = rest[1:]
    elif addr.count(":") == 1:
        host, port_str = addr.split(":", 1)
    elif ":" in addr:
        # bare IPv6 address
        return addr, default_port
    else:
        return addr, default_port

    if not host:
        raise ConfigError(f"IMAP host required in address {addr!r}")
    try:
        port = int(port_str)
    except ValueError as e:
        raise ConfigError(f"Invalid IMAP port in address {addr!r}") from e
    if not 0 < port < 65536:
        raise ConfigError(f"IMAP port out of range in address {addr!r}")
    return host, port


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    val = raw.strip().lower()
    if val in _TRUE:
        return True
    if val in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number of seconds, got {raw!r}") from e


@dataclass(frozen=True)
class IMAPConfig:
    addr: str
    username: str
    password: str
    use_ssl: bool = True
    logout_timeout: float = 60.0  # seconds
    mark_seen: bool = False

    def __post_init__(self) -> None:
        split_addr(self.addr, use_ssl=self.use_ssl)
        if self.logout_timeout <= 0:
            raise ConfigError("logout_timeout must be positive")

    @property
    def host(self) -> str:
        return split_addr(self.addr, use_ssl=self.use_ssl)[0]

    @property
    def port(self) -> int:
        return split_addr(self.addr, use_ssl=self.use_ssl)[1]

    def __repr__(self) -> str:
        return (
            f"IMAPConfig(addr={self.addr!r}, username={self.username!r}, "
            f"use_ssl={self.use_ssl}, logout_timeout={self.logout_timeout}, "
            f"mark_seen={self.mark_seen})"
        )

    @classmethod
    def from_env(cls, prefix: str = "IMAP_", *, dotenv_path: Optional[str] = None) -> "IMAPConfig":
        """
        Build a config from environment variables, loading a .env file first:
            IMAP_ADDR, IMAP_USERNAME, IMAP_PASSWORD,
            IMAP_USE_SSL, IMAP_LOGOUT_TIMEOUT, IMAP_MARK_SEEN
        Variables already set in the environment win over the .env file.
        """
        load_dotenv(dotenv_path)

        addr = os.getenv(prefix + "ADDR", "")
        username = os.getenv(prefix + "USERNAME")
        password = os.getenv(prefix + "PASSWORD")
        if not addr:
            raise ConfigError(f"{prefix}ADDR is not set")
        if username is None:
            raise ConfigError(f"{prefix}USERNAME is not set")
        if password is None:
            raise ConfigError(f"{prefix}PASSWORD is not set")

        return cls(
            addr=addr,
            username=username,
            password=password,
            use_ssl=_env_bool(prefix + "USE_SSL", True),
            logout_timeout=_env_float(prefix + "LOGOUT_TIMEOUT", 60.0),
            mark_seen=_env_bool(prefix + "MARK_SEEN", False),
        )
