"""Configuration loading utilities for the Burrow client."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigError

ENV_PREFIX = "BURROW_"

# Key types the client knows how to generate and load.
KEY_TYPES = ("ed25519", "rsa", "ecdsa")

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("", "0", "false", "no", "off")


@dataclass(frozen=True)
class Config:
    """Client configuration. Immutable once built."""

    host: str = "cloud.burrow.sh"
    ssh_port: int = 35353
    http_port: int = 35354
    http_scheme: str = "https"
    debug: bool = False
    logfile: Optional[str] = None
    key_type: str = "ed25519"
    data_dir: Optional[str] = None
    identity_key: Optional[str] = None
    use_ssh_agent: bool = False
    ssh_agent_addr: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.host:
            raise ConfigError("host must not be empty")
        key_type = (self.key_type or "").strip().lower()
        if key_type not in KEY_TYPES:
            raise ConfigError(
                f"unsupported key type {self.key_type!r}; expected one of {', '.join(KEY_TYPES)}"
            )
        # Frozen dataclass: normalise through object.__setattr__.
        object.__setattr__(self, "key_type", key_type)
        object.__setattr__(self, "http_scheme", self.http_scheme.lower())

    @property
    def ssh_address(self) -> str:
        return f"{self.host}:{self.ssh_port}"

    @property
    def http_base_url(self) -> str:
        return f"{self.http_scheme}://{self.host}:{self.http_port}"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        """Build a config from ``BURROW_*`` environment variables.

        Unset variables keep their defaults. Malformed integers or booleans
        raise :class:`ConfigError`.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def text(name: str, default: Optional[str]) -> Optional[str]:
            value = env.get(ENV_PREFIX + name)
            if value is None or value.strip() == "":
                return default
            return value.strip()

        return cls(
            host=text("HOST", defaults.host) or defaults.host,
            ssh_port=_parse_int(env, "SSH_PORT", defaults.ssh_port),
            http_port=_parse_int(env, "HTTP_PORT", defaults.http_port),
            http_scheme=text("HTTP_SCHEME", defaults.http_scheme) or defaults.http_scheme,
            debug=_parse_bool(env, "DEBUG", defaults.debug),
            logfile=text("LOGFILE", None),
            key_type=text("KEY_TYPE", defaults.key_type) or defaults.key_type,
            data_dir=text("DATA_DIR", None),
            identity_key=text("IDENTITY_KEY", None),
            use_ssh_agent=_parse_bool(env, "USE_SSH_AGENT", defaults.use_ssh_agent),
            ssh_agent_addr=text("SSH_AGENT_ADDR", None),
        )


def _parse_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from exc


def _parse_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(ENV_PREFIX + name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigError(f"{ENV_PREFIX}{name} must be a boolean, got {raw!r}")


def load_config(env_file: Optional[str] = None) -> Config:
    """Load configuration from the environment.

    A ``.env`` file (or ``env_file`` when given) is read first; variables
    already present in the environment take precedence over it.

    Environment variables:
    - BURROW_HOST: Account service host
    - BURROW_SSH_PORT / BURROW_HTTP_PORT: Service ports
    - BURROW_HTTP_SCHEME: http or https
    - BURROW_DEBUG / BURROW_LOGFILE: Logging options
    - BURROW_KEY_TYPE: ed25519, rsa or ecdsa
    - BURROW_DATA_DIR: Override for the key directory root
    - BURROW_IDENTITY_KEY: Explicit private key path (skips discovery)
    - BURROW_USE_SSH_AGENT / BURROW_SSH_AGENT_ADDR: Agent authentication
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()
    return Config.from_env()
