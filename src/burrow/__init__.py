"""Burrow account client: SSH identity, keys and account operations."""

from .client import Client, validate_name
from .config import Config, load_config
from .errors import (
    AgentUnavailableError,
    BurrowError,
    ConfigError,
    CouldNotUnlinkKeyError,
    HTTPRequestError,
    KeyDiscoveryError,
    KeyGenerationError,
    KeyLoadError,
    LinkKeyError,
    MissingSSHAuthError,
    NameInvalidError,
    NoUserDataError,
    ProtocolError,
    RemoteCommandError,
    SSHAuthenticationError,
    SSHConnectionError,
)
from .models import EncryptKey, KeySet, PublicKeyRecord, User

__version__ = "0.1.0"

__all__ = [
    "Client",
    "validate_name",
    "Config",
    "load_config",
    "EncryptKey",
    "KeySet",
    "PublicKeyRecord",
    "User",
    "BurrowError",
    "ConfigError",
    "KeyDiscoveryError",
    "KeyGenerationError",
    "KeyLoadError",
    "MissingSSHAuthError",
    "AgentUnavailableError",
    "SSHConnectionError",
    "SSHAuthenticationError",
    "RemoteCommandError",
    "HTTPRequestError",
    "ProtocolError",
    "LinkKeyError",
    "CouldNotUnlinkKeyError",
    "NoUserDataError",
    "NameInvalidError",
]
