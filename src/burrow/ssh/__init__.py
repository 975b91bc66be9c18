"""SSH identity and transport for Burrow."""

from .auth import AuthConfig, SSHAgent, build_auth_config, connect_agent, load_private_key
from .commands import Operation, RemoteCommand, ResponseMode
from .keystore import KeyDescriptor, discover_keys, ensure_keys, generate_keypair, resolve_identity_keys
from .session import SSHCommandResult, SSHSession, SSHTransport

__all__ = [
    "AuthConfig",
    "SSHAgent",
    "build_auth_config",
    "connect_agent",
    "load_private_key",
    "Operation",
    "RemoteCommand",
    "ResponseMode",
    "KeyDescriptor",
    "discover_keys",
    "ensure_keys",
    "generate_keypair",
    "resolve_identity_keys",
    "SSHCommandResult",
    "SSHSession",
    "SSHTransport",
]
