"""SSH authentication method assembly."""

from __future__ import annotations

import logging
import os
import socket
import threading
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Sequence, Union

import paramiko
from paramiko.agent import AgentSSH
from paramiko.auth_strategy import AuthSource, AuthStrategy, InMemoryPrivateKey
from paramiko.pkey import UnknownKeyType

from ..errors import AgentUnavailableError, KeyLoadError, MissingSSHAuthError
from .keystore import KeyDescriptor

logger = logging.getLogger(__name__)

# Every account is reached through the same SSH user; the key decides who you are.
SSH_USER = "burrow"


class SSHAgent(AgentSSH):
    """Agent client bound to an explicit socket connection.

    Every session signs through the same socket, so each request and its
    reply are exchanged under one lock.
    """

    def __init__(self, conn: socket.socket) -> None:
        AgentSSH.__init__(self)
        self._lock = threading.Lock()
        self._connect(conn)

    def _send_message(self, msg):
        with self._lock:
            return AgentSSH._send_message(self, msg)

    def close(self) -> None:
        with self._lock:
            self._close()


def connect_agent(addr: Optional[str] = None) -> SSHAgent:
    """Connect to the SSH agent at ``addr`` or ``$SSH_AUTH_SOCK``."""
    sock_path = addr or ""
    if not sock_path.strip():
        sock_path = os.environ.get("SSH_AUTH_SOCK", "")
    if not sock_path:
        raise AgentUnavailableError("no SSH_AUTH_SOCK set")

    conn = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        conn.connect(sock_path)
        agent = SSHAgent(conn)
    except (OSError, paramiko.SSHException) as exc:
        conn.close()
        raise AgentUnavailableError(f"failed to connect to SSH_AUTH_SOCK: {exc}") from exc
    logger.debug("Connected to SSH agent at %s (%d keys)", sock_path, len(agent.get_keys()))
    return agent


def load_private_key(path: Union[str, os.PathLike]) -> paramiko.PKey:
    """Read and parse an unencrypted Ed25519, RSA or ECDSA private key."""
    key_path = os.path.expanduser(os.fspath(path))
    try:
        return paramiko.PKey.from_path(key_path)
    except (OSError, paramiko.SSHException, UnknownKeyType, TypeError, ValueError) as exc:
        raise KeyLoadError(f"could not load private key {key_path}: {exc}") from exc


class AgentAuthMethod:
    """Signs with whatever keys the agent holds."""

    name = "agent"

    def __init__(self, agent: SSHAgent) -> None:
        self.agent = agent

    def sources(self, username: str) -> Iterator[AuthSource]:
        for key in self.agent.get_keys():
            yield InMemoryPrivateKey(username=username, pkey=key)


@dataclass
class PublicKeyAuthMethod:
    """Signs with a private key loaded from disk."""

    descriptor: KeyDescriptor
    pkey: paramiko.PKey

    name = "publickey"

    def sources(self, username: str) -> Iterator[AuthSource]:
        yield InMemoryPrivateKey(username=username, pkey=self.pkey)


AuthMethod = Union[AgentAuthMethod, PublicKeyAuthMethod]


class OrderedAuthStrategy(AuthStrategy):
    """Tries each method in order; the first accepted one wins."""

    def __init__(self, methods: Sequence[AuthMethod], username: str) -> None:
        super().__init__(ssh_config=paramiko.SSHConfig())
        self.methods = list(methods)
        self.username = username

    def get_sources(self) -> Iterator[AuthSource]:
        for method in self.methods:
            yield from method.sources(self.username)


@dataclass
class AuthConfig:
    """Authentication settings shared by every session of a client."""

    methods: List[AuthMethod]
    username: str = SSH_USER
    agent: Optional[SSHAgent] = field(default=None, repr=False)

    def strategy(self) -> OrderedAuthStrategy:
        return OrderedAuthStrategy(self.methods, self.username)

    def close(self) -> None:
        if self.agent is not None:
            self.agent.close()
            self.agent = None


def build_auth_config(
    descriptors: Iterable[KeyDescriptor],
    *,
    use_agent: bool = False,
    agent_addr: Optional[str] = None,
    username: str = SSH_USER,
) -> AuthConfig:
    """Turn discovered keys and the agent flag into an ordered method list.

    The agent comes first when requested, followed by on-disk keys in the
    order given. Agent connection and key parse failures are raised, not
    skipped.
    """
    methods: List[AuthMethod] = []
    agent: Optional[SSHAgent] = None
    if use_agent:
        agent = connect_agent(agent_addr)
        methods.append(AgentAuthMethod(agent))

    try:
        for descriptor in descriptors:
            methods.append(PublicKeyAuthMethod(descriptor, load_private_key(descriptor.path)))
    except KeyLoadError:
        if agent is not None:
            agent.close()
        raise

    if not methods:
        raise MissingSSHAuthError()

    logger.debug("SSH auth methods: %s", ", ".join(m.name for m in methods))
    return AuthConfig(methods=methods, username=username, agent=agent)
