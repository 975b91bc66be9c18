"""Burrow client: identity, keys and account operations.

The client resolves (or creates) the user's SSH identity once, then runs every
account operation as a single command over a fresh SSH session. Profile data
goes through the HTTP API using a token issued over SSH.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Callable, List, Optional, Union

import paramiko

from .config import Config, load_config
from .errors import NameInvalidError, NoUserDataError, ProtocolError
from .http import HTTPClient
from .models import EncryptKey, KeySet, PublicKeyRecord, User
from .ssh import commands
from .ssh.auth import AuthConfig, build_auth_config
from .ssh.keystore import resolve_identity_keys
from .ssh.session import SSHTransport

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"[a-zA-Z0-9]{1,50}")

# Audience the HTTP API expects on its bearer tokens.
API_AUDIENCE = "burrow"


def validate_name(name: str) -> bool:
    """Account names are 1-50 ASCII letters or digits."""
    return isinstance(name, str) and NAME_PATTERN.fullmatch(name) is not None


class Client:
    """Client for a single logged-in Burrow account."""

    def __init__(
        self,
        config: Config,
        *,
        client_factory: Callable[[], paramiko.SSHClient] | None = None,
        http_session=None,
    ) -> None:
        self.config = config
        self._auth_lock = threading.Lock()
        self._auth_token: Optional[str] = None
        self._encrypt_key_lock = threading.Lock()
        self._encrypt_keys: Optional[List[EncryptKey]] = None

        descriptors = resolve_identity_keys(config)
        self.auth: AuthConfig = build_auth_config(
            descriptors,
            use_agent=config.use_ssh_agent,
            agent_addr=config.ssh_agent_addr,
        )
        self.transport = SSHTransport(
            config.host,
            config.ssh_port,
            self.auth,
            client_factory=client_factory,
        )
        self.http = HTTPClient(
            config,
            self.auth_token,
            on_unauthorized=self.invalidate_auth,
            session=http_session,
        )

    @classmethod
    def from_env(cls) -> "Client":
        return cls(load_config())

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Release the agent connection, if any."""
        self.auth.close()

    # SSH operations

    def _run(self, command: commands.RemoteCommand):
        return command.decode(self.transport.invoke(command))

    def id(self) -> str:
        """The user's account ID."""
        return self._run(commands.id_command())

    def jwt(self, *audience: str) -> str:
        """A JSON web token for the user, scoped to ``audience``."""
        return self._run(commands.jwt_command(*audience))

    def authorized_keys(self) -> str:
        """Keys linked to the account, as a plain-text listing."""
        return self._run(commands.keys_command())

    def authorized_keys_with_metadata(self) -> KeySet:
        return self._run(commands.api_keys_command())

    def link_key(self, key: Union[paramiko.PKey, PublicKeyRecord, str]) -> None:
        """Link a public key to the account."""
        record = _as_record(key)
        self._run(commands.add_key_command(record))
        logger.info("Linked %s key to account", record.key_type)

    def unlink_key(self, key: Union[paramiko.PKey, PublicKeyRecord, str]) -> None:
        """Remove a public key from the account."""
        record = _as_record(key)
        self._run(commands.unlink_command(record))
        logger.info("Unlinked %s key from account", record.key_type)

    # HTTP operations

    def auth_token(self) -> str:
        """Bearer token for the HTTP API, fetched once and cached."""
        with self._auth_lock:
            if self._auth_token is None:
                token = self.jwt(API_AUDIENCE).strip()
                if not token:
                    raise ProtocolError("server issued an empty token")
                self._auth_token = token
            return self._auth_token

    def invalidate_auth(self) -> None:
        with self._auth_lock:
            self._auth_token = None

    def bio(self) -> User:
        """The user's profile."""
        user_id = self.id()
        payload = self.http.authed_json_request("GET", f"/v1/id/{user_id}")
        if payload is None:
            raise NoUserDataError()
        return User.from_payload(payload)

    def set_name(self, name: str) -> User:
        """Set the account's username."""
        if not validate_name(name):
            raise NameInvalidError()
        payload = self.http.authed_json_request("POST", "/v1/bio", User(name=name).to_payload())
        if payload is None:
            raise NoUserDataError()
        return User.from_payload(payload)

    def encrypt_keys(self) -> List[EncryptKey]:
        """The account's encryption key records, fetched once and cached."""
        with self._encrypt_key_lock:
            if self._encrypt_keys is None:
                payload = self.http.authed_json_request("GET", "/v1/encrypt-keys")
                if payload is None:
                    payload = []
                if not isinstance(payload, list):
                    raise ProtocolError("encrypt keys response must be a list")
                self._encrypt_keys = [EncryptKey.from_payload(item) for item in payload]
            return list(self._encrypt_keys)


def _as_record(key: Union[paramiko.PKey, PublicKeyRecord, str]) -> PublicKeyRecord:
    if isinstance(key, PublicKeyRecord):
        return key
    if isinstance(key, paramiko.PKey):
        return PublicKeyRecord.from_pkey(key)
    return PublicKeyRecord(key=key.strip())
