"""SSH exec sessions built on Paramiko."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

import paramiko

from ..errors import RemoteCommandError, SSHAuthenticationError, SSHConnectionError
from .auth import AuthConfig
from .commands import RemoteCommand

logger = logging.getLogger(__name__)

READ_CHUNK = 32768
POLL_INTERVAL = 0.01


@dataclass
class SSHCommandResult:
    command: str
    stdout: bytes
    stderr: str
    exit_status: int

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


class SSHSession:
    """One authenticated connection running a single exec channel.

    Host keys are accepted without verification: the client only talks to
    the configured account host, and no known-hosts pinning is done.
    """

    def __init__(
        self,
        host: str,
        port: int,
        auth: AuthConfig,
        *,
        client_factory: Callable[[], paramiko.SSHClient] | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.auth = auth
        self._client_factory = client_factory or paramiko.SSHClient
        self._client: Optional[paramiko.SSHClient] = None

    def __enter__(self) -> "SSHSession":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()

    def connect(self) -> None:
        if self._client:
            return
        client = self._client_factory()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        logger.debug("Dialing %s:%s as %s", self.host, self.port, self.auth.username)
        try:
            client.connect(
                hostname=self.host,
                port=self.port,
                username=self.auth.username,
                look_for_keys=False,
                allow_agent=False,
                auth_strategy=self.auth.strategy(),
            )
        except paramiko.AuthenticationException as exc:
            client.close()
            raise SSHAuthenticationError(
                f"authentication to {self.host}:{self.port} failed: {exc}"
            ) from exc
        except (OSError, paramiko.SSHException) as exc:
            client.close()
            raise SSHConnectionError(f"could not connect to {self.host}:{self.port}: {exc}") from exc
        self._client = client

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def run(self, command: str, payload: Any = None) -> SSHCommandResult:
        """Execute ``command``, optionally streaming ``payload`` as JSON on stdin."""
        if not self._client:
            self.connect()
        assert self._client is not None

        try:
            stdin, stdout, stderr = self._client.exec_command(command)
            if payload is not None:
                stdin.write(json.dumps(payload) + "\n")
                stdin.flush()
                stdin.channel.shutdown_write()
            output, errors = self._drain(stdout.channel)
            # Whatever arrived between the last poll and EOF.
            output += stdout.read()
            errors += stderr.read()
            exit_status = stdout.channel.recv_exit_status()
        except (OSError, paramiko.SSHException) as exc:
            raise SSHConnectionError(f"session on {self.host}:{self.port} failed: {exc}") from exc

        return SSHCommandResult(
            command=command,
            stdout=output,
            stderr=errors.decode("utf-8", errors="replace"),
            exit_status=exit_status,
        )

    @staticmethod
    def _drain(channel: paramiko.Channel) -> tuple[bytes, bytes]:
        """Collect stdout and stderr together until the command exits.

        Reading one stream to EOF first can stall: a full stderr window
        stops the server from sending more stdout.
        """
        stdout_chunks = []
        stderr_chunks = []
        while True:
            has_activity = False
            while channel.recv_ready():
                stdout_chunks.append(channel.recv(READ_CHUNK))
                has_activity = True
            while channel.recv_stderr_ready():
                stderr_chunks.append(channel.recv_stderr(READ_CHUNK))
                has_activity = True
            if channel.exit_status_ready() and not has_activity:
                break
            if not has_activity:
                time.sleep(POLL_INTERVAL)
        return b"".join(stdout_chunks), b"".join(stderr_chunks)


class SSHTransport:
    """Runs each command in its own freshly dialled session.

    Connections are never pooled or reused, so concurrent callers cannot
    see each other's output.
    """

    def __init__(
        self,
        host: str,
        port: int,
        auth: AuthConfig,
        *,
        client_factory: Callable[[], paramiko.SSHClient] | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.auth = auth
        self._client_factory = client_factory

    def session(self) -> SSHSession:
        return SSHSession(self.host, self.port, self.auth, client_factory=self._client_factory)

    def invoke(self, command: Union[RemoteCommand, str], payload: Any = None) -> bytes:
        """Run one remote command and return its standard output.

        A non-zero exit status raises :class:`RemoteCommandError` carrying
        whatever the command wrote.
        """
        if isinstance(command, RemoteCommand):
            line = command.line
            if payload is None:
                payload = command.payload
        else:
            line = command

        logger.debug("Invoking remote command %r", line.split(" ", 1)[0])
        with self.session() as session:
            result = session.run(line, payload)

        if not result.ok:
            raise RemoteCommandError(line, result.exit_status, result.stdout, result.stderr)
        return result.stdout
