"""Error types raised by the Burrow client."""

from __future__ import annotations

from typing import Optional


class BurrowError(RuntimeError):
    """Base error for the Burrow client."""


class ConfigError(BurrowError):
    """Raised when configuration values are missing or invalid."""


class KeyDiscoveryError(BurrowError):
    """Raised when identity keys cannot be located."""


class KeyGenerationError(BurrowError):
    """Raised when a new keypair cannot be generated or written."""


class KeyLoadError(BurrowError):
    """Raised when a private key file cannot be read or parsed."""


class MissingSSHAuthError(BurrowError):
    """Raised when no SSH authentication method could be assembled."""

    def __init__(self, message: str = "missing ssh auth") -> None:
        super().__init__(message)


class AgentUnavailableError(BurrowError):
    """Raised when agent auth was requested but no agent is reachable."""


class SSHConnectionError(BurrowError):
    """Raised when an SSH connection cannot be established."""


class SSHAuthenticationError(SSHConnectionError):
    """Raised when the server rejects every authentication method."""


class RemoteCommandError(BurrowError):
    """Raised when a remote command exits with a non-zero status."""

    def __init__(self, command: str, exit_status: int, output: bytes = b"", stderr: str = "") -> None:
        detail = stderr.strip() or output.decode("utf-8", errors="replace").strip()
        message = f"remote command {command.split(' ', 1)[0]!r} exited with status {exit_status}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.command = command
        self.exit_status = exit_status
        self.output = output
        self.stderr = stderr


class HTTPRequestError(BurrowError):
    """Raised when an HTTP request fails or returns an error status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: object | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ProtocolError(BurrowError):
    """Raised when the server response does not match the expected format."""


class LinkKeyError(ProtocolError):
    """Raised when the server refuses to link a key."""


class CouldNotUnlinkKeyError(ProtocolError):
    """Raised when the server refuses to unlink a key."""

    def __init__(self, message: str = "could not unlink key") -> None:
        super().__init__(message)


class NoUserDataError(ProtocolError):
    """Raised when a bio lookup returns no user."""

    def __init__(self, message: str = "no user data received") -> None:
        super().__init__(message)


class NameInvalidError(BurrowError):
    """Raised when an account name fails validation."""

    def __init__(self, message: str = "invalid name") -> None:
        super().__init__(message)
