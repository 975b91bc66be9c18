"""Remote command vocabulary spoken over SSH exec sessions.

Each operation maps to one command string and one response rule: either the
output is the payload, or empty output means success and anything else is the
server's complaint.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from ..errors import CouldNotUnlinkKeyError, LinkKeyError, ProtocolError
from ..models import KeySet, PublicKeyRecord


class ResponseMode(Enum):
    PAYLOAD = "payload"
    EMPTY_ON_SUCCESS = "empty_on_success"


def decode_text(output: bytes) -> str:
    return output.decode("utf-8", errors="replace")


def decode_key_set(output: bytes) -> KeySet:
    try:
        payload = json.loads(output)
    except ValueError as exc:
        raise ProtocolError(f"malformed JSON response: {exc}") from exc
    return KeySet.from_payload(payload)


class Operation(Enum):
    """Every command the account service understands.

    Members carry the remote name, whether a stdin payload goes along, the
    response rule and, for payload responses, the decoder.
    """

    ID = ("id", False, ResponseMode.PAYLOAD, decode_text)
    JWT = ("jwt", False, ResponseMode.PAYLOAD, decode_text)
    KEYS = ("keys", False, ResponseMode.PAYLOAD, decode_text)
    API_KEYS = ("api-keys", False, ResponseMode.PAYLOAD, decode_key_set)
    API_ADD_KEY = ("api-add-key", True, ResponseMode.EMPTY_ON_SUCCESS, None)
    API_UNLINK = ("api-unlink", True, ResponseMode.EMPTY_ON_SUCCESS, None)

    def __init__(
        self,
        command: str,
        takes_payload: bool,
        response: ResponseMode,
        decoder: Optional[Callable[[bytes], Any]],
    ) -> None:
        self.command = command
        self.takes_payload = takes_payload
        self.response = response
        self.decoder = decoder


# Error raised when an empty-on-success command prints something.
_FAILURES: Dict[Operation, Callable[[str], Exception]] = {
    Operation.API_ADD_KEY: lambda message: LinkKeyError(f"err: {message}"),
    Operation.API_UNLINK: lambda message: CouldNotUnlinkKeyError(),
}


@dataclass(frozen=True)
class RemoteCommand:
    """One fully rendered request: command line plus optional stdin payload."""

    operation: Operation
    args: Tuple[str, ...] = ()
    payload: Optional[Any] = None

    def __post_init__(self) -> None:
        if self.operation.takes_payload and self.payload is None:
            raise ValueError(f"{self.operation.command} requires a payload")
        if not self.operation.takes_payload and self.payload is not None:
            raise ValueError(f"{self.operation.command} does not take a payload")

    @property
    def line(self) -> str:
        return " ".join((self.operation.command,) + self.args)

    def decode(self, output: bytes) -> Any:
        """Turn the command's stdout into its result using the operation's rule."""
        if self.operation.response is ResponseMode.EMPTY_ON_SUCCESS:
            self.check_empty(output)
            return None
        return self.operation.decoder(output)

    def check_empty(self, output: bytes) -> None:
        """Apply the empty-output-is-success rule."""
        if not output:
            return
        message = output.decode("utf-8", errors="replace").strip()
        raise _FAILURES[self.operation](message)


def _compact_json(payload: Any) -> str:
    return json.dumps(payload, separators=(",", ":"))


def id_command() -> RemoteCommand:
    return RemoteCommand(Operation.ID)


def jwt_command(*audience: str) -> RemoteCommand:
    return RemoteCommand(Operation.JWT, tuple(audience))


def keys_command() -> RemoteCommand:
    return RemoteCommand(Operation.KEYS)


def api_keys_command() -> RemoteCommand:
    return RemoteCommand(Operation.API_KEYS)


def _key_command(operation: Operation, record: PublicKeyRecord) -> RemoteCommand:
    # The server has historically been sent the record both inline and on
    # stdin; both are kept until it is confirmed which one it reads.
    payload = record.to_payload()
    return RemoteCommand(operation, (_compact_json(payload),), payload)


def add_key_command(record: PublicKeyRecord) -> RemoteCommand:
    return _key_command(Operation.API_ADD_KEY, record)


def unlink_command(record: PublicKeyRecord) -> RemoteCommand:
    return _key_command(Operation.API_UNLINK, record)
