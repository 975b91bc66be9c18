"""Account data exchanged with the Burrow service."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

import paramiko

from .errors import ProtocolError

_FRACTION = re.compile(r"\.(\d+)")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp as sent by the server."""
    if value in (None, ""):
        return None
    if not isinstance(value, str):
        raise ProtocolError(f"expected timestamp string, got {type(value).__name__}")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    # Server timestamps carry nanoseconds; datetime only holds microseconds.
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    try:
        return datetime.fromisoformat(text)
    except ValueError as exc:
        raise ProtocolError(f"invalid timestamp {value!r}") from exc


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


def key_text(key: paramiko.PKey) -> str:
    """Authorized-keys style text for a public key: ``<type> <base64>``."""
    return f"{key.get_name()} {key.get_base64()}"


def _expect_dict(payload: Any, what: str) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ProtocolError(f"expected {what} object, got {type(payload).__name__}")
    return payload


def _int_field(data: Dict[str, Any], name: str) -> int:
    value = data.get(name) or 0
    if not isinstance(value, int) or isinstance(value, bool):
        raise ProtocolError(f"field {name!r} must be an integer")
    return value


@dataclass(frozen=True)
class PublicKeyRecord:
    key: str
    id: int = 0
    created_at: Optional[datetime] = None

    @property
    def key_type(self) -> str:
        return self.key.split(" ", 1)[0]

    @property
    def material(self) -> str:
        parts = self.key.split()
        return parts[1] if len(parts) > 1 else ""

    @classmethod
    def from_pkey(cls, key: paramiko.PKey) -> "PublicKeyRecord":
        return cls(key=key_text(key))

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "key": self.key,
            "created_at": format_timestamp(self.created_at),
        }

    @classmethod
    def from_payload(cls, payload: Any) -> "PublicKeyRecord":
        data = _expect_dict(payload, "key")
        key = data.get("key")
        if not isinstance(key, str):
            raise ProtocolError("key record is missing its key text")
        return cls(
            key=key,
            id=_int_field(data, "id"),
            created_at=parse_timestamp(data.get("created_at")),
        )


@dataclass(frozen=True)
class KeySet:
    """Keys linked to the account, in server order."""

    keys: Tuple[PublicKeyRecord, ...] = ()
    active_key: int = 0

    def __iter__(self):
        return iter(self.keys)

    def __len__(self) -> int:
        return len(self.keys)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, PublicKeyRecord):
            item = item.key
        return any(record.key == item for record in self.keys)

    @property
    def active(self) -> Optional[PublicKeyRecord]:
        if 0 <= self.active_key < len(self.keys):
            return self.keys[self.active_key]
        return None

    @classmethod
    def from_payload(cls, payload: Any) -> "KeySet":
        data = _expect_dict(payload, "key set")
        raw_keys = data.get("keys") or []
        if not isinstance(raw_keys, list):
            raise ProtocolError("key set 'keys' must be a list")
        return cls(
            keys=tuple(PublicKeyRecord.from_payload(item) for item in raw_keys),
            active_key=_int_field(data, "active_key"),
        )


@dataclass
class User:
    name: str = ""
    id: int = 0
    email: str = ""
    bio: str = ""
    created_at: Optional[datetime] = None

    @property
    def has_name(self) -> bool:
        return bool(self.name)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "bio": self.bio,
            "created_at": format_timestamp(self.created_at),
        }

    @classmethod
    def from_payload(cls, payload: Any) -> "User":
        data = _expect_dict(payload, "user")
        return cls(
            name=data.get("name") or "",
            id=_int_field(data, "id"),
            email=data.get("email") or "",
            bio=data.get("bio") or "",
            created_at=parse_timestamp(data.get("created_at")),
        )


@dataclass(frozen=True)
class EncryptKey:
    """An account encryption key record, as stored by the server."""

    id: str
    key: str
    public_key: str = ""
    created_at: Optional[datetime] = field(default=None, compare=False)

    @classmethod
    def from_payload(cls, payload: Any) -> "EncryptKey":
        data = _expect_dict(payload, "encrypt key")
        key_id = data.get("id")
        key = data.get("key")
        if not isinstance(key_id, str) or not isinstance(key, str):
            raise ProtocolError("encrypt key record needs string 'id' and 'key'")
        return cls(
            id=key_id,
            key=key,
            public_key=data.get("public_key") or "",
            created_at=parse_timestamp(data.get("created_at")),
        )
