"""Identity key discovery and generation."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List

from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

from ..config import KEY_TYPES, Config
from ..errors import KeyDiscoveryError, KeyGenerationError
from ..paths import resolve_data_path

logger = logging.getLogger(__name__)

KEY_PREFIX = "burrow"
RSA_KEY_BITS = 4096


@dataclass(frozen=True)
class KeyDescriptor:
    """A candidate private key file."""

    path: Path
    key_type: str

    @classmethod
    def from_path(cls, path: Path | str) -> "KeyDescriptor":
        path = Path(path).expanduser()
        suffix = path.name.rsplit("_", 1)[-1].lower()
        return cls(path=path, key_type=suffix if suffix in KEY_TYPES else "unknown")


def key_filename(key_type: str) -> str:
    return f"{KEY_PREFIX}_{key_type}"


def discover_keys(path: Path, key_type: str) -> List[KeyDescriptor]:
    """Find ``burrow_<key_type>`` inside ``path``.

    Returns an empty list when the directory does not exist or holds no
    matching key. Results are sorted so repeated calls agree.
    """
    wanted = key_filename(key_type)
    try:
        matches = sorted(path.glob(f"{KEY_PREFIX}_*"))
    except OSError as exc:
        raise KeyDiscoveryError(f"failed to search {path} for keys: {exc}") from exc

    return [
        KeyDescriptor(path=match, key_type=key_type)
        for match in matches
        if match.name == wanted
    ]


def _new_private_key(key_type: str):
    if key_type == "ed25519":
        return ed25519.Ed25519PrivateKey.generate()
    if key_type == "rsa":
        return rsa.generate_private_key(public_exponent=65537, key_size=RSA_KEY_BITS)
    if key_type == "ecdsa":
        return ec.generate_private_key(ec.SECP256R1())
    raise KeyGenerationError(f"cannot generate key of type {key_type!r}")


def _chmod(path: Path, mode: int) -> None:
    if os.name != "posix":
        return
    path.chmod(mode)


def generate_keypair(path: Path, key_type: str) -> Path:
    """Write a new ``burrow_<key_type>`` keypair into ``path``.

    The private key is stored unencrypted in OpenSSH format with owner-only
    permissions; the public half goes next to it with a ``.pub`` suffix.
    Returns the private key path.
    """
    private_path = path / key_filename(key_type)
    public_path = private_path.with_name(private_path.name + ".pub")

    private_key = _new_private_key(key_type)
    private_bytes = private_key.private_bytes(Encoding.PEM, PrivateFormat.OpenSSH, NoEncryption())
    public_bytes = private_key.public_key().public_bytes(Encoding.OpenSSH, PublicFormat.OpenSSH)

    try:
        path.mkdir(parents=True, exist_ok=True)
        _chmod(path, 0o700)
        private_path.write_bytes(private_bytes)
        _chmod(private_path, 0o600)
        public_path.write_bytes(public_bytes + b"\n")
        _chmod(public_path, 0o644)
    except OSError as exc:
        raise KeyGenerationError(f"failed to write {key_type} keypair to {path}: {exc}") from exc

    logger.info("Generated new %s keypair at %s", key_type, private_path)
    return private_path


def ensure_keys(path: Path, key_type: str) -> List[KeyDescriptor]:
    """Discover keys, generating exactly one keypair when none exist."""
    keys = discover_keys(path, key_type)
    if keys:
        return keys

    logger.debug("No %s key found in %s, generating one", key_type, path)
    generate_keypair(path, key_type)
    keys = discover_keys(path, key_type)
    if not keys:
        raise KeyDiscoveryError(
            f"generated a {key_type} key in {path} but discovery still found none"
        )
    return keys


def resolve_identity_keys(config: Config) -> List[KeyDescriptor]:
    """Keys the client should authenticate with.

    An explicit ``identity_key`` bypasses discovery entirely.
    """
    if config.identity_key:
        return [KeyDescriptor.from_path(config.identity_key)]
    return ensure_keys(resolve_data_path(config), config.key_type)
