"""
At-rest protection for stored secrets (the SimpleFIN access URL).

Envelope format:
    enc:v1:<keyId>:<base64url(nonce + ciphertext)>

When DATA_ENCRYPTION_KEY_CURRENT is unset, secrets are stored as plaintext and
plaintext rows stay readable after a key is introduced.
"""
from __future__ import annotations

import base64
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM


_ENVELOPE_PREFIX = "enc:v1"
_NONCE_SIZE = 12


class SecretDecryptionError(ValueError):
    """Stored secret is an envelope that cannot be opened with the configured keys."""


@dataclass(frozen=True)
class _EncryptionConfig:
    current_key: Optional[bytes]
    previous_key: Optional[bytes]
    key_id: str

    @property
    def enabled(self) -> bool:
        return self.current_key is not None


def _parse_key(raw: str) -> bytes:
    candidate = raw.strip()
    if not candidate:
        raise ValueError("Encryption key cannot be empty.")

    # Hex keys are accepted for operational convenience.
    if all(ch in "0123456789abcdefABCDEF" for ch in candidate) and len(candidate) % 2 == 0:
        decoded = bytes.fromhex(candidate)
        if len(decoded) == 32:
            return decoded

    try:
        decoded = _urlsafe_b64decode(candidate)
    except ValueError as exc:
        raise ValueError("Invalid base64 data encryption key.") from exc
    if len(decoded) != 32:
        raise ValueError("Data encryption key must decode to exactly 32 bytes.")
    return decoded


@lru_cache(maxsize=1)
def _load_config() -> _EncryptionConfig:
    current_raw = os.getenv("DATA_ENCRYPTION_KEY_CURRENT", "").strip()
    previous_raw = os.getenv("DATA_ENCRYPTION_KEY_PREVIOUS", "").strip()
    key_id = os.getenv("DATA_ENCRYPTION_KEY_ID", "k1").strip() or "k1"

    return _EncryptionConfig(
        current_key=_parse_key(current_raw) if current_raw else None,
        previous_key=_parse_key(previous_raw) if previous_raw else None,
        key_id=key_id,
    )


def is_data_encryption_enabled() -> bool:
    return _load_config().enabled


def reset_encryption_config_cache() -> None:
    _load_config.cache_clear()


def _urlsafe_b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _urlsafe_b64decode(raw: str) -> bytes:
    padded = raw + ("=" * ((4 - len(raw) % 4) % 4))
    return base64.urlsafe_b64decode(padded.encode("utf-8"))


def is_encrypted(stored: Optional[str]) -> bool:
    return bool(stored) and stored.startswith(f"{_ENVELOPE_PREFIX}:")


def seal_secret(plaintext: Optional[str]) -> Optional[str]:
    """Return the value to persist: an envelope when a key is configured, else the plaintext."""
    if plaintext is None:
        return None

    config = _load_config()
    if not config.enabled:
        return plaintext

    nonce = os.urandom(_NONCE_SIZE)
    ciphertext = AESGCM(config.current_key).encrypt(nonce, plaintext.encode("utf-8"), None)
    return f"{_ENVELOPE_PREFIX}:{config.key_id}:{_urlsafe_b64encode(nonce + ciphertext)}"


def open_secret(stored: Optional[str]) -> Optional[str]:
    """Inverse of seal_secret. Plaintext values pass through unchanged."""
    if stored is None or not is_encrypted(stored):
        return stored

    parts = stored.split(":", 3)
    if len(parts) != 4:
        raise SecretDecryptionError("Invalid encrypted value format.")

    _enc, _version, embedded_key_id, payload = parts
    try:
        blob = _urlsafe_b64decode(payload)
    except ValueError as exc:
        raise SecretDecryptionError("Encrypted payload is not valid base64.") from exc
    if len(blob) <= _NONCE_SIZE:
        raise SecretDecryptionError("Encrypted payload is too short.")

    config = _load_config()
    if not config.enabled:
        raise SecretDecryptionError("Encrypted data found but DATA_ENCRYPTION_KEY_CURRENT is not configured.")

    # Try the key the envelope names first.
    if embedded_key_id == config.key_id:
        candidate_keys = [config.current_key, config.previous_key]
    else:
        candidate_keys = [config.previous_key, config.current_key]

    nonce, encrypted = blob[:_NONCE_SIZE], blob[_NONCE_SIZE:]
    for key in candidate_keys:
        if key is None:
            continue
        try:
            return AESGCM(key).decrypt(nonce, encrypted, None).decode("utf-8")
        except InvalidTag:
            continue

    raise SecretDecryptionError("Failed to decrypt stored secret with configured keys.")
