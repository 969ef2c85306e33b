"""Encryption of API keys at rest.

Secrets are sealed with AES-256-GCM under a key derived from the process-wide
encryption secret with PBKDF2-HMAC-SHA256 and a per-secret random salt.  The
stored value is the hex encoding of::

    salt (16) | nonce (12) | tag (16) | ciphertext

so every blob carries the parameters needed to open it.
"""

import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ytkeypool.errors import ConfigurationMissingError, DecryptionFailedError

SALT_LENGTH = 16
NONCE_LENGTH = 12
TAG_LENGTH = 16
KEY_LENGTH = 32
PBKDF2_ITERATIONS = 100_000

_HEADER_LENGTH = SALT_LENGTH + NONCE_LENGTH + TAG_LENGTH


def _require_secret(encryption_key: Optional[str]) -> bytes:
    if not encryption_key:
        raise ConfigurationMissingError(
            "YOUTUBE_API_KEY_ENCRYPTION_KEY environment variable is not set"
        )
    return encryption_key.encode("utf-8")


def _derive_key(secret: bytes, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(secret)


def encrypt_secret(plaintext: str, encryption_key: Optional[str]) -> str:
    """Encrypt ``plaintext`` and return the hex-encoded blob.

    Raises:
        ConfigurationMissingError: If ``encryption_key`` is empty.
    """
    secret = _require_secret(encryption_key)

    salt = os.urandom(SALT_LENGTH)
    nonce = os.urandom(NONCE_LENGTH)
    sealed = AESGCM(_derive_key(secret, salt)).encrypt(
        nonce, plaintext.encode("utf-8"), None
    )
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]

    return (salt + nonce + tag + ciphertext).hex()


def decrypt_secret(blob: str, encryption_key: Optional[str]) -> str:
    """Decrypt a blob produced by :func:`encrypt_secret`.

    Raises:
        ConfigurationMissingError: If ``encryption_key`` is empty.
        DecryptionFailedError: If the blob is malformed, was tampered with,
            or was sealed under a different secret.
    """
    secret = _require_secret(encryption_key)

    try:
        raw = bytes.fromhex(blob)
    except (TypeError, ValueError) as exc:
        raise DecryptionFailedError("Stored secret is not valid hex") from exc

    if len(raw) < _HEADER_LENGTH:
        raise DecryptionFailedError("Stored secret is truncated")

    salt = raw[:SALT_LENGTH]
    nonce = raw[SALT_LENGTH : SALT_LENGTH + NONCE_LENGTH]
    tag = raw[SALT_LENGTH + NONCE_LENGTH : _HEADER_LENGTH]
    ciphertext = raw[_HEADER_LENGTH:]

    try:
        plaintext = AESGCM(_derive_key(secret, salt)).decrypt(
            nonce, ciphertext + tag, None
        )
    except InvalidTag as exc:
        raise DecryptionFailedError(
            "Stored secret failed authentication (tampered or wrong key)"
        ) from exc

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecryptionFailedError("Decrypted secret is not valid UTF-8") from exc
