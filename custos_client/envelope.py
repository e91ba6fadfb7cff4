"""
Envelope encryption of vault payloads.

Format: base64( nonce 12B || AES-256-GCM ciphertext + 16B tag ).

Never log plaintext or key material.
"""
import base64
import binascii
import os
from typing import Any

import orjson
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from custos_client.errors import EnvelopeError
from custos_client.keyring import VaultKey

NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16


def encrypt(payload: Any, key: VaultKey) -> str:
    """Serialize ``payload`` as JSON and seal it with ``key``."""
    plaintext = orjson.dumps(payload)
    nonce = os.urandom(NONCE_SIZE)
    ct = AESGCM(key.material()).encrypt(nonce, plaintext, None)
    return base64.b64encode(nonce + ct).decode("ascii")


def decrypt(blob: str, key: VaultKey) -> Any:
    """
    Open a blob produced by encrypt().

    Raises EnvelopeError when the blob is not valid base64, is too short,
    or fails authentication.
    """
    try:
        raw = base64.b64decode(blob, validate=True)
    except (binascii.Error, ValueError, TypeError) as exc:
        raise EnvelopeError("Envelope is not valid base64") from exc

    if len(raw) < NONCE_SIZE + TAG_SIZE:
        raise EnvelopeError(
            f"Envelope too short: {len(raw)} bytes (minimum {NONCE_SIZE + TAG_SIZE})"
        )

    nonce, ct = raw[:NONCE_SIZE], raw[NONCE_SIZE:]
    try:
        plaintext = AESGCM(key.material()).decrypt(nonce, ct, None)
    except InvalidTag as exc:
        raise EnvelopeError("Envelope failed authentication") from exc

    try:
        return orjson.loads(plaintext)
    except orjson.JSONDecodeError as exc:
        raise EnvelopeError("Envelope payload is not JSON") from exc


def seal_item(item_type: str, payload: Any, key: VaultKey) -> dict[str, str]:
    """Build the ``{itemType, ciphertext}`` body the vault endpoint stores."""
    return {"itemType": item_type, "ciphertext": encrypt(payload, key)}


def open_item(envelope: dict[str, Any], key: VaultKey) -> Any:
    try:
        blob = envelope["ciphertext"]
    except (KeyError, TypeError) as exc:
        raise EnvelopeError("Envelope has no ciphertext") from exc
    return decrypt(blob, key)
