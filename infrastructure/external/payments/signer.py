"""
RSA signing helpers for the canonical parameter string.

`RSA` is PKCS#1 v1.5 with SHA-1, `RSA2` is PKCS#1 v1.5 with SHA-256. Keys are
accepted as PEM text, bare base64 DER (PKCS#1 or PKCS#8/SPKI) or a path to a
file holding either.
"""
from __future__ import annotations

import base64
import binascii
import os
from functools import lru_cache
from pathlib import Path
from typing import cast

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey
from cryptography.hazmat.primitives.serialization import (
    load_der_private_key,
    load_der_public_key,
    load_pem_private_key,
    load_pem_public_key,
)


_HASHES = {
    "RSA": hashes.SHA1,
    "RSA2": hashes.SHA256,
}


def _hash_for(sign_type: str) -> hashes.HashAlgorithm:
    try:
        return _HASHES[sign_type.upper()]()
    except KeyError:
        raise ValueError(f"Unsupported sign_type: {sign_type}") from None


def read_key(value: str) -> str:
    """Return key text, reading it from disk when `value` is an existing path."""
    if "-----BEGIN" in value or not os.path.isfile(value):
        return value
    return Path(value).read_text(encoding="utf-8")


def _der(text: str) -> bytes:
    body = "".join(text.split())
    return base64.b64decode(body, validate=True)


@lru_cache(maxsize=32)
def load_private_key(key: str) -> RSAPrivateKey:
    text = read_key(key).strip()
    if text.startswith("-----BEGIN"):
        loaded = load_pem_private_key(text.encode("utf-8"), password=None)
    else:
        loaded = load_der_private_key(_der(text), password=None)
    return cast(RSAPrivateKey, loaded)


@lru_cache(maxsize=32)
def load_public_key(key: str) -> RSAPublicKey:
    text = read_key(key).strip()
    if text.startswith("-----BEGIN"):
        loaded = load_pem_public_key(text.encode("utf-8"))
    else:
        loaded = load_der_public_key(_der(text))
    return cast(RSAPublicKey, loaded)


def sign(content: str, private_key: str, sign_type: str = "RSA2", charset: str = "utf-8") -> str:
    key = load_private_key(private_key)
    signature = key.sign(content.encode(charset), padding.PKCS1v15(), _hash_for(sign_type))
    return base64.b64encode(signature).decode("ascii")


def verify(
    content: str,
    signature: str,
    public_key: str,
    sign_type: str = "RSA2",
    charset: str = "utf-8",
) -> bool:
    """True only when `signature` matches `content`; mismatches return False."""
    algorithm = _hash_for(sign_type)
    if not signature:
        return False
    try:
        raw = base64.b64decode(signature, validate=True)
    except (binascii.Error, ValueError):
        return False
    key = load_public_key(public_key)
    try:
        key.verify(raw, content.encode(charset), padding.PKCS1v15(), algorithm)
    except InvalidSignature:
        return False
    return True
