"""Deterministic SHA-256 helpers."""

from __future__ import annotations

import hashlib

__all__ = [
    "sha256_bytes",
    "sha256_text",
    "short_digest",
]


def sha256_bytes(data: bytes) -> str:
    """Return SHA-256 hex digest for raw bytes."""

    return hashlib.sha256(data).hexdigest()


def sha256_text(text: str, *, encoding: str = "utf-8") -> str:
    """Return SHA-256 hex digest for text encoded with ``encoding``."""

    return sha256_bytes(text.encode(encoding))


def short_digest(text: str, length: int) -> str:
    """Return the first ``length`` hex characters of the SHA-256 of ``text``."""

    if not 1 <= length <= 64:
        raise ValueError("length must be within 1..64")
    return sha256_text(text)[:length]
