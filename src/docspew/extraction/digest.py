"""Streaming content digests used for document identity and matching."""

from __future__ import annotations

from dataclasses import dataclass
import hashlib
from typing import BinaryIO

DIGEST_METADATA_PREFIX = "X-TIKA:digest:"

_CHUNK_SIZE = 64 * 1024

# Java/Tika spellings mapped to hashlib names
_ALGORITHM_ALIASES: dict[str, str] = {
    "MD5": "md5",
    "SHA-1": "sha1",
    "SHA1": "sha1",
    "SHA-224": "sha224",
    "SHA-256": "sha256",
    "SHA256": "sha256",
    "SHA-384": "sha384",
    "SHA-512": "sha512",
    "SHA512": "sha512",
}


@dataclass(slots=True)
class DigestError(Exception):
    """Raised when a stream cannot be read to completion while digesting."""

    algorithm: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (algorithm={self.algorithm})"


@dataclass(frozen=True, slots=True)
class DigestResult:
    algorithm: str
    modifier: str
    value: str


def _resolve_algorithm(algorithm: str) -> str:
    name = _ALGORITHM_ALIASES.get(algorithm.strip().upper(), algorithm.strip().lower())
    if name not in hashlib.algorithms_available:
        raise ValueError(f"Unsupported digest algorithm: {algorithm}")
    return name


class Digester:
    """Hex digest over a byte stream, optionally salted by a modifier string.

    The modifier is hashed before the content, so identical bytes digested
    under different modifiers yield different values.
    """

    def __init__(self, algorithm: str = "SHA-256", modifier: str | None = None) -> None:
        self._hash_name = _resolve_algorithm(algorithm)
        self._algorithm = algorithm
        self._modifier = modifier or ""

    @property
    def algorithm(self) -> str:
        return self._algorithm

    @property
    def modifier(self) -> str:
        return self._modifier

    @property
    def metadata_key(self) -> str:
        return DIGEST_METADATA_PREFIX + self._hash_name.upper()

    def _new_hash(self):
        hasher = hashlib.new(self._hash_name)
        if self._modifier:
            hasher.update(self._modifier.encode("utf-8"))
        return hasher

    def digest(self, stream: BinaryIO) -> DigestResult:
        hasher = self._new_hash()
        try:
            while True:
                chunk = stream.read(_CHUNK_SIZE)
                if not chunk:
                    break
                hasher.update(chunk)
        except OSError as exc:
            raise DigestError(self._algorithm, f"Failed to read stream while digesting: {exc}") from exc
        return DigestResult(algorithm=self._algorithm, modifier=self._modifier, value=hasher.hexdigest())

    def digest_bytes(self, data: bytes) -> DigestResult:
        hasher = self._new_hash()
        hasher.update(data)
        return DigestResult(algorithm=self._algorithm, modifier=self._modifier, value=hasher.hexdigest())
