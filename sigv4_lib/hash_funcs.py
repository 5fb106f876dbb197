"""
Digest and keyed-MAC primitives used by the signer.

A HashFunc bundles the algorithm identifier that appears in the
Authorization header with the digest and MAC functions behind it. The
default is SHA-256 / HMAC-SHA256 from the standard library; an
equivalent backend built on ``cryptography`` is available for callers
that need the OpenSSL-backed primitives.
"""

import hashlib
import hmac
from dataclasses import dataclass
from typing import Callable

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import hmac as crypto_hmac

from sigv4_lib.errors import ConfigError


@dataclass(frozen=True)
class HashFunc:
    """Algorithm id plus the digest and MAC functions it names."""

    name: str
    digest: Callable[[bytes], bytes]
    mac: Callable[[bytes, bytes], bytes]

    def __str__(self) -> str:
        return self.name

    def hexdigest(self, data: bytes) -> str:
        return self.digest(data).hex()


# Map algorithm names to hashlib constructors
algorithm_map = {
    "SHA256": hashlib.sha256,
    "SHA384": hashlib.sha384,
    "SHA512": hashlib.sha512,
}


def hashlib_hash_func(name: str, algorithm: str = "SHA256") -> HashFunc:
    """
    Build a HashFunc from the standard library.

    Args:
        name: Algorithm identifier written into the Authorization header
        algorithm: Hash algorithm (SHA256, SHA384, SHA512)

    Raises:
        ConfigError: If unsupported algorithm is specified
    """
    algo_upper = algorithm.upper()
    if algo_upper not in algorithm_map:
        raise ConfigError(f"Unsupported algorithm: {algorithm}")
    constructor = algorithm_map[algo_upper]

    def digest(data: bytes) -> bytes:
        return constructor(data).digest()

    def mac(key: bytes, msg: bytes) -> bytes:
        return hmac.new(key, msg, constructor).digest()

    return HashFunc(name=name, digest=digest, mac=mac)


def cryptography_hash_func(
    name: str, algorithm: Callable[[], hashes.HashAlgorithm] = hashes.SHA256
) -> HashFunc:
    """
    Build a HashFunc on top of ``cryptography`` primitives.

    Args:
        name: Algorithm identifier written into the Authorization header
        algorithm: Factory for a cryptography hash algorithm (default: SHA256)
    """

    def digest(data: bytes) -> bytes:
        h = hashes.Hash(algorithm())
        h.update(data)
        return h.finalize()

    def mac(key: bytes, msg: bytes) -> bytes:
        h = crypto_hmac.HMAC(key, algorithm())
        h.update(msg)
        return h.finalize()

    return HashFunc(name=name, digest=digest, mac=mac)


SHA256 = hashlib_hash_func("AWS4-HMAC-SHA256", "SHA256")

DEFAULT_HASH = SHA256

_registry = {SHA256.name: SHA256}


def get_hash_func(name: str) -> HashFunc:
    """Look up a HashFunc by the algorithm id used in Authorization headers."""
    try:
        return _registry[name.upper()]
    except KeyError:
        raise ConfigError(f"Unsupported signing algorithm: {name}") from None
