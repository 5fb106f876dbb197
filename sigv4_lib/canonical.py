"""
Canonical request construction.

Every byte produced here is hashed into the signature, so each step
follows the published Signature Version 4 rules exactly.
"""

import re
from typing import Iterable, Optional
from urllib.parse import quote, unquote

from sigv4_lib.errors import MissingHeaderError
from sigv4_lib.hash_funcs import DEFAULT_HASH, HashFunc
from sigv4_lib.models import RequestView, normalize_header_names

# Characters left unescaped besides ASCII letters and digits
UNRESERVED = "-_.~"

_WHITESPACE_RUN = re.compile(r"\s+")


def uri_encode(value: str) -> str:
    """Percent-encode everything except unreserved characters."""
    return quote(value, safe=UNRESERVED)


def canonical_uri(path: str) -> str:
    """
    Encode each path segment, keeping ``/`` as the separator.

    Segments are decoded before encoding, so an already-encoded path is
    not encoded twice and ``%2F`` stays part of its segment.
    """
    if not path:
        return "/"
    if not path.startswith("/"):
        path = "/" + path
    return "/".join(uri_encode(unquote(segment)) for segment in path.split("/"))


def canonical_query_string(params: Iterable[tuple[str, Optional[str]]]) -> str:
    """Encode names and values, sort by name then value, join with ``&``."""
    pairs = sorted(
        (uri_encode(str(name)), uri_encode("" if value is None else str(value)))
        for name, value in params
    )
    return "&".join(f"{name}={value}" for name, value in pairs)


def _header_value(value: str) -> str:
    return _WHITESPACE_RUN.sub(" ", str(value).strip())


def canonical_headers(headers: Iterable[tuple[str, str]], signed_header_names: Iterable[str]) -> str:
    """
    Build the canonical header block.

    Args:
        headers: (name, value) pairs as received; names may repeat in any case
        signed_header_names: Header names to include

    Returns:
        One ``name:value\\n`` line per signed header, sorted by name, with
        repeated headers comma-joined in the order received

    Raises:
        MissingHeaderError: If a signed header is absent from ``headers``
    """
    grouped: dict[str, list[str]] = {}
    for name, value in headers:
        grouped.setdefault(name.strip().lower(), []).append(_header_value(value))

    lines = []
    for name in normalize_header_names(signed_header_names):
        if name not in grouped:
            raise MissingHeaderError(name)
        lines.append(f"{name}:{','.join(grouped[name])}\n")
    return "".join(lines)


def signed_header_list(signed_header_names: Iterable[str]) -> str:
    return ";".join(normalize_header_names(signed_header_names))


def payload_hash(body: bytes, hash_func: HashFunc = DEFAULT_HASH) -> str:
    """Hex digest of the full body; empty bodies hash ``b""``."""
    return hash_func.hexdigest(body or b"")


def canonicalize(
    request: RequestView,
    signed_header_names: Iterable[str],
    hash_func: HashFunc = DEFAULT_HASH,
    body: Optional[bytes] = None,
) -> tuple[str, str]:
    """
    Build the canonical request and its hex digest.

    Args:
        request: The request to canonicalize
        signed_header_names: Header names bound into the signature
        hash_func: Digest used for the payload and the canonical request
        body: Materialized body bytes; read from the request when omitted

    Returns:
        Tuple of (canonical_request, canonical_request_hash_hex)

    Raises:
        MissingHeaderError: If a signed header is missing from the request
        BodyReadError: If the body is read here and fails
    """
    names = normalize_header_names(signed_header_names)
    if body is None:
        body = request.read_body()

    canonical_parts = [
        request.method.upper(),
        canonical_uri(request.path),
        canonical_query_string(request.query),
        canonical_headers(request.headers, names),
        signed_header_list(names),
        payload_hash(body, hash_func),
    ]
    canonical_request = "\n".join(canonical_parts)
    return canonical_request, hash_func.hexdigest(canonical_request.encode("utf-8"))
