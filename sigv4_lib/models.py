"""Data types passed to and returned from the signer."""

import io
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional
from urllib.parse import parse_qsl, urlsplit

from sigv4_lib.errors import BodyReadError
from sigv4_lib.hash_funcs import DEFAULT_HASH, HashFunc

TERMINATOR = "aws4_request"

_DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(frozen=True)
class Credential:
    """Access key id and secret. The secret is kept out of repr."""

    access_id: str
    secret: str = field(repr=False)


@dataclass(frozen=True)
class SigningScope:
    """Date, region and service that a signing key is bound to."""

    date: str
    region: str
    service: str
    terminator: str = TERMINATOR

    def __str__(self) -> str:
        return f"{self.date}/{self.region}/{self.service}/{self.terminator}"


def normalize_header_names(names: Iterable[str]) -> tuple[str, ...]:
    """Lowercase, strip, deduplicate and sort header names."""
    return tuple(sorted({name.strip().lower() for name in names}))


@dataclass(frozen=True)
class SignerConfig:
    """
    Region, service, signed header names and algorithm for a signer.

    ``signed_headers`` is stored as a normalized tuple, so the caller's
    list is copied rather than sorted in place.
    """

    region: str
    service: str
    signed_headers: tuple[str, ...] = ("host",)
    hash_func: HashFunc = DEFAULT_HASH

    def __post_init__(self):
        if self.signed_headers is None:
            names = []
        elif isinstance(self.signed_headers, str):
            names = [self.signed_headers]
        else:
            names = list(self.signed_headers)
        object.__setattr__(self, "signed_headers", normalize_header_names(names))

    @property
    def algorithm(self) -> str:
        return self.hash_func.name

    def with_headers(self, *names: str) -> "SignerConfig":
        """Return a copy of this config signing ``names`` instead."""
        return SignerConfig(
            region=self.region,
            service=self.service,
            signed_headers=names,
            hash_func=self.hash_func,
        )


@dataclass
class RequestView:
    """
    The parts of an HTTP request that take part in signing.

    ``path`` may be decoded or percent-encoded; an encoded ``%2F`` stays
    inside its segment. ``query`` and ``headers`` are lists of (name, value)
    pairs in the order they were received; a query value of None means the
    parameter had no ``=``. ``body`` may be bytes, str, a readable binary stream, an
    iterable of byte chunks, or None.
    """

    method: str
    path: str = "/"
    query: list[tuple[str, Optional[str]]] = field(default_factory=list)
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: Any = None

    @classmethod
    def from_url(
        cls,
        method: str,
        url: str,
        headers: Optional[Iterable[tuple[str, str]]] = None,
        body: Any = None,
    ) -> "RequestView":
        """
        Build a RequestView from a full URL.

        The path is kept as sent, blank query values are kept, and a
        ``host`` header is added from the URL when none is given.
        """
        parts = urlsplit(url)
        header_list = list(headers or [])

        if not any(name.strip().lower() == "host" for name, _ in header_list):
            host = parts.hostname or ""
            if parts.port is not None and parts.port != _DEFAULT_PORTS.get(parts.scheme):
                host = f"{host}:{parts.port}"
            if host:
                header_list.append(("host", host))

        return cls(
            method=method,
            path=parts.path or "/",
            query=parse_qsl(parts.query, keep_blank_values=True),
            headers=header_list,
            body=body,
        )

    def get_header_values(self, name: str) -> list[str]:
        """All values for ``name`` (case-insensitive) in received order."""
        wanted = name.strip().lower()
        return [value for h_name, value in self.headers if h_name.strip().lower() == wanted]

    def set_header(self, name: str, value: str) -> None:
        """Replace every occurrence of ``name`` with a single value."""
        wanted = name.strip().lower()
        self.headers = [(h_name, v) for h_name, v in self.headers if h_name.strip().lower() != wanted]
        self.headers.append((name, value))

    def read_body(self) -> bytes:
        """
        Read the whole body once and put back a fresh stream of the same bytes.

        After this call ``self.body`` is an ``io.BytesIO`` positioned at the
        start. If reading fails, a seekable stream is rewound to where it
        was so the caller can still send it.

        Raises:
            BodyReadError: If the body cannot be read to completion
        """
        body = self.body
        if body is None:
            data = b""
        elif isinstance(body, (bytes, bytearray, memoryview)):
            data = bytes(body)
        elif isinstance(body, str):
            data = body.encode("utf-8")
        elif hasattr(body, "read"):
            data = _read_stream(body)
        else:
            try:
                data = b"".join(bytes(chunk) for chunk in body)
            except Exception as e:
                raise BodyReadError(f"Could not read request body: {e}") from e

        self.body = io.BytesIO(data)
        return data


def _read_stream(stream: Any) -> bytes:
    start = None
    try:
        if stream.seekable():
            start = stream.tell()
    except (AttributeError, OSError, ValueError):
        start = None

    try:
        data = stream.read()
    except Exception as e:
        if start is not None:
            try:
                stream.seek(start)
            except (OSError, ValueError):
                pass
        raise BodyReadError(f"Could not read request body: {e}") from e

    if isinstance(data, str):
        return data.encode("utf-8")
    if not isinstance(data, (bytes, bytearray)):
        raise BodyReadError(f"Request body stream returned {type(data).__name__}, expected bytes")
    return bytes(data)
