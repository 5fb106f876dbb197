import hmac
import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Iterable, Optional, Tuple

from sigv4_lib.canonical import canonicalize, signed_header_list
from sigv4_lib.errors import ConfigError, SigningError
from sigv4_lib.hash_funcs import DEFAULT_HASH, HashFunc, get_hash_func
from sigv4_lib.models import Credential, RequestView, SignerConfig, SigningScope

logger = logging.getLogger(__name__)

AMZ_DATE_HEADER = "X-Amz-Date"
AMZ_DATE_FORMAT = "%Y%m%dT%H%M%SZ"
DATE_STAMP_FORMAT = "%Y%m%d"
KEY_PREFIX = "AWS4"

_AUTH_HEADER_PATTERN = re.compile(
    r"^(?P<algorithm>\S+) "
    r"Credential=(?P<access_id>[^/,\s]+)/(?P<date>\d{8})/(?P<region>[^/,\s]+)/"
    r"(?P<service>[^/,\s]+)/(?P<terminator>[^/,\s]+), ?"
    r"SignedHeaders=(?P<signed_headers>[^,\s]+), ?"
    r"Signature=(?P<signature>[0-9a-fA-F]+)$"
)


def _as_utc(when: datetime) -> datetime:
    if not isinstance(when, datetime):
        raise ConfigError(f"Signing time must be a datetime, got {type(when).__name__}")
    if when.tzinfo is None:
        return when.replace(tzinfo=timezone.utc)
    return when.astimezone(timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_amz_date(when: datetime) -> str:
    """Render ``when`` as compact ISO 8601 basic UTC, e.g. 20150830T123600Z."""
    return _as_utc(when).strftime(AMZ_DATE_FORMAT)


def format_date_stamp(when: datetime) -> str:
    return _as_utc(when).strftime(DATE_STAMP_FORMAT)


def set_amz_date(request: RequestView, when: datetime) -> RequestView:
    """
    Set the X-Amz-Date header for ``when``.

    The signer never adds this header on its own; call this before signing
    and keep ``x-amz-date`` in the signed header names.
    """
    request.set_header(AMZ_DATE_HEADER, format_amz_date(when))
    return request


def derive_signing_key(secret: str, scope: SigningScope, hash_func: HashFunc = DEFAULT_HASH) -> bytes:
    """
    Fold the secret and the credential scope into a signing key.

    HMAC(HMAC(HMAC(HMAC("AWS4" + secret, date), region), service), terminator)
    """
    key = (KEY_PREFIX + secret).encode("utf-8")
    for part in (scope.date, scope.region, scope.service, scope.terminator):
        key = hash_func.mac(key, part.encode("utf-8"))
    return key


def build_string_to_sign(
    algorithm_id: str,
    when: datetime,
    scope: SigningScope,
    canonical_request_hash: str,
) -> str:
    return "\n".join([algorithm_id, format_amz_date(when), str(scope), canonical_request_hash])


def compute_signature(signing_key: bytes, string_to_sign: str, hash_func: HashFunc = DEFAULT_HASH) -> str:
    """Lowercase hex MAC of the string-to-sign."""
    return hash_func.mac(signing_key, string_to_sign.encode("utf-8")).hex()


def build_authorization(
    algorithm_id: str,
    access_id: str,
    scope: SigningScope,
    signed_headers: Iterable[str],
    signature: str,
) -> str:
    return (
        f"{algorithm_id} Credential={access_id}/{scope}, "
        f"SignedHeaders={signed_header_list(signed_headers)}, Signature={signature}"
    )


def _check_config(config: SignerConfig, credential: Credential) -> None:
    if config is None:
        raise ConfigError("Signer config is required")
    if not config.region:
        raise ConfigError("Region is required")
    if not config.service:
        raise ConfigError("Service is required")
    if not config.signed_headers:
        raise ConfigError("At least one signed header is required")
    if config.hash_func is None:
        raise ConfigError("Hash function is required")
    if credential is None or not credential.access_id or not credential.secret:
        raise ConfigError("Credential with access id and secret is required")


def sign_request_at(
    request: RequestView,
    config: SignerConfig,
    credential: Credential,
    when: datetime,
) -> RequestView:
    """
    Sign ``request`` as of ``when`` and attach the Authorization header.

    The body is read once and replaced with a fresh stream holding the
    same bytes. The request must already carry a timestamp header for
    ``when`` listed in ``config.signed_headers``.

    Args:
        request: Request to sign; updated in place and returned
        config: Region, service, signed header names and algorithm
        credential: Access id and secret
        when: Signing time; no clock is read

    Returns:
        The same request with its Authorization header set

    Raises:
        ConfigError: If region, service or credential is missing
        MissingHeaderError: If a signed header is absent from the request
        BodyReadError: If the body cannot be read
    """
    _check_config(config, credential)
    hash_func = config.hash_func
    signed_headers = config.signed_headers

    body = request.read_body()
    canonical_request, canonical_hash = canonicalize(request, signed_headers, hash_func, body=body)
    logger.debug("CanonicalRequest:\n%s", canonical_request)

    scope = SigningScope(format_date_stamp(when), config.region, config.service)
    string_to_sign = build_string_to_sign(hash_func.name, when, scope, canonical_hash)
    logger.debug("StringToSign:\n%s", string_to_sign)

    signing_key = derive_signing_key(credential.secret, scope, hash_func)
    signature = compute_signature(signing_key, string_to_sign, hash_func)
    logger.debug("Signature:\n%s", signature)

    request.set_header(
        "Authorization",
        build_authorization(hash_func.name, credential.access_id, scope, signed_headers, signature),
    )
    return request


def sign_request(request: RequestView, config: SignerConfig, credential: Credential) -> RequestView:
    """Sign ``request`` at the current UTC time."""
    return sign_request_at(request, config, credential, _utcnow())


class Signer:
    """
    Signs requests for one region, service and credential.

    Usage:
        signer = Signer(SignerConfig("us-east-1", "iam", ["host", "x-amz-date"]), credential)
        set_amz_date(request, now)
        signer.sign_request_at(request, now)
    """

    def __init__(self, config: SignerConfig, credential: Credential):
        self.config = config
        self.credential = credential

    @property
    def algorithm(self) -> str:
        return self.config.algorithm

    def with_headers(self, *names: str) -> "Signer":
        """Return a signer that signs ``names`` instead of the current headers."""
        return Signer(self.config.with_headers(*names), self.credential)

    def scope(self, when: datetime) -> SigningScope:
        return SigningScope(format_date_stamp(when), self.config.region, self.config.service)

    def signing_key(self, when: datetime) -> bytes:
        return derive_signing_key(self.credential.secret, self.scope(when), self.config.hash_func)

    def sign(self, key: bytes, string_to_sign: str) -> str:
        return compute_signature(key, string_to_sign, self.config.hash_func)

    def authorization(self, signature: str, when: datetime) -> str:
        return build_authorization(
            self.algorithm,
            self.credential.access_id,
            self.scope(when),
            self.config.signed_headers,
            signature,
        )

    def sign_request_at(self, request: RequestView, when: datetime) -> RequestView:
        return sign_request_at(request, self.config, self.credential, when)

    def sign_request(self, request: RequestView) -> RequestView:
        return sign_request(request, self.config, self.credential)


def parse_sigv4_header(auth_header: str) -> dict[str, Any]:
    """
    Parse a Signature Version 4 Authorization header.

    Expected format:
    AWS4-HMAC-SHA256 Credential=<id>/<date>/<region>/<service>/aws4_request, SignedHeaders=<h1;h2>, Signature=<hex>

    Returns:
        Dictionary with 'algorithm', 'access_id', 'scope' (SigningScope),
        'signed_headers' (list) and 'signature'

    Raises:
        ValueError: If header format is invalid
    """
    if not auth_header:
        raise ValueError("Empty authorization header")

    match = _AUTH_HEADER_PATTERN.match(auth_header.strip())
    if match is None:
        raise ValueError("Invalid SigV4 authorization header format")

    return {
        "algorithm": match.group("algorithm"),
        "access_id": match.group("access_id"),
        "scope": SigningScope(
            date=match.group("date"),
            region=match.group("region"),
            service=match.group("service"),
            terminator=match.group("terminator"),
        ),
        "signed_headers": match.group("signed_headers").split(";"),
        "signature": match.group("signature").lower(),
    }


def parse_request_time(value: str) -> datetime:
    """
    Parse an X-Amz-Date (20150830T123600Z) or RFC 7231 Date header value.

    Raises:
        ValueError: If the value is in neither format
    """
    value = value.strip()
    try:
        return datetime.strptime(value, AMZ_DATE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        pass
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        parsed = None
    if parsed is None:
        raise ValueError(f"Unrecognized date format: {value!r}")
    return _as_utc(parsed)


def verify_timestamp(
    date_header: str,
    max_age_seconds: int = 300,
    now: Optional[datetime] = None,
) -> Tuple[bool, Optional[str]]:
    """
    Verify that a request timestamp is within acceptable age.

    Args:
        date_header: X-Amz-Date or Date header value
        max_age_seconds: Maximum acceptable age in seconds (default: 5 minutes)
        now: Reference time (default: current UTC time)

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        request_time = parse_request_time(date_header)
    except ValueError as e:
        return False, f"Invalid date header: {e}"

    current_time = _as_utc(now) if now is not None else _utcnow()
    time_diff = (current_time - request_time).total_seconds()

    if time_diff > max_age_seconds:
        return (
            False,
            f"Request timestamp too old: {time_diff:.0f} seconds (max: {max_age_seconds})",
        )

    # 1 minute tolerance for clock skew
    if -time_diff > 60:
        return False, "Request timestamp is in the future"

    return True, None


def _request_time_header(request: RequestView) -> Optional[str]:
    for name in ("x-amz-date", "date"):
        values = request.get_header_values(name)
        if values:
            return values[0]
    return None


def verify_sigv4_signature(
    request: RequestView,
    secret: str,
    max_age_seconds: int = 300,
    now: Optional[datetime] = None,
    hash_funcs: Optional[Iterable[HashFunc]] = None,
) -> Tuple[bool, Optional[str]]:
    """
    Verify the Authorization header of a signed request.

    The signing scope and signed header list are taken from the header
    itself; the signature is recomputed with ``secret`` and compared in
    constant time. The request body is read and restored like signing does.

    Args:
        request: The received request, Authorization header included
        secret: Secret for the access id named in the header
        max_age_seconds: Maximum age of the X-Amz-Date / Date header
        now: Reference time (default: current UTC time)
        hash_funcs: Extra algorithms accepted besides the built-in ones

    Returns:
        Tuple of (is_valid, error_message)
    """
    auth_values = request.get_header_values("authorization")
    if not auth_values:
        return False, "Missing Authorization header"

    try:
        header_data = parse_sigv4_header(auth_values[0])
    except ValueError as e:
        return False, str(e)

    extra = {hf.name: hf for hf in hash_funcs or ()}
    try:
        hash_func = extra.get(header_data["algorithm"]) or get_hash_func(header_data["algorithm"])
    except ConfigError as e:
        return False, str(e)

    date_header = _request_time_header(request)
    if not date_header:
        return False, "Missing required X-Amz-Date or Date header"

    signed_header_names = header_data["signed_headers"]
    if not any(name in ("x-amz-date", "date") for name in signed_header_names):
        return False, "Timestamp header must be included in signed headers"

    is_valid_time, time_error = verify_timestamp(date_header, max_age_seconds, now)
    if not is_valid_time:
        return False, f"Timestamp validation failed: {time_error}"

    request_time = parse_request_time(date_header)
    scope = header_data["scope"]
    if format_date_stamp(request_time) != scope.date:
        return False, "Credential scope date does not match request timestamp"

    try:
        _, canonical_hash = canonicalize(request, signed_header_names, hash_func)
    except SigningError as e:
        return False, str(e)

    string_to_sign = build_string_to_sign(hash_func.name, request_time, scope, canonical_hash)
    signing_key = derive_signing_key(secret, scope, hash_func)
    expected_signature = compute_signature(signing_key, string_to_sign, hash_func)

    if hmac.compare_digest(expected_signature, header_data["signature"]):
        return True, None
    return False, "Signature mismatch"
