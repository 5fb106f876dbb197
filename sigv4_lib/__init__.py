"""
Signature Version 4 request signing.

Signs outgoing HTTP requests with a key derived from a long-term secret
and scoped to a date, region and service. The secret itself is never sent.

Basic Usage:
    from datetime import datetime, timezone
    from sigv4_lib import Credential, RequestView, SignerConfig, set_amz_date, sign_request_at

    now = datetime.now(timezone.utc)
    request = RequestView.from_url("GET", "https://iam.amazonaws.com/?Action=ListUsers&Version=2010-05-08")
    set_amz_date(request, now)

    config = SignerConfig("us-east-1", "iam", ["host", "x-amz-date"])
    sign_request_at(request, config, Credential("AKIDEXAMPLE", "secret"), now)
    request.get_header_values("Authorization")

Verification:
    from sigv4_lib import verify_sigv4_signature

    is_valid, error = verify_sigv4_signature(request, secret="secret")

Key Rotation Usage:
    from sigv4_lib import CredentialStore

    store = CredentialStore()
    store.add_credential(Credential("AKID1", "secret-v1"))
    store.add_credential(Credential("AKID2", "secret-v2"), set_active=True)
    store.sign_request_at(request, config, now)
    is_valid, error = store.verify_request(request)
"""

from sigv4_lib.canonical import (
    canonical_headers,
    canonical_query_string,
    canonical_uri,
    canonicalize,
    payload_hash,
    signed_header_list,
)

from sigv4_lib.credential_store import (
    CredentialStore,
    StoredCredential,
)

from sigv4_lib.errors import (
    BodyReadError,
    ConfigError,
    MissingHeaderError,
    SigningError,
)

from sigv4_lib.hash_funcs import (
    DEFAULT_HASH,
    SHA256,
    HashFunc,
    cryptography_hash_func,
    get_hash_func,
    hashlib_hash_func,
)

from sigv4_lib.models import (
    Credential,
    RequestView,
    SignerConfig,
    SigningScope,
)

from sigv4_lib.sigv4 import (
    Signer,
    build_authorization,
    build_string_to_sign,
    compute_signature,
    derive_signing_key,
    format_amz_date,
    format_date_stamp,
    parse_sigv4_header,
    set_amz_date,
    sign_request,
    sign_request_at,
    verify_sigv4_signature,
    verify_timestamp,
)

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Errors
    "BodyReadError",
    "ConfigError",
    "MissingHeaderError",
    "SigningError",
    # Hash functions
    "DEFAULT_HASH",
    "SHA256",
    "HashFunc",
    "cryptography_hash_func",
    "get_hash_func",
    "hashlib_hash_func",
    # Data types
    "Credential",
    "RequestView",
    "SignerConfig",
    "SigningScope",
    # Canonicalization
    "canonical_headers",
    "canonical_query_string",
    "canonical_uri",
    "canonicalize",
    "payload_hash",
    "signed_header_list",
    # Signing
    "Signer",
    "build_authorization",
    "build_string_to_sign",
    "compute_signature",
    "derive_signing_key",
    "format_amz_date",
    "format_date_stamp",
    "set_amz_date",
    "sign_request",
    "sign_request_at",
    # Verification
    "parse_sigv4_header",
    "verify_sigv4_signature",
    "verify_timestamp",
    # Credential store
    "CredentialStore",
    "StoredCredential",
]
