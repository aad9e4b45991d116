"""Signed ticket wire format.

A token is ``base64url(payload_json) + "." + base64url(HMAC-SHA256(payload_json))``
with the ``=`` padding stripped. The payload is the compact JSON of
``{"sub", "act", "iat", "jti", "exp"}`` in that order. Everything here is pure;
callers must not hold locks or transactions around it.
"""

import base64
import binascii
import hashlib
import hmac
import secrets

from pydantic import ValidationError

from core.exceptions import TicketRejection, TicketSecurityError
from schemas.ticket import TicketPayload

TOKEN_SEPARATOR = "."
# 128 bits of entropy
TICKET_ID_BYTES = 16


def new_ticket_id() -> str:
    return secrets.token_hex(TICKET_ID_BYTES)


def b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def b64url_decode(data: str) -> bytes:
    """Decode unpadded base64url, refusing anything that does not re-encode to itself."""
    padded = data + "=" * (-len(data) % 4)
    try:
        raw = base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)
    except (binascii.Error, UnicodeEncodeError, ValueError):
        raise ValueError("not base64url")
    if b64url_encode(raw) != data:
        raise ValueError("non canonical base64url")
    return raw


def sign(payload_bytes: bytes, secret: str) -> bytes:
    return hmac.new(secret.encode("utf-8"), payload_bytes, hashlib.sha256).digest()


def encode_token(payload: TicketPayload, secret: str) -> str:
    payload_bytes = payload.model_dump_json().encode("utf-8")
    signature = sign(payload_bytes, secret)
    return f"{b64url_encode(payload_bytes)}{TOKEN_SEPARATOR}{b64url_encode(signature)}"


def decode_token(token: str, secret: str) -> TicketPayload:
    """
    Verify the signature of a token and return its payload

    Only structure and signature are checked here; expiry and the anti-replay
    store are the ticket service's job.

    Raises:
        TicketSecurityError: reason MALFORMED when the token is not two
            base64url parts carrying a ticket payload, SIGNATURE when the
            HMAC does not match
    """
    if not isinstance(token, str) or not token.strip():
        raise TicketSecurityError(TicketRejection.MALFORMED)

    parts = token.strip().split(TOKEN_SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise TicketSecurityError(TicketRejection.MALFORMED)

    payload_part, signature_part = parts
    try:
        payload_bytes = b64url_decode(payload_part)
    except ValueError:
        raise TicketSecurityError(TicketRejection.MALFORMED)

    expected = b64url_encode(sign(payload_bytes, secret))
    if not hmac.compare_digest(expected.encode("ascii"), signature_part.encode("utf-8")):
        raise TicketSecurityError(TicketRejection.SIGNATURE)

    try:
        return TicketPayload.model_validate_json(payload_bytes)
    except ValidationError:
        raise TicketSecurityError(TicketRejection.MALFORMED)
