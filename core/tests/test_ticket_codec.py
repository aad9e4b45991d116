import base64
import hashlib
import hmac
import json
from unittest import TestCase

from core.exceptions import TicketRejection, TicketSecurityError
from core.ticket_codec import (
    b64url_decode,
    b64url_encode,
    decode_token,
    encode_token,
    new_ticket_id,
)
from schemas.ticket import TicketPayload

SECRET = "codec-secret-0123456789abcdefghijklmnopqrstuv"
B64URL_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"


def _payload() -> TicketPayload:
    return TicketPayload(
        sub="6f1c2a8e-6d3b-4f0a-9a51-0d8c7f1e2b3a",
        act="0f9e8d7c-6b5a-4c3d-8e2f-1a0b9c8d7e6f",
        iat=1_700_000_000,
        jti="a" * 32,
        exp=1_700_604_800,
    )


class TestTicketCodec(TestCase):
    def test_round_trip(self):
        payload = _payload()
        token = encode_token(payload, SECRET)
        self.assertEqual(decode_token(token, SECRET), payload)

    def test_wire_format(self):
        token = encode_token(_payload(), SECRET)
        payload_part, signature_part = token.split(".")
        self.assertNotIn("=", token)

        raw = base64.urlsafe_b64decode(payload_part + "=" * (-len(payload_part) % 4))
        self.assertEqual(
            raw.decode(),
            '{"sub":"6f1c2a8e-6d3b-4f0a-9a51-0d8c7f1e2b3a",'
            '"act":"0f9e8d7c-6b5a-4c3d-8e2f-1a0b9c8d7e6f",'
            '"iat":1700000000,"jti":"' + "a" * 32 + '","exp":1700604800}',
        )
        self.assertEqual(list(json.loads(raw)), ["sub", "act", "iat", "jti", "exp"])

        expected_signature = hmac.new(SECRET.encode(), raw, hashlib.sha256).digest()
        self.assertEqual(b64url_decode(signature_part), expected_signature)

    def test_any_single_character_change_is_rejected(self):
        token = encode_token(_payload(), SECRET)
        for index, char in enumerate(token):
            replacement = "A" if char != "A" else "B"
            tampered = token[:index] + replacement + token[index + 1 :]
            with self.assertRaises(TicketSecurityError, msg=f"position {index}"):
                decode_token(tampered, SECRET)

    def test_payload_change_is_a_signature_failure(self):
        token = encode_token(_payload(), SECRET)
        _, signature_part = token.split(".")
        forged = _payload().model_copy(update={"exp": 1_900_000_000})
        forged_part = b64url_encode(forged.model_dump_json().encode())

        with self.assertRaises(TicketSecurityError) as ctx:
            decode_token(f"{forged_part}.{signature_part}", SECRET)
        self.assertEqual(ctx.exception.reason, TicketRejection.SIGNATURE)

    def test_wrong_secret(self):
        token = encode_token(_payload(), SECRET)
        with self.assertRaises(TicketSecurityError) as ctx:
            decode_token(token, "another-secret-0123456789abcdefghijklmnop")
        self.assertEqual(ctx.exception.reason, TicketRejection.SIGNATURE)

    def test_malformed_tokens(self):
        token = encode_token(_payload(), SECRET)
        for bad in [
            "",
            "   ",
            "no-separator",
            "a.b.c",
            ".signature",
            token.split(".")[0] + ".",
            "!!!!." + token.split(".")[1],
            "CONGRESO2024-6f1c2a8e-6d3b-4f0a-9a51-0d8c7f1e2b3a-1700000000",
        ]:
            with self.assertRaises(TicketSecurityError, msg=bad) as ctx:
                decode_token(bad, SECRET)
            self.assertEqual(ctx.exception.reason, TicketRejection.MALFORMED, msg=bad)

    def test_signed_garbage_is_malformed(self):
        raw = b'{"hello":"world"}'
        signature = hmac.new(SECRET.encode(), raw, hashlib.sha256).digest()
        token = f"{b64url_encode(raw)}.{b64url_encode(signature)}"

        with self.assertRaises(TicketSecurityError) as ctx:
            decode_token(token, SECRET)
        self.assertEqual(ctx.exception.reason, TicketRejection.MALFORMED)

    def test_non_canonical_base64_is_refused(self):
        # "QQ" is the canonical encoding of b"A"; "QR" decodes to the same byte
        self.assertEqual(b64url_decode("QQ"), b"A")
        with self.assertRaises(ValueError):
            b64url_decode("QR")
        with self.assertRaises(ValueError):
            b64url_decode("QQ==")

    def test_ticket_ids_are_128_bit_hex(self):
        ids = {new_ticket_id() for _ in range(100)}
        self.assertEqual(len(ids), 100)
        for ticket_id in ids:
            self.assertEqual(len(ticket_id), 32)
            int(ticket_id, 16)
        self.assertTrue(all(c in B64URL_ALPHABET for c in "".join(ids)))
