"""
Webhook signature checks and kobo helpers.
"""
import hashlib
import hmac

import pytest

from app.core.paystack import compute_signature, format_naira, kobo_to_naira, verify_signature

SECRET = "sk_test_signing_secret"
BODY = b'{"event":"charge.success","data":{"reference":"R1","amount":500000}}'


class TestVerifySignature:
    def test_matches_hmac_sha512_hex(self):
        expected = hmac.new(SECRET.encode(), BODY, hashlib.sha512).hexdigest()
        assert compute_signature(BODY, SECRET) == expected
        assert verify_signature(BODY, expected, SECRET) is True

    def test_accepts_uppercase_and_padded_header(self):
        signature = compute_signature(BODY, SECRET)
        assert verify_signature(BODY, f"  {signature.upper()} ", SECRET) is True

    def test_rejects_single_byte_change_in_body(self):
        signature = compute_signature(BODY, SECRET)
        tampered = BODY.replace(b"500000", b"500001")
        assert verify_signature(tampered, signature, SECRET) is False

    def test_rejects_wrong_secret(self):
        signature = compute_signature(BODY, "another-secret")
        assert verify_signature(BODY, signature, SECRET) is False

    @pytest.mark.parametrize("signature", [None, "", "not-hex", "ab" * 10])
    def test_rejects_missing_or_malformed_header(self, signature):
        assert verify_signature(BODY, signature, SECRET) is False

    def test_rejects_non_ascii_header_without_raising(self):
        assert verify_signature(BODY, "ñ" * 128, SECRET) is False

    def test_rejects_when_secret_not_configured(self):
        signature = compute_signature(BODY, SECRET)
        assert verify_signature(BODY, signature, "") is False


class TestKobo:
    def test_whole_naira_stay_integers(self):
        assert kobo_to_naira(500000) == 5000
        assert isinstance(kobo_to_naira(500000), int)

    def test_fractional_naira(self):
        assert kobo_to_naira(123456) == 1234.56

    def test_format(self):
        assert format_naira(500000) == "₦5,000"
        assert format_naira(150050) == "₦1,500.50"
