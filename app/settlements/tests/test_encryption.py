"""
Tests for JWE payload encryption.

Tests the EncryptedChannel used for payout and seller-registration bodies:
token shape, protected header contents, key handling and tamper detection.
"""

import pytest
from jwcrypto.common import base64url_decode, json_decode

from settlements.adapters.encryption import EncryptedChannel
from settlements.exceptions import ErrorKind, SettlementError
from settlements.tests.factories import TEST_SECURITY_KEY


@pytest.fixture
def channel():
    return EncryptedChannel(TEST_SECURITY_KEY)


def protected_header(token):
    return json_decode(base64url_decode(token.split(".")[0]))


class TestEncrypt:
    """Tests for token creation."""

    def test_produces_compact_token(self, channel):
        token = channel.encrypt({"refPayoutId": "abc", "amount": "8000.00"})

        assert token.count(".") == 4
        assert EncryptedChannel.looks_encrypted(token)

    def test_protected_header(self, channel):
        header = protected_header(channel.encrypt({"a": 1}))

        assert header["alg"] == "dir"
        assert header["enc"] == "A256GCM"
        assert header["iat"].endswith("+09:00")
        assert header["nonce"]

    def test_same_payload_never_encrypts_the_same(self, channel):
        first = channel.encrypt({"refPayoutId": "abc"})
        second = channel.encrypt({"refPayoutId": "abc"})

        assert first != second
        assert protected_header(first)["nonce"] != protected_header(second)["nonce"]

    def test_decrypts_to_original_payload(self, channel):
        payload = {"refPayoutId": "abc", "amount": "8000.00", "storeName": "홍대 짐보관"}

        assert channel.decrypt(channel.encrypt(payload)) == payload

    def test_missing_payload(self, channel):
        with pytest.raises(SettlementError) as exc_info:
            channel.encrypt(None)

        assert exc_info.value.kind == ErrorKind.ENCRYPTION


class TestDecrypt:
    """Tests for token verification and decryption."""

    def test_wrong_key_fails(self, channel):
        token = channel.encrypt({"a": 1})
        other = EncryptedChannel("b2" * 32)

        with pytest.raises(SettlementError) as exc_info:
            other.decrypt(token)

        assert exc_info.value.kind == ErrorKind.ENCRYPTION

    def test_tampered_ciphertext_fails(self, channel):
        parts = channel.encrypt({"amount": "8000.00"}).split(".")
        ciphertext = parts[3]
        parts[3] = ("A" if ciphertext[0] != "A" else "B") + ciphertext[1:]

        with pytest.raises(SettlementError) as exc_info:
            channel.decrypt(".".join(parts))

        assert exc_info.value.kind == ErrorKind.ENCRYPTION

    @pytest.mark.parametrize("token", ["", "   ", "not-a-token", "a.b.c.d.e"])
    def test_malformed_token_fails(self, channel, token):
        with pytest.raises(SettlementError) as exc_info:
            channel.decrypt(token)

        assert exc_info.value.kind == ErrorKind.ENCRYPTION

    def test_payload_must_be_object(self, channel):
        token = channel.encrypt([1, 2, 3])

        with pytest.raises(SettlementError) as exc_info:
            channel.decrypt(token)

        assert "not a JSON object" in exc_info.value.message

    def test_only_first_32_key_bytes_are_used(self, channel):
        longer = EncryptedChannel(TEST_SECURITY_KEY + "ff" * 16)

        assert longer.decrypt(channel.encrypt({"a": 1})) == {"a": 1}


class TestKeyHandling:
    """Tests for security key validation."""

    @pytest.mark.parametrize("key", ["", "   ", None])
    def test_missing_key(self, key):
        with pytest.raises(SettlementError) as exc_info:
            EncryptedChannel(key)

        assert exc_info.value.kind == ErrorKind.ENCRYPTION

    def test_non_hex_key(self):
        with pytest.raises(SettlementError) as exc_info:
            EncryptedChannel("zz" * 32)

        assert "not valid hex" in exc_info.value.message

    def test_short_key(self):
        with pytest.raises(SettlementError) as exc_info:
            EncryptedChannel("a1" * 16)

        assert exc_info.value.details["length_bytes"] == 16

    def test_key_never_appears_in_repr_or_errors(self):
        channel = EncryptedChannel(TEST_SECURITY_KEY)

        assert TEST_SECURITY_KEY not in repr(channel)

        with pytest.raises(SettlementError) as exc_info:
            EncryptedChannel("a1" * 16)
        assert "a1a1" not in str(exc_info.value.to_dict())


class TestLooksEncrypted:
    @pytest.mark.parametrize(
        "body,expected",
        [
            ("eyJ.a.b.c.d", True),
            ('{"payoutId": "p.1.2.3.4"}', False),
            ('{"payoutId": "p1"}', False),
            ("", False),
        ],
    )
    def test_detects_compact_shape(self, body, expected):
        assert EncryptedChannel.looks_encrypted(body) is expected
