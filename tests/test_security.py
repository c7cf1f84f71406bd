"""Unit tests for accounts.core.security: bcrypt hashing and scoped JWT issue/verify."""

import unittest
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import jwt

from accounts.core.errors import ExpiredTokenError, InvalidSignatureError, MalformedTokenError
from accounts.core.security import (
    BCRYPT_ROUNDS,
    create_token,
    decode_token,
    hash_password,
    verify_password,
)
from helpers import TEST_SECRET, make_settings


class TestPasswordHashing(unittest.TestCase):
    """hash_password produces self-describing bcrypt hashes that verify_password accepts."""

    def test_hash_verifies_original_secret(self) -> None:
        for secret in ("right-pw", "pässwörd-ünïcode", "a much longer passphrase with spaces"):
            hashed = hash_password(secret)
            self.assertTrue(verify_password(secret, hashed))
            self.assertFalse(verify_password(secret[:-1] + "#", hashed))

    def test_appended_character_does_not_verify(self) -> None:
        hashed = hash_password("right-pw")
        self.assertFalse(verify_password("right-pw" + "x", hashed))

    def test_hash_is_not_plaintext_and_is_salted(self) -> None:
        first = hash_password("right-pw")
        second = hash_password("right-pw")
        self.assertNotIn("right-pw", first)
        self.assertNotEqual(first, second)

    def test_hash_encodes_cost_factor(self) -> None:
        hashed = hash_password("right-pw")
        self.assertTrue(hashed.startswith(f"$2b${BCRYPT_ROUNDS:02d}$"))

    def test_hash_with_other_cost_still_verifies(self) -> None:
        import bcrypt

        legacy = bcrypt.hashpw(b"right-pw", bcrypt.gensalt(rounds=4)).decode()
        self.assertTrue(verify_password("right-pw", legacy))

    def test_malformed_stored_hash_is_a_mismatch(self) -> None:
        self.assertFalse(verify_password("right-pw", "not-a-bcrypt-hash"))
        self.assertFalse(verify_password("right-pw", ""))


class TestTokens(unittest.TestCase):
    """create_token/decode_token round-trip claims and classify failures."""

    def setUp(self) -> None:
        self.settings = make_settings()
        self.claims = {"id": 7, "username": "alice", "role": {"name": "user"}, "groups": []}

    def test_round_trip_returns_original_claims(self) -> None:
        token = create_token(self.claims, 60, "login", self.settings)
        self.assertEqual(decode_token(token, self.settings), self.claims)

    def test_scope_is_checked_when_requested(self) -> None:
        token = create_token(self.claims, 60, "recovery", self.settings)
        self.assertEqual(decode_token(token, self.settings, scope="recovery"), self.claims)
        with self.assertRaises(MalformedTokenError):
            decode_token(token, self.settings, scope="login")

    def test_expired_token(self) -> None:
        issued = datetime.now(UTC) - timedelta(days=2)
        with patch("accounts.core.security.datetime") as mock_dt:
            mock_dt.now.return_value = issued
            token = create_token(self.claims, 60 * 24, "login", self.settings)
        with self.assertRaises(ExpiredTokenError):
            decode_token(token, self.settings)

    def test_token_valid_until_expiry(self) -> None:
        issued = datetime.now(UTC) - timedelta(hours=23)
        with patch("accounts.core.security.datetime") as mock_dt:
            mock_dt.now.return_value = issued
            token = create_token(self.claims, 60 * 24, "login", self.settings)
        self.assertEqual(decode_token(token, self.settings)["username"], "alice")

    def test_wrong_key_is_invalid_signature(self) -> None:
        token = create_token(self.claims, 60, "login", self.settings)
        other = make_settings(JWT_SECRET="another-secret-that-is-long-enough-too")
        with self.assertRaises(InvalidSignatureError):
            decode_token(token, other)

    def test_tampered_payload_is_invalid_signature(self) -> None:
        token = create_token(self.claims, 60, "login", self.settings)
        forged = jwt.encode(
            {**self.claims, "username": "mallory", "scope": "login",
             "exp": datetime.now(UTC) + timedelta(hours=1)},
            "attacker-secret-that-is-long-enough-x",
            algorithm="HS256",
        )
        header, _, signature = token.split(".")
        _, payload, _ = forged.split(".")
        with self.assertRaises(InvalidSignatureError):
            decode_token(f"{header}.{payload}.{signature}", self.settings)

    def test_garbage_is_malformed(self) -> None:
        for garbage in ("", "abc", "a.b.c"):
            with self.assertRaises(MalformedTokenError):
                decode_token(garbage, self.settings)

    def test_token_without_exp_is_malformed(self) -> None:
        token = jwt.encode({"id": 1}, TEST_SECRET, algorithm="HS256")
        with self.assertRaises(MalformedTokenError):
            decode_token(token, self.settings)


if __name__ == "__main__":
    unittest.main()
