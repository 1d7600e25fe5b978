"""Tests for bcrypt password hashing."""

import pytest

from auth.passwords import CredentialHasher, hash_password, verify_password


class TestPasswordHelpers:
    def test_hash_verifies(self):
        hashed = hash_password("secret1", rounds=4)
        assert hashed != "secret1"
        assert verify_password("secret1", hashed) is True

    def test_wrong_password_rejected(self):
        hashed = hash_password("secret1", rounds=4)
        assert verify_password("secret2", hashed) is False

    def test_hash_is_salted(self):
        """Same plaintext hashes differently each time."""
        first = hash_password("secret1", rounds=4)
        second = hash_password("secret1", rounds=4)
        assert first != second
        assert verify_password("secret1", first)
        assert verify_password("secret1", second)

    def test_rounds_recorded_in_hash(self):
        assert hash_password("secret1", rounds=5).startswith("$2b$05$")

    @pytest.mark.parametrize("bad_hash", ["", "not-a-hash", "$2b$10$tooshort"])
    def test_malformed_hash_returns_false(self, bad_hash):
        assert verify_password("secret1", bad_hash) is False

    def test_overlong_password_refused(self):
        with pytest.raises(ValueError, match="72 bytes"):
            hash_password("x" * 73, rounds=4)

    def test_length_counted_in_bytes(self):
        """37 two-byte characters are 74 bytes."""
        with pytest.raises(ValueError):
            hash_password("\u00e9" * 37, rounds=4)
        assert verify_password("x" * 72, hash_password("x" * 72, rounds=4))


class TestCredentialHasher:
    @pytest.mark.asyncio
    async def test_async_round_trip(self):
        hasher = CredentialHasher(rounds=4)
        hashed = await hasher.hash("secret1")
        assert await hasher.verify("secret1", hashed) is True
        assert await hasher.verify("wrongpass", hashed) is False

    @pytest.mark.asyncio
    async def test_async_malformed_hash(self):
        hasher = CredentialHasher(rounds=4)
        assert await hasher.verify("secret1", "garbage") is False

    @pytest.mark.asyncio
    async def test_dummy_verify_never_matches(self):
        hasher = CredentialHasher(rounds=4)
        assert await hasher.verify_dummy("not-a-real-password") is False
        first_hash = hasher._dummy_hash
        assert await hasher.verify_dummy("secret1") is False
        assert hasher._dummy_hash == first_hash
