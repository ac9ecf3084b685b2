"""Unit tests for identifier and signature helpers."""

from notifier.utils.hashing import new_id, sign, verify_signature


class TestNewId:
    def test_format(self):
        value = new_id()

        assert len(value) == 32
        assert all(c in "0123456789abcdef" for c in value)

    def test_unique(self):
        assert len({new_id() for _ in range(1000)}) == 1000


class TestSignatures:
    def test_deterministic(self):
        assert sign("alice@example.com", "s3cret") == sign("alice@example.com", "s3cret")
        assert len(sign("alice@example.com", "s3cret")) == 16

    def test_depends_on_value_and_secret(self):
        base = sign("alice@example.com", "s3cret")

        assert sign("bob@example.com", "s3cret") != base
        assert sign("alice@example.com", "other") != base

    def test_custom_length(self):
        assert len(sign("value", "secret", length=32)) == 32

    def test_verify(self):
        signature = sign("alice@example.com", "s3cret")

        assert verify_signature("alice@example.com", signature, "s3cret") is True
        assert verify_signature("alice@example.com", signature, "other") is False
        assert verify_signature("bob@example.com", signature, "s3cret") is False
