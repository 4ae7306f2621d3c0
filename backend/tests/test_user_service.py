"""
MemoHub Backend — Accounts and Session Token Tests
===================================================
"""

import uuid
from datetime import timedelta

import pytest

from memohub.exceptions import AuthenticationRequiredError, ConflictError, NotFoundError, ValidationError
from memohub.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from memohub.services.user_service import normalize_email, user_service, validate_email


class TestPasswords:

    def test_hash_roundtrip(self):
        hashed = hash_password("s3cret!")
        assert hashed != "s3cret!"
        assert verify_password("s3cret!", hashed)
        assert not verify_password("wrong", hashed)

    def test_malformed_hash_is_a_mismatch(self):
        assert verify_password("anything", "not-a-bcrypt-hash") is False


class TestTokens:

    def test_claims(self):
        user_id = uuid.uuid4()
        claims = decode_access_token(create_access_token(user_id, "a@example.com"))
        assert claims["sub"] == str(user_id)
        assert claims["email"] == "a@example.com"

    def test_expired_token(self):
        token = create_access_token(uuid.uuid4(), "a@example.com", expires_delta=timedelta(seconds=-5))
        assert decode_access_token(token) is None

    def test_tampered_token(self):
        token = create_access_token(uuid.uuid4(), "a@example.com")
        assert decode_access_token(token[:-2] + "xx") is None


class TestEmail:

    def test_normalize(self):
        assert normalize_email("  Alice@Example.COM ") == "alice@example.com"

    @pytest.mark.parametrize("bad", ["", "   ", "alice", "alice@", "a b@example.com", "alice@example"])
    def test_invalid(self, bad):
        with pytest.raises(ValidationError):
            validate_email(bad)


class TestRegistration:

    async def test_register_normalizes_email(self, db_session):
        user = await user_service.register(db_session, " Alice ", " Alice@Example.com", "password1")
        assert user.name == "Alice"
        assert user.email == "alice@example.com"

    async def test_duplicate_email_conflicts(self, db_session, make_user):
        await make_user("Alice")
        with pytest.raises(ConflictError):
            await user_service.register(db_session, "Other", "ALICE@example.com", "password1")

    @pytest.mark.parametrize(
        "name,password",
        [("", "password1"), ("Alice", ""), ("Alice", "12345"), ("Alice", "é" * 40)],
    )
    async def test_rejected_input(self, db_session, name, password):
        with pytest.raises(ValidationError):
            await user_service.register(db_session, name, "alice@example.com", password)


class TestLogin:

    async def test_login_issues_token(self, db_session, make_user):
        from conftest import DEFAULT_PASSWORD

        alice = await make_user("Alice")
        result = await user_service.authenticate(db_session, "  ALICE@example.com", DEFAULT_PASSWORD)
        assert result.token_type == "bearer"
        assert result.user.id == alice.id
        assert decode_access_token(result.access_token)["sub"] == str(alice.id)

    @pytest.mark.parametrize("email,password", [("alice@example.com", "wrong"), ("nobody@example.com", "x")])
    async def test_bad_credentials(self, db_session, make_user, email, password):
        await make_user("Alice")
        with pytest.raises(AuthenticationRequiredError):
            await user_service.authenticate(db_session, email, password)


class TestProfile:

    async def test_update_profile(self, db_session, make_user):
        alice = await make_user("Alice")
        updated = await user_service.update_profile(db_session, alice.id, " Alice B ", "  ")
        assert updated.name == "Alice B"
        assert updated.avatar is None

    async def test_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            await user_service.get_profile(db_session, uuid.uuid4())
