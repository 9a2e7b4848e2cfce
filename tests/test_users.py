"""Tests for the accounts and sessions."""

from datetime import timedelta
from unittest.mock import patch

import pytest

from services import users
from services.shared import dao, utils
from services.shared.errors import ValidationError


class TestPasswords:
    def test_hash_and_verify(self):
        password_hash = users.hash_password("secret")

        assert password_hash.startswith("pbkdf2_sha256$")
        assert users.verify_password("secret", password_hash)
        assert not users.verify_password("Secret", password_hash)

    def test_hashes_are_salted(self):
        assert users.hash_password("secret") != users.hash_password("secret")

    @pytest.mark.parametrize("password_hash", ["", "plain", "md5$1$salt$abc"])
    def test_invalid_hashes(self, password_hash):
        assert not users.verify_password("secret", password_hash)


class TestCreateUser:
    def test_creates_special_collections(self, db):
        user = users.create_user(db, "Alix@Example.com", "Alix", "secret")

        assert user.email == "alix@example.com"
        assert user.validated_at is None
        for collection_type in ("bookmarks", "news", "read"):
            assert dao.collection_of_type(db, user.id, collection_type) is not None

    def test_email_must_be_unique(self, db, make_user):
        make_user(email="alix@example.com")

        with pytest.raises(ValidationError) as excinfo:
            users.create_user(db, "ALIX@example.com", "Other", "secret")

        assert excinfo.value.errors == {"email": "An account already exists with this email address."}

    def test_validates_fields(self, db):
        with pytest.raises(ValidationError) as excinfo:
            users.create_user(db, "not-an-email", "", "")

        assert set(excinfo.value.errors) == {"email", "username", "password"}

    def test_username_max_length(self):
        errors = users.validate_registration("alix@example.com", "a" * 51, "secret")
        assert "username" in errors


class TestAuthenticate:
    def test_valid_credentials(self, db, make_user):
        user = make_user(email="alix@example.com", password="secret")
        assert users.authenticate(db, "alix@example.com", "secret").id == user.id

    def test_unknown_email(self, db):
        with pytest.raises(ValidationError) as excinfo:
            users.authenticate(db, "nobody@example.com", "secret")
        assert "email" in excinfo.value.errors

    def test_wrong_password(self, db, make_user):
        make_user(email="alix@example.com", password="secret")
        with pytest.raises(ValidationError) as excinfo:
            users.authenticate(db, "alix@example.com", "wrong")
        assert excinfo.value.errors == {"password_hash": "The password is incorrect."}


class TestSessions:
    def test_find_user_by_session_token(self, db, make_user):
        user = make_user()
        session = users.create_session(db, user, name="Firefox", ip="127.0.0.1")

        assert users.find_user_by_session_token(db, session.token).id == user.id
        assert users.find_user_by_session_token(db, "unknown") is None
        assert users.find_user_by_session_token(db, None) is None

    def test_expired_session(self, db, make_user):
        user = make_user()
        past = utils.utcnow() - timedelta(days=31)
        with patch("services.shared.utils.utcnow", return_value=past):
            session = users.create_session(db, user)

        assert users.find_user_by_session_token(db, session.token) is None

    def test_delete_session(self, db, make_user):
        token = users.create_session(db, make_user()).token

        users.delete_session(db, token)

        db.expire_all()
        assert users.find_user_by_session_token(db, token) is None


class TestSupportUser:
    def test_is_created_once(self, db):
        support = users.support_user(db)

        assert support.username == "flusio"
        assert support.email == "support@example.com"
        assert users.support_user(db).id == support.id
        assert users.is_support_user(support)

    def test_other_users_are_not_support(self, make_user):
        assert not users.is_support_user(make_user())


def test_validate_user(db):
    user = users.create_user(db, "new@example.com", "New", "secret")
    users.validate_user(db, user)
    assert user.validated_at is not None
