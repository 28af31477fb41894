from datetime import datetime, timedelta

import pytest

from mocktrial.db.models import PasswordReset
from mocktrial.services import login_attempt_service, password_reset_service
from mocktrial.utils.exceptions import RateLimitedError, ValidationError


def test_token_is_single_use(db, attorney):
    issued = password_reset_service.create_reset_token(db, attorney.email, "attorney")
    token = issued["token"]
    assert len(token) == 48
    # Only the hash is stored
    assert db.query(PasswordReset).one().token_hash == password_reset_service.hash_token(token)

    info = password_reset_service.verify_reset_token(db, token, "attorney")
    assert info["email"] == attorney.email
    assert password_reset_service.verify_reset_token(db, token, "juror") is None

    assert password_reset_service.mark_token_used(db, token, "attorney") is True
    assert password_reset_service.mark_token_used(db, token, "attorney") is False
    assert password_reset_service.verify_reset_token(db, token, "attorney") is None


def test_new_token_invalidates_previous(db, attorney):
    first = password_reset_service.create_reset_token(db, attorney.email, "attorney")["token"]
    second = password_reset_service.create_reset_token(db, attorney.email, "attorney")["token"]
    assert password_reset_service.verify_reset_token(db, first, "attorney") is None
    assert password_reset_service.verify_reset_token(db, second, "attorney") is not None


def test_unknown_account_gets_generic_answer(db):
    result = password_reset_service.create_reset_token(db, "nobody@example.com", "juror")
    assert result["token"] is None
    assert result["message"] == password_reset_service.GENERIC_RESPONSE


def test_reset_rate_limited(db, attorney):
    for _ in range(3):
        password_reset_service.create_reset_token(db, attorney.email, "attorney")
    with pytest.raises(RateLimitedError) as exc:
        password_reset_service.create_reset_token(db, attorney.email, "attorney")
    assert exc.value.status_code == 429


def test_expired_token_rejected(db, attorney):
    token = password_reset_service.create_reset_token(db, attorney.email, "attorney")["token"]
    row = db.query(PasswordReset).one()
    row.expires_at = datetime.utcnow() - timedelta(minutes=1)
    db.commit()
    assert password_reset_service.verify_reset_token(db, token, "attorney") is None
    assert password_reset_service.mark_token_used(db, token, "attorney") is False


def test_admin_accounts_cannot_reset(db):
    with pytest.raises(ValidationError):
        password_reset_service.create_reset_token(db, "admin@example.com", "admin")


def test_lockout_after_five_failures(db):
    email = "Someone@Example.com"
    for _ in range(4):
        login_attempt_service.record_failed_attempt(db, email, "juror", "10.0.0.1")
    assert login_attempt_service.is_locked_out(db, email, "juror") is False

    login_attempt_service.record_failed_attempt(db, email, "juror")
    assert login_attempt_service.is_locked_out(db, "someone@example.com", "juror") is True
    assert login_attempt_service.is_locked_out(db, email, "attorney") is False
    assert login_attempt_service.get_lockout_time(db, email, "juror") > datetime.utcnow()

    assert login_attempt_service.clear_failed_attempts(db, email, "juror") == 5
    assert login_attempt_service.is_locked_out(db, email, "juror") is False
