from __future__ import annotations

from uuid import uuid4

from boostify.services.session_auth import build_session_token, extract_bearer_token, parse_session_token

SECRET = "unit-test-secret"


def test_signed_token_resolves_user_id() -> None:
    user_id = uuid4()
    token = build_session_token(user_id=user_id, secret=SECRET)
    assert parse_session_token(token=token, secret=SECRET) == user_id


def test_token_signed_with_other_secret_is_rejected() -> None:
    token = build_session_token(user_id=uuid4(), secret="other-secret")
    assert parse_session_token(token=token, secret=SECRET) is None


def test_tampered_user_id_is_rejected() -> None:
    token = build_session_token(user_id=uuid4(), secret=SECRET)
    _, signature = token.split(".")
    assert parse_session_token(token=f"{uuid4()}.{signature}", secret=SECRET) is None


def test_malformed_tokens_are_rejected() -> None:
    for token in (None, "", "no-dot", ".sig", "not-a-uuid.abc"):
        assert parse_session_token(token=token, secret=SECRET) is None


def test_empty_secret_disables_tokens() -> None:
    token = build_session_token(user_id=uuid4(), secret="")
    assert parse_session_token(token=token, secret="") is None


def test_extract_bearer_token() -> None:
    assert extract_bearer_token("Bearer abc.def") == "abc.def"
    assert extract_bearer_token("Bearer   ") is None
    assert extract_bearer_token("Basic abc") is None
    assert extract_bearer_token(None) is None
