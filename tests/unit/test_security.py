from datetime import UTC, datetime

import pytest

from app.core.security import (
    Identity,
    create_identity_token,
    decode_identity_token,
    parse_bearer,
)
from app.domain.enums import IdentityRole


def test_token_carries_identity() -> None:
    identity = Identity(user_id="operator-7", role=IdentityRole.SUPPORT)
    token, expires_at = create_identity_token(
        identity=identity, secret="s3cret", ttl_minutes=10
    )

    assert decode_identity_token(token, "s3cret") == identity
    assert expires_at > datetime.now(UTC)


def test_operator_roles() -> None:
    assert Identity("a", IdentityRole.ADMIN).is_operator
    assert Identity("b", IdentityRole.SUPPORT).is_operator
    assert not Identity("c", IdentityRole.CUSTOMER).is_operator


def test_token_signed_with_other_secret_is_rejected() -> None:
    token, _ = create_identity_token(
        identity=Identity("customer-1", IdentityRole.CUSTOMER),
        secret="one",
        ttl_minutes=10,
    )

    with pytest.raises(ValueError, match="signature"):
        decode_identity_token(token, "two")


def test_expired_token_is_rejected() -> None:
    token, _ = create_identity_token(
        identity=Identity("customer-1", IdentityRole.CUSTOMER),
        secret="s3cret",
        ttl_minutes=-1,
    )

    with pytest.raises(ValueError, match="expired"):
        decode_identity_token(token, "s3cret")


@pytest.mark.parametrize("token", ["", "no-dot", "a.b.c", "!!!.???"])
def test_malformed_token_is_rejected(token: str) -> None:
    with pytest.raises(ValueError):
        decode_identity_token(token, "s3cret")


def test_parse_bearer() -> None:
    assert parse_bearer("Bearer abc.def") == "abc.def"
    assert parse_bearer("bearer  abc ") == "abc"
    assert parse_bearer("Basic abc") is None
    assert parse_bearer("Bearer ") is None
    assert parse_bearer(None) is None
