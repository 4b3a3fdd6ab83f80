"""Unit tests for identity resolution and the admin gate."""

from datetime import timedelta

import pytest

from elite_tours.core.config import Settings
from elite_tours.core.dependencies import Identity, authorize_admin, resolve_identity
from elite_tours.core.exceptions import AuthenticationError, AuthorizationError, NotFoundError
from elite_tours.models.user import User
from elite_tours.schemas.user import UpsertUserRequest
from elite_tours.services.user_service import UserService


def test_resolve_identity_from_valid_token(token_for):
    token = token_for("user-42", email="kai@example.com", first_name="Kai")

    identity = resolve_identity(f"Bearer {token}")

    assert identity == Identity(user_id="user-42", email="kai@example.com", first_name="Kai")


@pytest.mark.parametrize(
    "header",
    [
        None,
        "",
        "Bearer",
        "Bearer ",
        "Basic dXNlcjpwYXNz",
        "Bearer not-a-jwt",
    ],
)
def test_resolve_identity_rejects_malformed_headers(header):
    assert resolve_identity(header) is None


def test_resolve_identity_rejects_expired_token(token_for):
    token = token_for("user-42", expires_in=timedelta(minutes=-5))

    assert resolve_identity(f"Bearer {token}") is None


def test_resolve_identity_rejects_foreign_signature(token_for):
    token = token_for("user-42", secret="someone-elses-secret")

    assert resolve_identity(f"Bearer {token}") is None


def test_resolve_identity_checks_audience_when_configured(token_for):
    config = Settings(jwt_secret="test-jwt-secret", jwt_audience="elite-tours")

    assert resolve_identity(f"Bearer {token_for('user-42', aud='elite-tours')}", config) is not None
    assert resolve_identity(f"Bearer {token_for('user-42', aud='other-app')}", config) is None


def test_authorize_admin_without_identity_is_401():
    with pytest.raises(AuthenticationError) as exc_info:
        authorize_admin(None, None)

    assert exc_info.value.status_code == 401


def test_authorize_admin_for_unknown_user_is_403():
    with pytest.raises(AuthorizationError) as exc_info:
        authorize_admin(Identity(user_id="ghost"), None)

    assert exc_info.value.status_code == 403


def test_authorize_admin_for_regular_user_is_403():
    with pytest.raises(AuthorizationError):
        authorize_admin(Identity(user_id="guest-1"), User(id="guest-1", is_admin=False))


def test_authorize_admin_allows_admin():
    admin = User(id="admin-1", is_admin=True)

    assert authorize_admin(Identity(user_id="admin-1"), admin) is admin


@pytest.mark.asyncio
async def test_upsert_user_creates_then_updates(test_session):
    service = UserService(test_session)

    created = await service.upsert_user(UpsertUserRequest(id="user-7", email="nalu@example.com"))
    updated = await service.upsert_user(
        UpsertUserRequest(id="user-7", email="nalu@example.com", first_name="Nalu")
    )

    assert created.is_admin is False
    assert updated.first_name == "Nalu"


@pytest.mark.asyncio
async def test_upsert_user_never_changes_admin_flag(test_session, admin_user):
    user = await UserService(test_session).upsert_user(
        UpsertUserRequest(id=admin_user.id, email=admin_user.email, last_name="Owner")
    )

    assert user.is_admin is True
    assert user.last_name == "Owner"


@pytest.mark.asyncio
async def test_set_admin_grants_and_revokes(test_session, regular_user):
    service = UserService(test_session)

    assert (await service.set_admin(regular_user.id, True)).is_admin is True
    assert (await service.set_admin(regular_user.id, False)).is_admin is False


@pytest.mark.asyncio
async def test_set_admin_for_unknown_user(test_session):
    with pytest.raises(NotFoundError):
        await UserService(test_session).set_admin("nobody", True)
