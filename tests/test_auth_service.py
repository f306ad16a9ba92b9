"""
Tests for the credential issuer: login, issue, refresh, and snapshot staleness.
"""

import pytest

from fieldforce.core.exceptions import (
    AccountDisabledError, BadRequestError, ConflictError, InvalidCredentialsError,
    TokenInvalidError,
)
from fieldforce.core.guards import GuardChain, require_permission
from fieldforce.core.security import TokenPurpose
from fieldforce.db.seeds.seed_roles import FIELD_PERMISSIONS
from fieldforce.models.role import Permission
from fieldforce.schemas.schemas import RegisterRequest
from fieldforce.services.auth_service import AuthService
from fieldforce.services.role_service import RoleStore

PASSWORD = "password123"


@pytest.fixture
def auth(db, tokens, settings):
    return AuthService(db, tokens, settings)


class TestAuthenticate:

    def test_valid_credentials(self, org, auth):
        claims = auth.authenticate("rm@test.local", PASSWORD)
        assert claims.user_id == org.rm.id
        assert claims.role_name == "RM"
        assert claims.role_level == 40
        assert claims.permissions == frozenset(FIELD_PERMISSIONS)

    def test_wrong_password(self, org, auth):
        with pytest.raises(InvalidCredentialsError):
            auth.authenticate("rm@test.local", "not-the-password")

    def test_unknown_account(self, org, auth):
        with pytest.raises(InvalidCredentialsError):
            auth.authenticate("nobody@test.local", PASSWORD)

    def test_disabled_account_looks_like_bad_credentials(self, org, auth):
        with pytest.raises(AccountDisabledError) as disabled:
            auth.authenticate("ghost@test.local", PASSWORD)
        with pytest.raises(InvalidCredentialsError) as wrong:
            auth.authenticate("rm@test.local", "not-the-password")

        assert isinstance(disabled.value, InvalidCredentialsError)
        assert disabled.value.message == wrong.value.message == "Invalid email or password"
        assert disabled.value.status_code == wrong.value.status_code == 401
        assert disabled.value.code == wrong.value.code

    def test_disabled_account_with_wrong_password(self, org, auth):
        with pytest.raises(InvalidCredentialsError) as exc:
            auth.authenticate("ghost@test.local", "not-the-password")
        assert not isinstance(exc.value, AccountDisabledError)


class TestIssue:

    def test_login_issues_verifiable_tokens(self, org, auth, tokens):
        result = auth.login("sm@test.local", PASSWORD)
        claims = tokens.verify(result.tokens.access_token)

        assert result.user.id == org.sm.id
        assert result.user.last_login_at is not None
        assert claims.role_name == "SM_ADMIN"
        assert "expenses.approve" in claims.permissions

    def test_issue_matches_authenticate(self, org, auth, tokens):
        pair = auth.issue(org.accounts.id)
        claims = tokens.verify(pair.access_token)
        assert claims.identity() == auth.authenticate("accounts@test.local", PASSWORD)

    def test_super_admin_passes_with_no_mapped_permissions(self, org, db, auth, tokens):
        RoleStore(db).replace_permissions(org.roles["SUPER_ADMIN"], [])

        claims = tokens.verify(auth.issue(org.admin.id).access_token)
        assert claims.permissions == frozenset()
        assert GuardChain(require_permission("roles.manage")).evaluate(claims).authorized


class TestRefresh:

    def test_refresh_returns_new_pair(self, org, auth, tokens):
        pair = auth.login("rm@test.local", PASSWORD).tokens
        fresh = auth.refresh(pair.refresh_token)

        assert tokens.verify(fresh.access_token).user_id == org.rm.id
        assert tokens.verify(fresh.refresh_token, TokenPurpose.refresh).user_id == org.rm.id

    def test_access_token_cannot_refresh(self, org, auth):
        pair = auth.login("rm@test.local", PASSWORD).tokens
        with pytest.raises(TokenInvalidError):
            auth.refresh(pair.access_token)

    def test_deactivated_user_cannot_refresh(self, org, db, auth):
        pair = auth.login("field@test.local", PASSWORD).tokens
        org.field.is_active = False
        db.commit()

        with pytest.raises(TokenInvalidError):
            auth.refresh(pair.refresh_token)

    def test_revoked_permission_lingers_until_refresh(self, org, db, auth, tokens):
        """The permission snapshot is copied into the token at issuance.

        Revoking a permission does not touch tokens already handed out: the
        old access token keeps passing the guard until it expires or the
        holder refreshes. This window is accepted and bounded by the access
        token lifetime.
        """
        pair = auth.login("rm@test.local", PASSWORD).tokens
        guard = GuardChain(require_permission("leads.write"))

        keep = [
            p.id for p in db.query(Permission).filter(Permission.name.in_(FIELD_PERMISSIONS))
            if p.name != "leads.write"
        ]
        RoleStore(db).replace_permissions(org.roles["RM"], keep)

        stale = tokens.verify(pair.access_token)
        assert guard.evaluate(stale).authorized

        fresh = tokens.verify(auth.refresh(pair.refresh_token).access_token)
        assert "leads.write" not in fresh.permissions
        assert not guard.evaluate(fresh).authorized


class TestPasswordChange:

    def test_change_password(self, org, auth):
        auth.change_password(org.rm.id, PASSWORD, "a-brand-new-password")
        assert auth.authenticate("rm@test.local", "a-brand-new-password").user_id == org.rm.id
        with pytest.raises(InvalidCredentialsError):
            auth.authenticate("rm@test.local", PASSWORD)

    def test_wrong_current_password(self, org, auth):
        with pytest.raises(BadRequestError):
            auth.change_password(org.rm.id, "not-the-password", "a-brand-new-password")


class TestRegister:

    def request(self, **overrides):
        data = dict(
            email="newbie@test.local",
            password="a-long-password",
            full_name="New Field User",
            phone="9876543210",
        )
        data.update(overrides)
        return RegisterRequest(**data)

    def test_register_gets_the_registration_role(self, org, auth, tokens):
        result = auth.register(self.request(reports_to_id=org.rm.id))
        claims = tokens.verify(result.tokens.access_token)

        assert claims.role_name == "FIELD_USER"
        assert claims.permissions == frozenset(FIELD_PERMISSIONS)
        assert result.user.entity_id == org.entity.id
        assert auth.authenticate("newbie@test.local", "a-long-password").user_id == result.user.id

    def test_duplicate_email_or_phone(self, org, auth):
        auth.register(self.request())
        with pytest.raises(ConflictError):
            auth.register(self.request(phone="1112223334"))
        with pytest.raises(ConflictError):
            auth.register(self.request(email="other@test.local"))

    def test_inactive_manager_refused(self, org, auth):
        with pytest.raises(BadRequestError):
            auth.register(self.request(reports_to_id=org.ghost.id))

    def test_inactive_entity_refused(self, org, db, auth):
        org.entity.is_active = False
        db.commit()
        with pytest.raises(BadRequestError):
            auth.register(self.request(entity_id=org.entity.id))
