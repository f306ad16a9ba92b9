"""Auth service: credential checks, token issuance, refresh, profile."""

import functools
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from fieldforce.models.entity import Entity
from fieldforce.models.user import User
from fieldforce.schemas.schemas import RegisterRequest, UserCreate
from fieldforce.core.config import Settings
from fieldforce.core.security import (
    Claims, TokenPair, TokenPurpose, TokenService,
    build_claims, hash_password, verify_password,
)
from fieldforce.core.exceptions import (
    AccountDisabledError, BadRequestError, InvalidCredentialsError,
    NotFoundError, TokenInvalidError,
)
from fieldforce.services.role_service import RoleStore
from fieldforce.services.user_service import UserService

logger = logging.getLogger("fieldforce.auth")


@functools.lru_cache(maxsize=4)
def _dummy_hash(rounds: int) -> str:
    # Checked against when the account does not exist, so a miss costs as
    # much time as a wrong password.
    return hash_password("fieldforce-dummy-password", rounds=rounds)


@dataclass(frozen=True)
class LoginResult:
    user: User
    tokens: TokenPair


class AuthService:
    """Handles authentication and token lifecycle."""

    def __init__(self, db: Session, tokens: TokenService, settings: Settings):
        self.db = db
        self.tokens = tokens
        self.settings = settings
        self.roles = RoleStore(db)

    def authenticate(self, email: str, password: str) -> Claims:
        """Check an email/password pair and return the user's current claims.

        Raises:
            InvalidCredentialsError: unknown email or wrong password.
            AccountDisabledError: the account is deactivated. Same public
                message as above; only the log says which it was.
        """
        user = self.db.query(User).filter(User.email == email).first()
        if not user:
            verify_password(password, _dummy_hash(self.settings.BCRYPT_ROUNDS))
            logger.warning("Login failed for %s: invalid_credentials (no account)", email)
            raise InvalidCredentialsError()

        if not verify_password(password, user.hashed_password):
            logger.warning("Login failed for %s: invalid_credentials", email)
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.warning("Login failed for %s: account_disabled", email)
            raise AccountDisabledError()

        return self._load_claims(user)

    def issue(self, user_id: str) -> TokenPair:
        """Sign a fresh token pair from the user's current role and permissions."""
        user = self.get_user(user_id)
        return self.tokens.issue(self._load_claims(user))

    def login(self, email: str, password: str) -> LoginResult:
        claims = self.authenticate(email, password)
        user = self.get_user(claims.user_id)
        tokens = self.tokens.issue(claims)

        user.last_login_at = datetime.now(timezone.utc)
        self.db.commit()

        logger.info("User %s logged in as %s", user.id, claims.role_name)
        return LoginResult(user=user, tokens=tokens)

    def register(self, data: RegisterRequest) -> LoginResult:
        """Create an account with the configured registration role and log it in.

        The caller never picks the role. Without an explicit entity the user
        joins the default one; inactive entities and managers are refused.
        """
        entity = self._registration_entity(data.entity_id)
        if data.reports_to_id is not None:
            manager = self.db.query(User).filter(User.id == data.reports_to_id).first()
            if not manager or not manager.is_active:
                raise BadRequestError("Manager not found or inactive")

        role = self.roles.get_role_info(
            self.settings.REGISTRATION_ROLE, entity.id if entity else None,
        )
        user = UserService(self.db, self.settings).create_user(UserCreate(
            email=data.email,
            password=data.password,
            full_name=data.full_name,
            phone=data.phone,
            role_id=role.id,
            entity_id=entity.id if entity else None,
            reports_to_id=data.reports_to_id,
        ))

        claims = self._load_claims(user)
        logger.info("User %s registered as %s", user.id, claims.role_name)
        return LoginResult(user=user, tokens=self.tokens.issue(claims))

    def verify(self, token: str, expected_purpose: TokenPurpose = TokenPurpose.access) -> Claims:
        return self.tokens.verify(token, expected_purpose)

    def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new pair with a recomputed snapshot.

        This is where a stale permission snapshot catches up with the role
        store without a new login.
        """
        claims = self.tokens.verify(refresh_token, TokenPurpose.refresh)

        user = self.db.query(User).filter(User.id == claims.user_id).first()
        if not user or not user.is_active:
            logger.warning("Refresh refused for %s: user missing or deactivated", claims.user_id)
            raise TokenInvalidError("Invalid refresh token")

        return self.tokens.issue(self._load_claims(user))

    def get_user(self, user_id: str) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def get_profile(self, user_id: str) -> User:
        return self.get_user(user_id)

    def change_password(self, user_id: str, current_password: str, new_password: str) -> None:
        user = self.get_user(user_id)
        if not verify_password(current_password, user.hashed_password):
            raise BadRequestError("Current password is incorrect")

        user.hashed_password = hash_password(new_password, rounds=self.settings.BCRYPT_ROUNDS)
        self.db.commit()
        logger.info("Password changed for user %s", user_id)

    def _registration_entity(self, entity_id: Optional[str]) -> Optional[Entity]:
        if entity_id is None:
            return (
                self.db.query(Entity)
                .filter(Entity.code == self.settings.DEFAULT_ENTITY_CODE, Entity.is_active.is_(True))
                .first()
            )
        entity = self.db.query(Entity).filter(Entity.id == entity_id).first()
        if not entity or not entity.is_active:
            raise BadRequestError("Entity not found or inactive")
        return entity

    def _load_claims(self, user: User) -> Claims:
        role = user.role
        return build_claims(
            user_id=user.id,
            email=user.email,
            role_name=role.name,
            role_level=role.level,
            permissions=self.roles.get_permission_names(role.id),
        )
