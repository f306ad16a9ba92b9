"""Password hashing, JWT issuance and verification."""

import bcrypt
import enum
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Optional, Callable, Iterable, FrozenSet

from fastapi.security import HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from fieldforce.core.config import Settings
from fieldforce.core.exceptions import TokenExpiredError, TokenInvalidError

logger = logging.getLogger("fieldforce.auth")

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)


class TokenPurpose(str, enum.Enum):
    access = "access"
    refresh = "refresh"


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password using bcrypt."""
    pwd_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(pwd_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    pwd_bytes = plain_password.encode("utf-8")
    hashed_bytes = hashed_password.encode("utf-8")
    try:
        return bcrypt.checkpw(pwd_bytes, hashed_bytes)
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


@dataclass(frozen=True)
class Claims:
    """Signed snapshot of who the caller is and what their role allowed at issuance.

    The permission set is copied into the token and is not re-read from the
    role store until the token is refreshed or the user logs in again, so a
    revoked permission stays usable until the access token expires.
    """

    user_id: str
    email: str
    role_name: str
    role_level: int
    permissions: FrozenSet[str] = field(default_factory=frozenset)
    purpose: Optional[TokenPurpose] = None
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    def has_permission(self, name: str) -> bool:
        return name in self.permissions

    def identity(self) -> "Claims":
        """The same claims with the token-specific fields cleared."""
        return replace(self, purpose=None, issued_at=None, expires_at=None)

    def to_payload(self) -> dict:
        payload = {
            "userId": self.user_id,
            "email": self.email,
            "roleName": self.role_name,
            "roleLevel": self.role_level,
            "permissions": sorted(self.permissions),
        }
        if self.purpose is not None:
            payload["type"] = self.purpose.value
        if self.issued_at is not None:
            payload["iat"] = int(self.issued_at.timestamp())
        if self.expires_at is not None:
            payload["exp"] = int(self.expires_at.timestamp())
        return payload

    @classmethod
    def from_payload(cls, payload: dict) -> "Claims":
        """Build claims from a decoded token payload, rejecting incomplete ones."""
        try:
            user_id = payload["userId"]
            email = payload["email"]
            role_name = payload["roleName"]
            role_level = payload["roleLevel"]
            permissions = payload["permissions"]
            purpose = TokenPurpose(payload["type"])
            iat = payload["iat"]
            exp = payload["exp"]
        except (KeyError, ValueError):
            raise TokenInvalidError("Token is missing required claims")

        if not (
            isinstance(user_id, str)
            and isinstance(email, str)
            and isinstance(role_name, str)
            and isinstance(role_level, int)
            and not isinstance(role_level, bool)
            and isinstance(permissions, list)
            and all(isinstance(p, str) for p in permissions)
        ):
            raise TokenInvalidError("Token claims are malformed")

        return cls(
            user_id=user_id,
            email=email,
            role_name=role_name,
            role_level=role_level,
            permissions=frozenset(permissions),
            purpose=purpose,
            issued_at=datetime.fromtimestamp(iat, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
        )


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "bearer"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Mints and verifies access/refresh JWTs.

    Verification needs only the signing secrets, never the database.
    """

    def __init__(self, settings: Settings, clock: Optional[Callable[[], datetime]] = None):
        self.settings = settings
        self.clock = clock or _utcnow
        self.access_ttl = timedelta(minutes=settings.JWT_EXPIRY_MINUTES)
        self.refresh_ttl = timedelta(days=settings.REFRESH_TOKEN_EXPIRY_DAYS)

    def _secret_for(self, purpose: TokenPurpose) -> str:
        if purpose is TokenPurpose.refresh:
            return self.settings.refresh_secret
        return self.settings.JWT_SECRET

    def _encode(self, claims: Claims, purpose: TokenPurpose, ttl: timedelta, now: datetime) -> str:
        stamped = replace(
            claims,
            purpose=purpose,
            issued_at=now,
            expires_at=now + ttl,
        )
        return jwt.encode(
            stamped.to_payload(),
            self._secret_for(purpose),
            algorithm=self.settings.JWT_ALGORITHM,
        )

    def issue(self, claims: Claims) -> TokenPair:
        """Sign a short-lived access token and a longer-lived refresh token."""
        now = self.clock()
        return TokenPair(
            access_token=self._encode(claims, TokenPurpose.access, self.access_ttl, now),
            refresh_token=self._encode(claims, TokenPurpose.refresh, self.refresh_ttl, now),
            expires_in=int(self.access_ttl.total_seconds()),
        )

    def verify(self, token: str, expected_purpose: TokenPurpose = TokenPurpose.access) -> Claims:
        """Check signature, expiry, required claims, and token type.

        Raises:
            TokenExpiredError: signature is valid but ``exp`` has passed.
            TokenInvalidError: anything else wrong with the token.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_for(expected_purpose),
                algorithms=[self.settings.JWT_ALGORITHM],
                options={"require_exp": True, "require_iat": True},
            )
        except ExpiredSignatureError:
            raise TokenExpiredError()
        except JWTError as e:
            logger.debug("Rejected %s token: %s", expected_purpose.value, e)
            raise TokenInvalidError()

        claims = Claims.from_payload(payload)
        if claims.purpose is not expected_purpose:
            raise TokenInvalidError(f"Expected a {expected_purpose.value} token")
        return claims


def build_claims(
    user_id: str,
    email: str,
    role_name: str,
    role_level: int,
    permissions: Iterable[str] = (),
) -> Claims:
    """Claims for a freshly loaded user, before any token stamps them."""
    return Claims(
        user_id=user_id,
        email=email,
        role_name=role_name,
        role_level=role_level,
        permissions=frozenset(permissions),
    )
