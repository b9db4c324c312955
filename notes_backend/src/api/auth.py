from datetime import datetime, timedelta
from typing import Callable, Optional

from jose import jwt, JWTError
from passlib.context import CryptContext

from src.api.config import get_settings
from src.api.errors import BadSignature, MalformedToken, TokenExpired
from src.api.models import utcnow

Clock = Callable[[], datetime]


class PasswordHasher:
    """
    One-way bcrypt hashing. Each digest embeds its own random salt, and
    verification compares in constant time.
    """

    def __init__(self, rounds: Optional[int] = None):
        if rounds is None:
            rounds = get_settings().bcrypt_rounds
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
            bcrypt__min_rounds=rounds,
        )

    def hash(self, password: str) -> str:
        """Hash a plaintext password."""
        return self._context.hash(password)

    def verify(self, password: str, password_hash: Optional[str]) -> bool:
        """
        Verify a plaintext password against its hash.

        Returns False for malformed or unrecognised digests instead of raising.
        """
        if not password_hash:
            return False
        try:
            return self._context.verify(password, password_hash)
        except (ValueError, TypeError):
            return False

    def needs_rehash(self, password_hash: str) -> bool:
        """True when the digest was produced with outdated settings (e.g. fewer rounds)."""
        try:
            return self._context.needs_update(password_hash)
        except (ValueError, TypeError):
            return False

    def dummy_verify(self) -> None:
        """Spend the time of a real verification; used when no account matches."""
        self._context.dummy_verify()


class TokenService:
    """
    Issues and validates stateless, HMAC-signed JWT access tokens.

    Claims: sub (account email), iat and exp as integer epoch seconds.
    A token is valid iff its signature verifies and now < exp.
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        ttl: Optional[timedelta] = None,
        clock: Clock = utcnow,
    ):
        settings = get_settings()
        self._secret_key = settings.secret_key if secret_key is None else secret_key
        self._algorithm = settings.jwt_algorithm if algorithm is None else algorithm
        if ttl is None:
            ttl = timedelta(minutes=settings.access_token_expire_minutes)
        self.ttl = ttl
        self._clock = clock

    def issue(self, identity: str) -> str:
        """Create a signed JWT access token for the given subject."""
        issued_at = int(self._clock().timestamp())
        claims = {
            "sub": identity,
            "iat": issued_at,
            "exp": issued_at + int(self.ttl.total_seconds()),
        }
        return jwt.encode(claims, self._secret_key, algorithm=self._algorithm)

    def validate(self, token: str) -> str:
        """
        Validate a token and return its subject.

        Raises:
            MalformedToken: the token is not a parseable JWT with sub/exp claims.
            BadSignature: the signature does not verify against the secret.
            TokenExpired: current time is at or past exp.
        """
        claims = self._parse_unverified(token)

        # Signature first, so an expired but authentic token reports TokenExpired.
        try:
            jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"verify_exp": False},
            )
        except JWTError:
            raise BadSignature()

        if self._clock().timestamp() >= claims["exp"]:
            raise TokenExpired()
        return claims["sub"]

    @staticmethod
    def _parse_unverified(token: str) -> dict:
        if not isinstance(token, str) or not token:
            raise MalformedToken()
        try:
            jwt.get_unverified_header(token)
            claims = jwt.get_unverified_claims(token)
        except JWTError:
            raise MalformedToken()

        subject = claims.get("sub")
        expires_at = claims.get("exp")
        issued_at = claims.get("iat")
        if not isinstance(subject, str) or not subject:
            raise MalformedToken("Token has no subject")
        if not isinstance(expires_at, int) or isinstance(expires_at, bool):
            raise MalformedToken("Token has no expiry")
        if issued_at is not None and not isinstance(issued_at, int):
            raise MalformedToken("Token has an invalid issue time")
        return claims
