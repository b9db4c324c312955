from functools import lru_cache
from typing import Optional

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from src.api.auth import PasswordHasher, TokenService
from src.api.database import get_db
from src.api.errors import MissingCredentials, PrincipalNotFound
from src.api.models import User
from src.api.repositories import UserRepository

logger = structlog.get_logger(__name__)

# auto_error is off so a missing header raises our own 401 instead of FastAPI's default
bearer_scheme = HTTPBearer(auto_error=False)


class IdentityResolver:
    """
    Resolves a raw bearer token to the stored account it names.

    Cryptographic validity and current existence are checked separately: an
    authentic, unexpired token whose account was deleted (or whose email
    changed) does not resolve.
    """

    def __init__(self, tokens: TokenService, users: UserRepository):
        self.tokens = tokens
        self.users = users

    def resolve(self, token: str) -> User:
        email = self.tokens.validate(token)
        user = self.users.get_by_email(email)
        if user is None:
            logger.info("auth.principal_not_found")
            raise PrincipalNotFound()
        return user


# PUBLIC_INTERFACE
@lru_cache
def get_token_service() -> TokenService:
    """Process-wide token service; the signing secret is read once."""
    return TokenService()


# PUBLIC_INTERFACE
@lru_cache
def get_password_hasher() -> PasswordHasher:
    """Process-wide password hasher."""
    return PasswordHasher()


# PUBLIC_INTERFACE
def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
    db: Session = Depends(get_db),
) -> User:
    """
    Dependency that returns the currently authenticated user based on the bearer token.

    Raises:
        AuthenticationError (401) if the header is missing, the token is invalid
        or expired, or its subject no longer exists.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise MissingCredentials()
    return IdentityResolver(tokens, UserRepository(db)).resolve(credentials.credentials)
