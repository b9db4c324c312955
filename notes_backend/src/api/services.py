"""
Account and note services.

The principal is always passed in explicitly; nothing here reads a global or
request-local "current user".
"""

from typing import List, Optional, Tuple

import structlog
from sqlalchemy.orm import Session

from src.api.auth import PasswordHasher, TokenService
from src.api.errors import AccessDenied, InvalidCredentials, NotFoundError, ValidationError
from src.api.guard import authorize
from src.api.models import DEFAULT_ROLE, MAX_ROW_ID, Note, User, utcnow
from src.api.repositories import NoteRepository, UserRepository
from src.api.validation import (
    check_content,
    check_email,
    check_password,
    check_title,
    check_username,
)

logger = structlog.get_logger(__name__)


class AccountService:
    """Registration, login and explicit profile changes."""

    def __init__(self, db: Session, hasher: PasswordHasher, tokens: TokenService):
        self.users = UserRepository(db)
        self.hasher = hasher
        self.tokens = tokens

    def register(self, username: str, email: str, password: str) -> Tuple[User, str]:
        """
        Create an account and issue its first token.

        Raises:
            ValidationError on bad input, ConflictError if email or username is taken.
        """
        username = check_username(username)
        email = check_email(email)
        password = check_password(password)
        self.users.ensure_unique(email=email, username=username)

        user = self.users.add(
            User(
                username=username,
                email=email,
                password_hash=self.hasher.hash(password),
                role=DEFAULT_ROLE,
            )
        )
        logger.info("auth.registered", user_id=user.id)
        return user, self.tokens.issue(user.email)

    def login(self, email: str, password: str) -> str:
        """
        Verify credentials and issue a token.

        Unknown email and wrong password raise the same InvalidCredentials.
        """
        user = self.users.get_by_email((email or "").strip().lower())
        if user is None:
            self.hasher.dummy_verify()
            logger.info("auth.login_failed", reason="unknown_email")
            raise InvalidCredentials()
        if not self.hasher.verify(password, user.password_hash):
            logger.info("auth.login_failed", reason="bad_password", user_id=user.id)
            raise InvalidCredentials()

        if self.hasher.needs_rehash(user.password_hash):
            user.password_hash = self.hasher.hash(password)
            self.users.save(user)
            logger.info("auth.password_rehashed", user_id=user.id)

        logger.info("auth.login", user_id=user.id)
        return self.tokens.issue(user.email)

    def update_profile(
        self,
        principal: User,
        username: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
    ) -> User:
        """
        Change any of username, email and password for the caller's own account.

        Tokens carry the email as subject, so changing it invalidates tokens
        issued for the old address.
        """
        if username is not None:
            username = check_username(username)
        if email is not None:
            email = check_email(email)
        if password is not None:
            password = check_password(password)
        self.users.ensure_unique(email=email, username=username, exclude_id=principal.id)

        if username is not None:
            principal.username = username
        if email is not None:
            principal.email = email
        if password is not None:
            principal.password_hash = self.hasher.hash(password)
        user = self.users.save(principal)
        logger.info(
            "account.updated",
            user_id=user.id,
            fields=[
                name
                for name, value in (("username", username), ("email", email), ("password", password))
                if value is not None
            ],
        )
        return user

    def delete_account(self, principal: User) -> None:
        """Delete the caller's account and all of its notes."""
        user_id = principal.id
        self.users.delete(principal)
        logger.info("account.deleted", user_id=user_id)


class NoteAccessService:
    """
    Owner-scoped note CRUD.

    Every operation on an existing note first fetches it (NotFoundError when
    absent) and then runs the ownership check (AccessDenied for anyone but the
    owner) before returning or mutating anything.
    """

    def __init__(self, db: Session):
        self.notes = NoteRepository(db)

    def create(self, principal: User, title: str, content: str) -> Note:
        title = check_title(title)
        content = check_content(content)
        now = utcnow()
        note = self.notes.add(
            Note(
                title=title,
                content=content,
                owner_id=principal.id,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info("notes.created", note_id=note.id, user_id=principal.id)
        return note

    def list_mine(
        self,
        principal: User,
        page: int = 1,
        page_size: Optional[int] = None,
        q: Optional[str] = None,
    ) -> Tuple[List[Note], int]:
        """
        List one page of the caller's notes and the total number matching.

        The owner filter always comes from the principal; there is no global listing.
        Without a page_size the whole list is one page, so only page 1 exists.
        """
        if page < 1:
            raise ValidationError("Page must be at least 1")
        if page_size is None:
            if page != 1:
                raise ValidationError("page_size is required to request pages after the first")
            offset = 0
        else:
            offset = (page - 1) * page_size
            if offset > MAX_ROW_ID:
                raise ValidationError("Page is out of range")
        return self.notes.list_for_owner(principal.id, offset=offset, limit=page_size, q=q)

    def get(self, principal: User, note_id: int) -> Note:
        note = self.notes.get(note_id)
        if note is None:
            raise NotFoundError("Note not found")
        try:
            authorize(principal, note.owner_id)
        except AccessDenied:
            logger.info("notes.access_denied", note_id=note_id, user_id=principal.id)
            raise
        return note

    def update(self, principal: User, note_id: int, title: str, content: str) -> Note:
        """Replace title and content. Owner and creation time are never touched."""
        title = check_title(title)
        content = check_content(content)
        note = self.get(principal, note_id)
        note.title = title
        note.content = content
        note = self.notes.save(note)
        logger.info("notes.updated", note_id=note.id, user_id=principal.id)
        return note

    def patch(
        self,
        principal: User,
        note_id: int,
        title: Optional[str] = None,
        content: Optional[str] = None,
    ) -> Note:
        """Change only the fields given."""
        if title is not None:
            title = check_title(title)
        if content is not None:
            content = check_content(content)
        note = self.get(principal, note_id)
        if title is not None:
            note.title = title
        if content is not None:
            note.content = content
        note = self.notes.save(note)
        logger.info("notes.updated", note_id=note.id, user_id=principal.id)
        return note

    def delete(self, principal: User, note_id: int) -> None:
        note = self.get(principal, note_id)
        self.notes.delete(note)
        logger.info("notes.deleted", note_id=note_id, user_id=principal.id)
