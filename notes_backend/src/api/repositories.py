"""
Row-level storage access for users and notes.

Reads never commit. Each write method commits exactly one unit of work.
"""

from typing import List, Optional, Tuple

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.api.errors import ConflictError
from src.api.models import MAX_ROW_ID, Note, User


class UserRepository:
    """Credential store: user identity and password hash."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: int) -> Optional[User]:
        return self.db.get(User, user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.execute(select(User).where(User.email == email)).scalars().first()

    def get_by_username(self, username: str) -> Optional[User]:
        return self.db.execute(select(User).where(User.username == username)).scalars().first()

    def ensure_unique(self, email: Optional[str] = None, username: Optional[str] = None,
                      exclude_id: Optional[int] = None) -> None:
        """Raise ConflictError if another account already uses the email or username."""
        if email is not None:
            existing = self.get_by_email(email)
            if existing and existing.id != exclude_id:
                raise ConflictError("Email already registered")
        if username is not None:
            existing = self.get_by_username(username)
            if existing and existing.id != exclude_id:
                raise ConflictError("Username already taken")

    def add(self, user: User) -> User:
        self.db.add(user)
        self._commit()
        self.db.refresh(user)
        return user

    def save(self, user: User) -> User:
        self._commit()
        self.db.refresh(user)
        return user

    def delete(self, user: User) -> None:
        """Delete the account and every note it owns."""
        self.db.execute(delete(Note).where(Note.owner_id == user.id))
        self.db.delete(user)
        self.db.commit()

    def _commit(self) -> None:
        # Unique constraints still guard against a concurrent registration racing the pre-check
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Email or username already in use")


class NoteRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, note_id: int) -> Optional[Note]:
        if not 1 <= note_id <= MAX_ROW_ID:
            return None
        return self.db.get(Note, note_id)

    def list_for_owner(
        self,
        owner_id: int,
        offset: int = 0,
        limit: Optional[int] = None,
        q: Optional[str] = None,
    ) -> Tuple[List[Note], int]:
        """Return one page of the owner's notes, newest first, and the total match count."""
        query = select(Note).where(Note.owner_id == owner_id)
        if q:
            like = f"%{q}%"
            query = query.where(or_(Note.title.ilike(like), Note.content.ilike(like)))

        total = self.db.execute(
            select(func.count()).select_from(query.subquery())
        ).scalar_one()

        query = query.order_by(Note.updated_at.desc(), Note.id.desc()).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return list(self.db.execute(query).scalars().all()), total

    def add(self, note: Note) -> Note:
        self.db.add(note)
        self.db.commit()
        self.db.refresh(note)
        return note

    def save(self, note: Note) -> Note:
        self.db.commit()
        self.db.refresh(note)
        return note

    def delete(self, note: Note) -> None:
        self.db.delete(note)
        self.db.commit()
