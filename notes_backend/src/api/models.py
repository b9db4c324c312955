from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()

DEFAULT_ROLE = "ROLE_USER"
TITLE_MAX_LENGTH = 100
CONTENT_MAX_LENGTH = 1000
# Largest value a 64-bit signed INTEGER primary key can hold
MAX_ROW_ID = 2**63 - 1


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """
    User account with unique email (login handle), unique username and hashed password.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), default=DEFAULT_ROLE, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Note(Base):
    """
    Note owned by exactly one user. The owner is a plain foreign key; there is
    no ORM relationship, owner details are looked up explicitly.
    """
    __tablename__ = "notes"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(TITLE_MAX_LENGTH), nullable=False, index=True)
    content = Column(Text, default="", nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_notes_owner_title", "owner_id", "title"),
    )
