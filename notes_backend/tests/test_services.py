"""Account and note services, exercised directly with an explicit principal."""

from datetime import datetime, timezone

import pytest

from src.api.errors import (
    AccessDenied,
    ConflictError,
    InvalidCredentials,
    NotFoundError,
    ValidationError,
)
from src.api.auth import PasswordHasher
from src.api.identity import IdentityResolver
from src.api.models import Note
from src.api.repositories import UserRepository
from src.api.services import AccountService, NoteAccessService


@pytest.fixture()
def accounts(db_session, hasher, tokens):
    return AccountService(db_session, hasher, tokens)


@pytest.fixture()
def notes(db_session):
    return NoteAccessService(db_session)


@pytest.fixture()
def alice(accounts):
    user, _token = accounts.register("alice", "alice@example.com", "pw-alice")
    return user


@pytest.fixture()
def bob(accounts):
    user, _token = accounts.register("bob", "bob@example.com", "pw-bob")
    return user


# ═══════════════════════════════════════════════════════════
# Accounts
# ═══════════════════════════════════════════════════════════


def test_register_then_login_resolves_to_same_account(accounts, db_session, tokens):
    user, first_token = accounts.register("someone", "a@x.com", "p1-pass")
    token = accounts.login("a@x.com", "p1-pass")

    resolver = IdentityResolver(tokens, UserRepository(db_session))
    assert resolver.resolve(token).id == user.id
    assert resolver.resolve(first_token).id == user.id


def test_register_stores_hash_and_default_role(accounts, hasher):
    user, _ = accounts.register("carol", "Carol@Example.com", "secret-1")
    assert user.email == "carol@example.com"
    assert user.role == "ROLE_USER"
    assert user.password_hash != "secret-1"
    assert hasher.verify("secret-1", user.password_hash)


def test_register_duplicate_email_conflicts(accounts, alice):
    with pytest.raises(ConflictError):
        accounts.register("alice2", "alice@example.com", "password")


def test_register_duplicate_username_conflicts(accounts, alice):
    with pytest.raises(ConflictError):
        accounts.register("alice", "other@example.com", "password")


@pytest.mark.parametrize(
    "username,email,password",
    [
        ("ab", "ok@example.com", "password"),
        ("has space", "ok@example.com", "password"),
        ("valid_name", "not-an-email", "password"),
        ("valid_name", "ok@example.com", "short"),
        ("valid_name", "ok@example.com", "abc\x00defg"),
        ("valid_name", "ok@example.com", "x" * 5000),
    ],
)
def test_register_rejects_invalid_input(accounts, username, email, password):
    with pytest.raises(ValidationError):
        accounts.register(username, email, password)


def test_login_wrong_password(accounts, alice):
    with pytest.raises(InvalidCredentials):
        accounts.login("alice@example.com", "wrong")


def test_login_unknown_email(accounts):
    with pytest.raises(InvalidCredentials):
        accounts.login("nobody@example.com", "whatever")


def test_login_rehashes_password_stored_with_fewer_rounds(accounts, db_session, tokens, alice):
    old_hash = alice.password_hash
    stronger = PasswordHasher(rounds=5)

    assert AccountService(db_session, stronger, tokens).login("alice@example.com", "pw-alice")

    stored = UserRepository(db_session).get_by_email("alice@example.com")
    assert stored.password_hash != old_hash
    assert stored.password_hash.startswith("$2b$05$")
    assert stronger.verify("pw-alice", stored.password_hash)


def test_update_profile_changes_password(accounts, alice):
    accounts.update_profile(alice, password="new-password")
    with pytest.raises(InvalidCredentials):
        accounts.login("alice@example.com", "pw-alice")
    assert accounts.login("alice@example.com", "new-password")


def test_update_profile_rejects_taken_username(accounts, alice, bob):
    with pytest.raises(ConflictError):
        accounts.update_profile(bob, username="alice")


def test_update_profile_keeps_own_email(accounts, alice):
    user = accounts.update_profile(alice, email="alice@example.com", username="alice_new")
    assert user.username == "alice_new"


def test_delete_account_removes_notes(accounts, notes, alice, db_session):
    notes.create(alice, "T", "C")
    accounts.delete_account(alice)
    assert db_session.query(Note).count() == 0


# ═══════════════════════════════════════════════════════════
# Notes
# ═══════════════════════════════════════════════════════════


def test_create_sets_owner_and_created_at(notes, alice):
    before = datetime.now(timezone.utc).replace(tzinfo=None)
    note = notes.create(alice, "T", "C")
    assert note.owner_id == alice.id
    assert note.title == "T"
    assert note.content == "C"
    assert note.created_at.replace(tzinfo=None) >= before.replace(microsecond=0)


def test_other_user_is_denied_everywhere(notes, alice, bob):
    note = notes.create(alice, "T", "C")

    with pytest.raises(AccessDenied):
        notes.get(bob, note.id)
    with pytest.raises(AccessDenied):
        notes.update(bob, note.id, "hacked", "hacked")
    with pytest.raises(AccessDenied):
        notes.patch(bob, note.id, title="hacked")
    with pytest.raises(AccessDenied):
        notes.delete(bob, note.id)

    unchanged = notes.get(alice, note.id)
    assert (unchanged.title, unchanged.content) == ("T", "C")


def test_missing_note_is_not_found(notes, alice):
    with pytest.raises(NotFoundError):
        notes.get(alice, 9999)


def test_id_beyond_integer_column_is_not_found(notes, alice):
    with pytest.raises(NotFoundError):
        notes.get(alice, 10**20)


def test_deleted_note_is_not_found_for_owner(notes, alice):
    note = notes.create(alice, "T", "C")
    notes.delete(alice, note.id)
    with pytest.raises(NotFoundError):
        notes.get(alice, note.id)


def test_update_keeps_owner_and_created_at(notes, alice):
    note = notes.create(alice, "T", "C")
    created_at = note.created_at

    updated = notes.update(alice, note.id, "T2", "C2")

    assert (updated.title, updated.content) == ("T2", "C2")
    assert updated.owner_id == alice.id
    assert updated.created_at == created_at


def test_patch_changes_only_given_fields(notes, alice):
    note = notes.create(alice, "T", "C")
    patched = notes.patch(alice, note.id, content="C2")
    assert (patched.title, patched.content) == ("T", "C2")


def test_list_is_scoped_to_principal(notes, alice, bob):
    mine = [notes.create(alice, f"a{i}", "x").id for i in range(3)]
    notes.create(bob, "b", "y")

    items, total = notes.list_mine(alice)
    assert total == 3
    assert sorted(n.id for n in items) == sorted(mine)


def test_list_search_and_pagination(notes, alice):
    notes.create(alice, "Groceries", "milk")
    notes.create(alice, "Work", "quarterly report")
    notes.create(alice, "Ideas", "a REPORT on birds")

    items, total = notes.list_mine(alice, q="report")
    assert total == 2
    assert {n.title for n in items} == {"Work", "Ideas"}

    page, total = notes.list_mine(alice, page=2, page_size=2)
    assert total == 3
    assert len(page) == 1


@pytest.mark.parametrize(
    "page,page_size",
    [(0, None), (5, None), (0, 10), (10**18, 100)],
)
def test_list_rejects_unreachable_pages(notes, alice, page, page_size):
    notes.create(alice, "T", "C")
    with pytest.raises(ValidationError):
        notes.list_mine(alice, page=page, page_size=page_size)


@pytest.mark.parametrize(
    "title,content",
    [("", "C"), ("   ", "C"), ("x" * 101, "C"), ("T", "x" * 1001), ("T", None)],
)
def test_create_rejects_invalid_note(notes, alice, title, content):
    with pytest.raises(ValidationError):
        notes.create(alice, title, content)
