from contextlib import asynccontextmanager
from typing import List, Optional

import structlog
from fastapi import FastAPI, Depends, Query, Path, Response, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from src.api.auth import PasswordHasher, TokenService
from src.api.config import get_settings
from src.api.database import SessionLocal, get_db, init_db
from src.api.errors import register_error_handlers
from src.api.identity import get_current_user, get_password_hasher, get_token_service
from src.api.logging_config import configure_logging
from src.api.models import MAX_ROW_ID, User
from src.api.schemas import (
    LoginRequest,
    TokenResponse,
    UserCreateRequest,
    UserResponse,
    UserUpdateRequest,
    NoteCreateRequest,
    NoteReplaceRequest,
    NoteUpdateRequest,
    NoteResponse,
)
from src.api.services import AccountService, NoteAccessService

logger = structlog.get_logger(__name__)

DEMO_EMAIL = "demo@example.com"
DEMO_USERNAME = "demo"
DEMO_PASSWORD = "password123"

MAX_PAGE = 1_000_000


# Seed logic for dev convenience
def seed_demo_user(db: Session, hasher: PasswordHasher, tokens: TokenService) -> None:
    """Create a demo user if none exist (dev only)."""
    if get_settings().env != "dev":
        return
    if db.query(User).first():
        return
    AccountService(db, hasher, tokens).register(DEMO_USERNAME, DEMO_EMAIL, DEMO_PASSWORD)
    logger.info("notes.demo_user_seeded", email=DEMO_EMAIL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging, create tables and seed the demo user before serving."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    logger.info("notes.starting", env=settings.env)

    init_db()
    db = SessionLocal()
    try:
        seed_demo_user(db, get_password_hasher(), get_token_service())
    finally:
        db.close()

    yield

    logger.info("notes.shutdown")


app = FastAPI(
    title="Notes API",
    description="Notes application backend API with JWT auth and owner-scoped CRUD for personal notes.",
    version="1.0.0",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Health", "description": "Service health and status."},
        {"name": "Auth", "description": "User registration and authentication."},
        {"name": "Users", "description": "The caller's own account."},
        {"name": "Notes", "description": "CRUD operations for notes."},
    ],
)

# CORS setup - allow frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_settings().frontend_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)


def get_account_service(
    db: Session = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
    tokens: TokenService = Depends(get_token_service),
) -> AccountService:
    return AccountService(db, hasher, tokens)


def get_note_service(db: Session = Depends(get_db)) -> NoteAccessService:
    return NoteAccessService(db)


# PUBLIC_INTERFACE
@app.get("/", tags=["Health"], summary="Health Check")
def health_check():
    """
    Health check endpoint.

    Returns:
        JSON object indicating service status.
    """
    return {"message": "Healthy"}


# -------- Auth Routes --------

# PUBLIC_INTERFACE
@app.post(
    "/auth/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Auth"],
    summary="Register a new user",
)
def register_user(payload: UserCreateRequest, accounts: AccountService = Depends(get_account_service)):
    """
    Register a new user and return an access token for it.

    Body:
        username: unique username
        email: valid email address, used to log in
        password: plaintext password

    Raises:
        409 if email or username already in use.
    """
    _user, token = accounts.register(payload.username, payload.email, payload.password)
    return TokenResponse(token=token)


# PUBLIC_INTERFACE
@app.post(
    "/auth/login",
    response_model=TokenResponse,
    tags=["Auth"],
    summary="Login and obtain JWT access token",
)
def login(payload: LoginRequest, accounts: AccountService = Depends(get_account_service)):
    """
    Login with email and password.

    Returns:
        TokenResponse with access token and token type.

    Raises:
        401 on invalid credentials.
    """
    return TokenResponse(token=accounts.login(payload.email, payload.password))


# -------- User Routes --------

# PUBLIC_INTERFACE
@app.get("/users/me", response_model=UserResponse, tags=["Users"], summary="Get my profile")
def read_profile(current_user: User = Depends(get_current_user)):
    """Return the authenticated user's profile, never the password hash."""
    return current_user


# PUBLIC_INTERFACE
@app.put("/users/me", response_model=UserResponse, tags=["Users"], summary="Update my profile")
def update_profile(
    payload: UserUpdateRequest,
    current_user: User = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
):
    """
    Update username, email and/or password.

    Changing the email invalidates tokens issued for the old address; log in again.
    """
    return accounts.update_profile(
        current_user,
        username=payload.username,
        email=payload.email,
        password=payload.password,
    )


# PUBLIC_INTERFACE
@app.delete(
    "/users/me",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Users"],
    summary="Delete my account",
)
def delete_account(
    current_user: User = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
):
    """Delete the authenticated user's account and all of its notes."""
    accounts.delete_account(current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# -------- Notes Routes --------

# PUBLIC_INTERFACE
@app.get(
    "/notes",
    response_model=List[NoteResponse],
    tags=["Notes"],
    summary="List my notes",
)
def list_notes(
    response: Response,
    page: int = Query(1, ge=1, le=MAX_PAGE, description="Page number starting at 1"),
    page_size: Optional[int] = Query(None, ge=1, le=100, description="Items per page (all when omitted)"),
    q: Optional[str] = Query(None, description="Search query for title/content"),
    current_user: User = Depends(get_current_user),
    notes: NoteAccessService = Depends(get_note_service),
):
    """
    List notes belonging to the current user, newest first, with optional text search
    and pagination. The total number of matches is returned in X-Total-Count.
    """
    items, total = notes.list_mine(current_user, page=page, page_size=page_size, q=q)
    response.headers["X-Total-Count"] = str(total)
    return items


# PUBLIC_INTERFACE
@app.post(
    "/notes",
    response_model=NoteResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Notes"],
    summary="Create a new note",
)
def create_note(
    payload: NoteCreateRequest,
    current_user: User = Depends(get_current_user),
    notes: NoteAccessService = Depends(get_note_service),
):
    """
    Create a new note owned by the authenticated user.

    Body:
        title: note title
        content: note content
    """
    return notes.create(current_user, payload.title, payload.content)


# PUBLIC_INTERFACE
@app.get(
    "/notes/{note_id}",
    response_model=NoteResponse,
    tags=["Notes"],
    summary="Get a note by ID",
)
def get_note(
    note_id: int = Path(..., ge=1, le=MAX_ROW_ID),
    current_user: User = Depends(get_current_user),
    notes: NoteAccessService = Depends(get_note_service),
):
    """
    Retrieve a single note by ID. Only the owner can access it; anyone else gets 404.
    """
    return notes.get(current_user, note_id)


# PUBLIC_INTERFACE
@app.put(
    "/notes/{note_id}",
    response_model=NoteResponse,
    tags=["Notes"],
    summary="Replace a note's title and content",
)
def replace_note(
    payload: NoteReplaceRequest,
    note_id: int = Path(..., ge=1, le=MAX_ROW_ID),
    current_user: User = Depends(get_current_user),
    notes: NoteAccessService = Depends(get_note_service),
):
    """
    Overwrite title and content. Only the owner can modify it.
    """
    return notes.update(current_user, note_id, payload.title, payload.content)


# PUBLIC_INTERFACE
@app.patch(
    "/notes/{note_id}",
    response_model=NoteResponse,
    tags=["Notes"],
    summary="Partially update a note",
)
def patch_note(
    payload: NoteUpdateRequest,
    note_id: int = Path(..., ge=1, le=MAX_ROW_ID),
    current_user: User = Depends(get_current_user),
    notes: NoteAccessService = Depends(get_note_service),
):
    """
    Update only the given fields. Only the owner can modify it.
    """
    return notes.patch(current_user, note_id, title=payload.title, content=payload.content)


# PUBLIC_INTERFACE
@app.delete(
    "/notes/{note_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Notes"],
    summary="Delete a note by ID",
)
def delete_note(
    note_id: int = Path(..., ge=1, le=MAX_ROW_ID),
    current_user: User = Depends(get_current_user),
    notes: NoteAccessService = Depends(get_note_service),
):
    """
    Delete a note. Only the owner can delete it.
    """
    notes.delete(current_user, note_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
