"""
Setu - Authentication & RBAC
JWT tokens, password hashing, role normalization, endpoint guards, user store.
"""
import logging
import re
from datetime import datetime, timedelta, timezone

from fastapi import Request

from setu.config import (
    JWT_SECRET, JWT_ALGORITHM, JWT_EXPIRY_HOURS, ROLES, DEFAULT_ROLE,
    PRIVILEGED_ROLES, TOP_ROLE, ANY_ROLE,
    INIT_ADMIN_USERNAME, INIT_ADMIN_PASSWORD, INIT_ADMIN_RESET,
)
from setu.db import IntegrityViolation, _b
from setu.errors import AuthError, ConflictError, ForbiddenError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

# ============================================================
# ROLES
# ============================================================
_ROLE_SEPARATORS = re.compile(r"[\s_-]+")


def normalize_role(role) -> str:
    """'Main Admin', 'main-admin', 'main_admin' -> 'mainadmin'."""
    return _ROLE_SEPARATORS.sub("", str(role or "").strip().lower())


def is_privileged(role) -> bool:
    return normalize_role(role) in PRIVILEGED_ROLES


def is_top_role(role) -> bool:
    return normalize_role(role) == TOP_ROLE

# ============================================================
# PASSWORD HASHING
# ============================================================
import bcrypt


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        return False

# ============================================================
# JWT
# ============================================================
import jwt as pyjwt


def create_jwt(user: dict, expires_in: timedelta = None) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user["id"]), "id": user["id"], "username": user["username"],
        "role": normalize_role(user.get("role")),
        "iat": now,
        "exp": now + (expires_in if expires_in is not None else timedelta(hours=JWT_EXPIRY_HOURS)),
    }
    return pyjwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_jwt(token: str) -> dict:
    try:
        return pyjwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except pyjwt.ExpiredSignatureError:
        raise AuthError("Token expired", 401)
    except pyjwt.InvalidTokenError:
        raise AuthError("Invalid token", 400)

# ============================================================
# REQUEST HELPERS
# ============================================================
ANONYMOUS = {"id": None, "username": "", "role": "", "authenticated": False}


def _token_from_request(request: Request):
    header = request.headers.get("Authorization", "").strip()
    if not header:
        return None
    return header[7:].strip() if header.startswith("Bearer ") else header


def _identity(payload: dict) -> dict:
    return {"id": payload.get("id"), "username": str(payload.get("username") or ""),
            "role": normalize_role(payload.get("role")), "authenticated": True}


async def get_current_user(request: Request) -> dict:
    """Dependency: require a valid bearer token."""
    token = _token_from_request(request)
    if not token:
        raise AuthError("Access denied", 401)
    return _identity(decode_jwt(token))


async def get_optional_user(request: Request) -> dict:
    """Dependency: identity if a valid token of an unbanned user is present, else anonymous. Never rejects."""
    token = _token_from_request(request)
    if not token:
        return dict(ANONYMOUS)
    try:
        user = _identity(decode_jwt(token))
    except AuthError:
        return dict(ANONYMOUS)
    if is_banned(request.app.state.db, user["username"]):
        return dict(ANONYMOUS)
    return user


def require_roles(*roles):
    """Dependency factory: authenticated, role in allow-list ('any' admits all), not banned."""
    allowed = {normalize_role(r) for r in roles}

    async def checker(request: Request) -> dict:
        user = await get_current_user(request)
        if ANY_ROLE not in allowed and user["role"] not in allowed:
            raise ForbiddenError("Forbidden")
        if is_banned(request.app.state.db, user["username"]):
            raise AuthError("User banned", 403)
        return user
    return checker

# ============================================================
# USER STORE
# ============================================================
def _row_to_user(r: dict) -> dict:
    return {"id": r["id"], "username": r["username"], "role": normalize_role(r["role"]),
            "banned": _b(r["banned"]), "displayName": r.get("display_name"),
            "createdAt": r.get("created_at")}


def get_user_by_username(db, username: str):
    return db.query_one("SELECT * FROM users WHERE username = ?", (username,))


def is_banned(db, username: str) -> bool:
    row = db.query_one("SELECT banned FROM users WHERE username = ?", (username,))
    return bool(row) and _b(row["banned"])


def list_users(db) -> list:
    return [_row_to_user(r) for r in db.query("SELECT * FROM users ORDER BY id ASC")]


def create_user(db, username: str, password: str, role: str = DEFAULT_ROLE, display_name: str = None) -> dict:
    username = (username or "").strip()
    if not username or not password:
        raise ValidationError("username and password required")
    role = normalize_role(role)
    if role not in ROLES:
        role = DEFAULT_ROLE
    if db.query_one("SELECT 1 AS x FROM users WHERE lower(username) = lower(?)", (username,)):
        raise ConflictError("username already exists", "users_username_key")
    try:
        uid = db.insert("users", {
            "username": username, "password_hash": hash_password(password), "role": role,
            "banned": False, "display_name": display_name,
            "created_at": datetime.now().isoformat(),
        })
    except IntegrityViolation as e:
        raise ConflictError("username already exists", e.constraint)
    return _row_to_user(db.query_one("SELECT * FROM users WHERE id = ?", (uid,)))


def set_banned(db, user_id: int, banned: bool) -> dict:
    with db.transaction() as s:
        if not s.execute("UPDATE users SET banned = ? WHERE id = ?", (banned, user_id)):
            raise NotFoundError("User not found")
        row = s.query_one("SELECT * FROM users WHERE id = ?", (user_id,))
    logger.info("User %s %s", row["username"], "banned" if banned else "unbanned")
    return _row_to_user(row)


def authenticate(db, username: str, password: str, device_id: str = None) -> dict:
    """Check credentials; returns the user record. Records the login device."""
    row = get_user_by_username(db, (username or "").strip())
    if not row:
        raise AuthError("User not found", 400)
    if _b(row["banned"]):
        raise AuthError("User banned", 403)
    if not verify_password(password or "", row["password_hash"]):
        raise AuthError("Invalid password", 400)
    if device_id:
        db.execute("UPDATE users SET logged_in = ? WHERE id = ?", (device_id, row["id"]))
    return _row_to_user(row)


def display_name_for(db, username: str) -> str:
    row = get_user_by_username(db, username)
    return (row and row.get("display_name")) or username


def seed_admin(db, username: str = INIT_ADMIN_USERNAME, password: str = INIT_ADMIN_PASSWORD,
               reset: bool = INIT_ADMIN_RESET):
    """Ensure the bootstrap top-tier account exists."""
    row = get_user_by_username(db, username)
    if not row:
        create_user(db, username, password, TOP_ROLE)
        logger.info("Seeded admin user '%s'", username)
    elif reset:
        db.execute("UPDATE users SET password_hash = ?, role = ?, banned = ? WHERE id = ?",
                   (hash_password(password), TOP_ROLE, False, row["id"]))
        logger.info("Reset admin user '%s'", username)
    else:
        logger.info("Admin user '%s' already exists; skipping seed", username)
