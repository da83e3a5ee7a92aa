# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every action must be attributable. Uses bcrypt for secure password
hashing and validates password strength.

ROLE SCOPE: Users hold exactly one role, and the scope columns they carry
must match it (see permissions.roles.Actor). create_user refuses any
combination that would not produce a valid Actor, so the session layer can
always build one from a stored user.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_LOG_ROUNDS, default 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User, Company, Store, Retailer
from partsdesk.permissions import Actor, ActorError, Role
from partsdesk.time_utils import utcnow
from . import session_service


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class UserValidationError(ValueError):
    """Raised when user fields are missing, duplicated or inconsistent with the role."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_LOG_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise.
    bcrypt.checkpw() is timing-safe.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def _validate_scope_references(actor: Actor) -> None:
    if actor.company_id and db.session.get(Company, actor.company_id) is None:
        raise UserValidationError(f"Company '{actor.company_id}' not found")

    if actor.store_id:
        store = db.session.get(Store, actor.store_id)
        if store is None:
            raise UserValidationError(f"Store '{actor.store_id}' not found")
        if actor.company_id and store.company_id != actor.company_id:
            raise UserValidationError("Store does not belong to the user's company")

    if actor.retailer_id and db.session.get(Retailer, actor.retailer_id) is None:
        raise UserValidationError(f"Retailer {actor.retailer_id} not found")


def create_user(
    name: str,
    email: str,
    password: str,
    role: str,
    *,
    company_id: str | None = None,
    store_id: str | None = None,
    retailer_id: int | None = None,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Role rules:
    - super_admin: no company/store/retailer
    - admin: company required
    - manager/storeman/salesman: company required, store optional
    - retailer: retailer required, no company/store

    Raises:
        PasswordValidationError: weak password
        UserValidationError: missing fields, duplicate email, or scope that
            does not match the role
    """
    if not name or not email:
        raise UserValidationError("name and email are required")

    parsed_role = Role.parse(role)
    if parsed_role is None:
        raise UserValidationError(f"Unknown role '{role}'")

    # The store's company is implied when only a store is given
    if store_id and not company_id:
        store = db.session.get(Store, store_id)
        if store is not None:
            company_id = store.company_id

    try:
        actor = Actor(
            role=parsed_role,
            company_id=company_id or None,
            store_id=store_id or None,
            retailer_id=retailer_id or None,
        )
    except ActorError as exc:
        raise UserValidationError(str(exc))

    if parsed_role not in (Role.SUPER_ADMIN, Role.RETAILER) and not actor.company_id:
        raise UserValidationError(f"{parsed_role.value} users require company_id")

    _validate_scope_references(actor)

    email = email.strip().lower()
    if db.session.query(User).filter_by(email=email).first():
        raise UserValidationError(f"Email '{email}' already exists")

    password_hash = hash_password(password)

    user = User(
        name=name.strip(),
        email=email,
        password_hash=password_hash,
        role=parsed_role.value,
        company_id=actor.company_id,
        store_id=actor.store_id,
        retailer_id=actor.retailer_id,
    )

    db.session.add(user)
    db.session.commit()

    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user by email and password.

    Returns the User on success, None otherwise. Inactive users never
    authenticate.
    """
    if not email or not password:
        return None

    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user or not user.is_active:
        return None

    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def set_user_active(user_id: int, is_active: bool) -> User:
    """Activate or deactivate a user. Deactivation signs the user out everywhere."""
    user = db.session.get(User, user_id)
    if user is None:
        raise UserValidationError("User not found")
    user.is_active = is_active
    db.session.commit()

    if not is_active:
        revoked = session_service.revoke_all_user_sessions(user.id, reason="User deactivated")
        current_app.logger.info("User %s deactivated; %d session(s) revoked", user.email, revoked)
    return user
