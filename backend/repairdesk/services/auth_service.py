# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Users belong to exactly one company; username/email uniqueness is
company-scoped. Passwords are hashed with bcrypt and must pass a strength
check. Session tokens are managed separately (see session_service.py).
"""

import bcrypt
import re

from flask import current_app

from ..extensions import db
from ..models import User, Role, UserRole, Company, Location
from ..permissions import ROLE_DESCRIPTIONS
from ..time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Minimum 8 characters with upper, lower, digit and special character.

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
    validate_password_strength(password)
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check; malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    company_id: int,
    location_id: int | None = None
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValueError: company missing/inactive, duplicate username or email,
            or a location from another company
        PasswordValidationError: weak password
    """
    company = db.session.query(Company).filter_by(id=company_id).first()
    if not company:
        raise ValueError("Company not found")
    if not company.is_active:
        raise ValueError("Company is not active")

    existing = db.session.query(User).filter(
        User.company_id == company_id,
        db.or_(User.username == username, User.email == email)
    ).first()

    if existing:
        raise ValueError("Username or email already exists in this company")

    if location_id is not None:
        location = db.session.query(Location).filter_by(id=location_id).first()
        if not location or location.company_id != company_id:
            raise ValueError("Location not found")

    user = User(
        company_id=company_id,
        location_id=location_id,
        username=username,
        email=email,
        password_hash=hash_password(password),
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str, company_id: int | None = None) -> User | None:
    """
    Authenticate by username (or email) and password.

    When company_id is given the lookup is scoped to that company.
    Returns None for unknown users, inactive users or companies, and bad passwords.
    Updates last_login_at on success.
    """
    query = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username),
        User.is_active.is_(True),
    )

    if company_id is not None:
        query = query.filter(User.company_id == company_id)

    user = query.first()

    if not user:
        return None

    company = db.session.query(Company).filter_by(id=user.company_id).first()
    if not company or not company.is_active:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def assign_role(user_id: int, role_name: str) -> UserRole:
    """Assign one of the user's company roles to the user."""
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise ValueError("User not found")

    role = db.session.query(Role).filter_by(company_id=user.company_id, name=role_name).first()
    if not role:
        raise ValueError(f"Role {role_name} not found")

    existing = db.session.query(UserRole).filter_by(
        user_id=user_id,
        role_id=role.id
    ).first()

    if existing:
        return existing

    user_role = UserRole(user_id=user_id, role_id=role.id)

    db.session.add(user_role)
    db.session.commit()
    return user_role


def create_default_roles(company_id: int):
    """Create standard roles for a company if they don't exist."""
    for name, desc in ROLE_DESCRIPTIONS.items():
        existing = db.session.query(Role).filter_by(company_id=company_id, name=name).first()
        if not existing:
            db.session.add(Role(company_id=company_id, name=name, description=desc))

    db.session.commit()
