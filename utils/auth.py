# backend/utils/auth.py
from functools import wraps

from flask import g, request

from extensions import db
from models import UserProfile
from services.container import current_collaborators
from services.errors import AuthenticationError, PermissionDeniedError

STAFF_ROLES = ("trainer", "instructor")


def extract_token():
    """Bearer token from the Authorization header, falling back to a JSON ``token``."""
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    data = request.get_json(silent=True) or {}
    return data.get("token")


def load_identity():
    identity = current_collaborators().identity.verify(extract_token())
    g.identity = identity
    g.profile = db.session.get(UserProfile, identity.uid)
    return identity


def optional_profile():
    """Profile of the caller when a valid token is present, else None."""
    if not extract_token():
        return None
    try:
        load_identity()
    except AuthenticationError:
        return None
    return g.profile


def require_auth(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        load_identity()
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        load_identity()
        if not is_admin(g.profile):
            raise PermissionDeniedError("Admin access required")
        return f(*args, **kwargs)

    return decorated_function


def is_admin(profile):
    return profile is not None and profile.role == "admin"


def is_assigned_staff(profile, event):
    return (
        profile is not None
        and profile.role in STAFF_ROLES
        and profile.uid in (event.assigned_trainers or [])
    )


def can_manage_event(profile, event):
    return is_admin(profile) or is_assigned_staff(profile, event)
