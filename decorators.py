from dataclasses import dataclass
from functools import wraps

from flask import session, current_app

from errors import AuthenticationError, QuotaExceededError
from extensions import db
from models import Profile


@dataclass(frozen=True)
class UserContext:
    """The signed-in user, handed explicitly to views and services."""
    user_id: int
    email: str
    is_premium: bool

    @classmethod
    def from_profile(cls, profile):
        return cls(user_id=profile.id, email=profile.email, is_premium=bool(profile.is_premium))


def current_context():
    uid = session.get("user_id")
    if uid is None:
        return None
    profile = db.session.get(Profile, uid)
    if profile is None:
        session.clear()
        return None
    return UserContext.from_profile(profile)


def login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        ctx = current_context()
        if ctx is None:
            raise AuthenticationError("You must be logged in")
        return f(ctx, *args, **kwargs)
    return decorated_function


def course_quota_required(f):
    """Free plan: FREE_COURSE_LIMIT courses over the account's lifetime."""
    @wraps(f)
    def decorated_function(ctx, *args, **kwargs):
        if not ctx.is_premium:
            profile = db.session.get(Profile, ctx.user_id)
            limit = current_app.config.get("FREE_COURSE_LIMIT", 1)
            if (profile.courses_created or 0) >= limit:
                raise QuotaExceededError(
                    f"Free plan allows creating {limit} course{'s' if limit != 1 else ''}. "
                    "Upgrade to Premium for unlimited course generation."
                )
        return f(ctx, *args, **kwargs)
    return decorated_function
