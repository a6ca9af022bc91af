from flask import Blueprint, jsonify, request, session, current_app
from sqlalchemy import func
from werkzeug.security import check_password_hash, generate_password_hash

from decorators import login_required
from errors import AuthenticationError, ValidationError
from extensions import db
from models import Profile

auth = Blueprint('auth', __name__)

MIN_PASSWORD_LENGTH = 6


def _find_by_email(email):
    return Profile.query.filter(func.lower(Profile.email) == email.lower()).first()


@auth.route('/register', methods=['POST'])
def register():
    payload = request.get_json(silent=True) or {}
    email = (payload.get("email") or "").strip()
    password = payload.get("password") or ""
    if not email or not password:
        raise ValidationError("Email and password are required")
    if "@" not in email:
        raise ValidationError("Please enter a valid email address")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if _find_by_email(email):
        return jsonify({"error": "This email is already registered"}), 409

    profile = Profile(
        email=email,
        password_hash=generate_password_hash(password),
        full_name=(payload.get("fullName") or "").strip() or None,
    )
    db.session.add(profile)
    db.session.commit()
    session.clear()
    session["user_id"] = profile.id
    current_app.logger.info("Registered user %s", profile.id)
    return jsonify({"success": True, "profile": profile.to_dict()}), 201


@auth.route('/login', methods=['POST'])
def login():
    payload = request.get_json(silent=True) or {}
    email = (payload.get("email") or "").strip()
    password = payload.get("password") or ""
    profile = _find_by_email(email) if email else None
    if not profile or not check_password_hash(profile.password_hash, password):
        raise AuthenticationError("Invalid email or password")
    session.clear()
    session["user_id"] = profile.id
    return jsonify({"success": True, "profile": profile.to_dict()})


@auth.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify({"success": True})


@auth.route('/me', methods=['GET'])
@login_required
def me(ctx):
    profile = db.session.get(Profile, ctx.user_id)
    d = profile.to_dict()
    d["courseLimit"] = None if profile.is_premium else current_app.config.get("FREE_COURSE_LIMIT", 1)
    return jsonify(d)
