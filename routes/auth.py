# backend/routes/auth.py
from flask import g, request
from flask_restx import Namespace, Resource, fields
from email_validator import validate_email, EmailNotValidError

from extensions import db, bcrypt, limiter
from models import UserProfile, new_id, utcnow
from routes.serializers import profile_to_dict
from services.container import current_collaborators, publish
from services.notification_handlers import USER_CREATED
from utils.auth import extract_token, require_auth
from utils.groups import normalize_groups

ns = Namespace("auth", description="Authentication and profiles", path="/api/auth")

signup_model = ns.model(
    "Signup",
    {
        "email": fields.String(required=True, example="student@example.com"),
        "password": fields.String(required=True, example="s3cret-pass"),
        "firstName": fields.String(example="Noa"),
        "lastName": fields.String(example="Levi"),
        "phone": fields.String(example="0501234567"),
        "groups": fields.List(fields.String, example=["א"]),
    },
)

login_model = ns.model(
    "Login",
    {
        "email": fields.String(required=True, example="student@example.com"),
        "password": fields.String(required=True, example="s3cret-pass"),
    },
)

token_model = ns.model("Token", {"token": fields.String(required=True)})

profile_model = ns.model(
    "ProfileFields",
    {
        "firstName": fields.String,
        "lastName": fields.String,
        "phone": fields.String,
        "tzId": fields.String,
        "dob": fields.String,
        "emergency": fields.String,
        "groups": fields.List(fields.String),
    },
)

PROFILE_FIELDS = {
    "firstName": "first_name",
    "lastName": "last_name",
    "phone": "phone",
    "tzId": "tz_id",
    "dob": "dob",
    "emergency": "emergency",
}


def _announce_new_user(profile):
    publish(
        USER_CREATED,
        {
            "userEmail": profile.email,
            "userName": profile.full_name or profile.email.split("@")[0],
            "userPhone": profile.phone,
            "userGroups": profile.groups or [],
            "createdAt": utcnow().strftime("%d/%m/%Y"),
        },
    )


def _profile_from_body(uid, email, data):
    profile = UserProfile(
        uid=uid,
        role="student",
        email=email,
        groups=normalize_groups(data.get("groups")),
        lang="he",
    )
    for key, column in PROFILE_FIELDS.items():
        setattr(profile, column, data.get(key) or "")
    return profile


@ns.route("/signup")
class Signup(Resource):
    @ns.expect(signup_model)
    @ns.response(201, "Account created")
    @ns.response(400, "Invalid input")
    @ns.response(409, "Email already registered")
    @limiter.limit("5 per minute")
    def post(self):
        """Create a student account"""
        data = request.get_json() or {}
        if not data.get("email") or not data.get("password"):
            ns.abort(400, "Email and password are required")

        try:
            email = validate_email(data["email"], check_deliverability=False).normalized.lower()
        except EmailNotValidError:
            ns.abort(400, "Invalid email format")

        if UserProfile.query.filter_by(email=email).first():
            ns.abort(409, "Email already registered")

        profile = _profile_from_body(new_id(), email, data)
        profile.password_hash = bcrypt.generate_password_hash(data["password"]).decode("utf-8")
        db.session.add(profile)
        db.session.commit()

        _announce_new_user(profile)

        token = current_collaborators().identity.issue_token(profile.uid, profile.email)
        return {
            "message": "Account created successfully",
            "token": token,
            "profile": profile_to_dict(profile),
        }, 201


@ns.route("/login")
class Login(Resource):
    @ns.expect(login_model)
    @ns.response(200, "Login successful")
    @ns.response(400, "Missing credentials")
    @ns.response(401, "Invalid credentials")
    @limiter.limit("5 per minute")
    def post(self):
        """Exchange email and password for a bearer token"""
        data = request.get_json() or {}
        if not data.get("email") or not data.get("password"):
            ns.abort(400, "Email and password required")

        try:
            email = validate_email(data["email"], check_deliverability=False).normalized.lower()
        except EmailNotValidError:
            ns.abort(401, "Invalid email or password")

        profile = UserProfile.query.filter_by(email=email).first()
        if (
            not profile
            or not profile.password_hash
            or not bcrypt.check_password_hash(profile.password_hash, data["password"])
        ):
            ns.abort(401, "Invalid email or password")

        token = current_collaborators().identity.issue_token(profile.uid, profile.email)
        return {
            "message": "Login successful",
            "token": token,
            "profile": profile_to_dict(profile),
        }, 200


@ns.route("/session")
class SessionInfo(Resource):
    @ns.expect(token_model)
    @ns.response(200, "Token is valid")
    @ns.response(400, "Token required")
    @ns.response(401, "Invalid token")
    @ns.response(404, "Profile not found")
    def post(self):
        """Resolve a token to its uid, email and profile"""
        token = extract_token()
        if not token:
            ns.abort(400, "Token required")

        identity = current_collaborators().identity.verify(token)
        profile = db.session.get(UserProfile, identity.uid)
        if not profile:
            ns.abort(404, "Profile not found")

        return {
            "uid": identity.uid,
            "email": identity.email,
            "profile": profile_to_dict(profile),
        }, 200


@ns.route("/ensure-profile")
class EnsureProfile(Resource):
    @ns.expect(profile_model)
    @ns.response(200, "Profile exists or was created")
    @ns.response(401, "Missing or invalid token")
    @require_auth
    def post(self):
        """Create the caller's profile on first authentication"""
        profile = g.profile
        if profile is None:
            if not g.identity.email:
                ns.abort(400, "Token carries no email address")
            data = request.get_json(silent=True) or {}
            profile = _profile_from_body(g.identity.uid, g.identity.email, data)
            db.session.add(profile)
            db.session.commit()
            _announce_new_user(profile)

        return {"ok": True, "profile": profile_to_dict(profile)}, 200


@ns.route("/me")
class CurrentUser(Resource):
    @ns.response(200, "Success")
    @ns.response(401, "Not authenticated")
    @ns.response(404, "Profile not found")
    @require_auth
    def get(self):
        """Get the authenticated user's profile"""
        if g.profile is None:
            ns.abort(404, "Profile not found")
        return {"profile": profile_to_dict(g.profile)}, 200

    @ns.expect(profile_model)
    @ns.response(200, "Profile updated")
    @require_auth
    def put(self):
        """Update the caller's contact fields"""
        if g.profile is None:
            ns.abort(404, "Profile not found")

        data = request.get_json() or {}
        for key, column in PROFILE_FIELDS.items():
            if key in data:
                setattr(g.profile, column, data[key] or "")
        db.session.commit()
        return {"profile": profile_to_dict(g.profile)}, 200
