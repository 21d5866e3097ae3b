# backend/routes/users.py
import logging

from flask import request
from flask_restx import Namespace, Resource, fields

from extensions import db
from models import UserProfile
from routes.serializers import profile_to_dict
from utils.auth import require_admin
from utils.groups import normalize_groups

logger = logging.getLogger(__name__)

ns = Namespace("users", description="User administration", path="/api/users")

ROLES = ("student", "parent", "trainer", "instructor", "admin")

user_update_model = ns.model(
    "UserUpdate",
    {
        "role": fields.String(enum=list(ROLES)),
        "groups": fields.List(fields.String, example=["א", "ב"]),
    },
)

set_admin_model = ns.model(
    "SetAdminRole", {"email": fields.String(required=True, example="admin@example.com")}
)


@ns.route("")
class UserList(Resource):
    @ns.response(200, "Success")
    @require_admin
    def get(self):
        """List all profiles (admin), optionally filtered by ?role= or ?group="""
        query = UserProfile.query
        if request.args.get("role"):
            query = query.filter_by(role=request.args["role"])
        profiles = query.order_by(UserProfile.created_at.desc()).all()

        group = request.args.get("group")
        if group:
            profiles = [p for p in profiles if group in (p.groups or [])]
        return {"users": [profile_to_dict(p) for p in profiles]}, 200


@ns.route("/<string:uid>")
class UserDetail(Resource):
    @ns.expect(user_update_model)
    @ns.response(200, "User updated")
    @ns.response(400, "Invalid role")
    @ns.response(404, "User not found")
    @require_admin
    def put(self, uid):
        """Change a user's role or groups (admin)"""
        profile = db.session.get(UserProfile, uid)
        if not profile:
            ns.abort(404, "User not found")

        data = request.get_json() or {}
        if "role" in data:
            if data["role"] not in ROLES:
                ns.abort(400, "Invalid role")
            profile.role = data["role"]
        if "groups" in data:
            profile.groups = normalize_groups(data["groups"])

        db.session.commit()
        logger.info("Profile %s updated: role=%s groups=%s", uid, profile.role, profile.groups)
        return {"message": "User updated successfully", "user": profile_to_dict(profile)}, 200


@ns.route("/set-admin-role")
class SetAdminRole(Resource):
    @ns.expect(set_admin_model)
    @ns.response(200, "Role granted")
    @ns.response(404, "User not found")
    @require_admin
    def post(self):
        """Grant the admin role to a user by email (admin)"""
        email = ((request.get_json() or {}).get("email") or "").strip().lower()
        if not email:
            ns.abort(400, "Email is required")

        profile = UserProfile.query.filter(db.func.lower(UserProfile.email) == email).first()
        if not profile:
            ns.abort(404, "User not found")

        profile.role = "admin"
        db.session.commit()
        logger.info("Admin role granted to %s", email)
        return {"message": f"Admin role set for {email}", "user": profile_to_dict(profile)}, 200


@ns.route("/check-admins")
class CheckAdmins(Resource):
    @ns.response(200, "Success")
    @require_admin
    def get(self):
        """Summarize administrator accounts (admin)"""
        admins = UserProfile.query.filter_by(role="admin").all()
        return {
            "adminCount": len(admins),
            "totalUsers": UserProfile.query.count(),
            "admins": [
                {"uid": a.uid, "email": a.email, "name": a.full_name} for a in admins
            ],
        }, 200
