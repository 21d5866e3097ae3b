# backend/routes/announcements.py
import logging
import time

from flask import current_app, g, request
from flask_restx import Namespace, Resource, fields

from extensions import db
from models import Announcement, UserProfile, utcnow
from routes.serializers import announcement_to_dict
from services import email_templates
from services.container import current_collaborators
from services.email_service import EmailRecipient
from services.entities import parse_timestamp
from utils.auth import is_admin, require_admin, require_auth
from utils.groups import ALL_GROUPS, can_user_see_announcement, normalize_groups

logger = logging.getLogger(__name__)

ns = Namespace("announcements", description="Announcements", path="/api/announcements")

ANNOUNCEMENT_TYPES = ("info", "warning", "success", "urgent")

announcement_model = ns.model(
    "Announcement",
    {
        "title": fields.String(required=True, example="שינוי מיקום אימון"),
        "content": fields.String(required=True),
        "targetGroups": fields.List(fields.String, required=True, example=["ALL"]),
        "type": fields.String(enum=list(ANNOUNCEMENT_TYPES), default="info"),
        "active": fields.Boolean(default=True),
        "expiresAt": fields.String(description="ISO 8601"),
    },
)


def _get_announcement_or_404(announcement_id):
    announcement = db.session.get(Announcement, announcement_id)
    if not announcement:
        ns.abort(404, "Announcement not found")
    return announcement


def _apply_announcement_fields(announcement, data):
    if "title" in data:
        if not data["title"]:
            ns.abort(400, "Title is required")
        announcement.title = data["title"]
    if "content" in data:
        if not data["content"]:
            ns.abort(400, "Content is required")
        announcement.content = data["content"]
    if "targetGroups" in data:
        announcement.target_groups = normalize_groups(data["targetGroups"])
        if not announcement.target_groups:
            ns.abort(400, "At least one target group is required")
    if "type" in data:
        if data["type"] not in ANNOUNCEMENT_TYPES:
            ns.abort(400, "Invalid announcement type")
        announcement.type = data["type"]
    if "active" in data:
        announcement.active = bool(data["active"])
    if "expiresAt" in data:
        expires_at = parse_timestamp(data["expiresAt"])
        if data["expiresAt"] and expires_at is None:
            ns.abort(400, "Invalid date format for expiresAt, use ISO 8601")
        announcement.expires_at = expires_at


def target_recipients(target_groups):
    """Profiles an announcement reaches: everyone for ALL, else any group overlap."""
    profiles = UserProfile.query.filter(UserProfile.email.isnot(None)).all()
    if ALL_GROUPS in (target_groups or []):
        return profiles
    wanted = set(target_groups or [])
    return [p for p in profiles if wanted.intersection(p.groups or [])]


def send_in_batches(mailer, recipients, template, batch_size, delay):
    """Send one email per recipient, pausing between batches. Failures are counted, not raised."""
    success = 0
    failed = 0
    for start in range(0, len(recipients), batch_size):
        if start and delay:
            time.sleep(delay)
        for profile in recipients[start:start + batch_size]:
            try:
                mailer.send(
                    EmailRecipient(email=profile.email, name=profile.full_name or None),
                    template,
                )
                success += 1
            except Exception:
                failed += 1
                logger.exception("Announcement email to %s failed", profile.email)
    return success, failed


@ns.route("")
class AnnouncementList(Resource):
    @ns.response(200, "Success")
    @require_auth
    def get(self):
        """Active, unexpired announcements visible to the caller (admins see all with ?all=1)"""
        if is_admin(g.profile) and request.args.get("all") in ("1", "true"):
            rows = Announcement.query.order_by(Announcement.created_at.desc()).all()
            return {"announcements": [announcement_to_dict(a) for a in rows]}, 200

        now = utcnow()
        user_groups = g.profile.groups if g.profile else []
        rows = (
            Announcement.query.filter_by(active=True)
            .order_by(Announcement.created_at.desc())
            .all()
        )
        visible = [
            a
            for a in rows
            if (a.expires_at is None or a.expires_at > now)
            and can_user_see_announcement(user_groups, a.target_groups)
        ]
        return {"announcements": [announcement_to_dict(a) for a in visible]}, 200

    @ns.expect(announcement_model)
    @ns.response(201, "Announcement created")
    @ns.response(400, "Invalid input")
    @require_admin
    def post(self):
        """Create an announcement (admin)"""
        data = request.get_json() or {}
        if not data.get("title") or not data.get("content") or not data.get("targetGroups"):
            ns.abort(400, "Title, content and targetGroups are required")

        announcement = Announcement(type="info", active=True, created_by=g.identity.uid)
        _apply_announcement_fields(announcement, data)
        db.session.add(announcement)
        db.session.commit()
        return {
            "message": "Announcement created successfully",
            "announcement": announcement_to_dict(announcement),
        }, 201


@ns.route("/<string:announcement_id>")
class AnnouncementDetail(Resource):
    @ns.expect(announcement_model)
    @ns.response(200, "Announcement updated")
    @require_admin
    def put(self, announcement_id):
        """Update an announcement (admin)"""
        announcement = _get_announcement_or_404(announcement_id)
        _apply_announcement_fields(announcement, request.get_json() or {})
        db.session.commit()
        return {
            "message": "Announcement updated successfully",
            "announcement": announcement_to_dict(announcement),
        }, 200

    @ns.response(200, "Announcement deleted")
    @require_admin
    def delete(self, announcement_id):
        """Delete an announcement (admin)"""
        announcement = _get_announcement_or_404(announcement_id)
        db.session.delete(announcement)
        db.session.commit()
        return {"message": "Announcement deleted successfully"}, 200


@ns.route("/<string:announcement_id>/send-email")
class SendAnnouncementEmail(Resource):
    @ns.response(200, "Emails sent")
    @ns.response(404, "Announcement not found")
    @require_admin
    def post(self, announcement_id):
        """Email an announcement to every user in its target groups (admin)"""
        announcement = _get_announcement_or_404(announcement_id)
        recipients = target_recipients(announcement.target_groups)
        template = email_templates.announcement(
            announcement.title, announcement.content, announcement.type or "info"
        )

        success, failed = send_in_batches(
            current_collaborators().mailer,
            recipients,
            template,
            max(1, current_app.config["ANNOUNCEMENT_BATCH_SIZE"]),
            current_app.config["ANNOUNCEMENT_BATCH_DELAY"],
        )
        stats = {"targetUsers": len(recipients), "successCount": success, "failCount": failed}

        announcement.email_sent = True
        announcement.email_sent_at = utcnow()
        announcement.email_stats = stats
        db.session.commit()
        logger.info("Announcement %s emailed: %s", announcement.id, stats)

        return {"message": "Announcement emails processed", "stats": stats}, 200
