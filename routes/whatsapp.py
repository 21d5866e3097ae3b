# backend/routes/whatsapp.py
from flask import request
from flask_restx import Namespace, Resource, fields
from sqlalchemy.exc import IntegrityError

from extensions import db
from models import WhatsAppGroupLink
from routes.serializers import whatsapp_group_to_dict
from utils.auth import require_admin
from utils.groups import ALL_GROUPS, normalize_groups

ns = Namespace("whatsapp", description="WhatsApp group links", path="/api/whatsapp-groups")

whatsapp_model = ns.model(
    "WhatsAppGroup",
    {
        "group": fields.String(required=True, example="א"),
        "groupName": fields.String(required=True, example="קבוצה א"),
        "whatsappUrl": fields.String(required=True, example="https://chat.whatsapp.com/abc123"),
        "isActive": fields.Boolean(default=True),
    },
)


def _get_link_or_404(link_id):
    link = db.session.get(WhatsAppGroupLink, link_id)
    if not link:
        ns.abort(404, "WhatsApp group not found")
    return link


def _validate_url(url):
    if not url or not url.startswith(("https://chat.whatsapp.com/", "https://wa.me/")):
        ns.abort(400, "whatsappUrl must be a WhatsApp invite link")


@ns.route("")
class WhatsAppGroupList(Resource):
    @ns.doc(params={"groups": "Comma-separated group letters, e.g. א,ב"})
    @ns.response(200, "Success")
    def get(self):
        """Active links for the given groups (every active link when ?groups= is omitted)"""
        query = WhatsAppGroupLink.query.filter_by(is_active=True)
        groups = normalize_groups(request.args.get("groups"))
        if groups and ALL_GROUPS not in groups:
            query = query.filter(WhatsAppGroupLink.group.in_(groups))
        links = query.order_by(WhatsAppGroupLink.group).all()
        return {"groups": [whatsapp_group_to_dict(link) for link in links]}, 200

    @ns.expect(whatsapp_model)
    @ns.response(201, "Link created")
    @ns.response(409, "Group already has a link")
    @require_admin
    def post(self):
        """Create a group link (admin)"""
        data = request.get_json() or {}
        if not data.get("group") or not data.get("groupName"):
            ns.abort(400, "group and groupName are required")
        _validate_url(data.get("whatsappUrl"))

        if WhatsAppGroupLink.query.filter_by(group=data["group"]).first():
            ns.abort(409, "A link for this group already exists")

        link = WhatsAppGroupLink(
            group=data["group"],
            group_name=data["groupName"],
            whatsapp_url=data["whatsappUrl"],
            is_active=bool(data.get("isActive", True)),
        )
        db.session.add(link)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            ns.abort(409, "A link for this group already exists")
        return {"message": "WhatsApp group created", "group": whatsapp_group_to_dict(link)}, 201


@ns.route("/<string:link_id>")
class WhatsAppGroupDetail(Resource):
    @ns.expect(whatsapp_model)
    @ns.response(200, "Link updated")
    @require_admin
    def put(self, link_id):
        """Update a group link (admin)"""
        link = _get_link_or_404(link_id)
        data = request.get_json() or {}
        if "group" in data and data["group"] != link.group:
            if WhatsAppGroupLink.query.filter_by(group=data["group"]).first():
                ns.abort(409, "A link for this group already exists")
            link.group = data["group"]
        if "groupName" in data:
            link.group_name = data["groupName"]
        if "whatsappUrl" in data:
            _validate_url(data["whatsappUrl"])
            link.whatsapp_url = data["whatsappUrl"]
        if "isActive" in data:
            link.is_active = bool(data["isActive"])
        db.session.commit()
        return {"message": "WhatsApp group updated", "group": whatsapp_group_to_dict(link)}, 200

    @ns.response(200, "Link deleted")
    @require_admin
    def delete(self, link_id):
        """Delete a group link (admin)"""
        link = _get_link_or_404(link_id)
        db.session.delete(link)
        db.session.commit()
        return {"message": "WhatsApp group deleted"}, 200
