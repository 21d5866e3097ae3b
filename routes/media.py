# backend/routes/media.py
from flask import g, request
from flask_restx import Namespace, Resource, fields

from extensions import db
from models import MediaItem
from routes.serializers import media_to_dict
from utils.auth import require_admin

ns = Namespace("media", description="Gallery media", path="/api/media")

MEDIA_TYPES = ("image", "video", "youtube")

media_model = ns.model(
    "Media",
    {
        "type": fields.String(enum=list(MEDIA_TYPES), default="image"),
        "title": fields.String,
        "srcUrl": fields.String(required=True),
        "thumbUrl": fields.String,
        "category": fields.String(example="gallery"),
        "tags": fields.List(fields.String),
    },
)

FIELD_MAP = {"title": "title", "srcUrl": "src_url", "thumbUrl": "thumb_url", "category": "category"}


def _apply_media_fields(item, data):
    for key, attr in FIELD_MAP.items():
        if key in data:
            setattr(item, attr, data[key])
    if "type" in data:
        if data["type"] not in MEDIA_TYPES:
            ns.abort(400, "Invalid media type")
        item.type = data["type"]
    if "tags" in data:
        item.tags = [str(t) for t in data["tags"] or []]
    if not item.src_url:
        ns.abort(400, "srcUrl is required")


@ns.route("")
class MediaList(Resource):
    @ns.doc(params={"category": "Filter by category"})
    def get(self):
        """List media, newest first"""
        query = MediaItem.query
        if request.args.get("category"):
            query = query.filter_by(category=request.args["category"])
        items = query.order_by(MediaItem.created_at.desc()).all()
        return {"media": [media_to_dict(item) for item in items]}, 200

    @ns.expect(media_model)
    @ns.response(201, "Media created")
    @require_admin
    def post(self):
        """Add a media item (admin)"""
        item = MediaItem(owner_uid=g.identity.uid, type="image", category="gallery")
        _apply_media_fields(item, request.get_json() or {})
        db.session.add(item)
        db.session.commit()
        return {"message": "Media created", "media": media_to_dict(item)}, 201


@ns.route("/<string:media_id>")
class MediaDetail(Resource):
    @ns.expect(media_model)
    @require_admin
    def put(self, media_id):
        """Update a media item (admin)"""
        item = db.session.get(MediaItem, media_id)
        if not item:
            ns.abort(404, "Media not found")
        _apply_media_fields(item, request.get_json() or {})
        db.session.commit()
        return {"message": "Media updated", "media": media_to_dict(item)}, 200

    @require_admin
    def delete(self, media_id):
        """Delete a media item (admin)"""
        item = db.session.get(MediaItem, media_id)
        if not item:
            ns.abort(404, "Media not found")
        db.session.delete(item)
        db.session.commit()
        return {"message": "Media deleted"}, 200
