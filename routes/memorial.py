# backend/routes/memorial.py
import re

from flask import request
from flask_restx import Namespace, Resource, fields
from sqlalchemy.exc import IntegrityError

from extensions import db
from models import FallenSoldier
from routes.serializers import fallen_soldier_to_dict
from utils.auth import require_admin

ns = Namespace("lizchram", description="Memorial pages", path="/api/lizchram")

soldier_model = ns.model(
    "FallenSoldier",
    {
        "slug": fields.String(example="yoni-cohen"),
        "name": fields.String(required=True, example="Yoni Cohen"),
        "hebrewName": fields.String(required=True, example="יוני כהן"),
        "age": fields.Integer,
        "unit": fields.String,
        "rank": fields.String,
        "dateOfFalling": fields.String,
        "imageUrl": fields.String,
        "parentText": fields.String,
        "shortDescription": fields.String,
        "order": fields.Integer,
    },
)

FIELD_MAP = {
    "name": "name",
    "hebrewName": "hebrew_name",
    "age": "age",
    "unit": "unit",
    "rank": "rank",
    "dateOfFalling": "date_of_falling",
    "imageUrl": "image_url",
    "parentText": "parent_text",
    "shortDescription": "short_description",
    "order": "order",
}


def slugify(value):
    return re.sub(r"[^a-z0-9]+", "-", (value or "").lower()).strip("-")


def _get_by_slug_or_404(slug):
    soldier = FallenSoldier.query.filter_by(slug=slug).first()
    if not soldier:
        ns.abort(404, "Memorial page not found")
    return soldier


def _commit_or_409():
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        ns.abort(409, "Slug already in use")


@ns.route("")
class FallenSoldierList(Resource):
    def get(self):
        """All memorial pages in display order"""
        soldiers = FallenSoldier.query.order_by(FallenSoldier.order, FallenSoldier.name).all()
        return {"soldiers": [fallen_soldier_to_dict(s) for s in soldiers]}, 200

    @ns.expect(soldier_model)
    @ns.response(201, "Page created")
    @ns.response(409, "Slug already in use")
    @require_admin
    def post(self):
        """Create a memorial page (admin)"""
        data = request.get_json() or {}
        if not data.get("name") or not data.get("hebrewName"):
            ns.abort(400, "name and hebrewName are required")

        slug = data.get("slug") or slugify(data["name"])
        if not slug:
            ns.abort(400, "A slug is required")

        soldier = FallenSoldier(slug=slug)
        for key, attr in FIELD_MAP.items():
            if key in data:
                setattr(soldier, attr, data[key])
        db.session.add(soldier)
        _commit_or_409()
        return {"message": "Memorial page created", "soldier": fallen_soldier_to_dict(soldier)}, 201


@ns.route("/<string:slug>")
class FallenSoldierDetail(Resource):
    @ns.response(404, "Memorial page not found")
    def get(self, slug):
        """One memorial page by slug"""
        return {"soldier": fallen_soldier_to_dict(_get_by_slug_or_404(slug))}, 200

    @ns.expect(soldier_model)
    @require_admin
    def put(self, slug):
        """Update a memorial page (admin)"""
        soldier = _get_by_slug_or_404(slug)
        data = request.get_json() or {}
        for key, attr in FIELD_MAP.items():
            if key in data:
                setattr(soldier, attr, data[key])
        if data.get("slug"):
            soldier.slug = data["slug"]
        _commit_or_409()
        return {"message": "Memorial page updated", "soldier": fallen_soldier_to_dict(soldier)}, 200

    @require_admin
    def delete(self, slug):
        """Delete a memorial page (admin)"""
        soldier = _get_by_slug_or_404(slug)
        db.session.delete(soldier)
        db.session.commit()
        return {"message": "Memorial page deleted"}, 200
