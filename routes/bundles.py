# backend/routes/bundles.py
import logging
from decimal import Decimal, InvalidOperation

from flask import current_app, g, request
from flask_restx import Namespace, Resource, fields
from sqlalchemy.exc import SQLAlchemyError

from extensions import db, limiter
from models import (
    ACTIVE_REGISTRATION_STATUSES,
    Bundle,
    BundleRegistration,
    Event,
    Registration,
    utcnow,
)
from routes.serializers import bundle_registration_to_dict, bundle_to_dict
from services.bundle_registration import BundleRegistrationService
from services.container import current_collaborators
from services.entities import parse_timestamp
from services.stores import SQLAlchemyRegistrationStore
from utils.auth import extract_token, is_admin, optional_profile, require_admin, require_auth

logger = logging.getLogger(__name__)

ns = Namespace("bundles", description="Event bundles", path="/api/bundles")

BUNDLE_STATUSES = ("active", "draft", "expired")

bundle_model = ns.model(
    "Bundle",
    {
        "title": fields.String(required=True, example="חבילת הכנה לגיבוש"),
        "description": fields.String,
        "priceNis": fields.Float(required=True, example=450),
        "eventIds": fields.List(fields.String, required=True),
        "replacementEventIds": fields.List(fields.String),
        "publish": fields.Boolean(default=False),
        "status": fields.String(enum=list(BUNDLE_STATUSES)),
        "validUntil": fields.String(description="ISO 8601"),
    },
)

bundle_register_model = ns.model(
    "BundleRegister",
    {
        "token": fields.String(required=True),
        "bundleId": fields.String(required=True),
        "registrationData": fields.Raw(example={"pickup": "", "medical": "", "notes": ""}),
    },
)


def _get_bundle_or_404(bundle_id):
    bundle = db.session.get(Bundle, bundle_id)
    if not bundle:
        ns.abort(404, "Bundle not found")
    return bundle


def _id_list(value, field):
    if value is None:
        return []
    if not isinstance(value, list):
        ns.abort(400, f"{field} must be a list")
    return list(dict.fromkeys(str(v) for v in value if v))


def _apply_bundle_fields(bundle, data):
    if "title" in data:
        if not data["title"]:
            ns.abort(400, "Title is required")
        bundle.title = data["title"]
    if "description" in data:
        bundle.description = data["description"] or ""
    if "priceNis" in data:
        try:
            bundle.price_nis = Decimal(str(data["priceNis"] or 0))
        except InvalidOperation:
            ns.abort(400, "priceNis must be a number")
    if "eventIds" in data:
        bundle.event_ids = _id_list(data["eventIds"], "eventIds")
        if not bundle.event_ids:
            ns.abort(400, "A bundle needs at least one event")
    if "replacementEventIds" in data:
        bundle.replacement_event_ids = _id_list(data["replacementEventIds"], "replacementEventIds")
    if "publish" in data:
        bundle.publish = bool(data["publish"])
    if "status" in data:
        if data["status"] not in BUNDLE_STATUSES:
            ns.abort(400, "Invalid status")
        bundle.status = data["status"]
    if "validUntil" in data:
        valid_until = parse_timestamp(data["validUntil"])
        if data["validUntil"] and valid_until is None:
            ns.abort(400, "Invalid date format for validUntil, use ISO 8601")
        bundle.valid_until = valid_until

    referenced = set(bundle.event_ids or []) | set(bundle.replacement_event_ids or [])
    if referenced:
        found = {row.id for row in Event.query.filter(Event.id.in_(referenced)).all()}
        missing = referenced - found
        if missing:
            ns.abort(400, f"Unknown event ids: {', '.join(sorted(missing))}")


@ns.route("")
class BundleList(Resource):
    @ns.response(200, "Success")
    def get(self):
        """List published bundles"""
        include_all = is_admin(optional_profile()) and request.args.get("all") in ("1", "true")
        query = Bundle.query
        if not include_all:
            query = query.filter_by(publish=True, status="active")
        bundles = query.order_by(Bundle.created_at.desc()).all()

        now = utcnow()
        return {
            "bundles": [
                bundle_to_dict(bundle)
                for bundle in bundles
                if include_all or bundle.valid_until is None or bundle.valid_until >= now
            ]
        }, 200

    @ns.expect(bundle_model)
    @ns.response(201, "Bundle created")
    @ns.response(400, "Invalid input")
    @require_admin
    def post(self):
        """Create a bundle (admin)"""
        data = request.get_json() or {}
        if not data.get("title") or not data.get("eventIds"):
            ns.abort(400, "Title and eventIds are required")

        bundle = Bundle(status="active", publish=False, replacement_event_ids=[])
        _apply_bundle_fields(bundle, data)
        bundle.created_by = g.identity.uid
        db.session.add(bundle)
        db.session.commit()
        return {"message": "Bundle created successfully", "bundle": bundle_to_dict(bundle)}, 201


@ns.route("/register")
class BundleRegister(Resource):
    @ns.response(200, "Endpoint is up")
    def get(self):
        """Liveness probe for the bundle registration endpoint"""
        return {
            "message": "Bundle register endpoint is working",
            "timestamp": utcnow().isoformat(),
        }, 200

    @ns.expect(bundle_register_model)
    @ns.response(200, "Registered")
    @ns.response(400, "Invalid request, bundle unavailable or already registered")
    @ns.response(401, "Invalid token")
    @ns.response(404, "Bundle not found")
    @ns.response(500, "Persistence failure")
    @limiter.limit("10 per minute")
    def post(self):
        """Register the caller for every event in a bundle"""
        data = request.get_json(silent=True) or {}
        collaborators = current_collaborators()
        service = BundleRegistrationService(
            SQLAlchemyRegistrationStore(db.session),
            collaborators.identity,
            payments=collaborators.payments,
            dispatcher=collaborators.dispatcher,
            currency=current_app.config["PAYMENT_CURRENCY"],
            admin_emails=current_app.config.get("ADMIN_EMAILS") or (),
        )
        return service.register(
            extract_token(), data.get("bundleId"), data.get("registrationData")
        ), 200


@ns.route("/registrations")
class BundleRegistrationList(Resource):
    @ns.response(200, "Success")
    @require_admin
    def get(self):
        """List bundle registrations, optionally for one bundle (admin)"""
        query = BundleRegistration.query
        if request.args.get("bundleId"):
            query = query.filter_by(bundle_id=request.args["bundleId"])
        rows = query.order_by(BundleRegistration.created_at.desc()).all()
        return {"bundleRegistrations": [bundle_registration_to_dict(r) for r in rows]}, 200


@ns.route("/registrations/mine")
class MyBundleRegistrations(Resource):
    @ns.response(200, "Success")
    @require_auth
    def get(self):
        """List the caller's bundle registrations"""
        rows = (
            BundleRegistration.query.filter_by(uid=g.identity.uid)
            .order_by(BundleRegistration.created_at.desc())
            .all()
        )
        return {"bundleRegistrations": [bundle_registration_to_dict(r) for r in rows]}, 200


@ns.route("/registrations/<string:bundle_registration_id>/cancel")
class CancelBundleRegistration(Resource):
    @ns.response(200, "Cancelled")
    @ns.response(400, "Already cancelled")
    @ns.response(404, "Not found")
    @require_admin
    def post(self, bundle_registration_id):
        """Cancel a bundle registration and its event registrations (admin)"""
        row = db.session.get(BundleRegistration, bundle_registration_id)
        if not row:
            ns.abort(404, "Bundle registration not found")
        if row.status == "cancelled":
            ns.abort(400, "Bundle registration is already cancelled")

        store = SQLAlchemyRegistrationStore(db.session)
        children = Registration.query.filter_by(bundle_registration_id=row.id).all()
        cancelled = 0
        for registration in children:
            if registration.status in ACTIVE_REGISTRATION_STATUSES:
                store.release_seat(registration.event_id)
            if registration.status != "cancelled":
                registration.status = "cancelled"
                cancelled += 1

        row.status = "cancelled"
        row.active_key = None
        db.session.commit()
        logger.info("Bundle registration %s cancelled (%d events)", row.id, cancelled)

        return {
            "message": "Bundle registration cancelled",
            "cancelledRegistrations": cancelled,
            "bundleRegistration": bundle_registration_to_dict(row),
        }, 200


@ns.route("/<string:bundle_id>")
class BundleDetail(Resource):
    @ns.response(200, "Success")
    @ns.response(404, "Bundle not found")
    def get(self, bundle_id):
        """Get a bundle by id"""
        bundle = _get_bundle_or_404(bundle_id)
        if not bundle.publish and not is_admin(optional_profile()):
            ns.abort(404, "Bundle not found")
        return {"bundle": bundle_to_dict(bundle)}, 200

    @ns.expect(bundle_model)
    @ns.response(200, "Bundle updated")
    @require_admin
    def put(self, bundle_id):
        """Update a bundle (admin)"""
        bundle = _get_bundle_or_404(bundle_id)
        _apply_bundle_fields(bundle, request.get_json() or {})
        db.session.commit()
        return {"message": "Bundle updated successfully", "bundle": bundle_to_dict(bundle)}, 200

    @ns.response(200, "Bundle deleted")
    @ns.response(404, "Bundle not found")
    @require_admin
    def delete(self, bundle_id):
        """Delete a bundle with its bundle registrations and their event registrations (admin)"""
        bundle = _get_bundle_or_404(bundle_id)
        store = SQLAlchemyRegistrationStore(db.session)
        try:
            registrations = Registration.query.filter_by(bundle_id=bundle.id).all()
            for registration in registrations:
                if registration.status in ACTIVE_REGISTRATION_STATUSES:
                    store.release_seat(registration.event_id)
                db.session.delete(registration)

            deleted_bundle_registrations = BundleRegistration.query.filter_by(
                bundle_id=bundle.id
            ).delete(synchronize_session=False)
            db.session.delete(bundle)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Failed to delete bundle %s", bundle_id)
            ns.abort(500, "Failed to delete bundle")

        return {
            "message": "Bundle deleted successfully",
            "deletedBundleRegistrations": deleted_bundle_registrations,
            "deletedRegistrations": len(registrations),
        }, 200
