# backend/routes/events.py
import csv
import io
import logging
from decimal import Decimal, InvalidOperation

from flask import Response, current_app, g, request
from flask_restx import Namespace, Resource, fields
from sqlalchemy.exc import SQLAlchemyError

from extensions import db, limiter
from models import Event, Registration, utcnow
from routes.serializers import event_to_dict, registration_to_dict
from services.entities import parse_timestamp
from services.geocoding_service import geocode_address
from services.stores import SQLAlchemyRegistrationStore
from utils.auth import can_manage_event, is_admin, optional_profile, require_admin, require_auth
from utils.groups import can_user_see_event, normalize_groups

logger = logging.getLogger(__name__)

ns = Namespace("events", description="Event management", path="/api/events")

EVENT_STATUSES = ("active", "completed", "cancelled", "draft")

event_model = ns.model(
    "Event",
    {
        "title": fields.String(required=True, example="אימון כושר קרבי"),
        "description": fields.String(example="אימון בוקר בפארק"),
        "itineraryMd": fields.String,
        "startAt": fields.String(description="ISO 8601", example="2025-11-02T06:30:00Z"),
        "endAt": fields.String(description="ISO 8601"),
        "locationName": fields.String(example="פארק הירקון, תל אביב"),
        "lat": fields.Float,
        "lng": fields.Float,
        "maxParticipants": fields.Integer(example=20),
        "priceNis": fields.Float(example=120),
        "cover": fields.String,
        "groups": fields.List(fields.String, example=["א", "ב"]),
        "publish": fields.Boolean(default=False),
        "status": fields.String(enum=list(EVENT_STATUSES)),
    },
)

publish_model = ns.model("EventPublish", {"publish": fields.Boolean(required=True)})
status_model = ns.model(
    "EventStatus", {"status": fields.String(required=True, enum=list(EVENT_STATUSES))}
)
trainers_model = ns.model(
    "EventTrainers", {"trainerIds": fields.List(fields.String, required=True)}
)
geocode_model = ns.model(
    "Geocode", {"address": fields.String(required=True, example="פארק הירקון, תל אביב")}
)


def _store():
    return SQLAlchemyRegistrationStore(db.session)


def _get_event_or_404(event_ref):
    event = db.session.get(Event, event_ref) or Event.query.filter_by(slug=event_ref).first()
    if not event:
        ns.abort(404, "Event not found")
    return event


def _geocode(location_name):
    return geocode_address(
        location_name,
        url=current_app.config["GEOCODER_URL"],
        country=current_app.config["GEOCODER_COUNTRY"],
    )


def _apply_event_fields(event, data):
    """Copy request fields onto ``event``; aborts with 400 on malformed values."""
    if "title" in data:
        if not data["title"]:
            ns.abort(400, "Title is required")
        event.title = data["title"]
    if "description" in data:
        event.description = data["description"] or ""
    if "itineraryMd" in data:
        event.itinerary_md = data["itineraryMd"]
    if "cover" in data:
        event.cover = data["cover"]

    for key, column in (("startAt", "start_at"), ("endAt", "end_at")):
        if key in data:
            value = parse_timestamp(data[key])
            if data[key] and value is None:
                ns.abort(400, f"Invalid date format for {key}, use ISO 8601")
            setattr(event, column, value)

    if "maxParticipants" in data:
        try:
            event.max_participants = int(data["maxParticipants"] or 0)
        except (TypeError, ValueError):
            ns.abort(400, "maxParticipants must be a number")
    if "priceNis" in data:
        try:
            event.price_nis = Decimal(str(data["priceNis"] or 0))
        except InvalidOperation:
            ns.abort(400, "priceNis must be a number")

    if "groups" in data:
        event.groups = normalize_groups(data["groups"])
    if "publish" in data:
        event.publish = bool(data["publish"])
    if "status" in data:
        if data["status"] not in EVENT_STATUSES:
            ns.abort(400, "Invalid status")
        event.status = data["status"]

    if "lat" in data:
        event.lat = data["lat"]
    if "lng" in data:
        event.lng = data["lng"]
    if "locationName" in data:
        event.location_name = data["locationName"] or ""
        # Re-geocode when the location changed and no coordinates were sent
        if event.location_name and ("lat" not in data or "lng" not in data):
            event.lat, event.lng = _geocode(event.location_name)


@ns.route("")
class EventList(Resource):
    @ns.response(200, "Success")
    def get(self):
        """List published events visible to the caller's groups"""
        profile = optional_profile()
        include_all = is_admin(profile) and request.args.get("all") in ("1", "true")

        query = Event.query
        if not include_all:
            query = query.filter_by(publish=True)
        events = query.order_by(Event.start_at.asc()).all()

        store = _store()
        user_groups = profile.groups if profile is not None else []
        return {
            "events": [
                event_to_dict(event, store.count_active_registrations(event.id))
                for event in events
                if include_all or can_user_see_event(user_groups, event.groups)
            ]
        }, 200

    @ns.expect(event_model)
    @ns.response(201, "Event created")
    @ns.response(400, "Invalid input")
    @ns.response(403, "Admin only")
    @require_admin
    def post(self):
        """Create an event (admin)"""
        data = request.get_json() or {}
        if not data.get("title") or not data.get("startAt"):
            ns.abort(400, "Title and startAt are required")

        event = Event(status="active", publish=False, schema_version=2, assigned_trainers=[])
        _apply_event_fields(event, data)

        db.session.add(event)
        db.session.commit()
        logger.info("Event %s created by %s", event.id, g.identity.uid)

        return {"message": "Event created successfully", "event": event_to_dict(event, 0)}, 201


@ns.route("/assigned")
class AssignedEvents(Resource):
    @ns.response(200, "Success")
    @require_auth
    def get(self):
        """Events the calling trainer or instructor is assigned to"""
        uid = g.identity.uid
        events = Event.query.order_by(Event.start_at.asc()).all()
        store = _store()
        return {
            "events": [
                event_to_dict(event, store.count_active_registrations(event.id))
                for event in events
                if uid in (event.assigned_trainers or [])
            ]
        }, 200


@ns.route("/geocode")
class GeocodeResource(Resource):
    @ns.expect(geocode_model)
    @ns.response(200, "Geocoding result")
    @ns.response(400, "Invalid address")
    @limiter.limit("30 per minute")
    def post(self):
        """Geocode a location name to latitude and longitude"""
        data = request.get_json() or {}
        address = (data.get("address") or "").strip()
        if not address:
            ns.abort(400, "Field 'address' is required")

        latitude, longitude = _geocode(address)
        if latitude is None or longitude is None:
            return {
                "latitude": None,
                "longitude": None,
                "message": "Could not geocode the address",
            }, 200
        return {"latitude": latitude, "longitude": longitude}, 200


@ns.route("/<string:event_ref>")
class EventDetail(Resource):
    @ns.response(200, "Success")
    @ns.response(404, "Event not found")
    def get(self, event_ref):
        """Get an event by id or slug"""
        event = _get_event_or_404(event_ref)
        if not event.publish and not is_admin(optional_profile()):
            ns.abort(404, "Event not found")
        return {
            "event": event_to_dict(event, _store().count_active_registrations(event.id))
        }, 200

    @ns.expect(event_model)
    @ns.response(200, "Event updated")
    @ns.response(403, "Admin only")
    @ns.response(404, "Event not found")
    @require_admin
    def put(self, event_ref):
        """Update an event (admin)"""
        event = _get_event_or_404(event_ref)
        data = request.get_json() or {}
        _apply_event_fields(event, data)

        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Failed to update event %s", event_ref)
            ns.abort(500, "Failed to update event")

        return {"message": "Event updated successfully", "event": event_to_dict(event)}, 200

    @ns.response(200, "Event deleted")
    @ns.response(403, "Admin only")
    @ns.response(404, "Event not found")
    @require_admin
    def delete(self, event_ref):
        """Delete an event and every registration that references it (admin)"""
        event = _get_event_or_404(event_ref)
        event_id = event.id
        try:
            deleted = Registration.query.filter_by(event_id=event_id).delete(
                synchronize_session=False
            )
            db.session.delete(event)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Failed to delete event %s", event_id)
            ns.abort(500, "Failed to delete event")

        logger.info("Event %s deleted with %d registrations", event_id, deleted)
        return {"message": "Event deleted successfully", "deletedRegistrations": deleted}, 200


@ns.route("/<string:event_id>/publish")
class EventPublish(Resource):
    @ns.expect(publish_model)
    @ns.response(200, "Publish flag updated")
    @require_admin
    def post(self, event_id):
        """Publish or unpublish an event (admin)"""
        event = _get_event_or_404(event_id)
        data = request.get_json() or {}
        if "publish" not in data:
            ns.abort(400, "Field 'publish' is required")
        event.publish = bool(data["publish"])
        db.session.commit()
        return {"message": "Event updated successfully", "publish": event.publish}, 200


@ns.route("/<string:event_id>/status")
class EventStatus(Resource):
    @ns.expect(status_model)
    @ns.response(200, "Status updated")
    @ns.response(400, "Invalid status")
    @require_admin
    def post(self, event_id):
        """Change an event's lifecycle status (admin)"""
        event = _get_event_or_404(event_id)
        status = (request.get_json() or {}).get("status")
        if status not in EVENT_STATUSES:
            ns.abort(400, "Invalid status")

        event.status = status
        if status == "completed":
            event.completed_at = utcnow()
        db.session.commit()
        return {"message": "Event status updated", "status": event.status}, 200


@ns.route("/<string:event_id>/trainers")
class EventTrainers(Resource):
    @ns.expect(trainers_model)
    @ns.response(200, "Trainers assigned")
    @require_admin
    def put(self, event_id):
        """Replace the list of trainers assigned to an event (admin)"""
        event = _get_event_or_404(event_id)
        trainer_ids = (request.get_json() or {}).get("trainerIds")
        if not isinstance(trainer_ids, list):
            ns.abort(400, "trainerIds must be a list")
        event.assigned_trainers = list(dict.fromkeys(trainer_ids))
        db.session.commit()
        return {"message": "Trainers updated", "assignedTrainers": event.assigned_trainers}, 200


@ns.route("/<string:event_id>/registrations")
class EventRegistrations(Resource):
    @ns.response(200, "Success")
    @ns.response(403, "Not allowed")
    @ns.response(404, "Event not found")
    @require_auth
    def get(self, event_id):
        """List an event's registrations (admin or assigned staff)"""
        event = _get_event_or_404(event_id)
        if not can_manage_event(g.profile, event):
            ns.abort(403, "You are not allowed to view this event's registrations")

        registrations = (
            Registration.query.filter_by(event_id=event.id)
            .order_by(Registration.registered_at.asc())
            .all()
        )
        return {"registrations": [registration_to_dict(r) for r in registrations]}, 200


@ns.route("/<string:event_id>/export-csv")
class ExportRegistrations(Resource):
    @ns.response(200, "CSV file")
    @ns.response(403, "Not allowed")
    @require_auth
    def get(self, event_id):
        """Export an event's registrations as CSV (admin or assigned staff)"""
        event = _get_event_or_404(event_id)
        if not can_manage_event(g.profile, event):
            ns.abort(403, "You are not allowed to export this event's registrations")

        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(
            [
                "Name",
                "Email",
                "Phone",
                "Status",
                "Payment",
                "Pickup",
                "Medical",
                "Notes",
                "Bundle",
                "Checked in",
                "Registered at",
            ]
        )

        for registration in event.registrations:
            writer.writerow(
                [
                    registration.user_name,
                    registration.user_email,
                    registration.user_phone,
                    registration.status,
                    registration.payment_status,
                    registration.pickup,
                    registration.medical,
                    registration.notes,
                    "yes" if registration.bundle_registration else "",
                    "yes" if registration.checked_in else "",
                    registration.registered_at.strftime("%Y-%m-%d %H:%M")
                    if registration.registered_at
                    else "",
                ]
            )

        output.seek(0)
        return Response(
            "\ufeff" + output.getvalue(),
            mimetype="text/csv",
            headers={
                "Content-Disposition": f"attachment; filename=event_{event.id}_registrations.csv"
            },
        )
