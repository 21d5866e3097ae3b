# backend/routes/registrations.py
import logging
from decimal import Decimal, InvalidOperation

from flask import current_app, g, request
from flask_restx import Namespace, Resource, fields

from extensions import db, limiter
from models import ACTIVE_REGISTRATION_STATUSES, Event, Registration, utcnow
from routes.serializers import registration_to_dict
from services.container import current_collaborators
from services.entities import event_from_row
from services.event_registration import EventRegistrationService
from services.stores import SQLAlchemyRegistrationStore
from utils.auth import can_manage_event, extract_token, require_admin, require_auth

logger = logging.getLogger(__name__)

ns = Namespace("registrations", description="Single-event registrations", path="/api/registrations")

REGISTRATION_STATUSES = ("pending", "paid", "cancelled", "waitlist")
PAYMENT_STATUSES = ("pending", "paid", "free")

registration_data_model = ns.model(
    "RegistrationData",
    {
        "eventId": fields.String(required=True),
        "pickup": fields.String(example="תחנת רכבת מרכז"),
        "medical": fields.String,
        "notes": fields.String,
        "userName": fields.String,
        "userPhone": fields.String,
    },
)

register_model = ns.model(
    "Register",
    {
        "token": fields.String(description="Bearer token (or use the Authorization header)"),
        "registrationData": fields.Nested(registration_data_model, required=True),
    },
)

payment_model = ns.model(
    "PaymentUpdate",
    {
        "paymentStatus": fields.String(required=True, enum=list(PAYMENT_STATUSES)),
        "amountPaid": fields.Float(example=120),
    },
)

status_model = ns.model(
    "RegistrationStatus",
    {"status": fields.String(required=True, enum=list(REGISTRATION_STATUSES))},
)


def _get_registration_or_404(registration_id):
    registration = db.session.get(Registration, registration_id)
    if not registration:
        ns.abort(404, "Registration not found")
    return registration


@ns.route("")
class RegisterForEvent(Resource):
    @ns.expect(register_model)
    @ns.response(200, "Registered (pending or waitlist)")
    @ns.response(400, "Invalid input, event closed or already registered")
    @ns.response(401, "Invalid token")
    @ns.response(404, "Event not found")
    @limiter.limit("10 per minute")
    def post(self):
        """Register the caller for one event"""
        data = request.get_json() or {}
        collaborators = current_collaborators()
        service = EventRegistrationService(
            SQLAlchemyRegistrationStore(db.session),
            collaborators.identity,
            payments=collaborators.payments,
            dispatcher=collaborators.dispatcher,
            currency=current_app.config["PAYMENT_CURRENCY"],
            admin_emails=current_app.config.get("ADMIN_EMAILS") or (),
        )
        return service.register(extract_token(), data.get("registrationData")), 200


@ns.route("/mine")
class MyRegistrations(Resource):
    @ns.response(200, "Success")
    @require_auth
    def get(self):
        """List the caller's registrations"""
        registrations = (
            Registration.query.filter_by(uid=g.identity.uid)
            .order_by(Registration.registered_at.desc())
            .all()
        )
        return {"registrations": [registration_to_dict(r) for r in registrations]}, 200


@ns.route("/<string:registration_id>/payment")
class RegistrationPayment(Resource):
    @ns.expect(payment_model)
    @ns.response(200, "Payment status updated")
    @ns.response(400, "Invalid payment status")
    @require_admin
    def put(self, registration_id):
        """Record a payment status change (admin)"""
        registration = _get_registration_or_404(registration_id)
        data = request.get_json() or {}
        payment_status = data.get("paymentStatus")
        if payment_status not in PAYMENT_STATUSES:
            ns.abort(400, "Invalid payment status")

        registration.payment_status = payment_status
        if payment_status == "paid":
            amount = data.get("amountPaid")
            try:
                registration.amount_paid = (
                    Decimal(str(amount)) if amount is not None else registration.event.price_nis
                )
            except InvalidOperation:
                ns.abort(400, "amountPaid must be a number")
            registration.payment_date = utcnow()
            if registration.status == "pending":
                registration.status = "paid"
        else:
            registration.amount_paid = None
            registration.payment_date = None
            if registration.status == "paid":
                registration.status = "pending"

        db.session.commit()
        return {"message": "Payment status updated", "registration": registration_to_dict(registration)}, 200


@ns.route("/<string:registration_id>/status")
class RegistrationStatus(Resource):
    @ns.expect(status_model)
    @ns.response(200, "Status updated")
    @ns.response(400, "Invalid status or event full")
    @require_admin
    def put(self, registration_id):
        """Change a registration's status (admin); seats follow the change"""
        registration = _get_registration_or_404(registration_id)
        status = (request.get_json() or {}).get("status")
        if status not in REGISTRATION_STATUSES:
            ns.abort(400, "Invalid status")

        store = SQLAlchemyRegistrationStore(db.session)
        was_active = registration.status in ACTIVE_REGISTRATION_STATUSES
        now_active = status in ACTIVE_REGISTRATION_STATUSES
        if was_active and not now_active:
            store.release_seat(registration.event_id)
        elif now_active and not was_active:
            event = event_from_row(db.session.get(Event, registration.event_id))
            if not store.reserve_seat(event.id, event.capacity):
                db.session.rollback()
                ns.abort(400, "Event is full")

        registration.status = status
        db.session.commit()
        return {"message": "Registration status updated", "registration": registration_to_dict(registration)}, 200


@ns.route("/<string:registration_id>/check-in")
class RegistrationCheckIn(Resource):
    @ns.response(200, "Checked in")
    @ns.response(403, "Not allowed")
    @require_auth
    def post(self, registration_id):
        """Mark the registrant as present (admin or assigned staff)"""
        registration = _get_registration_or_404(registration_id)
        if not can_manage_event(g.profile, registration.event):
            ns.abort(403, "You are not allowed to check in registrants for this event")

        registration.checked_in = True
        registration.checked_in_at = utcnow()
        registration.checked_in_by = g.identity.uid
        db.session.commit()
        return {"message": "Checked in", "registration": registration_to_dict(registration)}, 200

    @ns.response(200, "Check-in undone")
    @ns.response(403, "Not allowed")
    @require_auth
    def delete(self, registration_id):
        """Undo a check-in (admin or assigned staff)"""
        registration = _get_registration_or_404(registration_id)
        if not can_manage_event(g.profile, registration.event):
            ns.abort(403, "You are not allowed to check in registrants for this event")

        registration.checked_in = False
        registration.checked_in_at = None
        registration.checked_in_by = None
        db.session.commit()
        return {"message": "Check-in undone", "registration": registration_to_dict(registration)}, 200
