# backend/services/event_registration.py
"""Single-event registration: a pending seat, or the waitlist once the event is full."""
import logging
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError

from models import utcnow
from services.eligibility import FULL, EligibilityEvaluator
from services.entities import purchaser_from_profile
from services.errors import (
    ConflictError,
    IntegrationError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from services.notification_handlers import REGISTRATION_CREATED

logger = logging.getLogger(__name__)


class EventRegistrationService:
    def __init__(self, store, identity, payments=None, dispatcher=None, clock=utcnow, currency="ils", admin_emails=()):
        self._store = store
        self._identity = identity
        self._payments = payments
        self._dispatcher = dispatcher
        self._clock = clock
        self._currency = currency
        self._admin_emails = list(admin_emails)
        self._evaluator = EligibilityEvaluator(store, clock)

    def register(self, token, registration_data):
        if not token:
            raise ValidationError("Token required")
        registration_data = registration_data or {}
        event_id = registration_data.get("eventId")
        if not event_id:
            raise ValidationError("eventId required")

        identity = self._identity.verify(token)
        purchaser = purchaser_from_profile(
            identity.uid, identity.email, self._store.get_profile(identity.uid)
        )

        event = self._store.get_events([event_id]).get(event_id)
        if event is None:
            raise NotFoundError("Event not found")
        if not event.publish:
            raise ValidationError("Event not available")

        verdict = self._evaluator.check(event)
        if not verdict.eligible and verdict.reason != FULL:
            raise ValidationError(f"Event is not open for registration ({verdict.reason})")

        if self._store.has_active_registration(event.id, purchaser.uid):
            raise ConflictError("Already registered for this event")

        status = "waitlist"
        try:
            if verdict.eligible and self._store.reserve_seat(event.id, event.capacity):
                status = "pending"
            registration_id = self._store.add_registration(
                event_id=event.id,
                uid=purchaser.uid,
                status=status,
                payment_status="pending",
                user_name=registration_data.get("userName") or purchaser.name,
                user_email=registration_data.get("userEmail") or purchaser.email,
                user_phone=registration_data.get("userPhone") or purchaser.phone,
                pickup=registration_data.get("pickup") or "",
                medical=registration_data.get("medical") or "",
                notes=registration_data.get("notes") or "",
            )
            self._store.commit()
        except SQLAlchemyError as exc:
            self._store.rollback()
            logger.exception("Registration write failed for event %s", event.id)
            raise PersistenceError("Failed to create registration", details=str(exc))

        logger.info("Registration %s for event %s is %s", registration_id, event.id, status)

        client_secret = None
        if status == "pending":
            client_secret = self._start_payment(event, purchaser, registration_id)

        if self._dispatcher is not None:
            try:
                self._dispatcher.publish(
                    REGISTRATION_CREATED,
                    {
                        "registrationId": registration_id,
                        "eventId": event.id,
                        "eventTitle": event.title,
                        "scheduledAt": event.scheduled_at,
                        "location": event.location,
                        "status": status,
                        "userName": purchaser.name,
                        "userEmail": purchaser.email,
                        "adminEmails": self._admin_emails or self._store.admin_emails(),
                    },
                )
            except Exception:
                logger.exception("Could not queue notifications for registration %s", registration_id)

        return {"registrationId": registration_id, "status": status, "clientSecret": client_secret}

    def _start_payment(self, event, purchaser, registration_id):
        if self._payments is None or not self._payments.is_configured or event.price <= 0:
            return None
        try:
            intent = self._payments.create_payment_intent(
                amount=int(Decimal(event.price) * 100),
                currency=self._currency,
                metadata={"registrationId": registration_id, "eventId": event.id, "uid": purchaser.uid},
            )
        except IntegrationError as exc:
            logger.warning("Payment intent failed for registration %s: %s", registration_id, exc)
            return None

        try:
            self._store.set_registration_payment_intent(registration_id, intent.id)
        except SQLAlchemyError:
            self._store.rollback()
            logger.exception("Could not store payment intent %s on %s", intent.id, registration_id)
        return intent.client_secret
