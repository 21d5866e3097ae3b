"""Bundle registration workflow.

Services:
- Depend only on interfaces (stores and collaborators)
- Validate the request and the bundle's purchasability
- Orchestrate eligibility, replacement, writes, payment and notification

One request either commits every registration plus the aggregate record, or
nothing. Payment and notification run after the commit and never change the
outcome of the request.
"""

import logging
from decimal import Decimal

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import new_id, utcnow
from services.eligibility import (
    ALREADY_REGISTERED,
    FULL,
    NOT_FOUND,
    EligibilityEvaluator,
    ReplacementResolver,
)
from services.entities import purchaser_from_profile
from services.errors import (
    ConflictError,
    IntegrationError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from services.notification_handlers import BUNDLE_REGISTRATION_COMPLETED

logger = logging.getLogger(__name__)

DUPLICATE_BUNDLE_MESSAGE = "User already registered for this bundle"


def _free_text(registration_data, key):
    value = registration_data.get(key) if registration_data else None
    return value or ""


def _is_active_key_violation(exc):
    # SQLite and PostgreSQL both name the column in the violation message
    return "active_key" in str(exc.orig)


class RegistrationWriter:
    """Stages one pending Registration per accepted event."""

    def __init__(self, store) -> None:
        self._store = store

    def write(self, event, original_event, purchaser, bundle, bundle_registration_id, registration_data):
        registration_id = self._store.add_registration(
            event_id=event.id,
            uid=purchaser.uid,
            status="pending",
            payment_status="pending",
            user_name=purchaser.name,
            user_email=purchaser.email,
            user_phone=purchaser.phone,
            pickup=_free_text(registration_data, "pickup"),
            medical=_free_text(registration_data, "medical"),
            notes=_free_text(registration_data, "notes"),
            bundle_id=bundle.id,
            bundle_registration=True,
            bundle_registration_id=bundle_registration_id,
        )
        return {
            "eventId": event.id,
            "registrationId": registration_id,
            "status": "registered" if event.id == original_event.id else "replaced",
            "eventTitle": event.title,
            "originalEventId": original_event.id,
        }


class BundleAggregator:
    """Stages the BundleRegistration that summarizes one purchase."""

    def __init__(self, store) -> None:
        self._store = store

    def write(self, bundle_registration_id, bundle, purchaser, outcomes, skipped, registration_data):
        return self._store.add_bundle_registration(
            id=bundle_registration_id,
            bundle_id=bundle.id,
            uid=purchaser.uid,
            status="pending",
            payment_status="pending",
            event_registrations=outcomes,
            skipped_events=skipped,
            registration_data=dict(registration_data or {}),
            user_name=purchaser.name,
            user_email=purchaser.email,
            user_phone=purchaser.phone,
            bundle_title=bundle.title,
            bundle_price=bundle.price,
            active_key=f"{bundle.id}:{purchaser.uid}",
        )


class BundleRegistrationService:
    """Registers a purchaser for every event of a bundle."""

    def __init__(
        self,
        store,
        identity,
        payments=None,
        dispatcher=None,
        clock=utcnow,
        currency="ils",
        admin_emails=(),
    ) -> None:
        self._store = store
        self._identity = identity
        self._payments = payments
        self._dispatcher = dispatcher
        self._clock = clock
        self._currency = currency
        self._admin_emails = list(admin_emails)
        self._evaluator = EligibilityEvaluator(store, clock)
        self._resolver = ReplacementResolver(self._evaluator)
        self._writer = RegistrationWriter(store)
        self._aggregator = BundleAggregator(store)

    def register(self, token, bundle_id, registration_data=None) -> dict:
        """Run the full workflow and return the response body.

        Raises:
            ValidationError: Missing input, or the bundle cannot be bought.
            AuthenticationError: The token does not verify.
            NotFoundError: The bundle does not exist.
            ConflictError: The purchaser already holds this bundle.
            PersistenceError: A store read or write failed.
        """
        if not token or not bundle_id:
            raise ValidationError("Token and bundleId required")
        registration_data = registration_data or {}

        identity = self._identity.verify(token)
        bundle_registration_id = new_id()
        try:
            purchaser, bundle = self._load(identity, bundle_id)
            outcomes, skipped = self._register_events(
                bundle, purchaser, bundle_registration_id, registration_data
            )
            self._aggregator.write(
                bundle_registration_id, bundle, purchaser, outcomes, skipped, registration_data
            )
            self._store.commit()
        except IntegrityError as exc:
            self._store.rollback()
            if not _is_active_key_violation(exc):
                logger.exception("Bundle registration write failed for bundle %s", bundle_id)
                raise PersistenceError("Failed to create bundle registration", details=str(exc))
            logger.warning(
                "Concurrent duplicate bundle registration for %s by %s", bundle_id, identity.uid
            )
            raise ConflictError(DUPLICATE_BUNDLE_MESSAGE)
        except SQLAlchemyError as exc:
            self._store.rollback()
            logger.exception("Bundle registration failed for bundle %s", bundle_id)
            raise PersistenceError("Failed to create bundle registration", details=str(exc))

        logger.info(
            "Bundle registration %s: %d registered, %d skipped",
            bundle_registration_id,
            len(outcomes),
            len(skipped),
        )

        client_secret = self._start_payment(bundle, purchaser, bundle_registration_id)
        self._notify(bundle, purchaser, bundle_registration_id, outcomes, skipped)

        message = (
            f'Successfully registered for {len(outcomes)} events in bundle "{bundle.title}"'
        )
        if skipped:
            message += f" ({len(skipped)} events skipped)"

        return {
            "bundleRegistrationId": bundle_registration_id,
            "eventRegistrations": outcomes,
            "skippedEvents": skipped,
            "status": "pending",
            "message": message,
            "clientSecret": client_secret,
        }

    def _load(self, identity, bundle_id):
        """Return ``(purchaser, bundle)`` once the bundle is known to be purchasable."""
        purchaser = purchaser_from_profile(
            identity.uid, identity.email, self._store.get_profile(identity.uid)
        )

        bundle = self._store.get_bundle(bundle_id)
        if bundle is None:
            raise NotFoundError("Bundle not found")
        if not bundle.is_available:
            raise ValidationError("Bundle not available")
        if bundle.is_expired(self._clock()):
            raise ValidationError("Bundle has expired")
        if not bundle.event_ids:
            raise ValidationError("No events found in bundle")
        if self._store.has_active_bundle_registration(bundle.id, purchaser.uid):
            raise ConflictError(DUPLICATE_BUNDLE_MESSAGE)
        return purchaser, bundle

    def _register_events(self, bundle, purchaser, bundle_registration_id, registration_data):
        primaries = self._store.get_events(bundle.event_ids)
        pool_by_id = self._store.get_events(bundle.replacement_event_ids)
        pool = [pool_by_id[i] for i in bundle.replacement_event_ids if i in pool_by_id]

        outcomes = []
        skipped = []
        taken = set()

        for event_id in bundle.event_ids:
            event = primaries.get(event_id)
            if event is None:
                skipped.append({"originalEventId": event_id, "reason": NOT_FOUND, "eventTitle": ""})
                continue

            if event.id in taken or self._store.has_active_registration(event.id, purchaser.uid):
                skipped.append(
                    {"originalEventId": event.id, "reason": ALREADY_REGISTERED, "eventTitle": event.title}
                )
                continue

            target, reason = self._claim(event, pool, taken, purchaser.uid)
            if target is None:
                skipped.append({"originalEventId": event.id, "reason": reason, "eventTitle": event.title})
                continue

            taken.add(target.id)
            outcomes.append(
                self._writer.write(
                    target, event, purchaser, bundle, bundle_registration_id, registration_data
                )
            )

        return outcomes, skipped

    def _claim(self, event, pool, taken, uid):
        """Return ``(event_to_register, skip_reason)`` with a seat already held."""
        verdict = self._evaluator.check(event)
        if verdict.eligible:
            if self._store.reserve_seat(event.id, event.capacity):
                return event, None
            reason = FULL
        else:
            reason = verdict.reason

        exclude = set(taken)
        exclude.add(event.id)
        while True:
            candidate = self._resolver.resolve(pool, exclude)
            if candidate is None:
                return None, reason
            exclude.add(candidate.id)
            if self._store.has_active_registration(candidate.id, uid):
                continue
            if self._store.reserve_seat(candidate.id, candidate.capacity):
                return candidate, reason

    def _start_payment(self, bundle, purchaser, bundle_registration_id):
        if self._payments is None or not self._payments.is_configured:
            return None
        if bundle.price <= 0:
            return None

        amount = int(Decimal(bundle.price) * 100)
        try:
            intent = self._payments.create_payment_intent(
                amount=amount,
                currency=self._currency,
                metadata={
                    "bundleRegistrationId": bundle_registration_id,
                    "bundleId": bundle.id,
                    "uid": purchaser.uid,
                },
            )
        except IntegrationError as exc:
            logger.warning(
                "Payment intent failed for bundle registration %s: %s", bundle_registration_id, exc
            )
            return None

        try:
            self._store.set_bundle_payment_intent(bundle_registration_id, intent.id)
        except SQLAlchemyError:
            self._store.rollback()
            logger.exception(
                "Could not store payment intent %s on %s", intent.id, bundle_registration_id
            )
        return intent.client_secret

    def _notify(self, bundle, purchaser, bundle_registration_id, outcomes, skipped):
        if self._dispatcher is None:
            return
        try:
            events = self._store.get_events([o["eventId"] for o in outcomes])
            payload = {
                "bundleRegistrationId": bundle_registration_id,
                "purchaser": {
                    "uid": purchaser.uid,
                    "name": purchaser.name,
                    "email": purchaser.email,
                    "phone": purchaser.phone,
                },
                "bundle": {"id": bundle.id, "title": bundle.title, "price": str(bundle.price)},
                "eventRegistrations": [
                    {
                        "eventId": o["eventId"],
                        "eventTitle": o["eventTitle"],
                        "status": o["status"],
                        "scheduledAt": events[o["eventId"]].scheduled_at
                        if o["eventId"] in events
                        else None,
                        "location": events[o["eventId"]].location if o["eventId"] in events else "",
                    }
                    for o in outcomes
                ],
                "skippedEvents": list(skipped),
                "adminEmails": self._admin_emails or self._store.admin_emails(),
            }
            self._dispatcher.publish(BUNDLE_REGISTRATION_COMPLETED, payload)
        except Exception:
            logger.exception(
                "Could not queue notifications for bundle registration %s", bundle_registration_id
            )
