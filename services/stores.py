"""Store interfaces (repository pattern) for the registration core.

Stores must be swappable and return domain snapshots. The SQLAlchemy store
stages every write on the session; nothing is visible to other requests until
``commit`` runs, so one registration request lands atomically or not at all.
"""

from abc import ABC, abstractmethod

from sqlalchemy import func, select, update

from models import (
    ACTIVE_REGISTRATION_STATUSES,
    Bundle,
    BundleRegistration,
    Event,
    Registration,
    UserProfile,
    new_id,
    utcnow,
)
from services.entities import (
    BundleSnapshot,
    EventSnapshot,
    bundle_from_row,
    event_from_row,
)


class RegistrationStore(ABC):
    """Interface for registration persistence operations."""

    @abstractmethod
    def get_bundle(self, bundle_id: str) -> BundleSnapshot | None:
        """Return a bundle by ID, or None if not found."""
        ...

    @abstractmethod
    def get_events(self, event_ids) -> dict[str, EventSnapshot]:
        """Return the events that exist among ``event_ids``, keyed by ID."""
        ...

    @abstractmethod
    def count_active_registrations(self, event_id: str) -> int:
        """Count ``pending``/``paid`` registrations for an event."""
        ...

    @abstractmethod
    def has_active_registration(self, event_id: str, uid: str) -> bool:
        """Check if the purchaser already holds a live registration for an event."""
        ...

    @abstractmethod
    def has_active_bundle_registration(self, bundle_id: str, uid: str) -> bool:
        """Check if the purchaser already holds a live bundle registration."""
        ...

    @abstractmethod
    def reserve_seat(self, event_id: str, capacity: int) -> bool:
        """Claim one seat if the event is below capacity. Returns False when full."""
        ...

    @abstractmethod
    def release_seat(self, event_id: str) -> None:
        """Give back a seat claimed by ``reserve_seat``."""
        ...

    @abstractmethod
    def add_registration(self, **fields) -> str:
        """Stage a Registration and return its ID."""
        ...

    @abstractmethod
    def add_bundle_registration(self, **fields) -> str:
        """Stage a BundleRegistration and return its ID."""
        ...

    @abstractmethod
    def set_bundle_payment_intent(self, bundle_registration_id: str, intent_id: str) -> None:
        """Persist the payment intent ID on a committed bundle registration."""
        ...

    @abstractmethod
    def set_registration_payment_intent(self, registration_id: str, intent_id: str) -> None:
        """Persist the payment intent ID on a committed registration."""
        ...

    @abstractmethod
    def get_profile(self, uid: str):
        """Return the purchaser's profile, or None."""
        ...

    @abstractmethod
    def admin_emails(self) -> list[str]:
        """Return the email addresses of administrator profiles."""
        ...

    @abstractmethod
    def commit(self) -> None:
        ...

    @abstractmethod
    def rollback(self) -> None:
        ...


class SQLAlchemyRegistrationStore(RegistrationStore):
    def __init__(self, session) -> None:
        self._session = session

    def get_bundle(self, bundle_id):
        row = self._session.get(Bundle, bundle_id)
        return bundle_from_row(row) if row is not None else None

    def get_events(self, event_ids):
        ids = list(dict.fromkeys(event_ids))
        if not ids:
            return {}
        rows = self._session.query(Event).filter(Event.id.in_(ids)).all()
        return {row.id: event_from_row(row) for row in rows}

    def count_active_registrations(self, event_id):
        # Savepoint: a failed read must leave the request's staged writes usable
        with self._session.begin_nested():
            return self._session.execute(self._active_count_query(event_id)).scalar_one()

    def _active_count_query(self, event_id):
        return select(func.count(Registration.id)).where(
            Registration.event_id == event_id,
            Registration.status.in_(ACTIVE_REGISTRATION_STATUSES),
        )

    def has_active_registration(self, event_id, uid):
        return (
            self._session.query(Registration.id)
            .filter(
                Registration.event_id == event_id,
                Registration.uid == uid,
                Registration.status.in_(ACTIVE_REGISTRATION_STATUSES),
            )
            .first()
            is not None
        )

    def has_active_bundle_registration(self, bundle_id, uid):
        return (
            self._session.query(BundleRegistration.id)
            .filter(
                BundleRegistration.bundle_id == bundle_id,
                BundleRegistration.uid == uid,
                BundleRegistration.status.in_(ACTIVE_REGISTRATION_STATUSES),
            )
            .first()
            is not None
        )

    def reserve_seat(self, event_id, capacity):
        result = self._session.execute(
            update(Event)
            .where(Event.id == event_id, Event.reserved_seats < capacity)
            .values(reserved_seats=Event.reserved_seats + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def release_seat(self, event_id):
        self._session.execute(
            update(Event)
            .where(Event.id == event_id, Event.reserved_seats > 0)
            .values(reserved_seats=Event.reserved_seats - 1)
            .execution_options(synchronize_session=False)
        )

    def add_registration(self, **fields):
        now = utcnow()
        registration = Registration(
            id=new_id(), registered_at=now, created_at=now, **fields
        )
        self._session.add(registration)
        return registration.id

    def add_bundle_registration(self, **fields):
        fields.setdefault("id", new_id())
        bundle_registration = BundleRegistration(**fields)
        self._session.add(bundle_registration)
        self._session.flush()
        return bundle_registration.id

    def set_bundle_payment_intent(self, bundle_registration_id, intent_id):
        row = self._session.get(BundleRegistration, bundle_registration_id)
        if row is not None:
            row.payment_intent_id = intent_id
            self._session.commit()

    def set_registration_payment_intent(self, registration_id, intent_id):
        row = self._session.get(Registration, registration_id)
        if row is not None:
            row.payment_intent_id = intent_id
            self._session.commit()

    def get_profile(self, uid):
        return self._session.get(UserProfile, uid)

    def admin_emails(self):
        rows = self._session.query(UserProfile.email).filter_by(role="admin").all()
        return [email for (email,) in rows if email]

    def commit(self):
        self._session.commit()

    def rollback(self):
        self._session.rollback()
