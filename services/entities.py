"""Domain snapshots the registration core works on.

Stored rows are mapped into these frozen objects at the boundary, so the
eligibility and bundle logic never reads raw model fields. Rows carry a
``schema_version``: version 1 rows describe capacity and schedule with the
legacy ``capacity``/``date`` columns, version 2 rows use
``max_participants``/``start_at``. Each normalizer falls back to the other
column so a drifted row still resolves to one capacity and one time.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable

CURRENT_SCHEMA_VERSION = 2


@dataclass(frozen=True)
class EventSnapshot:
    """Registration-relevant view of an Event row."""

    id: str
    title: str
    status: str
    publish: bool
    scheduled_at: datetime | None
    capacity: int
    price: Decimal
    location: str = ""
    groups: tuple[str, ...] = ()


@dataclass(frozen=True)
class BundleSnapshot:
    """Purchasable view of a Bundle row."""

    id: str
    title: str
    description: str
    price: Decimal
    event_ids: tuple[str, ...]
    replacement_event_ids: tuple[str, ...]
    publish: bool
    status: str | None
    valid_until: datetime | None

    @property
    def is_available(self) -> bool:
        return bool(self.publish) and (not self.status or self.status == "active")

    def is_expired(self, now: datetime) -> bool:
        return self.valid_until is not None and self.valid_until < now


@dataclass(frozen=True)
class Purchaser:
    """Denormalized contact details copied onto every registration."""

    uid: str
    name: str
    email: str
    phone: str = ""


def parse_timestamp(value) -> datetime | None:
    """Return a naive UTC datetime, or None when the value is absent or unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _as_int(value) -> int:
    try:
        return int(value) if value else 0
    except (TypeError, ValueError):
        return 0


def _as_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


def _event_v1(row) -> EventSnapshot:
    return EventSnapshot(
        id=row.id,
        title=row.title or "",
        status=row.status or "active",
        publish=bool(row.publish),
        scheduled_at=parse_timestamp(row.date) or parse_timestamp(row.start_at),
        capacity=_as_int(row.max_participants) or _as_int(row.capacity),
        price=_as_decimal(row.price_nis),
        location=row.location_name or "",
        groups=tuple(row.groups or ()),
    )


def _event_v2(row) -> EventSnapshot:
    return EventSnapshot(
        id=row.id,
        title=row.title or "",
        status=row.status or "active",
        publish=bool(row.publish),
        scheduled_at=parse_timestamp(row.start_at) or parse_timestamp(row.date),
        capacity=_as_int(row.max_participants) or _as_int(row.capacity),
        price=_as_decimal(row.price_nis),
        location=row.location_name or "",
        groups=tuple(row.groups or ()),
    )


EVENT_NORMALIZERS: dict[int, Callable[..., EventSnapshot]] = {
    1: _event_v1,
    2: _event_v2,
}


def event_from_row(row) -> EventSnapshot:
    version = row.schema_version or CURRENT_SCHEMA_VERSION
    normalizer = EVENT_NORMALIZERS.get(version, EVENT_NORMALIZERS[CURRENT_SCHEMA_VERSION])
    return normalizer(row)


def bundle_from_row(row) -> BundleSnapshot:
    return BundleSnapshot(
        id=row.id,
        title=row.title or "",
        description=row.description or "",
        price=_as_decimal(row.price_nis),
        event_ids=tuple(row.event_ids or ()),
        replacement_event_ids=tuple(row.replacement_event_ids or ()),
        publish=bool(row.publish),
        status=row.status,
        valid_until=parse_timestamp(row.valid_until),
    )


def purchaser_from_profile(uid: str, email: str | None, profile) -> Purchaser:
    """Build the purchaser snapshot from the verified identity and profile."""
    email_local = email.split("@")[0] if email else ""
    name = ""
    if profile is not None:
        name = f"{profile.first_name or ''} {profile.last_name or ''}".strip()
    return Purchaser(
        uid=uid,
        name=name or email_local or "Bundle User",
        email=email or (profile.email if profile is not None else "") or "",
        phone=(profile.phone if profile is not None else "") or "",
    )
