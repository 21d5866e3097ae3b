from extensions import db
from datetime import datetime, timezone
import uuid

ACTIVE_REGISTRATION_STATUSES = ("pending", "paid")


def utcnow():
    # Naive UTC, the way every timestamp column is stored
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id():
    return uuid.uuid4().hex


class UserProfile(db.Model):
    __tablename__ = "profiles"

    uid = db.Column(db.String(64), primary_key=True, default=new_id)
    role = db.Column(db.String(20), nullable=False, default="student")
    first_name = db.Column(db.String(100), default="")
    last_name = db.Column(db.String(100), default="")
    email = db.Column(db.String(120), unique=True, nullable=False)
    phone = db.Column(db.String(20), default="")
    tz_id = db.Column(db.String(20), default="")
    dob = db.Column(db.String(20), default="")
    emergency = db.Column(db.String(120), default="")
    lang = db.Column(db.String(5), default="he")
    phone_verified = db.Column(db.Boolean, default=False)
    groups = db.Column(db.JSON, default=list)  # Hebrew letters, e.g. ["א", "ג"]
    password_hash = db.Column(db.String(255))

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    @property
    def full_name(self):
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class Event(db.Model):
    __tablename__ = "events"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    slug = db.Column(
        db.String(80),
        unique=True,
        nullable=False,
        default=lambda: str(uuid.uuid4())[:8],
    )
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    itinerary_md = db.Column(db.Text)

    start_at = db.Column(db.DateTime)
    end_at = db.Column(db.DateTime)
    date = db.Column(db.DateTime)  # legacy scheduling field (schema v1)

    location_name = db.Column(db.String(255), default="")
    lat = db.Column(db.Float)
    lng = db.Column(db.Float)

    max_participants = db.Column(db.Integer)
    capacity = db.Column(db.Integer)  # legacy capacity field (schema v1)
    reserved_seats = db.Column(db.Integer, nullable=False, default=0)

    price_nis = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    cover = db.Column(db.String(500))
    publish = db.Column(db.Boolean, default=False)
    status = db.Column(db.String(20), default="active")
    assigned_trainers = db.Column(db.JSON, default=list)
    groups = db.Column(db.JSON, default=list)
    schema_version = db.Column(db.Integer, nullable=False, default=2)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    completed_at = db.Column(db.DateTime)

    registrations = db.relationship("Registration", backref="event", lazy=True)


class Bundle(db.Model):
    __tablename__ = "bundles"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    price_nis = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    event_ids = db.Column(db.JSON, default=list)  # ordered
    replacement_event_ids = db.Column(db.JSON, default=list)  # ordered
    publish = db.Column(db.Boolean, default=False)
    status = db.Column(db.String(20), default="active")
    valid_until = db.Column(db.DateTime)
    created_by = db.Column(db.String(64))

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)


class Registration(db.Model):
    __tablename__ = "registrations"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    event_id = db.Column(db.String(32), db.ForeignKey("events.id"), nullable=False)
    uid = db.Column(db.String(64), nullable=False, index=True)

    status = db.Column(db.String(20), default="pending")  # pending, paid, cancelled, waitlist
    payment_status = db.Column(db.String(20), default="pending")  # pending, paid, free
    amount_paid = db.Column(db.Numeric(10, 2))
    payment_date = db.Column(db.DateTime)
    payment_intent_id = db.Column(db.String(120))

    user_name = db.Column(db.String(200), default="")
    user_email = db.Column(db.String(120), default="")
    user_phone = db.Column(db.String(20), default="")
    pickup = db.Column(db.Text, default="")
    medical = db.Column(db.Text, default="")
    notes = db.Column(db.Text, default="")

    bundle_id = db.Column(db.String(32), index=True)
    bundle_registration = db.Column(db.Boolean, default=False)
    bundle_registration_id = db.Column(db.String(32), index=True)

    checked_in = db.Column(db.Boolean, default=False)
    checked_in_at = db.Column(db.DateTime)
    checked_in_by = db.Column(db.String(64))

    registered_at = db.Column(db.DateTime, default=utcnow)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (db.Index("ix_registrations_event_status", "event_id", "status"),)


class BundleRegistration(db.Model):
    __tablename__ = "bundle_registrations"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    bundle_id = db.Column(db.String(32), nullable=False, index=True)
    uid = db.Column(db.String(64), nullable=False, index=True)

    status = db.Column(db.String(20), default="pending")  # pending, paid, cancelled
    payment_status = db.Column(db.String(20), default="pending")
    payment_intent_id = db.Column(db.String(120))
    amount_paid = db.Column(db.Numeric(10, 2))
    payment_date = db.Column(db.DateTime)

    event_registrations = db.Column(db.JSON, default=list)
    skipped_events = db.Column(db.JSON, default=list)
    registration_data = db.Column(db.JSON, default=dict)

    user_name = db.Column(db.String(200), default="")
    user_email = db.Column(db.String(120), default="")
    user_phone = db.Column(db.String(20), default="")
    bundle_title = db.Column(db.String(200), default="")
    bundle_price = db.Column(db.Numeric(10, 2))

    # "<bundle_id>:<uid>" while pending/paid, NULL once cancelled
    active_key = db.Column(db.String(100), unique=True)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)


class Announcement(db.Model):
    __tablename__ = "announcements"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    title = db.Column(db.String(200), nullable=False)
    content = db.Column(db.Text, nullable=False)
    target_groups = db.Column(db.JSON, default=list)  # group letters or ["ALL"]
    type = db.Column(db.String(20), default="info")  # info, warning, success, urgent
    active = db.Column(db.Boolean, default=True)
    expires_at = db.Column(db.DateTime)
    created_by = db.Column(db.String(64))

    email_sent = db.Column(db.Boolean, default=False)
    email_sent_at = db.Column(db.DateTime)
    email_stats = db.Column(db.JSON)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)


class WhatsAppGroupLink(db.Model):
    __tablename__ = "whatsapp_groups"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    group = db.Column(db.String(20), unique=True, nullable=False)
    group_name = db.Column(db.String(120), nullable=False)
    whatsapp_url = db.Column(db.String(500), nullable=False)
    is_active = db.Column(db.Boolean, default=True)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)


class FallenSoldier(db.Model):
    __tablename__ = "fallen_soldiers"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    slug = db.Column(db.String(120), unique=True, nullable=False)
    name = db.Column(db.String(120), nullable=False)
    hebrew_name = db.Column(db.String(120), nullable=False)
    age = db.Column(db.Integer)
    unit = db.Column(db.String(120))
    rank = db.Column(db.String(60))
    date_of_falling = db.Column(db.String(40), default="")
    image_url = db.Column(db.String(500))
    parent_text = db.Column(db.Text, default="")
    short_description = db.Column(db.Text, default="")
    order = db.Column(db.Integer, default=0)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)


class MediaItem(db.Model):
    __tablename__ = "media"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    owner_uid = db.Column(db.String(64))
    type = db.Column(db.String(20), default="image")  # image, video, youtube
    title = db.Column(db.String(200), default="")
    src_url = db.Column(db.String(500), nullable=False)
    thumb_url = db.Column(db.String(500))
    category = db.Column(db.String(60), default="gallery", index=True)
    tags = db.Column(db.JSON, default=list)

    created_at = db.Column(db.DateTime, default=utcnow)
