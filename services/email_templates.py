# backend/services/email_templates.py
"""Hebrew email templates, rendered from services/templates/<name>.txt|.html."""
import os
from datetime import datetime

from jinja2 import Environment, FileSystemLoader, select_autoescape

from services.email_service import EmailTemplate
from services.entities import parse_timestamp

TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates")

_env = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)

HEBREW_WEEKDAYS = ["שני", "שלישי", "רביעי", "חמישי", "שישי", "שבת", "ראשון"]
HEBREW_MONTHS = [
    "ינואר", "פברואר", "מרץ", "אפריל", "מאי", "יוני",
    "יולי", "אוגוסט", "ספטמבר", "אוקטובר", "נובמבר", "דצמבר",
]

ANNOUNCEMENT_TYPE_LABELS = {
    "info": "מידע",
    "warning": "אזהרה",
    "success": "הצלחה",
    "urgent": "דחוף",
}


def format_event_date(value):
    """Long Hebrew date, e.g. "יום שלישי, 14 באוקטובר 2025, 18:00"."""
    moment = value if isinstance(value, datetime) else parse_timestamp(value)
    if moment is None:
        return "תאריך לא זמין"
    weekday = HEBREW_WEEKDAYS[moment.weekday()]
    month = HEBREW_MONTHS[moment.month - 1]
    return f"יום {weekday}, {moment.day} ב{month} {moment.year}, {moment:%H:%M}"


SKIP_REASON_LABELS = {
    "completed": "האירוע הסתיים",
    "cancelled": "האירוע בוטל",
    "pastDate": "מועד האירוע עבר",
    "missingDate": "לאירוע אין תאריך",
    "full": "האירוע מלא",
    "error": "שגיאה בבדיקת האירוע",
    "notFound": "האירוע לא נמצא",
    "alreadyRegistered": "כבר רשום לאירוע",
}


def format_skip_reason(reason):
    return SKIP_REASON_LABELS.get(reason, reason)


_env.filters["event_date"] = format_event_date
_env.filters["skip_reason"] = format_skip_reason


def render(name, subject, **context):
    text = _env.get_template(f"{name}.txt").render(**context)
    html = _env.get_template(f"{name}.html").render(**context)
    return EmailTemplate(subject=subject, text=text, html=html)


def bundle_registration(bundle_title, events, skipped_events, price, status="pending"):
    return render(
        "bundle_registration",
        f"אישור הרשמה לחבילה - {bundle_title}",
        bundle_title=bundle_title,
        events=events,
        skipped_events=skipped_events,
        price=price,
        status=status,
    )


def admin_bundle_registration(
    user_name, user_email, user_phone, bundle_title, price, events, skipped_events, bundle_registration_id
):
    return render(
        "admin_bundle_registration",
        f"הרשמה חדשה לחבילה - {bundle_title}",
        user_name=user_name,
        user_email=user_email,
        user_phone=user_phone,
        bundle_title=bundle_title,
        price=price,
        events=events,
        skipped_events=skipped_events,
        bundle_registration_id=bundle_registration_id,
    )


def event_registration(event_title, event_date, event_location, status="pending"):
    return render(
        "event_registration",
        f"אישור הרשמה - {event_title}",
        event_title=event_title,
        event_date=event_date,
        event_location=event_location or "מיקום לא זמין",
        status=status,
    )


def welcome_user(user_name):
    return render("welcome_user", "ברוכים הבאים לבישבילם!", user_name=user_name)


def admin_new_user(user_name, user_email, user_phone, user_groups, created_at):
    return render(
        "admin_new_user",
        f"משתמש חדש נרשם - {user_name}",
        user_name=user_name,
        user_email=user_email,
        user_phone=user_phone,
        user_groups=user_groups,
        created_at=created_at,
    )


def announcement(title, content, announcement_type="info"):
    label = ANNOUNCEMENT_TYPE_LABELS.get(announcement_type, ANNOUNCEMENT_TYPE_LABELS["info"])
    return render(
        "announcement",
        f"{label}: {title}",
        title=title,
        content=content,
        announcement_type=announcement_type,
        type_label=label,
    )


def diagnostic_email():
    return render("test_email", "בדיקת מערכת המייל - בישבילם")
