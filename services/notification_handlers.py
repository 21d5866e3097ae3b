# backend/services/notification_handlers.py
from typing import Callable

from services import email_templates
from services.email_service import EmailRecipient

BUNDLE_REGISTRATION_COMPLETED = "bundle_registration.completed"
REGISTRATION_CREATED = "registration.created"
USER_CREATED = "user.created"


def _admins(payload):
    return [EmailRecipient(email=email) for email in payload.get("adminEmails") or []]


def build_handlers(mailer, sms=None, admin_sms_to=None) -> dict[str, list[Callable[[dict], object]]]:
    """Map each notification type to the callables that deliver it."""

    def bundle_purchaser_email(data):
        purchaser = data["purchaser"]
        if not purchaser.get("email"):
            return
        mailer.send(
            EmailRecipient(email=purchaser["email"], name=purchaser.get("name")),
            email_templates.bundle_registration(
                data["bundle"]["title"],
                data["eventRegistrations"],
                data["skippedEvents"],
                data["bundle"]["price"],
                "pending",
            ),
        )

    def bundle_admin_email(data):
        admins = _admins(data)
        if not admins:
            return
        purchaser = data["purchaser"]
        mailer.send(
            admins,
            email_templates.admin_bundle_registration(
                purchaser.get("name"),
                purchaser.get("email"),
                purchaser.get("phone"),
                data["bundle"]["title"],
                data["bundle"]["price"],
                data["eventRegistrations"],
                data["skippedEvents"],
                data["bundleRegistrationId"],
            ),
        )

    def bundle_admin_sms(data):
        if sms is None or not admin_sms_to:
            return
        sms.send(
            admin_sms_to,
            f"הרשמה חדשה לחבילה {data['bundle']['title']}: "
            f"{data['purchaser'].get('name')} "
            f"({len(data['eventRegistrations'])} אירועים)",
        )

    def registration_email(data):
        if not data.get("userEmail"):
            return
        mailer.send(
            EmailRecipient(email=data["userEmail"], name=data.get("userName")),
            email_templates.event_registration(
                data["eventTitle"],
                data.get("scheduledAt"),
                data.get("location"),
                data.get("status", "pending"),
            ),
        )

    def registration_admin_sms(data):
        if sms is None or not admin_sms_to:
            return
        sms.send(
            admin_sms_to,
            f"הרשמה חדשה: {data.get('userName')} - {data['eventTitle']}",
        )

    def welcome_email(data):
        mailer.send(
            EmailRecipient(email=data["userEmail"], name=data.get("userName")),
            email_templates.welcome_user(data.get("userName") or data["userEmail"]),
        )

    def new_user_admin_email(data):
        admins = _admins(data)
        if not admins:
            return
        mailer.send(
            admins,
            email_templates.admin_new_user(
                data.get("userName"),
                data["userEmail"],
                data.get("userPhone"),
                data.get("userGroups") or [],
                data.get("createdAt"),
            ),
        )

    return {
        BUNDLE_REGISTRATION_COMPLETED: [
            bundle_purchaser_email,
            bundle_admin_email,
            bundle_admin_sms,
        ],
        REGISTRATION_CREATED: [registration_email, registration_admin_sms],
        USER_CREATED: [welcome_email, new_user_admin_email],
    }
