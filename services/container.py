# backend/services/container.py
import logging
from dataclasses import dataclass

from flask import current_app

from extensions import db
from services.stores import SQLAlchemyRegistrationStore

logger = logging.getLogger(__name__)


@dataclass
class Collaborators:
    """External collaborators built once from the app config."""

    identity: object
    mailer: object
    payments: object
    sms: object
    dispatcher: object


def current_collaborators() -> Collaborators:
    return current_app.extensions["collaborators"]


def publish(event_type, payload):
    """Queue a notification with the admin recipients resolved now."""
    try:
        payload.setdefault(
            "adminEmails",
            list(current_app.config.get("ADMIN_EMAILS") or [])
            or SQLAlchemyRegistrationStore(db.session).admin_emails(),
        )
        current_collaborators().dispatcher.publish(event_type, payload)
    except Exception:
        logger.exception("Could not queue %s notification", event_type)
