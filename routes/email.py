# backend/routes/email.py
import logging

from flask import current_app, g, request
from flask_restx import Namespace, Resource, fields

from services import email_templates
from services.container import current_collaborators
from services.email_service import EmailRecipient
from services.errors import IntegrationError
from utils.auth import require_admin

logger = logging.getLogger(__name__)

ns = Namespace("email", description="Email diagnostics", path="/api/email")

test_email_model = ns.model(
    "TestEmail", {"to": fields.String(example="admin@example.com")}
)


@ns.route("/config")
class EmailConfig(Resource):
    @require_admin
    def get(self):
        """Report whether outbound email is configured (admin)"""
        mailer = current_collaborators().mailer
        return {
            "configured": bool(mailer.is_configured),
            "mode": "mailjet" if mailer.is_configured else "simulation",
            "sender": current_app.config.get("MAIL_FROM"),
            "adminEmails": len(current_app.config.get("ADMIN_EMAILS") or []),
        }, 200


@ns.route("/test")
class TestEmail(Resource):
    @ns.expect(test_email_model)
    @ns.response(200, "Sent")
    @ns.response(502, "Delivery failed")
    @require_admin
    def post(self):
        """Send the diagnostic email, to the caller unless "to" is given (admin)"""
        to = (request.get_json(silent=True) or {}).get("to") or (g.profile.email if g.profile else None)
        if not to:
            ns.abort(400, "Recipient email is required")

        mailer = current_collaborators().mailer
        try:
            mailer.send(EmailRecipient(email=to), email_templates.diagnostic_email())
        except IntegrationError as e:
            logger.error("Test email to %s failed: %s", to, e)
            raise
        return {"message": f"Test email sent to {to}", "simulated": not mailer.is_configured}, 200
