"""Tests for the post-commit notification dispatcher and its handlers."""

from services.notification_handlers import (
    BUNDLE_REGISTRATION_COMPLETED,
    REGISTRATION_CREATED,
    build_handlers,
)
from services.notifications import NotificationDispatcher


class Flaky:
    def __init__(self, failures):
        self.failures = failures
        self.calls = 0
        self.__name__ = "flaky"

    def __call__(self, payload):
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError("temporary failure")


class RecordingSms:
    def __init__(self):
        self.sent = []

    def send(self, to, body):
        self.sent.append((to, body))
        return True


def bundle_payload():
    return {
        "bundleRegistrationId": "br1",
        "purchaser": {"uid": "u1", "name": "Noa Levi", "email": "noa@example.com", "phone": "050"},
        "bundle": {"id": "b1", "title": "Prep", "price": "450"},
        "eventRegistrations": [
            {"eventId": "e1", "eventTitle": "Drill", "status": "registered", "scheduledAt": None, "location": ""}
        ],
        "skippedEvents": [{"originalEventId": "e2", "reason": "full", "eventTitle": "March"}],
        "adminEmails": ["admin@example.com"],
    }


class TestNotificationDispatcher:
    def test_retries_until_success(self, caplog):
        handler = Flaky(failures=2)
        dispatcher = NotificationDispatcher({"x": [handler]}, max_attempts=3, retry_delay=0, run_async=False)

        dispatcher.publish("x", {})

        assert handler.calls == 3
        assert "attempt 1/3" in caplog.text

    def test_gives_up_and_logs(self, caplog):
        handler = Flaky(failures=5)
        dispatcher = NotificationDispatcher({"x": [handler]}, max_attempts=2, retry_delay=0, run_async=False)

        dispatcher.publish("x", {})

        assert handler.calls == 2
        assert "Notification handler flaky failed for x after 2 attempts" in caplog.text

    def test_one_failing_handler_does_not_block_others(self):
        delivered = []
        dispatcher = NotificationDispatcher(
            {"x": [Flaky(failures=9), delivered.append]}, max_attempts=1, run_async=False
        )

        dispatcher.publish("x", {"n": 1})

        assert delivered == [{"n": 1}]

    def test_async_worker(self):
        delivered = []
        dispatcher = NotificationDispatcher({"x": [delivered.append]}, run_async=True)

        dispatcher.publish("x", {"n": 1})
        dispatcher.publish("x", {"n": 2})
        dispatcher.join()

        assert delivered == [{"n": 1}, {"n": 2}]

    def test_unknown_type_is_ignored(self):
        NotificationDispatcher(run_async=False).publish("nothing", {})


class TestNotificationHandlers:
    def test_bundle_completed_emails_purchaser_and_admins(self, mailer):
        sms = RecordingSms()
        handlers = build_handlers(mailer, sms, admin_sms_to="+972500000000")

        for handler in handlers[BUNDLE_REGISTRATION_COMPLETED]:
            handler(bundle_payload())

        assert mailer.recipients() == ["noa@example.com", "admin@example.com"]
        admin_template = mailer.sent[1][1]
        assert admin_template.subject == "הרשמה חדשה לחבילה - Prep"
        assert "br1" in admin_template.text
        assert sms.sent[0][0] == "+972500000000"
        assert "Prep" in sms.sent[0][1]

    def test_no_admins_no_admin_email(self, mailer):
        payload = bundle_payload()
        payload["adminEmails"] = []

        for handler in build_handlers(mailer)[BUNDLE_REGISTRATION_COMPLETED]:
            handler(payload)

        assert mailer.recipients() == ["noa@example.com"]

    def test_registration_created_email(self, mailer):
        for handler in build_handlers(mailer)[REGISTRATION_CREATED]:
            handler(
                {
                    "eventTitle": "Drill",
                    "scheduledAt": None,
                    "location": "",
                    "status": "waitlist",
                    "userName": "Noa",
                    "userEmail": "noa@example.com",
                }
            )

        assert mailer.sent[0][1].subject == "אישור הרשמה - Drill"
