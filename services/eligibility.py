# backend/services/eligibility.py
import logging
from dataclasses import dataclass
from datetime import datetime

from models import utcnow
from services.entities import EventSnapshot

logger = logging.getLogger(__name__)

ELIGIBLE = "eligible"

# Ineligibility reasons reported in skippedEvents
COMPLETED = "completed"
CANCELLED = "cancelled"
MISSING_DATE = "missingDate"
PAST_DATE = "pastDate"
FULL = "full"
ERROR = "error"
NOT_FOUND = "notFound"
ALREADY_REGISTERED = "alreadyRegistered"


@dataclass(frozen=True)
class Eligibility:
    eligible: bool
    reason: str | None = None


def evaluate_eligibility(event: EventSnapshot, active_count: int, now: datetime) -> Eligibility:
    """Decide whether ``event`` can take one more registrant.

    Checks run in a fixed order so the first failing rule names the reason:
    lifecycle status, a resolvable schedule, a future schedule, then capacity.
    """
    if event.status == COMPLETED:
        return Eligibility(False, COMPLETED)
    if event.status == CANCELLED:
        return Eligibility(False, CANCELLED)

    if event.scheduled_at is None:
        return Eligibility(False, MISSING_DATE)
    if event.scheduled_at <= now:
        return Eligibility(False, PAST_DATE)

    if active_count >= event.capacity:
        return Eligibility(False, FULL)

    return Eligibility(True)


class EligibilityEvaluator:
    """Evaluates events against live registration counts from the store."""

    def __init__(self, store, clock=utcnow) -> None:
        self._store = store
        self._clock = clock

    def check(self, event: EventSnapshot) -> Eligibility:
        try:
            count = self._store.count_active_registrations(event.id)
            return evaluate_eligibility(event, count, self._clock())
        except Exception:
            # A broken read for one event must not abort the whole bundle
            logger.exception("Eligibility check failed for event %s", event.id)
            return Eligibility(False, ERROR)


class ReplacementResolver:
    """First-fit search over a bundle's ordered replacement pool."""

    def __init__(self, evaluator: EligibilityEvaluator) -> None:
        self._evaluator = evaluator

    def resolve(self, pool, exclude=frozenset()) -> EventSnapshot | None:
        for candidate in pool:
            if candidate.id in exclude:
                continue
            if self._evaluator.check(candidate).eligible:
                return candidate
        return None
