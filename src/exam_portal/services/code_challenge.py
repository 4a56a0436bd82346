"""Verification codes for staged registrations.

Owns the stage record in the expiring store: issuing, checking and re-sending
the 6-digit code, the attempt counter that locks a stage out, and the per-email
send counters that rate-limit delivery.
"""

import hashlib
import hmac
import logging
import secrets
from datetime import datetime
from typing import Callable, Optional

from pydantic import ValidationError

from exam_portal.backends.expiring_store import KeyedExpiringStore
from exam_portal.config import config
from exam_portal.models.staged_registration import (
    ApplicantSubmission,
    StagedRegistration,
    normalize_email,
)
from exam_portal.services.outcomes import ErrorKind, StageOutcome, VerifyOutcome
from exam_portal.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

STAGE_KEY_PREFIX = "reg:pending:"
RATE_KEY_PREFIX = "rate:"


def generate_code() -> str:
    """Uniform 6-digit code from the OS CSPRNG, zero padded."""
    return f"{secrets.randbelow(1_000_000):06d}"


def stage_key(email: str) -> str:
    return f"{STAGE_KEY_PREFIX}{normalize_email(email)}"


def rate_key(email: str, resend: bool = False) -> str:
    # Hashed so raw addresses never appear in counter keys
    digest = hashlib.sha256(normalize_email(email).encode()).hexdigest()
    key = f"{RATE_KEY_PREFIX}{digest}"
    return f"{key}:resend" if resend else key


def codes_match(expected: str, submitted: str) -> bool:
    return hmac.compare_digest(expected.encode(), submitted.strip().encode())


class CodeChallenge:
    """
    Issue, verify and re-send codes for staged registrations.

    Every send (first code and re-sends) counts against ``begin_send_ceiling``
    per rate window; re-sends additionally count against ``resend_ceiling``.
    A stage accepts ``max_attempts`` wrong codes; the next wrong one deletes it.
    """

    def __init__(
        self,
        store: KeyedExpiringStore,
        clock: Callable[[], datetime] = utcnow,
        max_attempts: Optional[int] = None,
        stage_ttl_seconds: Optional[int] = None,
        rate_window_seconds: Optional[int] = None,
        begin_send_ceiling: Optional[int] = None,
        resend_ceiling: Optional[int] = None,
    ):
        self.store = store
        self._clock = clock
        self.max_attempts = (
            max_attempts if max_attempts is not None else config["max_verify_attempts"]
        )
        self.stage_ttl_seconds = stage_ttl_seconds or config["stage_ttl_minutes"] * 60
        self.rate_window_seconds = (
            rate_window_seconds or config["rate_window_minutes"] * 60
        )
        self.begin_send_ceiling = begin_send_ceiling or config["begin_send_ceiling"]
        self.resend_ceiling = resend_ceiling or config["resend_ceiling"]

    # Stage persistence
    def load_stage(self, email: str) -> Optional[StagedRegistration]:
        raw = self.store.get(stage_key(email))
        if raw is None:
            return None
        try:
            return StagedRegistration.model_validate(raw)
        except ValidationError as e:
            logger.error(f"Discarding unreadable staged registration: {e}")
            self.store.delete(stage_key(email))
            return None

    def save_stage(self, stage: StagedRegistration) -> None:
        """Write the stage with a fresh TTL."""
        self.store.put(
            stage_key(stage.email),
            stage.model_dump(mode="json"),
            self.stage_ttl_seconds,
        )

    def discard(self, email: str) -> None:
        self.store.delete(stage_key(email))

    # Rate limiting
    def is_rate_limited(self, email: str, resend: bool = False) -> bool:
        if self.store.counter(rate_key(email)) >= self.begin_send_ceiling:
            return True
        if resend and self.store.counter(rate_key(email, resend=True)) >= self.resend_ceiling:
            return True
        return False

    def record_send(self, email: str, resend: bool = False) -> None:
        self.store.incr(rate_key(email), self.rate_window_seconds)
        if resend:
            self.store.incr(rate_key(email, resend=True), self.rate_window_seconds)

    # Codes
    def issue(
        self, submission: ApplicantSubmission, password_hash: str
    ) -> StagedRegistration:
        """Stage ``submission`` under a new code with zero attempts, and count the send."""
        stage = StagedRegistration.from_submission(
            submission,
            password_hash=password_hash,
            code=generate_code(),
            created_at=self._clock(),
        )
        self.save_stage(stage)
        self.record_send(stage.email)
        return stage

    def verify(self, email: str, code: str) -> VerifyOutcome:
        """
        Check ``code`` against the stage for ``email``.

        A wrong code increments the attempt counter without touching the TTL.
        Once attempts exceed ``max_attempts`` the stage is deleted and LOCKED
        is returned. A correct code leaves the stage in place; the caller
        discards it after committing.
        """
        stage = self.load_stage(email)
        if stage is None:
            return VerifyOutcome(success=False, error=ErrorKind.NOT_FOUND)

        if codes_match(stage.code, code):
            return VerifyOutcome(success=True, stage=stage)

        attempts = stage.attempts + 1
        if attempts > self.max_attempts:
            self.discard(email)
            logger.warning(f"Staged registration locked after {attempts} wrong codes")
            return VerifyOutcome(success=False, error=ErrorKind.LOCKED, attempts_remaining=0)

        updated = stage.model_copy(update={"attempts": attempts})
        if not self.store.replace(stage_key(email), updated.model_dump(mode="json")):
            # Expired between the read and the write
            return VerifyOutcome(success=False, error=ErrorKind.NOT_FOUND)

        return VerifyOutcome(
            success=False,
            error=ErrorKind.MISMATCH,
            stage=updated,
            attempts_remaining=self.max_attempts - attempts,
        )

    def resend(self, email: str) -> StageOutcome:
        """
        Replace the code of a live stage and restart its TTL.

        RATE_LIMITED leaves the stage exactly as it was.
        """
        stage = self.load_stage(email)
        if stage is None:
            return StageOutcome.failure(ErrorKind.NOT_FOUND)

        if self.is_rate_limited(email, resend=True):
            logger.info("Resend refused: rate limit reached")
            return StageOutcome.failure(ErrorKind.RATE_LIMITED)

        refreshed = stage.model_copy(update={"code": generate_code(), "attempts": 0})
        self.save_stage(refreshed)
        self.record_send(email, resend=True)
        return StageOutcome(success=True, code=refreshed.code, stage=refreshed)
