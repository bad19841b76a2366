"""
Login Throttling Service

WHY: Prevent brute-force password attacks by limiting failed login attempts.
After too many failures, the account is temporarily locked.

SECURITY FEATURES:
- Tracks failed attempts per email
- Lockout after MAX_FAILED_ATTEMPTS failures within LOCKOUT_WINDOW
- Lockout duration: LOCKOUT_DURATION minutes
- Uses security_events table for tracking
- A successful login restarts the count
"""

from __future__ import annotations

from datetime import timedelta

from ..extensions import db
from ..models import SecurityEvent, User
from .security_service import log_request_event
from erp.time_utils import as_utc_naive, utcnow


MAX_FAILED_ATTEMPTS = 10  # Lock after 10 failed attempts
LOCKOUT_WINDOW = timedelta(minutes=15)  # Within 15 minutes
LOCKOUT_DURATION = timedelta(minutes=15)  # Lockout for 15 minutes


def _last_success_at(identifier: str):
    row = db.session.query(SecurityEvent.occurred_at).filter(
        SecurityEvent.event_type == "LOGIN_SUCCESS",
        SecurityEvent.action == identifier,
    ).order_by(SecurityEvent.occurred_at.desc()).first()
    return as_utc_naive(row[0]) if row else None


def _failed_query(identifier: str):
    cutoff = utcnow() - LOCKOUT_WINDOW
    last_success = _last_success_at(identifier)
    if last_success and last_success > cutoff:
        cutoff = last_success

    # The email is stored in the 'action' field of security events
    return db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == "LOGIN_FAILED",
        SecurityEvent.action == identifier,
        SecurityEvent.occurred_at >= cutoff,
    )


def get_recent_failed_attempts(identifier: str) -> int:
    """Count LOGIN_FAILED events for an email within LOCKOUT_WINDOW since the last success."""
    return _failed_query(identifier).count()


def is_account_locked(identifier: str) -> tuple[bool, int | None]:
    """
    Check if an account is currently locked due to too many failed attempts.

    Returns:
    - (True, seconds_remaining) if locked
    - (False, None) if not locked
    """
    if get_recent_failed_attempts(identifier) < MAX_FAILED_ATTEMPTS:
        return False, None

    most_recent = _failed_query(identifier).order_by(SecurityEvent.occurred_at.desc()).first()
    if most_recent:
        lockout_end = as_utc_naive(most_recent.occurred_at) + LOCKOUT_DURATION
        now = utcnow()
        if now < lockout_end:
            return True, int((lockout_end - now).total_seconds())

    return False, None


def record_failed_attempt(identifier: str, reason: str = "Invalid credentials") -> int:
    """
    Record a failed login attempt.

    Returns the total number of recent failed attempts.
    """
    user = db.session.query(User).filter(User.email == identifier).first()

    log_request_event(
        "LOGIN_FAILED",
        success=False,
        reason=reason,
        user_id=user.id if user else None,
        action=identifier,
    )
    return get_recent_failed_attempts(identifier)


def record_successful_login(user: User) -> None:
    """Record a successful login; failures before it no longer count toward lockout."""
    log_request_event(
        "LOGIN_SUCCESS",
        success=True,
        user_id=user.id,
        business_id=user.business_id,
        action=user.email,
    )
