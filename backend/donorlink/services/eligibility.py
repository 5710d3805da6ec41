"""Eligibility & compatibility checker.

``check_eligibility`` is a pure function of (donor, request, now): it never
touches the database or reads the clock, so the same inputs always give the
same answer. Rules are applied in order and the first failure wins:

1. donor account is active (not blocked)
2. donor is marked available
3. donor blood group equals the request's blood group exactly
4. at least ``rest_days`` days since the donor's last donation
5. request is not expired, is still pending and has not been deleted

The donor→recipient chart in ``COMPATIBLE_DONOR_GROUPS`` is informational
only (profile help text). Matching deliberately stays on exact equality.
"""
import enum
from datetime import date, datetime, time, timezone
from typing import Optional

import pytz
from pydantic import BaseModel

from donorlink.models.donation_request import RequestStatus
from donorlink.models.user import AccountStatus

DEFAULT_REST_DAYS = 90

# recipient group -> donor groups it can receive from
COMPATIBLE_DONOR_GROUPS: dict[str, tuple[str, ...]] = {
    "A+": ("A+", "A-", "O+", "O-"),
    "A-": ("A-", "O-"),
    "B+": ("B+", "B-", "O+", "O-"),
    "B-": ("B-", "O-"),
    "AB+": ("A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"),
    "AB-": ("A-", "B-", "AB-", "O-"),
    "O+": ("O+", "O-"),
    "O-": ("O-",),
}


class Rule(str, enum.Enum):
    eligible = "eligible"
    account_blocked = "account_blocked"
    unavailable = "unavailable"
    blood_group_mismatch = "blood_group_mismatch"
    rest_period = "rest_period"
    request_expired = "request_expired"
    request_not_pending = "request_not_pending"


class EligibilityResult(BaseModel):
    eligible: bool
    reason: str
    rule: Rule

    model_config = {"frozen": True}


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def parse_slot_time(value: str) -> time:
    """Parse an ``HH:MM`` (24h) slot time; raises ValueError on bad input."""
    hours, _, minutes = value.partition(":")
    if not hours.isdigit() or not minutes.isdigit() or len(minutes) != 2 or len(hours) > 2:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")
    return time(int(hours), int(minutes))


def scheduled_at(donation_date: date, donation_time: str, tz_name: str = "UTC") -> datetime:
    """The donation slot as an aware UTC datetime."""
    tz = pytz.timezone(tz_name)
    local = tz.localize(datetime.combine(donation_date, parse_slot_time(donation_time)))
    return local.astimezone(pytz.utc)


def local_today(now: datetime, tz_name: str = "UTC") -> date:
    return _as_utc(now).astimezone(pytz.timezone(tz_name)).date()


def is_expired(request, now: datetime, tz_name: str = "UTC") -> bool:
    return scheduled_at(request.donation_date, request.donation_time, tz_name) <= _as_utc(now)


def days_until_eligible(
    last_donation_date: Optional[date],
    now: datetime,
    rest_days: int = DEFAULT_REST_DAYS,
    tz_name: str = "UTC",
) -> int:
    """Days left in the rest period; 0 when the donor may give again."""
    if last_donation_date is None:
        return 0
    elapsed = (local_today(now, tz_name) - last_donation_date).days
    return max(rest_days - elapsed, 0)


def check_eligibility(
    donor,
    request,
    now: datetime,
    rest_days: int = DEFAULT_REST_DAYS,
    tz_name: str = "UTC",
) -> EligibilityResult:
    """Decide whether ``donor`` may take ``request`` at instant ``now``."""
    if donor.status != AccountStatus.active:
        return EligibilityResult(eligible=False, reason="account is blocked", rule=Rule.account_blocked)

    if not donor.is_available:
        return EligibilityResult(eligible=False, reason="donor is marked unavailable", rule=Rule.unavailable)

    if donor.blood_group != request.blood_group:
        return EligibilityResult(
            eligible=False,
            reason=f"blood group mismatch: donor is {donor.blood_group}, request needs {request.blood_group}",
            rule=Rule.blood_group_mismatch,
        )

    remaining = days_until_eligible(donor.last_donation_date, now, rest_days, tz_name)
    if remaining > 0:
        return EligibilityResult(
            eligible=False,
            reason=f"{remaining} days remaining in the {rest_days}-day rest period",
            rule=Rule.rest_period,
        )

    if is_expired(request, now, tz_name):
        return EligibilityResult(eligible=False, reason="request has expired", rule=Rule.request_expired)

    if not request.is_active:
        return EligibilityResult(
            eligible=False, reason="request has been deleted", rule=Rule.request_not_pending,
        )

    if request.status != RequestStatus.pending:
        status = getattr(request.status, "value", request.status)
        return EligibilityResult(
            eligible=False, reason=f"request is not pending (status: {status})", rule=Rule.request_not_pending,
        )

    return EligibilityResult(eligible=True, reason="eligible", rule=Rule.eligible)
