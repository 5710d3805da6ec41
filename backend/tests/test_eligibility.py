"""Unit tests for the eligibility checker: no database involved."""
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from pydantic import ValidationError as PydanticValidationError

from donorlink.models.donation_request import RequestStatus
from donorlink.models.user import AccountStatus
from donorlink.services.eligibility import (
    Rule,
    check_eligibility,
    days_until_eligible,
    is_expired,
    scheduled_at,
)

NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


def _donor(**overrides):
    fields = dict(
        status=AccountStatus.active,
        is_available=True,
        blood_group="O+",
        last_donation_date=None,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def _request(**overrides):
    fields = dict(
        blood_group="O+",
        donation_date=NOW.date() + timedelta(days=1),
        donation_time="10:00",
        status=RequestStatus.pending,
        is_active=True,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


class TestLiteralScenarios:
    """The three checker scenarios from the acceptance flow."""

    def test_first_time_donor_matching_group_is_eligible(self):
        result = check_eligibility(_donor(), _request(), NOW)
        assert result.eligible is True
        assert result.rule == Rule.eligible

    def test_donated_thirty_days_ago_has_sixty_days_left(self):
        donor = _donor(last_donation_date=NOW.date() - timedelta(days=30))
        result = check_eligibility(donor, _request(), NOW)
        assert result.eligible is False
        assert result.rule == Rule.rest_period
        assert "60 days remaining" in result.reason

    def test_blood_group_mismatch(self):
        result = check_eligibility(_donor(blood_group="A-"), _request(blood_group="B+"), NOW)
        assert result.eligible is False
        assert result.rule == Rule.blood_group_mismatch
        assert "blood group mismatch" in result.reason


class TestRules:

    def test_blocked_account(self):
        result = check_eligibility(_donor(status=AccountStatus.blocked), _request(), NOW)
        assert result.rule == Rule.account_blocked

    def test_unavailable_donor(self):
        result = check_eligibility(_donor(is_available=False), _request(), NOW)
        assert result.rule == Rule.unavailable

    def test_rest_period_boundary_is_inclusive(self):
        """Exactly 90 days since the last donation is enough."""
        donor = _donor(last_donation_date=NOW.date() - timedelta(days=90))
        assert check_eligibility(donor, _request(), NOW).eligible is True
        donor = _donor(last_donation_date=NOW.date() - timedelta(days=89))
        result = check_eligibility(donor, _request(), NOW)
        assert result.rule == Rule.rest_period
        assert "1 days remaining" in result.reason

    def test_custom_rest_days(self):
        donor = _donor(last_donation_date=NOW.date() - timedelta(days=30))
        assert check_eligibility(donor, _request(), NOW, rest_days=30).eligible is True

    def test_expired_request(self):
        request = _request(donation_date=NOW.date(), donation_time="08:59")
        result = check_eligibility(_donor(), request, NOW)
        assert result.rule == Rule.request_expired

    def test_slot_exactly_now_is_expired(self):
        request = _request(donation_date=NOW.date(), donation_time="09:00")
        assert check_eligibility(_donor(), request, NOW).rule == Rule.request_expired

    def test_not_pending(self):
        result = check_eligibility(_donor(), _request(status=RequestStatus.inprogress), NOW)
        assert result.rule == Rule.request_not_pending
        assert "inprogress" in result.reason

    def test_deleted_request(self):
        result = check_eligibility(_donor(), _request(is_active=False), NOW)
        assert result.rule == Rule.request_not_pending

    def test_donor_rules_checked_before_request_rules(self):
        donor = _donor(blood_group="A+")
        request = _request(status=RequestStatus.done, donation_date=NOW.date() - timedelta(days=3))
        assert check_eligibility(donor, request, NOW).rule == Rule.blood_group_mismatch


class TestDeterminism:

    def test_same_inputs_same_answer(self):
        donor = _donor(last_donation_date=date(2026, 1, 1))
        request = _request()
        first = check_eligibility(donor, request, NOW)
        for _ in range(5):
            assert check_eligibility(donor, request, NOW) == first

    def test_result_is_frozen(self):
        result = check_eligibility(_donor(), _request(), NOW)
        with pytest.raises(PydanticValidationError):
            result.eligible = False


class TestScheduling:

    def test_slot_is_localized_in_service_timezone(self):
        slot = scheduled_at(date(2026, 7, 1), "09:00", "Asia/Dhaka")
        assert slot == datetime(2026, 7, 1, 3, 0, tzinfo=timezone.utc)

    def test_expiry_respects_timezone(self):
        # 09:00 UTC is 15:00 in Dhaka, so a 14:00 Dhaka slot today has passed
        request = _request(donation_date=NOW.date(), donation_time="14:00")
        assert is_expired(request, NOW, "Asia/Dhaka") is True
        assert is_expired(request, NOW, "UTC") is False

    def test_naive_now_treated_as_utc(self):
        request = _request(donation_date=NOW.date(), donation_time="10:00")
        assert is_expired(request, NOW.replace(tzinfo=None)) is False

    def test_days_until_eligible(self):
        assert days_until_eligible(None, NOW) == 0
        assert days_until_eligible(NOW.date() - timedelta(days=30), NOW) == 60
        assert days_until_eligible(NOW.date() - timedelta(days=200), NOW) == 0
