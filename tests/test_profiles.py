from datetime import datetime, timedelta, timezone

import pytest

from lamikas.app.exceptions import ValidationError
from lamikas.app.services.plans import PlanType, max_properties_for, parse_plan
from lamikas.app.services.profiles import (
    Registration,
    TrialWindow,
    default_profile,
    profile_update_fields,
)

NOW = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("plan", "expected"),
    [
        ("starter", 5),
        ("essential", 20),
        ("professional", 50),
        ("business", 100),
        ("enterprise", 5),
        (None, 5),
    ],
)
def test_max_properties_for(plan, expected):
    assert max_properties_for(plan) == expected


def test_parse_plan():
    assert parse_plan("business") is PlanType.BUSINESS
    assert parse_plan("gold") is None
    assert parse_plan(["starter"]) is None


def test_trial_window_is_seven_days():
    trial = TrialWindow.starting(NOW, 7)
    assert trial.end - trial.start == timedelta(days=7)


def _registration(**overrides):
    body = {
        "email": "jane@lamikas.com",
        "password": "s3cret-pass",
        "firstName": "Jane",
        "lastName": "Wanjiru",
        "selectedPlan": "essential",
        "userType": "landlord",
        "unitCount": "11-20",
        "challenge": "rent collection",
        "paymentType": "free-trial",
        "phone": "+254712345678",
        "countryCode": "+254",
        "countryName": "Kenya",
    }
    body.update(overrides)
    return Registration.parse(body, min_password_length=8, phone_regions=["KE"])


def test_identity_metadata():
    trial = TrialWindow.starting(NOW, 7)
    metadata = _registration().identity_metadata(trial)

    assert metadata["full_name"] == "Jane Wanjiru"
    assert metadata["plan_type"] == "essential"
    assert metadata["max_properties"] == 20
    assert metadata["units_managed"] == "11-20"
    assert metadata["main_challenge"] == "rent collection"
    assert metadata["email_verified"] is False
    assert metadata["trial_start"] == NOW.isoformat()
    assert metadata["trial_end"] == (NOW + timedelta(days=7)).isoformat()


def test_profile_record():
    trial = TrialWindow.starting(NOW, 7)
    profile = _registration().profile_record("u1", trial)

    assert profile["id"] == "u1"
    assert profile["email"] == "jane@lamikas.com"
    assert profile["current_properties"] == 0
    assert profile["is_active"] is True
    assert profile["trial_active"] is True
    assert profile["trial_end"] == (NOW + timedelta(days=7)).isoformat()
    assert profile["country_name"] == "Kenya"


def test_paid_registration_has_no_active_trial():
    trial = TrialWindow.starting(NOW, 7)
    profile = _registration(paymentType="card").profile_record("u1", trial)

    assert profile["trial_active"] is False


def test_default_profile_from_metadata():
    user = {
        "id": "u1",
        "email": "jane@lamikas.com",
        "user_metadata": {"full_name": "<b>Jane</b> W", "plan_type": "business", "max_properties": 100},
    }

    profile = default_profile(user, NOW)

    assert profile["full_name"] == "Jane W"
    assert profile["plan_type"] == "business"
    assert profile["max_properties"] == 100
    assert profile["country_code"] == "+1"
    assert profile["created_at"] == NOW.isoformat()


def test_default_profile_without_metadata():
    profile = default_profile({"id": "u1", "email": "jane@lamikas.com"}, NOW)

    assert profile["full_name"] == "User"
    assert profile["plan_type"] == "starter"
    assert profile["payment_type"] == "free-trial"
    assert profile["user_type"] == "landlord"
    assert profile["max_properties"] == 5


def test_profile_update_fields_drops_immutable_fields():
    fields = profile_update_fields(
        {"id": "other", "email": "evil@acme.io", "company_name": "Acme Rentals"}, NOW
    )

    assert fields == {"company_name": "Acme Rentals", "updated_at": NOW.isoformat()}


def test_registration_reads_camel_case_fields():
    form = _registration()

    assert form.first_name == "Jane"
    assert form.last_name == "Wanjiru"
    assert form.selected_plan == "essential"
    assert form.country_name == "Kenya"


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"firstName": ""}, "Required fields missing"),
        ({"password": 12345678}, "Required fields missing"),
        ({"selectedPlan": None}, "Required fields missing"),
        ({"email": "jane@", "firstName": ""}, "Required fields missing"),
        ({"email": "jane@", "phone": "12", "password": "short"}, "Invalid email format"),
        ({"phone": "12", "password": "short"}, "Invalid phone number format"),
        ({"password": "short"}, "Password must be at least 8 characters long"),
    ],
)
def test_registration_errors_are_reported_in_order(overrides, message):
    with pytest.raises(ValidationError) as exc_info:
        _registration(**overrides)
    assert exc_info.value.message == message


def test_registration_phone_is_optional():
    assert _registration(phone=None).phone is None
    assert _registration(phone="").phone == ""
