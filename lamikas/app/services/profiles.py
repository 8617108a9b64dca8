"""Profile and sign-up metadata records.

The identity provider owns these records; this module only shapes what is
written to it.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError

from lamikas.app.core.config import settings
from lamikas.app.core.security import sanitize_input, validate_email, validate_phone
from lamikas.app.exceptions import ValidationError
from lamikas.app.services.plans import (
    DEFAULT_MAX_PROPERTIES,
    DEFAULT_PLAN,
    UserType,
    max_properties_for,
)

DEFAULT_FULL_NAME = "User"
DEFAULT_COUNTRY_CODE = "+1"
DEFAULT_PAYMENT_TYPE = "free-trial"

# Fields a caller may never change through a profile update
IMMUTABLE_PROFILE_FIELDS = ("id", "email")

REQUIRED_FIELDS_MESSAGE = "Required fields missing"

# Pydantic error types that mean a required field is absent, empty or not text
_MISSING_FIELD_ERRORS = {"missing", "string_type", "string_too_short"}

# Loc names (aliases) of checked fields, in reporting order
_CHECK_ORDER = ("email", "phone", "password")


@dataclass(frozen=True)
class TrialWindow:
    start: datetime
    end: datetime

    @classmethod
    def starting(cls, now: datetime, days: int) -> "TrialWindow":
        return cls(start=now, end=now + timedelta(days=days))


class Registration(BaseModel):
    """Sanitized registration form fields.

    Build with :meth:`parse`, which maps field errors onto the client-facing
    messages in a fixed order: missing fields, email, phone, password length.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    first_name: str = Field(..., alias="firstName", min_length=1)
    last_name: str = Field(..., alias="lastName", min_length=1)
    selected_plan: str = Field(..., alias="selectedPlan", min_length=1)
    user_type: Any = Field(None, alias="userType")
    unit_count: Any = Field(None, alias="unitCount")
    challenge: Any = None
    payment_type: Any = Field(None, alias="paymentType")
    phone: Any = None
    country_code: Any = Field(None, alias="countryCode")
    country_name: Any = Field(None, alias="countryName")

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        if not validate_email(v):
            raise ValueError("Invalid email format")
        return v

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: Any, info: ValidationInfo) -> Any:
        if v and not validate_phone(v, regions=(info.context or {}).get("phone_regions")):
            raise ValueError("Invalid phone number format")
        return v

    @field_validator("password")
    @classmethod
    def check_password_length(cls, v: str, info: ValidationInfo) -> str:
        minimum = (info.context or {}).get("min_password_length", settings.min_password_length)
        if len(v) < minimum:
            raise ValueError(f"Password must be at least {minimum} characters long")
        return v

    @classmethod
    def parse(
        cls,
        body: Mapping[str, Any],
        *,
        min_password_length: Optional[int] = None,
        phone_regions: Optional[List[str]] = None,
    ) -> "Registration":
        """Validate a sanitized request body, raising a 400 on the first problem."""
        context: Dict[str, Any] = {}
        if min_password_length is not None:
            context["min_password_length"] = min_password_length
        if phone_regions is not None:
            context["phone_regions"] = phone_regions
        try:
            return cls.model_validate(body, context=context)
        except PydanticValidationError as e:
            raise ValidationError(_first_error_message(e)) from None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def max_properties(self) -> int:
        return max_properties_for(self.selected_plan)

    def _shared_fields(self) -> Dict[str, Any]:
        return {
            "full_name": self.full_name,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "user_type": self.user_type,
            "units_managed": self.unit_count,
            "main_challenge": self.challenge,
            "plan_type": self.selected_plan,
            "payment_type": self.payment_type,
            "phone": self.phone,
            "country_code": self.country_code,
            "country_name": self.country_name,
            "max_properties": self.max_properties,
        }

    def identity_metadata(self, trial: TrialWindow) -> Dict[str, Any]:
        """User metadata stored on the identity record at sign-up."""
        metadata = self._shared_fields()
        metadata.update(
            email_verified=False,
            trial_start=trial.start.isoformat(),
            trial_end=trial.end.isoformat(),
        )
        return metadata

    def profile_record(self, user_id: str, trial: TrialWindow) -> Dict[str, Any]:
        """Profile row created right after the identity."""
        profile = {"id": user_id, "email": self.email}
        profile.update(self._shared_fields())
        profile.update(
            current_properties=0,
            trial_active=self.payment_type == DEFAULT_PAYMENT_TYPE,
            trial_start=trial.start.isoformat(),
            trial_end=trial.end.isoformat(),
            is_active=True,
            created_at=trial.start.isoformat(),
            updated_at=trial.start.isoformat(),
        )
        return profile


def _first_error_message(exc: PydanticValidationError) -> str:
    errors = exc.errors()
    if any(err["type"] in _MISSING_FIELD_ERRORS for err in errors):
        return REQUIRED_FIELDS_MESSAGE
    messages = {
        err["loc"][0]: str(err["ctx"]["error"])
        for err in errors
        if err["loc"] and "error" in err.get("ctx", {})
    }
    for name in _CHECK_ORDER:
        if name in messages:
            return messages[name]
    return REQUIRED_FIELDS_MESSAGE


def default_profile(user: Mapping[str, Any], now: datetime) -> Dict[str, Any]:
    """Profile for a first-time login, built from the identity's metadata."""
    metadata: Mapping[str, Any] = user.get("user_metadata") or {}

    def field(name: str, default: Any) -> Any:
        return sanitize_input(metadata.get(name) or default)

    return {
        "id": user["id"],
        "email": user.get("email"),
        "full_name": field("full_name", DEFAULT_FULL_NAME),
        "company_name": field("company_name", ""),
        "phone": field("phone", ""),
        "country_code": field("country_code", DEFAULT_COUNTRY_CODE),
        "plan_type": field("plan_type", DEFAULT_PLAN.value),
        "payment_type": field("payment_type", DEFAULT_PAYMENT_TYPE),
        "user_type": field("user_type", UserType.LANDLORD.value),
        "units_managed": field("units_managed", ""),
        "main_challenge": field("main_challenge", ""),
        "max_properties": metadata.get("max_properties") or DEFAULT_MAX_PROPERTIES,
        "created_at": now.isoformat(),
    }


def profile_update_fields(
    body: Mapping[str, Any], now: datetime
) -> Dict[str, Any]:
    """Fields to write on a profile update, without the immutable ones."""
    fields = {k: v for k, v in body.items() if k not in IMMUTABLE_PROFILE_FIELDS}
    fields["updated_at"] = now.isoformat()
    return fields
