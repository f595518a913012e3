"""
Validated inputs accepted from callers.
"""

import datetime
import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from .exceptions import InvalidInputError
from .models import ReservationStatus

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_PATTERN = re.compile(r"^[\d\s\-+()]+$")
MIN_PHONE_DIGITS = 10


def describe_errors(exc: ValidationError) -> str:
    """Flatten a pydantic error list into one readable line."""
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'input'}: {err['msg']}"
        for err in exc.errors()
    )


class CustomerInfo(BaseModel):
    """Contact details a customer supplies with a booking request."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    name: str
    email: str
    phone: str
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        if not value:
            raise ValueError("name is required")
        return value

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        if not value:
            raise ValueError("email is required")
        if not _EMAIL_PATTERN.match(value):
            raise ValueError(f"invalid email address: {value}")
        return value

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: str) -> str:
        if not value:
            raise ValueError("phone is required")
        digits = sum(ch.isdigit() for ch in value)
        if not _PHONE_PATTERN.match(value) or digits < MIN_PHONE_DIGITS:
            raise ValueError(f"invalid phone number: {value}")
        return value

    @field_validator("notes")
    @classmethod
    def blank_notes_to_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None

    @classmethod
    def parse(cls, data: "CustomerInfo | dict") -> "CustomerInfo":
        """
        Build from a mapping, translating validation failures.

        Raises:
            InvalidInputError: If a required field is missing or malformed
        """
        if isinstance(data, cls):
            return data
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise InvalidInputError(f"Invalid customer info: {describe_errors(exc)}") from exc


class ReservationFilter(BaseModel):
    """
    Closed set of recognised reservation query fields.

    Unknown fields are rejected, and a query must be scoped to a business,
    a staff member or a customer.
    """
    model_config = ConfigDict(extra="forbid", frozen=True, str_strip_whitespace=True)

    business_id: Optional[str] = None
    staff_id: Optional[str] = None
    date: Optional[datetime.date] = None
    status: Optional[ReservationStatus] = None
    customer_email: Optional[str] = None

    @model_validator(mode="after")
    def validate_scope(self) -> "ReservationFilter":
        if not (self.business_id or self.staff_id or self.customer_email):
            raise ValueError(
                "reservation filter needs business_id, staff_id or customer_email"
            )
        return self

    @classmethod
    def build(cls, **fields) -> "ReservationFilter":
        """
        Construct a filter, translating validation failures.

        Raises:
            InvalidInputError: On unknown fields or an unscoped query
        """
        try:
            return cls(**fields)
        except ValidationError as exc:
            raise InvalidInputError(f"Invalid reservation filter: {describe_errors(exc)}") from exc

    def matches(self, reservation) -> bool:
        if self.business_id is not None and reservation.business_id != self.business_id:
            return False
        if self.staff_id is not None and reservation.staff_id != self.staff_id:
            return False
        if self.date is not None and reservation.date != self.date:
            return False
        if self.status is not None and reservation.status is not self.status:
            return False
        if (
            self.customer_email is not None
            and reservation.customer_email.lower() != self.customer_email.lower()
        ):
            return False
        return True
