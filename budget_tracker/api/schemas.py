"""
Pydantic schemas for API requests
"""

from decimal import Decimal, InvalidOperation
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def _check_amount(value: str) -> str:
    try:
        Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValueError(f"Invalid decimal amount: {value!r}")
    return value


class LoanPaymentRequest(BaseModel):
    amount: str = Field(..., description="Decimal amount as string")
    from_account_id: str
    payment_date: Optional[str] = Field(None, description="YYYY-MM-DD, defaults to today")

    @field_validator("amount")
    @classmethod
    def amount_is_decimal(cls, value: str) -> str:
        return _check_amount(value)


class PaymentPreviewRequest(BaseModel):
    amount: str = Field(..., description="Decimal amount as string")

    @field_validator("amount")
    @classmethod
    def amount_is_decimal(cls, value: str) -> str:
        return _check_amount(value)


class MarkBillPaidRequest(BaseModel):
    date: Optional[str] = Field(None, description="Posting date, defaults to today")


class RunJobsRequest(BaseModel):
    today: Optional[str] = Field(None, description="Run as of this date, defaults to today")


class LinkTenantRequest(BaseModel):
    tenant_id: str
