"""
Amortization Engine

Pure loan math over a Loan value: fixed annuity payment, period-by-period
schedule, next payment, total interest, and the current-balance payment
split used when a real payment is applied.

All arithmetic is Decimal at full precision; nothing is rounded here.
Rates are annual percentages (6.5 means 6.5% p.a.).
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .currency import ZERO, to_decimal
from .models import add_months, parse_date


PAID_OFF = "Paid off"


@dataclass
class Loan:
    """Loan terms and live balance"""
    original_amount: Decimal
    interest_rate: Decimal              # annual percentage
    term_months: int
    start_date: Optional[date] = None
    current_balance: Optional[Decimal] = None
    payment_frequency: str = "monthly"  # informational; the schedule steps monthly
    id: Optional[str] = None
    name: str = ""
    type: str = ""
    currency: str = "AUD"
    linked_offset_id: Optional[str] = None

    def __post_init__(self):
        self.original_amount = to_decimal(self.original_amount)
        self.interest_rate = to_decimal(self.interest_rate)
        self.term_months = int(self.term_months or 0)
        if self.current_balance is None:
            self.current_balance = self.original_amount
        else:
            self.current_balance = to_decimal(self.current_balance)

        if self.original_amount < 0:
            raise ValueError("Loan amount cannot be negative")
        if self.interest_rate < 0:
            raise ValueError("Interest rate cannot be negative")

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> 'Loan':
        """Build from a stored loan record (camelCase fields)"""
        return cls(
            original_amount=record.get("originalAmount"),
            interest_rate=record.get("interestRate"),
            term_months=record.get("termMonths") or 0,
            start_date=parse_date(record.get("startDate")),
            current_balance=record.get("currentBalance"),
            payment_frequency=record.get("paymentFrequency") or "monthly",
            id=record.get("id"),
            name=record.get("name") or "",
            type=record.get("type") or "",
            currency=record.get("currency") or "AUD",
            linked_offset_id=record.get("linkedOffsetId") or None,
        )


LoanLike = Union[Loan, Mapping[str, Any]]


@dataclass
class AmortizationEntry:
    """Single period of a schedule"""
    period: int
    date: date
    payment: Decimal
    principal: Decimal
    interest: Decimal
    balance: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "date": self.date.isoformat(),
            "payment": str(self.payment),
            "principal": str(self.principal),
            "interest": str(self.interest),
            "balance": str(self.balance),
        }


@dataclass
class NextPayment:
    amount: Decimal
    due_date: str   # ISO date, or PAID_OFF

    @property
    def is_paid_off(self) -> bool:
        return self.due_date == PAID_OFF


def as_loan(loan: LoanLike) -> Loan:
    return loan if isinstance(loan, Loan) else Loan.from_record(loan)


def monthly_rate(loan: LoanLike) -> Decimal:
    """Annual percentage rate as a monthly fraction"""
    return as_loan(loan).interest_rate / Decimal('1200')


def payment_amount(loan: LoanLike) -> Decimal:
    """
    Fixed periodic payment: P*r*(1+r)^n / ((1+r)^n - 1).

    Based on originalAmount and termMonths only, so it does not move when
    the live balance changes.
    """
    loan = as_loan(loan)
    if loan.term_months <= 0:
        raise ValueError("Loan term must be at least one month")

    rate = monthly_rate(loan)
    if rate == 0:
        return loan.original_amount / loan.term_months

    factor = (1 + rate) ** loan.term_months
    return loan.original_amount * rate * factor / (factor - 1)


def schedule(loan: LoanLike) -> List[AmortizationEntry]:
    """
    Simulate the loan from originalAmount over termMonths periods.

    Periods are always one month apart from startDate, whatever the
    paymentFrequency. Principal is clamped to the remaining balance and the
    schedule stops once the balance is exhausted.
    """
    loan = as_loan(loan)
    if loan.start_date is None:
        raise ValueError("Loan start date is required for a schedule")

    payment = payment_amount(loan)
    rate = monthly_rate(loan)
    balance = loan.original_amount
    entries: List[AmortizationEntry] = []

    for period in range(1, loan.term_months + 1):
        if balance <= 0:
            break
        interest = balance * rate
        principal = payment - interest
        entries.append(AmortizationEntry(
            period=period,
            date=add_months(loan.start_date, period - 1),
            payment=payment,
            principal=min(principal, balance),
            interest=interest,
            balance=max(ZERO, balance - principal)
        ))
        balance -= principal

    return entries


def next_payment(loan: LoanLike) -> NextPayment:
    """First scheduled period with an outstanding balance"""
    for entry in schedule(loan):
        if entry.balance > 0:
            return NextPayment(amount=entry.payment, due_date=entry.date.isoformat())
    return NextPayment(amount=ZERO, due_date=PAID_OFF)


def total_interest(loan: LoanLike) -> Decimal:
    return sum((entry.interest for entry in schedule(loan)), ZERO)


def payment_breakdown(loan: LoanLike, amount: Any) -> Tuple[Decimal, Decimal]:
    """
    Split a payment against the live balance.

    Returns (principal, interest). Principal is capped at the current
    balance but not floored: a payment below the interest due yields a
    negative principal.
    """
    loan = as_loan(loan)
    amount = to_decimal(amount)
    interest = loan.current_balance * monthly_rate(loan)
    principal = min(amount - interest, loan.current_balance)
    return principal, interest


def offset_interest_saving(loan: LoanLike, offset_balance: Any) -> Decimal:
    """Monthly interest avoided by holding offset_balance against the loan"""
    loan = as_loan(loan)
    effective_balance = max(loan.current_balance - to_decimal(offset_balance), ZERO)
    return (loan.current_balance - effective_balance) * monthly_rate(loan)


def loan_summary(loan: LoanLike) -> Dict[str, Any]:
    """Headline figures for a loan"""
    loan = as_loan(loan)
    payment = payment_amount(loan)
    interest = total_interest(loan)
    repaid = loan.original_amount - loan.current_balance
    progress = (repaid / loan.original_amount * 100) if loan.original_amount else ZERO
    upcoming = next_payment(loan)

    return {
        "id": loan.id,
        "name": loan.name,
        "payment_amount": str(payment),
        "total_interest": str(interest),
        "total_cost": str(loan.original_amount + interest),
        "current_balance": str(loan.current_balance),
        "progress_percent": str(progress),
        "next_payment": {"amount": str(upcoming.amount), "due_date": upcoming.due_date},
    }
