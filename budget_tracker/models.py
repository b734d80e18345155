"""
Record Vocabulary

Enumerations for the string-typed fields of stored records, and the date
helpers shared by the calculators and jobs. Records themselves stay plain
mappings; these types are used to validate and compare field values.
"""

from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Optional
import calendar


class AccountType(Enum):
    """Kinds of money accounts"""
    BANK = "bank"
    CREDIT = "credit"
    CASH = "cash"
    SAVINGS = "savings"
    INVESTMENT = "investment"
    OFFSET = "offset"
    OTHER = "other"


class CategoryType(Enum):
    INCOME = "income"
    EXPENSE = "expense"


class TransactionType(Enum):
    INCOME = "income"
    EXPENSE = "expense"


class BudgetFrequency(Enum):
    """Budget periods, with how many of each fit in a year"""
    WEEKLY = "weekly"
    FORTNIGHTLY = "fortnightly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"

    @property
    def periods_per_year(self) -> int:
        return {
            BudgetFrequency.WEEKLY: 52,
            BudgetFrequency.FORTNIGHTLY: 26,
            BudgetFrequency.MONTHLY: 12,
            BudgetFrequency.QUARTERLY: 4,
            BudgetFrequency.YEARLY: 1,
        }[self]


class Recurrence(Enum):
    """Repeat rules for bills and recurring templates"""
    NONE = ""
    WEEKLY = "weekly"
    FORTNIGHTLY = "fortnightly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"
    YEARLY = "yearly"


def add_months(start_date: date, months: int) -> date:
    """Add months to a date, handling month-end edge cases"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def advance(start_date: date, frequency: Optional[str], periods: int = 1) -> date:
    """Step a date forward by `periods` periods; unrecognized frequencies step months"""
    if frequency == Recurrence.WEEKLY.value:
        return start_date + timedelta(days=7 * periods)
    elif frequency == Recurrence.FORTNIGHTLY.value:
        return start_date + timedelta(days=14 * periods)
    elif frequency == Recurrence.QUARTERLY.value:
        return add_months(start_date, 3 * periods)
    elif frequency in (Recurrence.ANNUALLY.value, Recurrence.YEARLY.value):
        return add_months(start_date, 12 * periods)
    return add_months(start_date, periods)


def parse_date(value: Any) -> Optional[date]:
    """Read a stored date (YYYY-MM-DD or full ISO timestamp)"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValueError(f"Invalid date: {value!r}")
