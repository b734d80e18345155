"""
Budget Calculator

Converts budget goals between frequencies and measures spending against
them for the current period.
"""

from decimal import Decimal
from datetime import date, timedelta
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional
import logging

from .currency import ZERO, to_decimal
from .models import BudgetFrequency, TransactionType, parse_date
from .store import Collections, RecordStore


logger = logging.getLogger(__name__)


@dataclass
class BudgetProgress:
    """Spending against one budget in the viewed period"""
    budget_id: Optional[str]
    category_id: Optional[str]
    view_mode: str
    period_start: date
    goal: Decimal
    spent: Decimal

    @property
    def remaining(self) -> Decimal:
        return max(self.goal - self.spent, ZERO)

    @property
    def percent(self) -> Decimal:
        if self.goal <= 0:
            return ZERO
        return min(self.spent / self.goal * 100, Decimal('100'))

    @property
    def over_budget(self) -> bool:
        return self.spent > self.goal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "budget_id": self.budget_id,
            "category_id": self.category_id,
            "view_mode": self.view_mode,
            "period_start": self.period_start.isoformat(),
            "goal": str(self.goal),
            "spent": str(self.spent),
            "remaining": str(self.remaining),
            "percent": str(self.percent),
            "over_budget": self.over_budget,
        }


def _frequency(value: Optional[str]) -> Optional[BudgetFrequency]:
    try:
        return BudgetFrequency(value)
    except ValueError:
        return None


def convert_amount(amount: Any, from_frequency: str, to_frequency: str) -> Decimal:
    """
    Re-express an amount per `from_frequency` as an amount per `to_frequency`.

    Goes through the yearly total (52 weeks, 26 fortnights, 12 months,
    4 quarters), so converting A -> B -> A returns the original amount
    to Decimal precision.
    Unknown frequencies leave the amount unchanged.
    """
    amount = to_decimal(amount)
    source = _frequency(from_frequency)
    target = _frequency(to_frequency)
    if source is None or target is None:
        logger.warning(f"Unknown budget frequency conversion {from_frequency!r} -> {to_frequency!r}")
        return amount
    if source == target:
        return amount
    return amount * source.periods_per_year / target.periods_per_year


def period_start(view_mode: str, today: Optional[date] = None) -> date:
    """
    First day of the current period.

    weekly: the Sunday starting this week. fortnightly: the Monday of the
    previous week. monthly/quarterly/yearly: first day of the calendar
    month/quarter/year. Anything else: today.
    """
    today = today or date.today()
    if view_mode == BudgetFrequency.WEEKLY.value:
        return today - timedelta(days=(today.weekday() + 1) % 7)
    elif view_mode == BudgetFrequency.FORTNIGHTLY.value:
        return today - timedelta(days=today.weekday() + 7)
    elif view_mode == BudgetFrequency.MONTHLY.value:
        return today.replace(day=1)
    elif view_mode == BudgetFrequency.QUARTERLY.value:
        return date(today.year, (today.month - 1) // 3 * 3 + 1, 1)
    elif view_mode == BudgetFrequency.YEARLY.value:
        return date(today.year, 1, 1)
    return today


def budget_progress(
    budget: Mapping[str, Any],
    transactions: Iterable[Mapping[str, Any]],
    view_mode: str = "monthly",
    today: Optional[date] = None
) -> BudgetProgress:
    """
    Spending in the budget's category since the start of the viewed period,
    against the goal converted to the viewed frequency.
    """
    start = period_start(view_mode, today)
    spent = ZERO
    for transaction in transactions:
        if transaction.get("type") != TransactionType.EXPENSE.value:
            continue
        if transaction.get("categoryId") != budget.get("categoryId"):
            continue
        posted = parse_date(transaction.get("date"))
        if posted is None or posted < start:
            continue
        spent += to_decimal(transaction.get("amount"))

    goal = convert_amount(budget.get("amount"), budget.get("frequency") or "monthly", view_mode)
    return BudgetProgress(
        budget_id=budget.get("id"),
        category_id=budget.get("categoryId"),
        view_mode=view_mode,
        period_start=start,
        goal=goal,
        spent=spent
    )


async def budget_overview(
    store: RecordStore,
    view_mode: str = "monthly",
    today: Optional[date] = None
) -> List[BudgetProgress]:
    """Progress of every stored budget"""
    budgets = await store.get_all(Collections.BUDGETS)
    transactions = await store.find(Collections.TRANSACTIONS, type=TransactionType.EXPENSE.value)
    return [budget_progress(budget, transactions, view_mode, today) for budget in budgets]
