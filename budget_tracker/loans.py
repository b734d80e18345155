"""
Loan Module

Applies real-world payments to loans: splits each payment into interest and
principal against the live balance, then updates the loan, the paying
account, the loan ledger and the general transaction list.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
import logging

from .amortization import Loan, offset_interest_saving, payment_breakdown
from .config import BudgetTrackerConfig, get_config
from .currency import ZERO, to_decimal
from .errors import NotFound
from .logging_config import log_action
from .models import CategoryType, TransactionType, parse_date
from .saga import WriteSaga
from .store import Collections, RecordStore


logger = logging.getLogger(__name__)


@dataclass
class PaymentResult:
    """Outcome of a processed loan payment"""
    principal: Decimal
    interest: Decimal
    new_balance: Decimal
    loan_transaction_id: Optional[str] = None
    transaction_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "principal": str(self.principal),
            "interest": str(self.interest),
            "new_balance": str(self.new_balance),
            "loan_transaction_id": self.loan_transaction_id,
            "transaction_id": self.transaction_id,
        }


class LoanManager:
    """
    Loan payments and loan-derived figures
    """

    def __init__(self, store: RecordStore, config: Optional[BudgetTrackerConfig] = None):
        self.store = store
        self.config = config or get_config()

    async def get_loan(self, loan_id: str) -> Dict[str, Any]:
        loan = await self.store.get(Collections.LOANS, loan_id)
        if loan is None:
            raise NotFound(Collections.LOANS, loan_id)
        return loan

    async def process_payment(
        self,
        loan_id: str,
        amount: Any,
        from_account_id: str,
        payment_date: Optional[date] = None
    ) -> PaymentResult:
        """
        Process a loan payment

        Args:
            loan_id: Loan being paid
            amount: Full payment amount, debited from the source account
            from_account_id: Paying account
            payment_date: Defaults to today

        Returns:
            PaymentResult with the principal/interest split and new balance

        Raises:
            NotFound: loan or account missing (nothing is written)
        """
        amount = to_decimal(amount)
        if amount <= 0:
            raise ValueError("Payment amount must be positive")
        payment_date = parse_date(payment_date) or date.today()

        loan_record = await self.get_loan(loan_id)
        account = await self.store.get(Collections.ACCOUNTS, from_account_id)
        if account is None:
            raise NotFound(Collections.ACCOUNTS, from_account_id)

        loan = Loan.from_record(loan_record)
        principal, interest = payment_breakdown(loan, amount)
        new_balance = loan.current_balance - principal
        description = f"Loan payment - {loan.name}"

        async with WriteSaga(self.store, f"loan payment {loan_id}") as saga:
            category_id = await self.get_or_create_interest_category(saga)
            await saga.update(Collections.LOANS, dict(loan_record, currentBalance=str(new_balance)))
            await saga.update(Collections.ACCOUNTS, dict(
                account, balance=str(to_decimal(account.get("balance")) - amount)
            ))
            ledger_row = await saga.add(Collections.LOAN_TRANSACTIONS, {
                "loanId": loan_id,
                "type": "payment",
                "amount": str(amount),
                "principal": str(principal),
                "interest": str(interest),
                "date": payment_date.isoformat(),
                "fromAccountId": from_account_id,
                "description": description,
            })
            transaction = await saga.add(Collections.TRANSACTIONS, {
                "type": TransactionType.EXPENSE.value,
                "amount": str(amount),
                "date": payment_date.isoformat(),
                "categoryId": category_id,
                "accountId": from_account_id,
                "description": description,
            })

        log_action(
            logger, "info", f"Loan payment applied to {loan.name or loan_id}",
            action="loan_payment", collection=Collections.LOANS, record_id=loan_id,
            extra={
                "amount": str(amount),
                "principal": str(principal),
                "interest": str(interest),
                "new_balance": str(new_balance),
            }
        )

        return PaymentResult(
            principal=principal,
            interest=interest,
            new_balance=new_balance,
            loan_transaction_id=ledger_row["id"],
            transaction_id=transaction["id"]
        )

    async def get_or_create_interest_category(self, saga: Optional[WriteSaga] = None) -> str:
        """
        Id of an expense category mentioning "loan", created if none exists.

        A category created through `saga` is removed again if the saga rolls back.
        """
        categories = await self.store.find(Collections.CATEGORIES, type=CategoryType.EXPENSE.value)
        for category in categories:
            if "loan" in (category.get("name") or "").lower():
                return category["id"]

        add = saga.add if saga is not None else self.store.add
        category = await add(Collections.CATEGORIES, {
            "name": self.config.loan_category_name,
            "type": CategoryType.EXPENSE.value,
            "icon": "🏦",
            "parentId": None,
        })
        logger.info(f"Created loan expense category {category['id']}")
        return category["id"]

    async def loan_payments(self, loan_id: str) -> List[Dict[str, Any]]:
        """Payment ledger of a loan, oldest first"""
        await self.get_loan(loan_id)
        rows = await self.store.find(Collections.LOAN_TRANSACTIONS, loanId=loan_id)
        return sorted(rows, key=lambda r: (r.get("date") or "", r.get("createdAt") or ""))

    async def offset_saving(self, loan_id: str) -> Decimal:
        """Monthly interest saved by the linked offset account (0 without one)"""
        loan = Loan.from_record(await self.get_loan(loan_id))
        if not loan.linked_offset_id:
            return ZERO

        offset_account = await self.store.get(Collections.ACCOUNTS, loan.linked_offset_id)
        if offset_account is None:
            logger.warning(f"Offset account {loan.linked_offset_id} of loan {loan_id} not found")
            return ZERO

        return offset_interest_saving(loan, offset_account.get("balance"))

    async def preview_payment(self, loan_id: str, amount: Any) -> Tuple[Decimal, Decimal]:
        """Principal/interest split a payment would produce, without writing"""
        loan = Loan.from_record(await self.get_loan(loan_id))
        return payment_breakdown(loan, amount)
