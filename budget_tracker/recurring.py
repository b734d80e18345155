"""
Recurring / Due Posting Job

Runs on application start. Materializes one transaction per due recurring
template and auto-pays due bills whose account can cover them. Also holds
the manual mark-paid path for bills.

Every posting updates the paying account's balance: income adds, expense
subtracts.
"""

from datetime import date
from typing import Any, Dict, List, Optional
import logging

from .config import BudgetTrackerConfig, get_config
from .currency import to_decimal
from .errors import InsufficientFunds, NotFound
from .logging_config import log_action
from .models import AccountType, TransactionType, advance, parse_date
from .saga import WriteSaga
from .store import Collections, RecordStore


logger = logging.getLogger(__name__)


UTILITY_KEYWORDS = ("electric", "power", "utility", "gas", "water", "internet", "phone", "mobile")
HOUSING_KEYWORDS = ("rent", "mortgage")


class RecurringJob:
    """
    Posts due recurring transactions and bills
    """

    def __init__(self, store: RecordStore, config: Optional[BudgetTrackerConfig] = None):
        self.store = store
        self.config = config or get_config()

    @staticmethod
    def advance_date(value: Any, frequency: Optional[str]) -> date:
        """One period after `value` (weekly, fortnightly, monthly, quarterly, annually)"""
        start = parse_date(value)
        if start is None:
            raise ValueError("A date is required")
        return advance(start, frequency)

    def next_due(self, template: Dict[str, Any]) -> Optional[date]:
        """Due date following the watermark (or startDate). None means due now."""
        anchor = template.get("lastPostedDate") or template.get("startDate")
        if not anchor:
            return None
        return self.advance_date(anchor, template.get("frequency"))

    def resolve_account_id(
        self,
        template: Dict[str, Any],
        accounts: List[Dict[str, Any]]
    ) -> Optional[str]:
        """
        Pick the posting account for a template.

        Explicit accountId wins. Income goes to a bank account in credit,
        small expenses to a credit card, larger ones to a bank account in
        credit, and anything else to the first account.
        """
        if template.get("accountId"):
            return template["accountId"]
        if not accounts:
            return None

        bank = next((a for a in accounts
                     if a.get("type") == AccountType.BANK.value and to_decimal(a.get("balance")) > 0), None)
        credit = next((a for a in accounts if a.get("type") == AccountType.CREDIT.value), None)

        if template.get("type") == TransactionType.INCOME.value:
            return (bank or accounts[0])["id"]

        amount = to_decimal(template.get("amount"))
        threshold = to_decimal(self.config.small_expense_threshold)
        if amount < threshold and credit:
            return credit["id"]
        if amount >= threshold and bank:
            return bank["id"]
        return accounts[0]["id"]

    async def _accounts(self) -> List[Dict[str, Any]]:
        accounts = await self.store.get_all(Collections.ACCOUNTS)
        return sorted(accounts, key=lambda a: (a.get("createdAt") or "", a["id"]))

    async def post_transaction(self, saga: WriteSaga, transaction: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a transaction and apply it to its account balance"""
        created = await saga.add(Collections.TRANSACTIONS, transaction)

        account_id = created.get("accountId")
        if not account_id:
            return created
        account = await self.store.get(Collections.ACCOUNTS, account_id)
        if account is None:
            logger.warning(f"Transaction {created['id']} posted to missing account {account_id}")
            return created

        amount = to_decimal(created.get("amount"))
        if created.get("type") == TransactionType.INCOME.value:
            balance = to_decimal(account.get("balance")) + amount
        else:
            balance = to_decimal(account.get("balance")) - amount
        await saga.update(Collections.ACCOUNTS, dict(account, balance=str(balance)))
        return created

    # ------------------------------------------------------------------
    # Recurring templates
    # ------------------------------------------------------------------

    async def process_recurring(self, today: Optional[date] = None) -> List[Dict[str, Any]]:
        """
        Post due recurring templates.

        At most one occurrence per template per run: the posting is dated
        today and the watermark moves to today, so elapsed periods beyond
        one are not caught up.
        """
        today = today or date.today()
        posted: List[Dict[str, Any]] = []

        for template in await self.store.get_all(Collections.RECURRING):
            try:
                due = self.next_due(template)
                if due is not None and today < due:
                    continue

                account_id = self.resolve_account_id(template, await self._accounts())
                async with WriteSaga(self.store, f"recurring {template['id']}") as saga:
                    transaction = await self.post_transaction(saga, {
                        "type": template.get("type") or TransactionType.EXPENSE.value,
                        "amount": str(to_decimal(template.get("amount"))),
                        "date": today.isoformat(),
                        "categoryId": template.get("categoryId"),
                        "accountId": account_id,
                        "description": f"Auto: {template.get('name', '')}",
                    })
                    await saga.update(Collections.RECURRING, dict(template, lastPostedDate=today.isoformat()))

                posted.append(transaction)
                log_action(
                    logger, "info", f"Generated transaction from recurring: {template.get('name')}",
                    action="recurring_post", collection=Collections.RECURRING, record_id=template["id"],
                    extra={"account_id": account_id, "transaction_id": transaction["id"]}
                )
            except Exception:
                logger.exception(f"Recurring template {template.get('id')} failed to post")

        return posted

    # ------------------------------------------------------------------
    # Bills
    # ------------------------------------------------------------------

    def bill_category_id(self, bill_name: str, categories: List[Dict[str, Any]]) -> Optional[str]:
        """Category for a bill, chosen from keywords in its name"""
        name = (bill_name or "").lower()
        if any(word in name for word in UTILITY_KEYWORDS):
            wanted = "utilit"
        elif any(word in name for word in HOUSING_KEYWORDS):
            wanted = "rent"
        else:
            wanted = "other"

        for category in categories:
            if wanted in (category.get("name") or "").lower():
                return category["id"]
        return None

    def _bill_transaction(self, bill: Dict[str, Any], today: date, category_id: Optional[str]) -> Dict[str, Any]:
        return {
            "type": TransactionType.EXPENSE.value,
            "amount": str(to_decimal(bill.get("amount"))),
            "date": today.isoformat(),
            "categoryId": category_id,
            "accountId": bill.get("accountId"),
            "description": f"Bill: {bill.get('name', '')}",
            "billId": bill["id"],
        }

    async def process_due_bills(self, today: Optional[date] = None) -> List[Dict[str, Any]]:
        """
        Auto-pay unpaid bills that are due and have an account.

        Bills whose account cannot cover them are left unpaid for the next
        run; that is not an error.
        """
        today = today or date.today()
        categories = await self.store.find(Collections.CATEGORIES, type="expense")
        bills = sorted(await self.store.get_all(Collections.BILLS), key=lambda b: b.get("dueDate") or "")
        paid: List[Dict[str, Any]] = []

        for bill in bills:
            if bill.get("paid") or not bill.get("accountId"):
                continue
            try:
                due = parse_date(bill.get("dueDate"))
                if due is None or due > today:
                    continue
                paid.append(await self._autopay(bill, today, categories))
            except (InsufficientFunds, NotFound) as e:
                log_action(
                    logger, "info", f"Skipping bill {bill.get('name')}: {e}",
                    action="bill_autopay_skipped", collection=Collections.BILLS, record_id=bill["id"]
                )
            except Exception:
                logger.exception(f"Bill {bill['id']} failed to auto-pay")

        return paid

    async def _autopay(self, bill: Dict[str, Any], today: date, categories: List[Dict[str, Any]]) -> Dict[str, Any]:
        account = await self.store.get(Collections.ACCOUNTS, bill["accountId"])
        if account is None:
            raise NotFound(Collections.ACCOUNTS, bill["accountId"])

        balance = to_decimal(account.get("balance"))
        amount = to_decimal(bill.get("amount"))
        if balance < amount:
            raise InsufficientFunds(account["id"], balance, amount)

        async with WriteSaga(self.store, f"bill autopay {bill['id']}") as saga:
            await self.post_transaction(saga, self._bill_transaction(
                bill, today, self.bill_category_id(bill.get("name"), categories)
            ))
            updated = await saga.update(Collections.BILLS, dict(bill, paid=True))

        log_action(
            logger, "info", f"Auto-paid bill: {bill.get('name')}",
            action="bill_autopay", collection=Collections.BILLS, record_id=bill["id"],
            extra={"amount": str(amount), "account_id": account["id"]}
        )
        return updated

    async def mark_bill_paid(self, bill_id: str, today: Optional[date] = None) -> Dict[str, Any]:
        """
        Mark a bill paid by hand.

        Posts the expense when the bill has an account (no balance check)
        and, for a recurring bill, schedules the next occurrences.

        Returns:
            {"bill": ..., "transaction": ... or None, "spawned": [...]}
        """
        today = today or date.today()
        bill = await self.store.get(Collections.BILLS, bill_id)
        if bill is None:
            raise NotFound(Collections.BILLS, bill_id)
        if bill.get("paid"):
            raise ValueError(f"Bill {bill_id} is already paid")

        transaction = None
        spawned: List[Dict[str, Any]] = []
        async with WriteSaga(self.store, f"mark bill paid {bill_id}") as saga:
            updated = await saga.update(Collections.BILLS, dict(bill, paid=True))

            if bill.get("accountId"):
                categories = await self.store.find(Collections.CATEGORIES, type="expense")
                transaction = await self.post_transaction(saga, self._bill_transaction(
                    bill, today, self.bill_category_id(bill.get("name"), categories)
                ))

            if bill.get("recurring"):
                # Occurrences are offset from the original due date, not chained
                due = parse_date(bill.get("dueDate")) or today
                for periods in range(1, self.config.bill_occurrences_ahead + 1):
                    spawned.append(await saga.add(Collections.BILLS, {
                        "name": bill.get("name"),
                        "amount": bill.get("amount"),
                        "dueDate": advance(due, bill["recurring"], periods).isoformat(),
                        "paid": False,
                        "recurring": bill["recurring"],
                        "accountId": bill.get("accountId"),
                    }))

        log_action(
            logger, "info", f"Bill marked paid: {bill.get('name')}",
            action="bill_mark_paid", collection=Collections.BILLS, record_id=bill_id,
            extra={"spawned": len(spawned), "posted": transaction is not None}
        )
        return {"bill": updated, "transaction": transaction, "spawned": spawned}

    async def run(self, today: Optional[date] = None) -> Dict[str, List[Dict[str, Any]]]:
        """Both posting passes, as run on application start"""
        today = today or date.today()
        posted = await self.process_recurring(today)
        paid = await self.process_due_bills(today)
        logger.info(f"Posting job: {len(posted)} recurring transaction(s), {len(paid)} bill(s) paid")
        return {"recurring": posted, "bills": paid}
