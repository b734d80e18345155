"""
Tests for the recurring transaction and bill posting job
"""

import pytest
import pytest_asyncio
from decimal import Decimal
from datetime import date

from budget_tracker.errors import NotFound
from budget_tracker.models import advance
from budget_tracker.recurring import RecurringJob
from budget_tracker.store import Collections


TODAY = date(2024, 3, 15)


class TestDateArithmetic:
    """Test advancing dates by recurrence"""

    @pytest.mark.parametrize("frequency,expected", [
        ("weekly", date(2024, 1, 8)),
        ("fortnightly", date(2024, 1, 15)),
        ("monthly", date(2024, 2, 1)),
        ("quarterly", date(2024, 4, 1)),
        ("annually", date(2025, 1, 1)),
        ("yearly", date(2025, 1, 1)),
        ("sometimes", date(2024, 2, 1)),
        (None, date(2024, 2, 1)),
    ])
    def test_advance_date(self, frequency, expected):
        assert RecurringJob.advance_date("2024-01-01", frequency) == expected

    def test_month_end_is_clamped(self):
        assert RecurringJob.advance_date("2024-01-31", "monthly") == date(2024, 2, 29)

    def test_advance_several_periods(self):
        start = date(2024, 1, 31)
        assert [advance(start, "monthly", n) for n in (1, 2, 3)] == [
            date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)
        ]
        assert advance(start, "fortnightly", 2) == date(2024, 2, 28)

    def test_missing_date(self):
        with pytest.raises(ValueError):
            RecurringJob.advance_date(None, "monthly")


class TestAccountResolution:
    """Test picking the posting account for a template"""

    @pytest.fixture
    def job(self, config):
        return RecurringJob(store=None, config=config)

    @pytest.fixture
    def accounts(self):
        return [
            {"id": "overdrawn", "type": "bank", "balance": "-5"},
            {"id": "bank", "type": "bank", "balance": "100"},
            {"id": "card", "type": "credit", "balance": "-300"},
        ]

    def test_explicit_account_wins(self, job, accounts):
        assert job.resolve_account_id({"accountId": "mine", "type": "expense", "amount": "10"}, accounts) == "mine"

    def test_income_goes_to_bank_in_credit(self, job, accounts):
        assert job.resolve_account_id({"type": "income", "amount": "3000"}, accounts) == "bank"

    def test_income_without_bank_in_credit(self, job):
        accounts = [{"id": "card", "type": "credit", "balance": "0"}]
        assert job.resolve_account_id({"type": "income", "amount": "10"}, accounts) == "card"

    def test_small_expense_goes_to_credit(self, job, accounts):
        assert job.resolve_account_id({"type": "expense", "amount": "49.99"}, accounts) == "card"

    def test_large_expense_goes_to_bank(self, job, accounts):
        assert job.resolve_account_id({"type": "expense", "amount": "50"}, accounts) == "bank"

    def test_small_expense_without_credit(self, job):
        accounts = [{"id": "wallet", "type": "cash", "balance": "20"},
                    {"id": "bank", "type": "bank", "balance": "100"}]
        assert job.resolve_account_id({"type": "expense", "amount": "5"}, accounts) == "wallet"

    def test_no_accounts(self, job):
        assert job.resolve_account_id({"type": "expense", "amount": "5"}, []) is None


class TestRecurringPosting:
    """Test materializing recurring templates"""

    @pytest_asyncio.fixture
    async def job(self, store, config):
        return RecurringJob(store, config)

    @pytest_asyncio.fixture
    async def account(self, make_account):
        return await make_account(name="Everyday", balance="1000")

    @pytest_asyncio.fixture
    async def template(self, store, account):
        return await store.add(Collections.RECURRING, {
            "name": "Gym",
            "type": "expense",
            "amount": "100",
            "frequency": "monthly",
            "startDate": "2024-01-01",
            "categoryId": "exp_health",
        })

    @pytest.mark.asyncio
    async def test_posts_once_per_run(self, job, store, template, account):
        posted = await job.process_recurring(TODAY)

        assert len(posted) == 1
        txn = posted[0]
        assert txn["date"] == "2024-03-15"
        assert txn["description"] == "Auto: Gym"
        assert txn["accountId"] == account["id"]
        assert txn["categoryId"] == "exp_health"

        stored = await store.get(Collections.RECURRING, template["id"])
        assert stored["lastPostedDate"] == "2024-03-15"

        stored_account = await store.get(Collections.ACCOUNTS, account["id"])
        assert Decimal(stored_account["balance"]) == Decimal('900')

    @pytest.mark.asyncio
    async def test_second_run_same_day_posts_nothing(self, job, store, template):
        await job.process_recurring(TODAY)
        assert await job.process_recurring(TODAY) == []
        assert await store.count(Collections.TRANSACTIONS) == 1

    @pytest.mark.asyncio
    async def test_due_again_after_one_period(self, job, store, template):
        await job.process_recurring(TODAY)

        assert await job.process_recurring(date(2024, 4, 14)) == []
        assert len(await job.process_recurring(date(2024, 4, 15))) == 1

    @pytest.mark.asyncio
    async def test_missed_periods_post_once(self, job, store, account):
        """Three elapsed periods still produce a single posting dated today"""
        template = await store.add(Collections.RECURRING, {
            "name": "Rent", "type": "expense", "amount": "400",
            "frequency": "monthly", "lastPostedDate": "2024-01-15",
        })

        posted = await job.process_recurring(date(2024, 4, 15))

        assert [t["date"] for t in posted] == ["2024-04-15"]
        stored = await store.get(Collections.RECURRING, template["id"])
        assert stored["lastPostedDate"] == "2024-04-15"
        assert await job.process_recurring(date(2024, 4, 15)) == []

    @pytest.mark.asyncio
    async def test_not_yet_due(self, job, store, template):
        assert await job.process_recurring(date(2024, 1, 20)) == []

    @pytest.mark.asyncio
    async def test_template_without_dates_is_due(self, job, store, account):
        await store.add(Collections.RECURRING, {"name": "Salary", "type": "income", "amount": "2000"})

        posted = await job.process_recurring(TODAY)

        assert len(posted) == 1
        stored_account = await store.get(Collections.ACCOUNTS, account["id"])
        assert Decimal(stored_account["balance"]) == Decimal('3000')

    @pytest.mark.asyncio
    async def test_bad_template_does_not_stop_others(self, job, store, template):
        await store.add(Collections.RECURRING, {
            "name": "Broken", "type": "expense", "amount": "10", "startDate": "not-a-date"
        })

        posted = await job.process_recurring(TODAY)

        assert [t["description"] for t in posted] == ["Auto: Gym"]


class TestBills:
    """Test bill auto-pay and mark-paid"""

    @pytest_asyncio.fixture
    async def job(self, store, config):
        return RecurringJob(store, config)

    @pytest_asyncio.fixture
    async def account(self, make_account):
        return await make_account(name="Everyday", balance="1000")

    @pytest_asyncio.fixture
    async def utilities(self, store):
        return await store.add(Collections.CATEGORIES, {
            "id": "exp_utilities", "name": "Utilities", "type": "expense", "parentId": None
        })

    async def add_bill(self, store, **fields):
        return await store.add(Collections.BILLS, dict({
            "name": "Electricity",
            "amount": "150",
            "dueDate": "2024-03-01",
            "paid": False,
            "recurring": "",
        }, **fields))

    def test_bill_category_keywords(self, job):
        categories = [
            {"id": "u", "name": "Utilities"},
            {"id": "r", "name": "Rent"},
            {"id": "o", "name": "Other Expenses"},
        ]
        assert job.bill_category_id("Internet plan", categories) == "u"
        assert job.bill_category_id("Monthly RENT", categories) == "r"
        assert job.bill_category_id("Mortgage", categories) == "r"
        assert job.bill_category_id("Netflix", categories) == "o"
        assert job.bill_category_id("Netflix", []) is None

    @pytest.mark.asyncio
    async def test_due_bill_is_auto_paid(self, job, store, account, utilities):
        bill = await self.add_bill(store, accountId=account["id"])

        paid = await job.process_due_bills(TODAY)

        assert [b["id"] for b in paid] == [bill["id"]]
        assert (await store.get(Collections.BILLS, bill["id"]))["paid"] is True
        stored_account = await store.get(Collections.ACCOUNTS, account["id"])
        assert Decimal(stored_account["balance"]) == Decimal('850')

        [txn] = await store.find(Collections.TRANSACTIONS, billId=bill["id"])
        assert txn["categoryId"] == "exp_utilities"
        assert txn["date"] == "2024-03-15"

    @pytest.mark.asyncio
    async def test_insufficient_funds_leaves_bill_unpaid(self, job, store, account):
        bill = await self.add_bill(store, amount="2000", accountId=account["id"])

        assert await job.process_due_bills(TODAY) == []

        assert (await store.get(Collections.BILLS, bill["id"]))["paid"] is False
        stored_account = await store.get(Collections.ACCOUNTS, account["id"])
        assert stored_account["balance"] == "1000"
        assert await store.count(Collections.TRANSACTIONS) == 0

    @pytest.mark.asyncio
    async def test_skips_future_unassigned_and_paid(self, job, store, account):
        await self.add_bill(store, dueDate="2024-04-01", accountId=account["id"])
        await self.add_bill(store)
        await self.add_bill(store, paid=True, accountId=account["id"])
        await self.add_bill(store, accountId="missing")

        assert await job.process_due_bills(TODAY) == []
        assert await store.count(Collections.TRANSACTIONS) == 0

    @pytest.mark.asyncio
    async def test_mark_paid_spawns_next_occurrences(self, job, store, account, utilities):
        bill = await self.add_bill(store, dueDate="2024-01-15", recurring="monthly", accountId=account["id"])

        result = await job.mark_bill_paid(bill["id"], TODAY)

        assert result["bill"]["paid"] is True
        assert result["transaction"]["billId"] == bill["id"]
        assert [b["dueDate"] for b in result["spawned"]] == ["2024-02-15", "2024-03-15"]
        assert all(b["paid"] is False for b in result["spawned"])
        assert all(b["accountId"] == account["id"] for b in result["spawned"])
        assert await store.count(Collections.BILLS) == 3

        stored_account = await store.get(Collections.ACCOUNTS, account["id"])
        assert Decimal(stored_account["balance"]) == Decimal('850')

    @pytest.mark.asyncio
    async def test_month_end_bill_keeps_its_day(self, job, store):
        bill = await self.add_bill(store, dueDate="2024-01-31", recurring="monthly")

        result = await job.mark_bill_paid(bill["id"], TODAY)

        assert [b["dueDate"] for b in result["spawned"]] == ["2024-02-29", "2024-03-31"]

    @pytest.mark.asyncio
    async def test_mark_paid_without_account_or_funds_check(self, job, store):
        bill = await self.add_bill(store, amount="99999")

        result = await job.mark_bill_paid(bill["id"], TODAY)

        assert result["transaction"] is None
        assert result["spawned"] == []
        assert await store.count(Collections.TRANSACTIONS) == 0

    @pytest.mark.asyncio
    async def test_mark_paid_twice_rejected(self, job, store):
        bill = await self.add_bill(store)
        await job.mark_bill_paid(bill["id"], TODAY)

        with pytest.raises(ValueError):
            await job.mark_bill_paid(bill["id"], TODAY)

    @pytest.mark.asyncio
    async def test_mark_paid_missing_bill(self, job):
        with pytest.raises(NotFound):
            await job.mark_bill_paid("missing", TODAY)

    @pytest.mark.asyncio
    async def test_run_processes_both(self, job, store, account):
        await store.add(Collections.RECURRING, {"name": "Rent", "type": "expense", "amount": "400"})
        await self.add_bill(store, accountId=account["id"])

        result = await job.run(TODAY)

        assert len(result["recurring"]) == 1
        assert len(result["bills"]) == 1
        stored_account = await store.get(Collections.ACCOUNTS, account["id"])
        assert Decimal(stored_account["balance"]) == Decimal('450')
