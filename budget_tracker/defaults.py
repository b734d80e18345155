"""
Default Data

Starter categories and demo accounts written once, when a brand new store
is created.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

from .ids import generate_id
from .storage import StorageInterface


DEFAULT_CATEGORIES: List[Dict[str, Any]] = [
    # Income
    {"id": "inc_salary", "name": "Salary", "type": "income", "icon": "💵", "parentId": None},
    {"id": "inc_freelance", "name": "Freelance", "type": "income", "icon": "💻", "parentId": None},
    {"id": "inc_investments", "name": "Investments", "type": "income", "icon": "📈", "parentId": None},
    {"id": "inc_rental", "name": "Rental Income", "type": "income", "icon": "🏘️", "parentId": None},
    {"id": "inc_other", "name": "Other Income", "type": "income", "icon": "💰", "parentId": None},

    # Expense (main)
    {"id": "exp_housing", "name": "Housing", "type": "expense", "icon": "🏠", "parentId": None},
    {"id": "exp_transport", "name": "Transportation", "type": "expense", "icon": "🚗", "parentId": None},
    {"id": "exp_food", "name": "Food & Dining", "type": "expense", "icon": "🍽️", "parentId": None},
    {"id": "exp_utilities", "name": "Utilities", "type": "expense", "icon": "💡", "parentId": None},
    {"id": "exp_health", "name": "Health & Medical", "type": "expense", "icon": "⚕️", "parentId": None},
    {"id": "exp_entertainment", "name": "Entertainment", "type": "expense", "icon": "🎬", "parentId": None},
    {"id": "exp_shopping", "name": "Shopping", "type": "expense", "icon": "🛍️", "parentId": None},
    {"id": "exp_other", "name": "Other Expenses", "type": "expense", "icon": "💼", "parentId": None},

    # Housing
    {"id": "exp_housing_rent", "name": "Rent", "type": "expense", "icon": "🏠", "parentId": "exp_housing"},
    {"id": "exp_housing_mortgage", "name": "Mortgage", "type": "expense", "icon": "🏦", "parentId": "exp_housing"},

    # Transportation
    {"id": "exp_transport_fuel", "name": "Fuel", "type": "expense", "icon": "⛽", "parentId": "exp_transport"},
    {"id": "exp_transport_insurance", "name": "Car Insurance", "type": "expense", "icon": "🚗", "parentId": "exp_transport"},

    # Food
    {"id": "exp_food_groceries", "name": "Groceries", "type": "expense", "icon": "🛒", "parentId": "exp_food"},
    {"id": "exp_food_restaurants", "name": "Restaurants", "type": "expense", "icon": "🍕", "parentId": "exp_food"},
]


def demo_accounts(currency: str) -> List[Dict[str, Any]]:
    return [
        {"name": "Bank Account", "type": "bank", "balance": "1000", "currency": currency},
        {"name": "Wallet", "type": "cash", "balance": "200", "currency": currency},
    ]


def seed_initial_data(storage: StorageInterface, currency: str = "AUD") -> None:
    """Write default categories and demo accounts (first store creation only)"""
    now = datetime.now(timezone.utc).isoformat()

    for account in demo_accounts(currency):
        record = dict(account, id=generate_id(), createdAt=now, updatedAt=now)
        storage.save("accounts", record["id"], record)

    for category in DEFAULT_CATEGORIES:
        record = dict(category, createdAt=now, updatedAt=now)
        storage.save("categories", record["id"], record)
