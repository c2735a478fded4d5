"""
Analytics Module

This module provides spending statistics for the trip billing engine.

Features:
    - Category-wise expense breakdown with percentage shares
    - Total group spending
    - Settlement transfers excluded from both
    - Expense list ordering, category filter and text search

Data Model:
    Input - expenses: list of dicts with:
        - amount: int (cents)
        - category: string (missing = "other")

    Output - list of category stats:
        - category: string
        - label: string
        - amount: int (cents)
        - percentage: float (share of total spending, 0-100)

Functions:
    calculate_category_stats: Aggregate spending per category.
    calculate_total_spending: Sum all non-transfer expenses.
    sort_expenses: Order expenses newest first.
    filter_expenses: Category and text search over the sorted expense list.
"""

from collections import defaultdict
from collections.abc import Hashable
from datetime import datetime, timezone
from typing import Optional

from expenses import CATEGORIES, DEFAULT_CATEGORY, TRANSFER_CATEGORY
from splitter import build_resolution_map

# Category filter value meaning "no filter"
ALL_CATEGORIES = "all"


def _spending_expenses(expenses: list[dict]) -> list[dict]:
    return [e for e in expenses if e.get("category") != TRANSFER_CATEGORY]


def calculate_total_spending(expenses: list[dict]) -> int:
    """Sum the amounts of all non-transfer expenses."""
    return sum(e.get("amount", 0) for e in _spending_expenses(expenses))


def calculate_category_stats(expenses: list[dict]) -> list[dict]:
    """
    Aggregate non-transfer spending by category.

    Args:
        expenses: List of expense dicts with amount and category.

    Returns:
        list[dict]: One entry per category with nonzero spend, sorted by
                    descending amount. Empty if total spending is zero.

    Notes:
        - Unknown categories keep their id but use the "other" label
        - Refunds (negative amounts) reduce their category's total
    """
    spending = _spending_expenses(expenses)
    total = sum(e.get("amount", 0) for e in spending)

    # Guard the percentage division below
    if total == 0:
        return []

    category_totals = defaultdict(int)
    for expense in spending:
        category = expense.get("category") or DEFAULT_CATEGORY
        category_totals[category] += expense.get("amount", 0)

    stats = [
        {
            "category": category,
            "label": CATEGORIES.get(category, CATEGORIES[DEFAULT_CATEGORY]),
            "amount": amount,
            "percentage": amount / total * 100
        }
        for category, amount in category_totals.items()
        if amount != 0
    ]
    stats.sort(key=lambda s: s["amount"], reverse=True)
    return stats


def _date_key(date_str) -> float:
    """Timestamp for ordering; missing or unparseable dates sort as oldest."""
    if not isinstance(date_str, str):
        return float("-inf")
    try:
        parsed = datetime.fromisoformat(date_str.replace("Z", "+00:00"))
    except ValueError:
        return float("-inf")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def _id_key(expense_id) -> tuple:
    # Numeric ids compare numerically, everything else as strings
    if isinstance(expense_id, (int, float)) and not isinstance(expense_id, bool):
        return (0, expense_id, "")
    return (1, 0, str(expense_id))


def sort_expenses(expenses: list[dict]) -> list[dict]:
    """
    Order expenses newest first, breaking date ties by descending id.

    Returns:
        list[dict]: A new sorted list; the input is not modified.
    """
    return sorted(
        expenses,
        key=lambda e: (_date_key(e.get("date")), _id_key(e.get("expense_id"))),
        reverse=True
    )


def filter_expenses(
    expenses: list[dict],
    participants: list[dict],
    query: str = "",
    category: Optional[str] = None
) -> list[dict]:
    """
    Sort expenses and keep those matching a category and a search query.

    The query is matched case-insensitively against the title, the payer's
    name and the names of the involved participants. Payer and involved
    references resolve by id or legacy name, like in balance calculation.

    Args:
        expenses: List of expense dicts.
        participants: List of participant dicts.
        query: Search text; blank matches everything.
        category: Category id to keep; None or "all" keeps every category.

    Returns:
        list[dict]: Matching expenses, newest first.
    """
    ordered = sort_expenses(expenses)
    q = (query or "").strip().lower()
    category_active = category not in (None, "", ALL_CATEGORIES)

    if not q and not category_active:
        return ordered

    resolution = build_resolution_map(participants)
    names = {p["participant_id"]: (p.get("name") or p["participant_id"]).lower() for p in participants}

    def _name_of(identifier) -> str:
        participant_id = resolution.get(identifier) if isinstance(identifier, Hashable) else None
        return names.get(participant_id, "")

    def _matches(expense: dict) -> bool:
        if category_active and expense.get("category") != category:
            return False
        if not q:
            return True
        if q in (expense.get("title") or "").lower() or q in _name_of(expense.get("payer_id")):
            return True
        return any(q in _name_of(identifier) for identifier in expense.get("involved") or [])

    return [e for e in ordered if _matches(e)]
