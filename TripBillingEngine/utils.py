"""
Utilities Module

This module provides utility functions and helpers for the trip billing
engine.

Features:
    - Transparency and traceability of cost calculations
    - Per-participant expense breakdown explanations
    - Money parsing (user input in currency units -> integer cents)
    - Currency formatting

Data Model:
    Input - participants: list of participant dicts
    Input - expenses: list of expense dicts
    Input - balances: list from calculate_balances()

Functions:
    explain_participant_share: Get detailed breakdown for one participant.
    explain_all_participants: Get detailed breakdown for all participants.
    parse_money_to_cents: Convert a money input to integer cents.
    format_currency: Format cents with currency symbol.
"""

from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Optional

from config.settings import get_settings
from expenses import SPLIT_EQUAL
from settlement import get_participant_balance
from splitter import allocate_expenses


def _explain(
    participant_id: str,
    expenses: list[dict],
    allocations: list[tuple],
    balances: list[dict]
) -> dict:
    expense_contributions = []
    total_share = 0
    total_paid = 0

    for expense, (payer_id, debits) in zip(expenses, allocations):
        if payer_id == participant_id:
            total_paid += expense.get("amount", 0)

        share = debits.get(participant_id)
        if share is None:
            continue

        expense_contributions.append({
            "expense_id": expense.get("expense_id", "N/A"),
            "title": expense.get("title", ""),
            "category": expense.get("category", "other"),
            "date": expense.get("date"),
            "total_expense_amount": expense.get("amount", 0),
            "split_type": expense.get("split_type") or SPLIT_EQUAL,
            "participant_share": share
        })
        total_share += share

    return {
        "participant_id": participant_id,
        "expense_contributions": expense_contributions,
        "total_share": total_share,
        "total_paid": total_paid,
        "net_balance": get_participant_balance(participant_id, balances)
    }


def explain_participant_share(
    participant_id: str,
    expenses: list[dict],
    participants: list[dict],
    balances: list[dict]
) -> dict:
    """
    Generate detailed explanation of how a participant's balance was formed.

    For each expense that debits the participant:
        - Shows expense details (id, title, category, date, total amount)
        - Shows the split type used
        - Shows the participant's exact share in cents

    Args:
        participant_id: ID of the participant to explain.
        expenses: List of expense dicts.
        participants: List of participant dicts.
        balances: Output from calculate_balances().

    Returns:
        dict: Explanation containing:
            - participant_id: string
            - expense_contributions: list of dicts with expense breakdown
            - total_share: int (sum of all contributions)
            - total_paid: int (sum of expenses paid by the participant)
            - net_balance: int (from balances)
    """
    known_ids = {p["participant_id"] for p in participants}
    if participant_id not in known_ids:
        return {
            "participant_id": participant_id,
            "expense_contributions": [],
            "total_share": 0,
            "total_paid": 0,
            "net_balance": 0,
            "error": f"Participant {participant_id} not found"
        }

    return _explain(participant_id, expenses, allocate_expenses(expenses, participants), balances)


def explain_all_participants(
    expenses: list[dict],
    participants: list[dict],
    balances: list[dict]
) -> list[dict]:
    """
    Generate detailed explanations for all participants.

    Expenses are allocated once and shared by every explanation.

    Returns:
        list[dict]: One explanation per participant, ordered by participant_id.
    """
    allocations = allocate_expenses(expenses, participants)
    explanations = [
        _explain(p["participant_id"], expenses, allocations, balances)
        for p in participants
    ]
    explanations.sort(key=lambda x: x["participant_id"])
    return explanations


def _normalize_currency_string(value: str) -> str:
    """
    Normalize EU (1.000,50) and US (1,000.50) notations to 1000.50.

    A single dot is read as a decimal point, so "1.000" means one unit.
    """
    clean = value.strip()

    if "," in clean and "." in clean:
        if clean.rfind(",") > clean.rfind("."):
            clean = clean.replace(".", "").replace(",", ".")
        else:
            clean = clean.replace(",", "")
    elif "," in clean:
        clean = clean.replace(",", ".", 1)
    elif clean.count(".") > 1:
        clean = clean.replace(".", "")

    return clean


def parse_money_to_cents(value):
    """
    Convert a money input to integer cents.

    Strings are user input in currency units ("12,50" -> 1250); digits past
    the second decimal are truncated. Numbers are already cents and pass
    through unchanged.

    Args:
        value: String in currency units, or a number in cents.

    Returns:
        int: Amount in cents (numbers are returned as given). Unparseable
             strings give 0.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value

    if not isinstance(value, str):
        return 0

    try:
        amount = Decimal(_normalize_currency_string(value))
    except InvalidOperation:
        return 0

    if not amount.is_finite():
        return 0

    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_DOWN))


def format_currency(amount: int, symbol: Optional[str] = None) -> str:
    """
    Format an amount in cents with the currency symbol.

    Args:
        amount: Amount in cents.
        symbol: Currency symbol (default: CURRENCY_SYMBOL setting).

    Returns:
        str: Formatted string like "€1,234.56".
    """
    if symbol is None:
        symbol = get_settings().currency_symbol
    return f"{symbol}{Decimal(amount) / 100:,.2f}"
