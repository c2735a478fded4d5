"""
Settlement Module

This module handles the settlement calculations for the trip billing engine.

Features:
    - Convert net balances into settlement transactions
    - Minimize number of transactions using greedy algorithm
    - Integer-cent arithmetic throughout
    - Settled-trip and leave-trip checks

Data Model:
    Input - balances (list of dicts, as returned by calculate_balances):
        - participant_id: string
        - amount: int (positive = owed money, negative = owes money)

    Output - list of settlement transactions:
        - from_participant: string (debtor who pays)
        - to_participant: string (creditor who receives)
        - amount: int (positive cents)

Functions:
    calculate_settlements: Convert balances into minimal settlement transactions.
    get_participant_balance: Look up one participant's balance.
    is_settled: Check whether every balance is within tolerance of zero.
    can_participant_leave: Check whether a participant may leave the trip.
"""

import logging
from typing import Optional

from config.settings import get_settings

logger = logging.getLogger(__name__)

# Balances closer than one cent to zero count as cleared
SETTLED_EPSILON = 1


def calculate_settlements(balances: list[dict]) -> list[dict]:
    """
    Convert net balances into minimal settlement transactions.

    Uses a greedy algorithm:
        1. Separate participants into debtors (amount < 0) and creditors (amount > 0)
        2. Sort debtors by most negative balance (largest debt first)
        3. Sort creditors by most positive balance (largest credit first)
        4. Walk both lists with two cursors:
           - Settle the minimum of the current debtor's debt and creditor's credit
           - Update remaining balances
           - Advance whichever cursor (or both) reached zero
        5. Stop when either list runs out

    Args:
        balances: List of {participant_id, amount} dicts.

    Returns:
        list[dict]: List of settlement transactions, each containing:
            - from_participant: string (debtor who pays)
            - to_participant: string (creditor who receives)
            - amount: int (cents)

    Notes:
        - At most (debtors + creditors - 1) transactions
        - Total settled equals the sum of positive balances
        - Does NOT modify input balances
    """
    # Work on copies so the caller's balances stay untouched
    debtors = [[b["participant_id"], b["amount"]] for b in balances if b["amount"] < 0]
    creditors = [[b["participant_id"], b["amount"]] for b in balances if b["amount"] > 0]

    debtors.sort(key=lambda x: x[1])
    creditors.sort(key=lambda x: x[1], reverse=True)

    settlements = []
    debtor_idx = 0
    creditor_idx = 0

    while debtor_idx < len(debtors) and creditor_idx < len(creditors):
        debtor_id, debt_amount = debtors[debtor_idx]
        creditor_id, credit_amount = creditors[creditor_idx]

        settlement_amount = min(abs(debt_amount), credit_amount)

        if settlement_amount > 0:
            settlements.append({
                "from_participant": debtor_id,
                "to_participant": creditor_id,
                "amount": settlement_amount
            })
            debtors[debtor_idx][1] = debt_amount + settlement_amount
            creditors[creditor_idx][1] = credit_amount - settlement_amount

        if abs(debtors[debtor_idx][1]) < SETTLED_EPSILON:
            debtor_idx += 1

        if creditors[creditor_idx][1] < SETTLED_EPSILON:
            creditor_idx += 1

    logger.debug(
        "Planned %d settlements for %d debtors and %d creditors",
        len(settlements), len(debtors), len(creditors)
    )
    return settlements


def get_participant_balance(participant_id: Optional[str], balances: list[dict]) -> int:
    """
    Get a participant's balance.

    Args:
        participant_id: Participant to look up.
        balances: List of {participant_id, amount} dicts.

    Returns:
        int: The participant's amount, or 0 if they have no balance entry.
    """
    for balance in balances:
        if balance["participant_id"] == participant_id:
            return balance["amount"]
    return 0


def is_settled(balances: list[dict], tolerance: Optional[int] = None) -> bool:
    """
    Check whether a trip is settled.

    A trip is settled when every balance is strictly within `tolerance`
    cents of zero. The default tolerance comes from
    SETTLED_TOLERANCE_MARGIN and lets one-cent rounding leftovers pass.
    """
    if tolerance is None:
        tolerance = get_settings().settled_tolerance_margin
    return all(abs(b["amount"]) < tolerance for b in balances)


def can_participant_leave(
    participant_id: Optional[str],
    balances: list[dict],
    margin: Optional[int] = None
) -> bool:
    """
    Check whether a participant may leave the trip.

    Args:
        participant_id: Participant who wants to leave.
        balances: List of {participant_id, amount} dicts.
        margin: Largest absolute balance allowed, in cents. Defaults to
            MAX_LEAVE_BALANCE_MARGIN.

    Returns:
        bool: True if the participant neither owes nor is owed more than margin.
    """
    if margin is None:
        margin = get_settings().max_leave_balance_margin
    return abs(get_participant_balance(participant_id, balances)) <= margin
