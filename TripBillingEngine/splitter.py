"""
Splitter Module

This module handles the expense splitting logic for the trip billing engine.

Features:
    - Equal, exact and shares split strategies
    - Integer-cent allocation with deterministic remainder placement
    - Legacy name-as-id reference resolution
    - Soft-deleted participants kept in balance math

Data Model:
    Input - expenses (list of dicts):
        - payer_id: string (participant id or legacy name)
        - amount: int (cents, negative for refunds)
        - involved: list of participant references (empty = all active members)
        - split_type: string (equal, exact, shares; default equal)
        - split_details: dict of participant reference -> int

    Input - participants (list of dicts):
        - participant_id: string
        - name: string
        - is_deleted: bool (optional)

    Output - balances (list of dicts, sorted by descending amount):
        - participant_id: string
        - amount: int (positive = owed money, negative = owes money)

Functions:
    resolve_participant_id: Resolve an id or legacy name to a canonical id.
    build_resolution_map: Build the {name|id -> id} lookup for a trip.
    allocate_expense: Compute the per-participant debits of one expense.
    allocate_expenses: Payer and debits of every expense, resolved in one pass.
    calculate_balances: Calculate per-participant net balances.
"""

import logging
from collections.abc import Hashable
from fractions import Fraction
from math import floor, isfinite
from typing import Optional

from expenses import SPLIT_EQUAL, SPLIT_EXACT, SPLIT_SHARES
from participants import get_active_participants

logger = logging.getLogger(__name__)


def resolve_participant_id(identifier: str, participants: list[dict]) -> Optional[str]:
    """
    Resolve a participant reference to its canonical id.

    An exact id match wins; otherwise the first participant whose name
    matches is used (legacy data identified members by name).

    Args:
        identifier: Participant id or name.
        participants: List of participant dicts.

    Returns:
        str | None: Canonical participant id, or None if nothing matches.
    """
    if not identifier:
        return None

    for p in participants:
        if p["participant_id"] == identifier:
            return p["participant_id"]

    for p in participants:
        if p.get("name") == identifier:
            return p["participant_id"]

    return None


def build_resolution_map(participants: list[dict]) -> dict:
    """
    Build a {name|id -> canonical id} lookup once per calculation.

    Same precedence as resolve_participant_id: ids override names and the
    first participant carrying a name keeps it.
    """
    resolution = {}
    for p in participants:
        name = p.get("name")
        if name:
            resolution.setdefault(name, p["participant_id"])

    for p in participants:
        resolution[p["participant_id"]] = p["participant_id"]

    return resolution


def _resolve(resolution: dict, identifier, expense_id) -> Optional[str]:
    participant_id = resolution.get(identifier) if isinstance(identifier, Hashable) else None
    if participant_id is None:
        logger.debug("Dropping unresolved reference %r in expense %s", identifier, expense_id)
    return participant_id


def _split_equal(amount: int, participant_ids: list[str]) -> dict:
    """
    Divide amount evenly, handing the remainder out one cent at a time.

    Participants are sorted so the first `remainder` ids in lexicographic
    order absorb the extra cent. divmod floors, so the remainder is never
    negative and refunds sum back to amount exactly.
    """
    ordered = sorted(set(participant_ids))
    if not ordered:
        return {}

    base, remainder = divmod(amount, len(ordered))
    return {
        participant_id: base + (1 if index < remainder else 0)
        for index, participant_id in enumerate(ordered)
    }


def _clean_details(split_details, expense_id) -> dict:
    """
    Keep only split_details entries with a finite numeric value.

    A non-dict value counts as empty. Strings, None and bools are dropped,
    so a half-edited form never breaks the calculation.
    """
    if not isinstance(split_details, dict):
        if split_details:
            logger.debug("Ignoring non-mapping split_details in expense %s", expense_id)
        return {}

    cleaned = {}
    for identifier, value in split_details.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not isfinite(value):
            logger.debug("Dropping split value %r for %r in expense %s", value, identifier, expense_id)
            continue
        cleaned[identifier] = value
    return cleaned


def _split_exact(split_details: dict, resolution: dict, expense_id) -> dict:
    debits = {}
    for identifier, value in split_details.items():
        participant_id = _resolve(resolution, identifier, expense_id)
        if participant_id is None:
            continue
        debits[participant_id] = debits.get(participant_id, 0) + value
    return debits


def _split_shares(amount: int, split_details: dict, resolution: dict, expense_id) -> dict:
    """
    Divide amount proportionally to share weights.

    Every participant but the last (in sorted id order) pays the floor of
    their exact proportional share; the last pays whatever is left, so the
    allocations always add up to amount. Weights of unresolved references
    still count towards the total, so the last participant absorbs them.
    """
    total_shares = sum(split_details.values())
    if total_shares <= 0:
        logger.debug("Expense %s has no positive share weights, nothing debited", expense_id)
        return {}

    entries = []
    for identifier, shares in split_details.items():
        participant_id = _resolve(resolution, identifier, expense_id)
        if participant_id is not None:
            entries.append((participant_id, shares))
    entries.sort(key=lambda entry: entry[0])

    per_share = Fraction(amount) / Fraction(total_shares)
    debits = {}
    distributed = 0

    for index, (participant_id, shares) in enumerate(entries):
        if index == len(entries) - 1:
            share = amount - distributed
        else:
            share = floor(Fraction(shares) * per_share)
        debits[participant_id] = debits.get(participant_id, 0) + share
        distributed += share

    return debits


def _allocate(expense: dict, resolution: dict, default_ids: list[str]) -> dict:
    amount = expense.get("amount", 0)
    expense_id = expense.get("expense_id")
    split_type = expense.get("split_type") or SPLIT_EQUAL

    if split_type in (SPLIT_EXACT, SPLIT_SHARES):
        split_details = _clean_details(expense.get("split_details"), expense_id)
        if split_type == SPLIT_EXACT:
            return _split_exact(split_details, resolution, expense_id)
        return _split_shares(amount, split_details, resolution, expense_id)

    involved = expense.get("involved") or []
    if not involved:
        return _split_equal(amount, default_ids)

    receivers = []
    for identifier in involved:
        participant_id = _resolve(resolution, identifier, expense_id)
        if participant_id is not None:
            receivers.append(participant_id)
    return _split_equal(amount, receivers)


def allocate_expense(expense: dict, participants: list[dict]) -> dict:
    """
    Compute how much each participant owes for a single expense.

    Args:
        expense: Expense dict.
        participants: List of participant dicts.

    Returns:
        dict: participant_id -> debit in cents. Participants that owe
              nothing for this expense are absent.
    """
    default_ids = [p["participant_id"] for p in get_active_participants(participants)]
    return _allocate(expense, build_resolution_map(participants), default_ids)


def allocate_expenses(expenses: list[dict], participants: list[dict]) -> list[tuple]:
    """
    Resolve the payer and debits of every expense in one pass.

    The resolution map and active members are built once for the whole list.

    Returns:
        list[tuple]: (payer_id or None, debits dict) per expense, in input order.
    """
    resolution = build_resolution_map(participants)
    default_ids = [p["participant_id"] for p in get_active_participants(participants)]

    return [
        (
            _resolve(resolution, expense.get("payer_id"), expense.get("expense_id")),
            _allocate(expense, resolution, default_ids)
        )
        for expense in expenses
    ]


def calculate_balances(expenses: list[dict], participants: list[dict]) -> list[dict]:
    """
    Calculate per-participant net balances from expenses.

    For each expense, in input order:
        1. The resolved payer is credited with the full amount
        2. Each resolved participant is debited their share, per split_type:
           - equal: amount split over involved (or all active members)
           - exact: split_details values debited as-is
           - shares: amount split proportionally to split_details weights

    Args:
        expenses: List of expense dicts.
        participants: List of participant dicts, soft-deleted ones included.

    Returns:
        list[dict]: One {participant_id, amount} entry per participant,
                    sorted by descending amount.

    Notes:
        - Never raises on malformed split_details or unresolved references,
          both are dropped
        - exact details that disagree with amount are not corrected
        - Does NOT modify expenses or participants
    """
    # Every participant starts at zero, soft-deleted ones included
    balances = {p["participant_id"]: 0 for p in participants}

    for expense, (payer_id, debits) in zip(expenses, allocate_expenses(expenses, participants)):
        if payer_id is not None:
            balances[payer_id] += expense.get("amount", 0)

        for participant_id, debit in debits.items():
            balances[participant_id] -= debit

    result = [
        {"participant_id": participant_id, "amount": amount}
        for participant_id, amount in balances.items()
    ]
    result.sort(key=lambda b: b["amount"], reverse=True)
    return result
