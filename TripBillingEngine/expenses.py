"""
Expenses Module

This module defines the expense record used by the trip billing engine,
along with the category catalogue and input-boundary validation.

Features:
    - Expense record with dict conversion
    - Category catalogue (transfer marks peer-to-peer settlement records)
    - Three split strategies: equal, exact, shares
    - Edit-form validation rules (kept out of the engine itself)
    - Transfer record mirroring a settlement (write-back)

Data Model:
    Expense fields:
        - expense_id: string
        - title: string
        - amount: int (minor currency units; negative = refund)
        - payer_id: string (participant id or legacy name)
        - category: string (see CATEGORIES)
        - involved: list of participant references (empty = everyone)
        - split_type: string (equal, exact, shares)
        - split_details: dict of participant reference -> int
        - date: string (ISO-8601)

Functions:
    validate_expense: Validate an expense dict at the input boundary.
    settlement_to_expense: Build the transfer expense recording a settlement.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional


TRANSFER_CATEGORY = "transfer"
DEFAULT_CATEGORY = "other"

# Category id -> display label
CATEGORIES = {
    "food": "Food",
    "transport": "Transport",
    "home": "Accommodation",
    "drinks": "Drinks",
    "travel": "Travel",
    "tickets": "Tickets",
    "shopping": "Shopping",
    "entertainment": "Entertainment",
    TRANSFER_CATEGORY: "Transfer",
    DEFAULT_CATEGORY: "Other",
}

VALID_CATEGORIES = set(CATEGORIES)

SPLIT_EQUAL = "equal"
SPLIT_EXACT = "exact"
SPLIT_SHARES = "shares"
SPLIT_TYPES = (SPLIT_EQUAL, SPLIT_EXACT, SPLIT_SHARES)

MAX_TITLE_LENGTH = 50


class Expense:
    """
    Represents a single financial event in a trip.

    Attributes:
        expense_id (str): Unique identifier within the trip.
        title (str): Short description.
        amount (int): Amount in minor currency units, negative for refunds.
        payer_id (str): Reference to the participant who fronted the money.
        category (str): Category id; "transfer" marks a settlement payment.
        involved (list[str]): Participant references sharing the cost.
        split_type (str): One of equal, exact, shares.
        split_details (dict[str, int]): Per-participant cents or weights.
        date (str): ISO-8601 timestamp.
    """

    def __init__(
        self,
        expense_id: str,
        amount: int,
        payer_id: str,
        category: str = DEFAULT_CATEGORY,
        involved: Optional[list[str]] = None,
        split_type: str = SPLIT_EQUAL,
        split_details: Optional[dict] = None,
        date: Optional[str] = None,
        title: str = ""
    ):
        self.expense_id = expense_id
        self.title = title
        self.amount = amount
        self.payer_id = payer_id
        self.category = category
        self.involved = list(involved) if involved else []
        self.split_type = split_type
        self.split_details = dict(split_details) if split_details else {}
        self.date = date

    def to_dict(self) -> dict:
        """Convert expense to a plain dictionary."""
        return {
            "expense_id": self.expense_id,
            "title": self.title,
            "amount": self.amount,
            "payer_id": self.payer_id,
            "category": self.category,
            "involved": list(self.involved),
            "split_type": self.split_type,
            "split_details": dict(self.split_details),
            "date": self.date
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Expense":
        """Create an Expense instance from a dictionary."""
        return cls(
            expense_id=data.get("expense_id"),
            title=data.get("title", ""),
            amount=data.get("amount"),
            payer_id=data.get("payer_id"),
            category=data.get("category") or DEFAULT_CATEGORY,
            involved=data.get("involved", []),
            split_type=data.get("split_type") or SPLIT_EQUAL,
            split_details=data.get("split_details", {}),
            date=data.get("date")
        )

    def __repr__(self) -> str:
        return (
            f"Expense(id='{self.expense_id}', payer='{self.payer_id}', "
            f"amount={self.amount}, split='{self.split_type}')"
        )


def _is_int(value) -> bool:
    # bool is an int subclass but never a valid amount
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_date(date_str: str, field_name: str) -> bool:
    """
    Validate an ISO-8601 date or timestamp string.

    Raises:
        ValueError: If the string cannot be parsed.
    """
    if not isinstance(date_str, str):
        raise ValueError(f"{field_name} must be an ISO-8601 string, got: {date_str}")
    try:
        datetime.fromisoformat(date_str.replace("Z", "+00:00"))
        return True
    except ValueError:
        raise ValueError(f"{field_name} must be an ISO-8601 date, got: {date_str}")


def _validate_non_empty_string(value: str, field_name: str) -> bool:
    """
    Validate that a string is non-empty.

    Raises:
        ValueError: If string is empty or not a string.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string")
    return True


def validate_expense(expense: dict, participant_ids: Optional[set[str]] = None) -> bool:
    """
    Validate an expense dict against the edit-form rules.

    The billing engine never calls this: historical data is computed
    best-effort. Callers creating or editing expenses run it first.

    Rules:
        - title and payer_id are non-empty, title at most 50 characters
        - amount is a positive integer (cents)
        - category is a known category id
        - involved is a non-empty list without duplicates
        - date is a valid ISO-8601 string
        - split_type is equal, exact or shares
        - exact: detail values are non-negative integers summing to at most
          amount (the payer absorbs the rest)
        - shares: detail values are non-negative and total more than zero
        - exact/shares: every split_details key appears in involved
        - if participant_ids is given, payer and involved must exist in it

    Args:
        expense: Expense dict to validate.
        participant_ids: Optional set of existing participant ids.

    Returns:
        bool: True if valid.

    Raises:
        ValueError: On the first rule that fails.
    """
    title = expense.get("title")
    _validate_non_empty_string(title, "title")
    if len(title.strip()) > MAX_TITLE_LENGTH:
        raise ValueError(f"title must be at most {MAX_TITLE_LENGTH} characters")

    payer_id = expense.get("payer_id")
    _validate_non_empty_string(payer_id, "payer_id")

    amount = expense.get("amount")
    if not _is_int(amount) or amount <= 0:
        raise ValueError(f"amount must be a positive integer number of cents, got: {amount}")

    category = expense.get("category")
    if category not in VALID_CATEGORIES:
        raise ValueError(f"category must be one of {sorted(VALID_CATEGORIES)}, got: {category}")

    involved = expense.get("involved")
    if not isinstance(involved, list) or len(involved) == 0:
        raise ValueError("involved must be a non-empty list of participant ids")
    if len(set(involved)) != len(involved):
        raise ValueError("involved must not contain the same participant twice")

    _validate_date(expense.get("date"), "date")

    split_type = expense.get("split_type") or SPLIT_EQUAL
    if split_type not in SPLIT_TYPES:
        raise ValueError(f"split_type must be one of {SPLIT_TYPES}, got: {split_type}")

    split_details = expense.get("split_details") or {}
    if split_type in (SPLIT_EXACT, SPLIT_SHARES):
        for key, value in split_details.items():
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value < 0:
                raise ValueError(f"split_details['{key}'] must be a non-negative number, got: {value}")

        if split_type == SPLIT_EXACT:
            if not all(_is_int(v) for v in split_details.values()):
                raise ValueError("exact split_details must be integer cents")
            if sum(split_details.values()) > amount:
                raise ValueError("exact split_details add up to more than the expense amount")
        elif sum(split_details.values()) <= 0:
            raise ValueError("shares split_details must assign at least one share")

        involved_set = set(involved)
        for key in split_details:
            if key not in involved_set:
                raise ValueError(f"split_details participant '{key}' is not listed in involved")

    if participant_ids is not None:
        if payer_id not in participant_ids:
            raise ValueError(f"payer_id '{payer_id}' does not exist in the trip")
        for participant_id in involved:
            if participant_id not in participant_ids:
                raise ValueError(f"involved participant '{participant_id}' does not exist in the trip")

    return True


def settlement_to_expense(
    settlement: dict,
    method: str = "cash",
    expense_id: Optional[str] = None,
    date: Optional[str] = None
) -> dict:
    """
    Build the transfer expense that records a settlement payment.

    The debtor becomes the payer and the creditor the only involved
    participant, so running the record through calculate_balances moves
    both balances towards zero by exactly the settled amount.

    Args:
        settlement: Settlement dict with from_participant, to_participant, amount.
        method: Payment method label (cash, card, transfer, ...).
        expense_id: Optional id; a random one is generated if omitted.
        date: Optional ISO-8601 timestamp; defaults to now (UTC).

    Returns:
        dict: Expense dict with category "transfer".
    """
    return Expense(
        expense_id=expense_id or uuid.uuid4().hex,
        title=f"Debt payment ({method})",
        amount=settlement["amount"],
        payer_id=settlement["from_participant"],
        category=TRANSFER_CATEGORY,
        involved=[settlement["to_participant"]],
        split_type=SPLIT_EQUAL,
        date=date or datetime.now(timezone.utc).isoformat()
    ).to_dict()
