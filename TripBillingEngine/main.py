"""
TripBillingEngine - FastAPI Web Backend

This module serves the billing engine over HTTP using FastAPI.

The API is stateless: every request carries the participants and expenses
it needs and every response is recomputed from scratch. Nothing is stored.

Features:
    - Balance calculation with equal, exact and shares splits
    - Minimal settlement plans
    - Category statistics and total spending
    - Transfer records for confirmed settlements
    - Edit-form validation for new or edited expenses
    - Expense list search by category, title and member names

Endpoints:
    POST /balances              - Calculate per-participant balances
    POST /settlements           - Plan settlements from balances
    POST /category-stats        - Category breakdown and total spending
    POST /calculate             - All of the above plus explanations
    POST /settlements/record    - Build the transfer expense for a settlement
    POST /expenses/validate     - Validate an expense before saving it
    POST /expenses/search       - Sorted, filtered expense list with totals
    GET  /health                - Health check

Usage:
    uvicorn main:app --reload
"""

import logging
import uuid
from typing import Literal, Optional, Union

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field, field_validator

from analytics import calculate_category_stats, calculate_total_spending, filter_expenses
from config.settings import get_settings
from expenses import Expense, settlement_to_expense, validate_expense, DEFAULT_CATEGORY
from participants import Participant
from settlement import calculate_settlements, is_settled
from splitter import calculate_balances
from utils import explain_all_participants, format_currency, parse_money_to_cents

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


# =============================================================================
# Pydantic Models for Request/Response Validation
# =============================================================================

class ParticipantIn(BaseModel):
    """A trip member, soft-deleted members included."""
    participant_id: str = Field(..., min_length=1, description="Participant ID")
    name: Optional[str] = Field(None, description="Display name (legacy expenses may reference it)")
    is_deleted: bool = Field(False, description="True if the participant left the trip")


class ExpenseIn(BaseModel):
    """An expense as supplied by the caller. Amounts accept cents or unit strings."""
    expense_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    title: str = ""
    amount: int = Field(..., description="Amount in cents, or a string in currency units")
    payer_id: str = Field(..., description="Participant ID (or legacy name) of payer")
    category: str = DEFAULT_CATEGORY
    involved: list[str] = Field(default_factory=list, description="Empty means all active members")
    split_type: Literal["equal", "exact", "shares"] = "equal"
    split_details: dict[str, Union[int, float]] = Field(default_factory=dict)
    date: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_to_cents(cls, value):
        return parse_money_to_cents(value)

    @field_validator("split_details", mode="before")
    @classmethod
    def _details_to_cents(cls, value):
        if isinstance(value, dict):
            return {key: parse_money_to_cents(v) for key, v in value.items()}
        return value


class BalanceModel(BaseModel):
    participant_id: str
    amount: int


class SettlementModel(BaseModel):
    from_participant: str
    to_participant: str
    amount: int = Field(..., gt=0)


class CategoryStatModel(BaseModel):
    category: str
    label: str
    amount: int
    percentage: float


class ExpenseOut(BaseModel):
    expense_id: str
    title: str
    amount: int
    payer_id: str
    category: str
    involved: list[str]
    split_type: str
    split_details: dict[str, Union[int, float]]
    date: Optional[str]


class BalancesRequest(BaseModel):
    participants: list[ParticipantIn]
    expenses: list[ExpenseIn] = Field(default_factory=list)


class BalancesResponse(BaseModel):
    balances: list[BalanceModel]


class SettlementsRequest(BaseModel):
    balances: list[BalanceModel]


class SettlementsResponse(BaseModel):
    settlements: list[SettlementModel]


class CategoryStatsRequest(BaseModel):
    expenses: list[ExpenseIn] = Field(default_factory=list)


class CategoryStatsResponse(BaseModel):
    category_stats: list[CategoryStatModel]
    total_spending: int


class ContributionModel(BaseModel):
    expense_id: str
    title: str
    category: str
    date: Optional[str]
    total_expense_amount: int
    split_type: str
    participant_share: int


class ExplanationModel(BaseModel):
    """How one participant's balance was formed."""
    participant_id: str
    expense_contributions: list[ContributionModel]
    total_share: int
    total_paid: int
    net_balance: int
    error: Optional[str] = None


class CalculateResponse(BaseModel):
    """Response model for the full calculation."""
    balances: list[BalanceModel]
    settlements: list[SettlementModel]
    category_stats: list[CategoryStatModel]
    total_spending: int
    is_settled: bool
    explanations: list[ExplanationModel]
    summary: list[str]


class RecordSettlementRequest(BaseModel):
    settlement: SettlementModel
    method: str = Field("cash", min_length=1, description="Payment method label")
    expense_id: Optional[str] = None
    date: Optional[str] = None


class ValidateExpenseRequest(BaseModel):
    expense: ExpenseIn
    participant_ids: Optional[list[str]] = Field(
        None, description="If given, payer and involved must be among these ids"
    )


class ExpenseSearchRequest(BaseModel):
    participants: list[ParticipantIn] = Field(default_factory=list)
    expenses: list[ExpenseIn] = Field(default_factory=list)
    query: str = Field("", description="Matches title, payer and involved names")
    category: Optional[str] = Field(None, description="Category id, or 'all'")


class ExpenseSearchResponse(BaseModel):
    expenses: list[ExpenseOut]
    displayed_total: int
    total_spending: int


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Trip Billing Engine",
    description="Group expense splitting: balances, settlements and spending stats",
    version="1.0.0"
)


# =============================================================================
# Helper Functions
# =============================================================================

def _participants_to_dicts(participants: list[ParticipantIn]) -> list[dict]:
    return [Participant.from_dict(p.model_dump()).to_dict() for p in participants]


def _expenses_to_dicts(expenses: list[ExpenseIn]) -> list[dict]:
    return [Expense.from_dict(e.model_dump()).to_dict() for e in expenses]


def _settlement_summary(settlements: list[dict], participants: list[dict]) -> list[str]:
    """Human-readable "who pays whom" lines."""
    id_to_name = {p["participant_id"]: p["name"] for p in participants}
    return [
        f"{id_to_name.get(s['from_participant'], s['from_participant'])} pays "
        f"{id_to_name.get(s['to_participant'], s['to_participant'])} "
        f"{format_currency(s['amount'])}"
        for s in settlements
    ]


# =============================================================================
# API Endpoints
# =============================================================================

@app.post("/balances", response_model=BalancesResponse)
async def post_balances(request: BalancesRequest):
    """Calculate per-participant balances."""
    try:
        balances = calculate_balances(
            _expenses_to_dicts(request.expenses),
            _participants_to_dicts(request.participants)
        )
        return BalancesResponse(balances=balances)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Balance calculation failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/settlements", response_model=SettlementsResponse)
async def post_settlements(request: SettlementsRequest):
    """Plan the settlement transactions for a set of balances."""
    try:
        balances = [b.model_dump() for b in request.balances]
        return SettlementsResponse(settlements=calculate_settlements(balances))

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Settlement planning failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/category-stats", response_model=CategoryStatsResponse)
async def post_category_stats(request: CategoryStatsRequest):
    """Category breakdown of non-transfer spending."""
    try:
        expenses = _expenses_to_dicts(request.expenses)
        return CategoryStatsResponse(
            category_stats=calculate_category_stats(expenses),
            total_spending=calculate_total_spending(expenses)
        )

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Category statistics failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/calculate", response_model=CalculateResponse)
async def post_calculate(request: BalancesRequest):
    """
    Run the whole engine for a trip.

    Request flow:
        1. Normalize participants and expenses
        2. Calculate balances (splitter.py)
        3. Plan settlements (settlement.py)
        4. Category statistics and total spending (analytics.py)
        5. Explanations and readable summary (utils.py)
    """
    try:
        participants = _participants_to_dicts(request.participants)
        expenses = _expenses_to_dicts(request.expenses)

        balances = calculate_balances(expenses, participants)
        settlements = calculate_settlements(balances)

        logger.info(
            "Calculated %d balances and %d settlements from %d expenses",
            len(balances), len(settlements), len(expenses)
        )

        return CalculateResponse(
            balances=balances,
            settlements=settlements,
            category_stats=calculate_category_stats(expenses),
            total_spending=calculate_total_spending(expenses),
            is_settled=is_settled(balances),
            explanations=explain_all_participants(expenses, participants, balances),
            summary=_settlement_summary(settlements, participants)
        )

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.exception("Trip calculation failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/settlements/record", response_model=ExpenseOut, status_code=201)
async def post_record_settlement(request: RecordSettlementRequest):
    """
    Build the transfer expense that records a confirmed settlement.

    The caller persists the returned expense; feeding it back into
    /balances clears the settled amount between the two participants.
    """
    try:
        expense = settlement_to_expense(
            request.settlement.model_dump(),
            method=request.method,
            expense_id=request.expense_id,
            date=request.date
        )
        logger.info(
            "Recorded %s payment of %d from %s to %s",
            request.method, expense["amount"],
            request.settlement.from_participant, request.settlement.to_participant
        )
        return ExpenseOut(**expense)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Recording settlement failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/expenses/validate", response_model=ExpenseOut)
async def post_validate_expense(request: ValidateExpenseRequest):
    """Validate an expense against the edit-form rules and return it normalized."""
    try:
        expense = Expense.from_dict(request.expense.model_dump()).to_dict()
        participant_ids = set(request.participant_ids) if request.participant_ids is not None else None
        validate_expense(expense, participant_ids)
        return ExpenseOut(**expense)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Expense validation failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/expenses/search", response_model=ExpenseSearchResponse)
async def post_search_expenses(request: ExpenseSearchRequest):
    """
    List expenses newest first, filtered by category and search text.

    displayed_total covers the filtered list; total_spending covers them all.
    """
    try:
        expenses = _expenses_to_dicts(request.expenses)
        matches = filter_expenses(
            expenses,
            _participants_to_dicts(request.participants),
            query=request.query,
            category=request.category
        )
        return ExpenseSearchResponse(
            expenses=[ExpenseOut(**e) for e in matches],
            displayed_total=calculate_total_spending(matches),
            total_spending=calculate_total_spending(expenses)
        )

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Expense search failed")
        raise HTTPException(status_code=500, detail=str(e))


# =============================================================================
# Health Check Endpoint
# =============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint to verify API is running."""
    return {"status": "healthy", "service": "Trip Billing Engine"}


# =============================================================================
# Run with: python main.py
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=settings.api_host, port=settings.api_port, reload=True)
