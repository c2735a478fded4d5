"""
Tests for the balance calculator.

Tests cover:
- Zero-sum integrity across split types
- Deterministic remainder placement
- Refunds (negative amounts)
- Legacy name references and unresolved references
- Soft-deleted participants
- Malformed split_details
"""

import copy

import pytest

from splitter import (
    allocate_expense,
    allocate_expenses,
    calculate_balances,
    resolve_participant_id,
)


@pytest.fixture
def participants():
    return [
        {"participant_id": "u1", "name": "Alice", "is_deleted": False},
        {"participant_id": "u2", "name": "Bob", "is_deleted": False},
        {"participant_id": "u3", "name": "Charlie", "is_deleted": False},
    ]


def make_expense(payer_id, amount, involved=None, split_type="equal",
                 split_details=None, expense_id="e1", category="food"):
    return {
        "expense_id": expense_id,
        "title": "Test expense",
        "amount": amount,
        "payer_id": payer_id,
        "category": category,
        "involved": involved or [],
        "split_type": split_type,
        "split_details": split_details or {},
        "date": "2025-06-01T12:00:00Z",
    }


def as_map(balances):
    return {b["participant_id"]: b["amount"] for b in balances}


class TestEqualSplit:

    def test_remainder_goes_to_first_sorted_id(self, participants):
        """1000 over three: the lexicographically first id pays 334."""
        expense = make_expense("u1", 1000, ["u3", "u2", "u1"])

        assert allocate_expense(expense, participants) == {"u1": 334, "u2": 333, "u3": 333}

        balances = as_map(calculate_balances([expense], participants))
        assert balances == {"u1": 666, "u2": -333, "u3": -333}
        assert sum(balances.values()) == 0

    def test_refund_keeps_zero_sum(self, participants):
        """-1000 over three: two pay -333, one pays -334, total still zero."""
        expense = make_expense("u1", -1000, ["u1", "u2", "u3"])

        debits = allocate_expense(expense, participants)
        assert sorted(debits.values()) == [-334, -333, -333]
        assert sum(debits.values()) == -1000

        balances = as_map(calculate_balances([expense], participants))
        assert balances == {"u1": -667, "u2": 333, "u3": 334}
        assert sum(balances.values()) == 0

    def test_uninvolved_participant_unaffected(self, participants):
        expense = make_expense("u1", 1000, ["u1", "u2"])

        balances = as_map(calculate_balances([expense], participants))

        assert balances == {"u1": 500, "u2": -500, "u3": 0}

    def test_empty_involved_means_active_members(self, participants):
        participants[2]["is_deleted"] = True
        expense = make_expense("u1", 900)

        balances = as_map(calculate_balances([expense], participants))

        assert balances == {"u1": 450, "u2": -450, "u3": 0}

    def test_involved_order_does_not_change_allocation(self, participants):
        a = calculate_balances([make_expense("u2", 100, ["u1", "u2", "u3"])], participants)
        b = calculate_balances([make_expense("u2", 100, ["u3", "u1", "u2"])], participants)

        assert as_map(a) == as_map(b)

    def test_duplicate_reference_counts_once(self, participants):
        """Bob resolves to u2, which is already listed."""
        expense = make_expense("u1", 1000, ["u2", "Bob"])

        assert allocate_expense(expense, participants) == {"u2": 1000}


class TestExactSplit:

    def test_details_pass_through(self, participants):
        expense = make_expense("u1", 4500, split_type="exact",
                               split_details={"u2": 2000, "u3": 2500})

        balances = as_map(calculate_balances([expense], participants))

        assert balances == {"u1": 4500, "u2": -2000, "u3": -2500}

    def test_mismatched_details_not_corrected(self, participants):
        expense = make_expense("u1", 5000, split_type="exact", split_details={"u2": 2000})

        balances = as_map(calculate_balances([expense], participants))

        assert balances == {"u1": 5000, "u2": -2000, "u3": 0}
        assert sum(balances.values()) == 3000


class TestSharesSplit:

    def test_last_sorted_id_absorbs_residual(self, participants):
        """10000 over weights 1:2:3, amount per share 1666.67."""
        expense = make_expense("u2", 10000, split_type="shares",
                               split_details={"u3": 3, "u1": 1, "u2": 2})

        assert allocate_expense(expense, participants) == {"u1": 1666, "u2": 3333, "u3": 5001}

        balances = as_map(calculate_balances([expense], participants))
        assert balances == {"u1": -1666, "u2": 6667, "u3": -5001}
        assert sum(balances.values()) == 0

    def test_negative_amount_shares_sum_exactly(self, participants):
        expense = make_expense("u1", -10000, split_type="shares",
                               split_details={"u1": 1, "u2": 2, "u3": 3})

        debits = allocate_expense(expense, participants)

        assert debits == {"u1": -1667, "u2": -3334, "u3": -4999}
        assert sum(as_map(calculate_balances([expense], participants)).values()) == 0

    def test_zero_total_shares_debits_nobody(self, participants):
        expense = make_expense("u1", 500, split_type="shares",
                               split_details={"u2": 0, "u3": 0})

        balances = as_map(calculate_balances([expense], participants))

        assert balances == {"u1": 500, "u2": 0, "u3": 0}

    def test_legacy_names_in_details(self, participants):
        expense = make_expense("Alice", 300, split_type="shares",
                               split_details={"Bob": 1, "Charlie": 2})

        balances = as_map(calculate_balances([expense], participants))

        assert balances == {"u1": 300, "u2": -100, "u3": -200}


class TestIdentityResolution:

    def test_resolve_by_id_and_name(self, participants):
        assert resolve_participant_id("u1", participants) == "u1"
        assert resolve_participant_id("Bob", participants) == "u2"
        assert resolve_participant_id("ghost", participants) is None
        assert resolve_participant_id("", participants) is None

    def test_id_wins_over_name(self):
        participants = [
            {"participant_id": "Bob", "name": "Robert"},
            {"participant_id": "u2", "name": "Bob"},
        ]

        assert resolve_participant_id("Bob", participants) == "Bob"

        expense = make_expense("u2", 200, ["Bob"])
        assert as_map(calculate_balances([expense], participants)) == {"Bob": -200, "u2": 200}

    def test_legacy_name_references(self, participants):
        expense = make_expense("Alice", 1000, ["Bob", "u3"])

        balances = as_map(calculate_balances([expense], participants))

        assert balances == {"u1": 1000, "u2": -500, "u3": -500}

    def test_unknown_involved_is_dropped(self, participants):
        expense = make_expense("u1", 1000, ["u2", "ghost_user"])

        balances = calculate_balances([expense], participants)

        assert "ghost_user" not in as_map(balances)
        assert as_map(balances)["u2"] == -1000

    def test_unknown_payer_is_dropped(self, participants):
        expense = make_expense("ghost_user", 1000, ["u1", "u2"])

        balances = as_map(calculate_balances([expense], participants))

        assert balances == {"u1": -500, "u2": -500, "u3": 0}


class TestCalculateBalances:

    def test_no_expenses(self, participants):
        balances = calculate_balances([], participants)

        assert as_map(balances) == {"u1": 0, "u2": 0, "u3": 0}

    def test_soft_deleted_participant_keeps_balance(self, participants):
        participants[2]["is_deleted"] = True
        expense = make_expense("u3", 600, ["u2", "u3"])

        balances = as_map(calculate_balances([expense], participants))

        assert balances == {"u1": 0, "u2": -300, "u3": 300}

    def test_sorted_by_descending_amount(self, participants):
        expense = make_expense("u2", 4500, split_type="exact",
                               split_details={"u1": 2000, "u3": 2500})

        balances = calculate_balances([expense], participants)

        assert [b["participant_id"] for b in balances] == ["u2", "u1", "u3"]

    def test_mixed_expenses_sum_to_zero(self, participants):
        expenses = [
            make_expense("u1", 1000, expense_id="e1"),
            make_expense("Bob", 777, ["u1", "u3"], expense_id="e2"),
            make_expense("u3", 4500, split_type="exact",
                         split_details={"u1": 1500, "u2": 3000}, expense_id="e3"),
            make_expense("u2", 1001, split_type="shares",
                         split_details={"u1": 2, "Charlie": 5}, expense_id="e4"),
            make_expense("u1", -299, ["u2", "u3"], expense_id="e5"),
            make_expense("u2", 500, ["u1"], expense_id="e6", category="transfer"),
        ]

        balances = calculate_balances(expenses, participants)

        assert sum(b["amount"] for b in balances) == 0

    def test_inputs_not_mutated(self, participants):
        expenses = [make_expense("u1", 1000, ["u3", "u1"])]
        expenses_before = copy.deepcopy(expenses)
        participants_before = copy.deepcopy(participants)

        calculate_balances(expenses, participants)

        assert expenses == expenses_before
        assert participants == participants_before


class TestMalformedDetails:

    @pytest.mark.parametrize("split_type,split_details,expected", [
        ("exact", {"u2": "2000"}, {"u1": 1000, "u2": 0, "u3": 0}),
        ("exact", {"u2": None}, {"u1": 1000, "u2": 0, "u3": 0}),
        ("shares", {"u1": 1, "u2": None}, {"u1": 0, "u2": 0, "u3": 0}),
        ("shares", {"u1": "1", "u2": "1"}, {"u1": 1000, "u2": 0, "u3": 0}),
        ("exact", ["u2"], {"u1": 1000, "u2": 0, "u3": 0}),
    ])
    def test_bad_values_are_dropped(self, participants, split_type, split_details, expected):
        expense = make_expense("u1", 1000, split_type=split_type)
        expense["split_details"] = split_details

        assert as_map(calculate_balances([expense], participants)) == expected

    def test_bool_and_nan_values_are_dropped(self, participants):
        expense = make_expense("u1", 900, split_type="shares",
                               split_details={"u1": True, "u2": float("nan"), "u3": 1})

        assert allocate_expense(expense, participants) == {"u3": 900}

    def test_valid_entries_survive_next_to_bad_ones(self, participants):
        expense = make_expense("u1", 3000, split_type="exact",
                               split_details={"u2": 1000, "u3": "oops", "Alice": 2000})

        assert allocate_expense(expense, participants) == {"u1": 2000, "u2": 1000}


class TestAllocateExpenses:

    def test_payer_and_debits_in_input_order(self, participants):
        expenses = [
            make_expense("Bob", 600, ["u1", "u3"], expense_id="e1"),
            make_expense("ghost_user", 100, ["u2"], expense_id="e2"),
        ]

        assert allocate_expenses(expenses, participants) == [
            ("u2", {"u1": 300, "u3": 300}),
            (None, {"u2": 100}),
        ]


AMOUNTS = [1, 2, 97, 1000, 10007, 99991, -1, -13, -9973]


def group_of(size):
    return [{"participant_id": f"p{i}", "name": f"Member {i}"} for i in range(size)]


class TestZeroSum:

    @pytest.mark.parametrize("amount", AMOUNTS)
    @pytest.mark.parametrize("size", [1, 2, 3, 7, 12])
    def test_equal(self, amount, size):
        group = group_of(size)
        expense = make_expense("p0", amount)

        assert sum(b["amount"] for b in calculate_balances([expense], group)) == 0

    @pytest.mark.parametrize("amount", AMOUNTS)
    @pytest.mark.parametrize("size", [1, 2, 3, 7, 12])
    def test_shares(self, amount, size):
        group = group_of(size)
        weights = {p["participant_id"]: i + 1 for i, p in enumerate(group)}
        expense = make_expense(f"p{size - 1}", amount, split_type="shares", split_details=weights)

        assert sum(b["amount"] for b in calculate_balances([expense], group)) == 0

    @pytest.mark.parametrize("amount", AMOUNTS)
    @pytest.mark.parametrize("size", [1, 2, 3, 7, 12])
    def test_exact_details_matching_amount(self, amount, size):
        group = group_of(size)
        base, remainder = divmod(amount, size)
        details = {p["participant_id"]: base for p in group}
        details["p0"] += remainder
        expense = make_expense("p1" if size > 1 else "p0", amount,
                               split_type="exact", split_details=details)

        assert sum(b["amount"] for b in calculate_balances([expense], group)) == 0

    @pytest.mark.parametrize("size", [2, 3, 7])
    def test_many_mixed_expenses(self, size):
        group = group_of(size)
        expenses = []
        for index, amount in enumerate(AMOUNTS):
            payer = f"p{index % size}"
            expenses.append(make_expense(payer, amount, expense_id=f"eq{index}"))
            expenses.append(make_expense(f"Member {index % size}", amount, split_type="shares",
                                         split_details={"p0": index + 1, f"p{size - 1}": 2},
                                         expense_id=f"sh{index}"))

        assert sum(b["amount"] for b in calculate_balances(expenses, group)) == 0
