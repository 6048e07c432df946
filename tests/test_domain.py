import pytest

from finvault.domain import (
    EXPENSES, LIABILITIES, TRANSACTIONS, Asset, Expense, Transaction,
    check_collection, expense_status, from_dict, new_id, to_dict,
)
from finvault.errors import UnknownCollectionError


def make_expense(budgeted, spent):
    return Expense.create(id="e1", title="Groceries", budgeted=budgeted, spent=spent)


def test_expense_status_boundaries():
    assert expense_status(89) == "normal"
    assert expense_status(90) == "warning"
    assert expense_status(99) == "warning"
    assert expense_status(100) == "danger"


def test_expense_create_recomputes_percentage_and_status():
    e = make_expense("₹5,000", "₹3,000")
    assert e.percentage == 60
    assert e.status == "normal"

    assert make_expense("₹1,000", "₹900").status == "warning"
    over = make_expense("₹1,000", "₹1,500")
    assert over.percentage == 150
    assert over.status == "danger"
    assert over.display_percentage == 100


def test_expense_with_zero_budget():
    e = make_expense("₹0", "₹500")
    assert e.percentage == 0
    assert e.status == "normal"


def test_with_spent_updates_status():
    e = make_expense("₹1,000", "₹100").with_spent("₹1,000")
    assert e.percentage == 100
    assert e.status == "danger"


def test_from_dict_ignores_stale_percentage():
    e = from_dict(EXPENSES, {"id": "x", "title": "Rent", "budgeted": "₹100", "spent": "₹95",
                             "percentage": 1, "status": "normal"})
    assert e.percentage == 95
    assert e.status == "warning"


def test_from_dict_fills_id_and_ignores_unknown_keys():
    a = from_dict("assets", {"title": "Flat", "value": "₹50,00,000", "type": "Real Estate",
                             "date": "2025-01-01", "colour": "red"})
    assert a.id
    assert isinstance(a, Asset)
    assert a.change == "0%"
    assert a.trend == "up"


def test_transaction_wire_names():
    t = from_dict(TRANSACTIONS, {"id": "t1", "hash": "0xabc", "from": "alice", "to": "bob",
                                 "amount": "₹10", "type": "transfer", "timestamp": "2025-01-01"})
    assert isinstance(t, Transaction)
    assert t.sender == "alice"
    payload = to_dict(t)
    assert payload["from"] == "alice"
    assert payload["to"] == "bob"
    assert "sender" not in payload


def test_missing_required_fields_become_empty():
    l = from_dict(LIABILITIES, {"id": "l1", "title": "Loan"})
    assert l.amount == ""
    assert l.status == "current"


def test_check_collection_rejects_unknown():
    assert check_collection("assets") == "assets"
    with pytest.raises(UnknownCollectionError):
        check_collection("goals")


def test_new_id_is_unique():
    assert new_id() != new_id()
