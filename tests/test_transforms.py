from finvault.domain import Income
from finvault.transforms import (
    add_record, amount_total, find_record, merge_records, remove_record, replace_record,
)


def make_income(id, amount):
    return Income(id=id, title="Salary", amount=amount)


def test_add_replace_remove_are_pure():
    records = (make_income("i1", "₹100"),)
    grown = add_record(records, make_income("i2", "₹200"))
    assert len(records) == 1
    assert [r.id for r in grown] == ["i1", "i2"]

    replaced = replace_record(grown, "i1", make_income("i1", "₹150"))
    assert find_record(replaced, "i1").amount == "₹150"
    assert find_record(grown, "i1").amount == "₹100"

    assert [r.id for r in remove_record(replaced, "i1")] == ["i2"]
    assert find_record(replaced, "missing") is None


def test_merge_keeps_first_copy():
    merged = merge_records(
        [make_income("i1", "₹1"), make_income("", "₹9")],
        [make_income("i1", "₹2"), make_income("i2", "₹3")],
    )
    assert [(r.id, r.amount) for r in merged] == [("i1", "₹1"), ("i2", "₹3")]


def test_amount_total_parses_display_strings():
    records = [make_income("i1", "₹1,00,000"), make_income("i2", "₹2,500.50"), make_income("i3", "n/a")]
    assert amount_total(records, "amount") == 102500.5
