from functools import reduce
from typing import Any, Iterable, List, Tuple

from finvault.money import parse_amount


def add_record(records: Tuple[Any, ...], r: Any) -> Tuple[Any, ...]:
    return records + (r,)


def replace_record(records: Tuple[Any, ...], rid: str, new: Any) -> Tuple[Any, ...]:
    return tuple(new if r.id == rid else r for r in records)


def remove_record(records: Tuple[Any, ...], rid: str) -> Tuple[Any, ...]:
    return tuple(filter(lambda r: r.id != rid, records))


def merge_records(*sources: Iterable[Any]) -> List[Any]:
    """Concatenate record sources keeping the first copy of every id."""
    seen = set()
    merged = []
    for source in sources:
        for r in source:
            if not r.id or r.id in seen:
                continue
            seen.add(r.id)
            merged.append(r)
    return merged


def amount_total(records: Iterable[Any], field: str) -> float:
    return reduce(lambda acc, r: acc + parse_amount(getattr(r, field, None)), records, 0.0)


def find_record(records: Iterable[Any], rid: str):
    return next((r for r in records if r.id == rid), None)
