import re
from dataclasses import dataclass
from typing import Tuple

_NON_NUMERIC = re.compile(r"[^\d.\-]")


def parse_amount(text) -> float:
    """Parse a display string such as "₹1,20,000" or "7.5%" into a float.

    Everything except digits, '.' and '-' is dropped first. Values that still do
    not parse (empty, "N/A", "1.2.3") count as 0.
    """
    if text is None:
        return 0.0
    if isinstance(text, (int, float)):
        return float(text)
    cleaned = _NON_NUMERIC.sub("", str(text))
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


@dataclass(frozen=True)
class CurrencyFormat:
    symbol: str
    # group sizes from the right: (3, 2) -> 1,00,000 ; (3, 3) -> 100,000
    grouping: Tuple[int, int]


LOCALES = {
    "en-IN": CurrencyFormat(symbol="₹", grouping=(3, 2)),
    "en-US": CurrencyFormat(symbol="$", grouping=(3, 3)),
}

DEFAULT_LOCALE = "en-IN"


def get_format(locale: str | None = None) -> CurrencyFormat:
    return LOCALES.get(locale or DEFAULT_LOCALE, LOCALES[DEFAULT_LOCALE])


def _group(digits: str, grouping: Tuple[int, int]) -> str:
    first, rest = grouping
    if len(digits) <= first:
        return digits
    head, tail = digits[:-first], digits[-first:]
    parts = []
    while len(head) > rest:
        parts.insert(0, head[-rest:])
        head = head[:-rest]
    if head:
        parts.insert(0, head)
    return ",".join(parts + [tail])


def format_currency(value: float, fmt: CurrencyFormat | None = None) -> str:
    fmt = fmt or get_format()
    sign = "-" if value < 0 else ""
    value = abs(round(float(value), 2))
    whole = int(value)
    cents = round(value - whole, 2)
    text = _group(str(whole), fmt.grouping)
    if cents:
        text += f"{cents:.2f}"[1:].rstrip("0")
    return f"{sign}{fmt.symbol}{text}"


def format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def format_percent(value: float) -> str:
    return f"{format_number(value)}%"
