"""
Utterance Classifier.

Turns a free-text (or transcribed voice) sentence into a structured record
payload for one of the record kinds. All the matching knowledge lives in the
ordered tables of ``finvault.rules``; this module is the engine that walks them.
"""
import calendar
import logging
import re
from datetime import date, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from finvault import rules
from finvault.domain import (
    ASSETS, DAILY_EXPENSES, EXPENSES, LIABILITIES, Asset, DailyExpense, Expense,
    Liability, new_id, to_dict,
)
from finvault.money import CurrencyFormat, format_currency, format_number, get_format
from finvault.spoken_numbers import words_to_digits

logger = logging.getLogger(__name__)

Span = Tuple[int, int]

_TERMINAL = re.compile(r"[.!?]+$")
_DIGIT_COMMA = re.compile(r"(?<=\d),(?=\d)")
_RS_DOT = re.compile(r"\brs\.\s*")
_PUNCT = re.compile(r"[,;!?]")
_SPACES = re.compile(r"\s+")
# ordinals ("5th") are dates, not amounts
_NUMBER = re.compile(rules.NUM + r"(?!st\b|nd\b|rd\b|th\b)")

ACRONYMS = {"ppf", "epf", "nps", "fd", "sip", "etf", "emi", "ira", "401k", "btc", "eth"}
DUE_SOON_DAYS = 5
DEFAULT_DUE_DAYS = 15


def normalize(text: str) -> str:
    text = text.lower().strip()
    text = _TERMINAL.sub("", text)
    text = _DIGIT_COMMA.sub("", text)
    text = _RS_DOT.sub("rs ", text)
    text = _PUNCT.sub(" ", text)
    text = _SPACES.sub(" ", text).strip()
    return words_to_digits(text)


# --- engine ---

def first_label(table: Sequence[rules.Rule], text: str, default: str = "Other") -> str:
    for r in table:
        if r.pattern.search(text):
            return r.label
    return default


def first_capture(table: Sequence[rules.TitleRule], text: str) -> Optional[str]:
    for r in table:
        m = r.pattern.search(text)
        if not m:
            continue
        cleaned = clean_phrase(m.group(1))
        if cleaned:
            return r.template.format(cleaned)
    return None


def first_match(patterns: Iterable[re.Pattern], text: str) -> Optional[re.Match]:
    for p in patterns:
        m = p.search(text)
        if m:
            return m
    return None


def find_amount(patterns: Iterable[re.Pattern], text: str) -> Tuple[Optional[float], Optional[Span]]:
    m = first_match(patterns, text)
    if m is None:
        return None, None
    return float(m.group(1)), m.span(1)


def _overlaps(span: Span, others: Iterable[Optional[Span]]) -> bool:
    return any(o is not None and span[0] < o[1] and o[0] < span[1] for o in others)


def scan_numbers(text: str, exclude: Iterable[Optional[Span]] = ()) -> List[float]:
    """Every standalone, non-percentage number outside the excluded spans."""
    exclude = list(exclude)
    return [float(m.group(1)) for m in _NUMBER.finditer(text) if not _overlaps(m.span(1), exclude)]


def clean_phrase(phrase: str) -> Optional[str]:
    words = phrase.split()
    while words and words[0] in rules.STOPWORDS:
        words.pop(0)
    while words and words[-1] in rules.STOPWORDS:
        words.pop()
    if not words or len(words) > 5:
        return None
    return " ".join(words)


def title_case(phrase: str) -> str:
    return " ".join(w.upper() if w in ACRONYMS else w.capitalize() for w in phrase.split())


def keyword_title(vocabulary: Sequence[str], text: str) -> Optional[str]:
    for word in vocabulary:
        if re.search(rf"\b{re.escape(word)}\b", text):
            return word
    return None


def shift_date(text: str, today: date) -> date:
    if re.search(r"\byesterday\b", text):
        return today - timedelta(days=1)
    if re.search(r"\btomorrow\b", text):
        return today + timedelta(days=1)
    return today


def _next_month_day(today: date, day: int) -> date:
    year, month = today.year, today.month
    candidate = date(year, month, min(day, calendar.monthrange(year, month)[1]))
    if candidate >= today:
        return candidate
    year, month = (year + 1, 1) if month == 12 else (year, month + 1)
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def due_date(text: str, today: date) -> date:
    m = rules.DUE_IN_DAYS.search(text)
    if m:
        return today + timedelta(days=int(m.group(1)))
    m = rules.DUE_ON_DATE.search(text)
    if m:
        day, month = (m.group(1), m.group(2)) if m.group(1) else (m.group(4), m.group(3))
        try:
            candidate = date(today.year, rules.MONTHS.index(month) + 1, int(day))
        except ValueError:
            candidate = None
        if candidate is not None:
            return candidate if candidate >= today else candidate.replace(year=today.year + 1)
    m = rules.DUE_MONTHLY.search(text)
    if m and 1 <= int(m.group(1)) <= 31:
        return _next_month_day(today, int(m.group(1)))
    return today + timedelta(days=DEFAULT_DUE_DAYS)


def liability_status(due: date, today: date) -> str:
    if due < today:
        return "late"
    if (due - today).days <= DUE_SOON_DAYS:
        return "warning"
    return "current"


# --- per-kind classifiers ---

def classify_asset(text: str, today: date, fmt: CurrencyFormat) -> Optional[dict]:
    value, span = find_amount(rules.ASSET_VALUE, text)
    if value is None:
        numbers = scan_numbers(text)
        if not numbers:
            return None
        value = max(numbers)

    asset_type = first_label(rules.ASSET_TYPES, text)
    name = first_capture(rules.ASSET_TITLES, text) or keyword_title(rules.ASSET_KEYWORDS, text)
    trend, change = "up", 0.0
    growth = first_match(rules.ASSET_GROWTH, text)
    decline = first_match(rules.ASSET_DECLINE, text)
    if growth:
        change = float(growth.group(1))
    elif decline:
        trend, change = "down", float(decline.group(1))

    record = Asset(
        id=new_id(),
        title=title_case(name) if name else rules.ASSET_DEFAULT_TITLES[asset_type],
        value=format_currency(value, fmt),
        type=asset_type,
        date=today.isoformat(),
        change=f"{format_number(change)}%",
        trend=trend,
    )
    return to_dict(record)


def classify_liability(text: str, today: date, fmt: CurrencyFormat) -> Optional[dict]:
    interest_m = first_match(rules.INTEREST, text)
    interest = float(interest_m.group(1)) if interest_m else 0.0
    interest_span = interest_m.span(1) if interest_m else None

    payment, payment_span = find_amount(rules.PAYMENT, text)
    amount, amount_span = find_amount(rules.PRINCIPAL, text)
    due_m = rules.DUE_ON_DATE.search(text) or rules.DUE_MONTHLY.search(text) or rules.DUE_IN_DAYS.search(text)
    due_span = due_m.span() if due_m else None

    remaining = scan_numbers(text, exclude=(interest_span, payment_span, amount_span, due_span))
    if amount is None and remaining:
        amount = max(remaining)
        remaining.remove(amount)
    if payment is None and remaining:
        payment = min(remaining)
    if amount is None:
        # only an instalment was mentioned; it is the best figure available
        amount = payment
    if amount is None:
        return None

    liability_type = first_label(rules.LIABILITY_TYPES, text)
    name = first_capture(rules.LIABILITY_TITLES, text)
    if name is None or name in rules.LIABILITY_KEYWORDS:
        name = None
    due = due_date(text, today)

    record = Liability(
        id=new_id(),
        title=title_case(name) if name else rules.LIABILITY_DEFAULT_TITLES[liability_type],
        amount=format_currency(amount, fmt),
        type=liability_type,
        interest=f"{format_number(interest)}%",
        payment=format_currency(payment or 0, fmt),
        dueDate=due.isoformat(),
        status=liability_status(due, today),
    )
    return to_dict(record)


def classify_budget(text: str, today: date, fmt: CurrencyFormat) -> Optional[dict]:
    budgeted, budgeted_span = find_amount(rules.BUDGETED, text)
    spent, spent_span = find_amount(rules.SPENT, text)
    if budgeted is None:
        remaining = scan_numbers(text, exclude=(spent_span,))
        if spent is None and len(remaining) >= 2:
            budgeted, spent = max(remaining[:2]), min(remaining[:2])
        elif remaining:
            budgeted = max(remaining)
    elif spent is None:
        remaining = scan_numbers(text, exclude=(budgeted_span,))
        if remaining:
            spent = min(remaining)
    if budgeted is None:
        return None

    category = first_label(rules.SPENDING_CATEGORIES, text)
    name = first_capture(rules.BUDGET_TITLES, text) or keyword_title(rules.SPENDING_KEYWORDS, text)
    if name:
        expense_title = title_case(name)
    else:
        expense_title = category if category != "Other" else "Budget"

    record = Expense.create(
        id=new_id(),
        title=expense_title,
        budgeted=format_currency(budgeted, fmt),
        spent=format_currency(spent or 0, fmt),
    )
    return to_dict(record)


def classify_daily_expense(text: str, today: date, fmt: CurrencyFormat) -> Optional[dict]:
    amount, _ = find_amount(rules.DAILY_AMOUNT, text)
    if amount is None:
        return None

    notes_m = rules.NOTES.search(text)
    body = text[:notes_m.start()].strip() if notes_m else text
    category = first_label(rules.SPENDING_CATEGORIES, body)
    name = first_capture(rules.DAILY_TITLES, body)
    if name:
        expense_title = title_case(name)
    else:
        expense_title = category if category != "Other" else "Expense"

    record = DailyExpense(
        id=new_id(),
        title=expense_title,
        amount=format_currency(amount, fmt),
        category=category,
        date=shift_date(body, today).isoformat(),
        notes=notes_m.group(1).strip() if notes_m else "",
    )
    return to_dict(record)


Classifier = Callable[[str, date, CurrencyFormat], Optional[dict]]

CLASSIFIERS: Dict[str, Classifier] = {
    "asset": classify_asset,
    "liability": classify_liability,
    "budget": classify_budget,
    "expense": classify_budget,
    "daily-expense": classify_daily_expense,
    "dailyExpense": classify_daily_expense,
}

# where a classified payload is stored
KIND_COLLECTIONS = {
    "asset": ASSETS,
    "liability": LIABILITIES,
    "budget": EXPENSES,
    "expense": EXPENSES,
    "daily-expense": DAILY_EXPENSES,
    "dailyExpense": DAILY_EXPENSES,
}


def classify(text, kind: str, *, today: Optional[date] = None,
             fmt: Optional[CurrencyFormat] = None) -> Optional[dict]:
    """Classify ``text`` as a record of ``kind``; None when nothing usable was found."""
    classifier = CLASSIFIERS.get(kind)
    if classifier is None or not isinstance(text, str) or not text.strip():
        return None
    try:
        return classifier(normalize(text), today or date.today(), fmt or get_format())
    except Exception:
        logger.exception(f"Classifying {kind!r} utterance failed")
        return None
