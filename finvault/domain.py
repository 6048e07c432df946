from dataclasses import MISSING, dataclass, field, fields, asdict
from typing import Any, Dict, Optional
from uuid import uuid4

from finvault.errors import UnknownCollectionError
from finvault.money import parse_amount


def new_id() -> str:
    return str(uuid4())


@dataclass(frozen=True)
class Asset:
    id: str
    title: str
    value: str       # currency string, e.g. "₹10,000"
    type: str
    date: str
    change: str = "0%"
    trend: str = "up"  # up | down


@dataclass(frozen=True)
class Liability:
    id: str
    title: str
    amount: str
    type: str
    interest: str    # e.g. "7.5%"
    payment: str
    dueDate: str
    status: str = "current"  # current | warning | late


def expense_status(percentage: float) -> str:
    if percentage >= 100:
        return "danger"
    if percentage >= 90:
        return "warning"
    return "normal"


def spend_percentage(budgeted: str, spent: str) -> int:
    budget = parse_amount(budgeted)
    if budget <= 0:
        return 0
    return round(parse_amount(spent) / budget * 100)


@dataclass(frozen=True)
class Expense:
    """A budget line. percentage and status always follow budgeted/spent."""

    id: str
    title: str
    budgeted: str
    spent: str
    percentage: int = 0
    status: str = "normal"

    @classmethod
    def create(cls, id: str, title: str, budgeted: str, spent: str, **_ignored) -> "Expense":
        pct = spend_percentage(budgeted, spent)
        return cls(id=id, title=title, budgeted=budgeted, spent=spent,
                   percentage=pct, status=expense_status(pct))

    def with_spent(self, spent: str) -> "Expense":
        return Expense.create(self.id, self.title, self.budgeted, spent)

    @property
    def display_percentage(self) -> int:
        return max(0, min(100, self.percentage))


@dataclass(frozen=True)
class Income:
    id: str
    title: str
    amount: str
    description: str = ""


@dataclass(frozen=True)
class DailyExpense:
    id: str
    title: str
    amount: str
    category: str
    date: str
    notes: str = ""


@dataclass(frozen=True)
class Transaction:
    id: str
    hash: str
    sender: str      # "from" on the wire
    recipient: str   # "to" on the wire
    amount: str
    type: str
    timestamp: str
    status: str = "pending"  # verified | pending | rejected
    confirmations: int = 0


@dataclass(frozen=True)
class SyncItem:
    id: str          # mirrors the source record id
    type: str        # collection name
    data: dict = field(default_factory=dict)
    createdAt: int = 0  # epoch ms


ASSETS = "assets"
LIABILITIES = "liabilities"
EXPENSES = "expenses"
DAILY_EXPENSES = "dailyExpenses"
INCOME = "income"
TRANSACTIONS = "transactions"

RECORD_TYPES = {
    ASSETS: Asset,
    LIABILITIES: Liability,
    EXPENSES: Expense,
    DAILY_EXPENSES: DailyExpense,
    INCOME: Income,
    TRANSACTIONS: Transaction,
}

COLLECTIONS = tuple(RECORD_TYPES)

# event prefix per collection, e.g. "asset" -> "assetAdded"
SINGULAR = {
    ASSETS: "asset",
    LIABILITIES: "liability",
    EXPENSES: "expense",
    DAILY_EXPENSES: "dailyExpense",
    INCOME: "income",
    TRANSACTIONS: "transaction",
}

_WIRE_RENAMES = {"sender": "from", "recipient": "to"}
_FIELD_RENAMES = {v: k for k, v in _WIRE_RENAMES.items()}


def check_collection(collection: str) -> str:
    if collection not in RECORD_TYPES:
        raise UnknownCollectionError(collection)
    return collection


def to_dict(record: Any) -> Dict[str, Any]:
    if isinstance(record, dict):
        return dict(record)
    data = asdict(record)
    return {_WIRE_RENAMES.get(k, k): v for k, v in data.items()}


def from_dict(collection: str, data: Dict[str, Any]):
    cls = RECORD_TYPES[check_collection(collection)]
    names = {f.name for f in fields(cls)}
    kwargs = {}
    for key, value in data.items():
        name = _FIELD_RENAMES.get(key, key)
        if name in names:
            kwargs[name] = value
    if not kwargs.get("id"):
        kwargs["id"] = new_id()
    for f in fields(cls):
        if f.name not in kwargs and f.default is MISSING and f.default_factory is MISSING:
            kwargs[f.name] = ""
    if cls is Expense:
        return Expense.create(**kwargs)
    return cls(**kwargs)


def record_id(record: Any) -> Optional[str]:
    if isinstance(record, dict):
        return record.get("id")
    return getattr(record, "id", None)
