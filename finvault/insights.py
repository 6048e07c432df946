"""
Rule-based financial insights computed from the local records only.

Everything here is a pure function of record lists (plus ``today``), so it works
the same offline. ``InsightService`` runs a set of injected analyzers over a
store snapshot and aggregates their output.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from functools import reduce
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from finvault.domain import ASSETS, DAILY_EXPENSES, EXPENSES, INCOME, LIABILITIES
from finvault.money import CurrencyFormat, format_currency, parse_amount

logger = logging.getLogger(__name__)

MIN_EXPENSES_FOR_ANALYSIS = 3


@dataclass(frozen=True)
class Insight:
    id: str
    kind: str        # alert | tip | anomaly
    title: str
    description: str
    category: str = ""
    severity: str = "low"  # low | medium | high
    action: str = ""


def _field(record: Any, name: str, default: Any = "") -> Any:
    if isinstance(record, dict):
        return record.get(name, default)
    return getattr(record, name, default)


def _record_date(record: Any) -> Optional[date]:
    try:
        return date.fromisoformat(str(_field(record, "date"))[:10])
    except ValueError:
        return None


def _total(records: Iterable, name: str) -> float:
    return reduce(lambda acc, r: acc + parse_amount(_field(r, name)), records, 0.0)


def _by_category(records: Iterable) -> Dict[str, List[float]]:
    groups: Dict[str, List[float]] = defaultdict(list)
    for r in records:
        category = str(_field(r, "category") or "").lower()
        if category:
            groups[category].append(parse_amount(_field(r, "amount")))
    return groups


def _within(records: Iterable, today: date, days: int) -> List[Any]:
    cutoff = today - timedelta(days=days)
    dated = ((r, _record_date(r)) for r in records)
    return [r for r, d in dated if d is not None and d >= cutoff]


GENERIC_SAVING_TIPS = (
    Insight("saving-tracking", "tip", "Start tracking expenses by category",
            "Categorize your daily expenses to see where your money goes and where you can cut back.",
            severity="medium", action="Learn How"),
    Insight("saving-50-30-20", "tip", "Consider the 50/30/20 budget rule",
            "Spend 50% of income on needs, 30% on wants and put 20% toward savings and debt repayment.",
            action="Learn More"),
)

FALLBACK_SAVING_TIPS = (
    Insight("saving-50-30-20", "tip", "Implement the 50/30/20 budget rule",
            "Allocate 50% of income to necessities, 30% to wants and 20% to savings and debt repayment.",
            severity="medium", action="Learn More"),
    Insight("saving-automate", "tip", "Automate your savings",
            "Set up an automatic transfer to your savings account on payday.",
            severity="medium", action="How To Automate"),
)


def find_saving_opportunities(daily_expenses: Sequence, today: date, threshold_pct: float = 20,
                              min_amount: float = 100, fmt: Optional[CurrencyFormat] = None) -> List[Insight]:
    """Per-category saving tips over the last 30 days of daily expenses.

    With fewer than MIN_EXPENSES_FOR_ANALYSIS records there is nothing to learn
    from, so generic tips are returned instead.
    """
    if len(daily_expenses) < MIN_EXPENSES_FOR_ANALYSIS:
        return list(GENERIC_SAVING_TIPS)

    tips = []
    totals = {c: sum(v) for c, v in _by_category(_within(daily_expenses, today, 30)).items()}
    for category, spent in totals.items():
        if spent < min_amount / 2:
            continue
        saving = round(spent * threshold_pct / 100)
        if saving < 10:
            continue
        tips.append(Insight(
            id=f"saving-{category}",
            kind="tip",
            title=f"Saving opportunity in {category}",
            description=(f"You could save about {format_currency(saving, fmt)} by cutting your "
                         f"{category} expenses by {threshold_pct:g}%."),
            category=category,
            severity="medium" if spent > min_amount else "low",
            action="Get Tips",
        ))

    if totals.keys() & {"dining", "food", "restaurant"}:
        tips.append(Insight("saving-food", "tip", "Reduce food expenses",
                            "Plan meals and cook at home more often; eating out costs far more.",
                            category="dining", severity="medium", action="Get Meal Ideas"))
    if totals.keys() & {"entertainment", "streaming"}:
        tips.append(Insight("saving-entertainment", "tip", "Optimize subscription services",
                            "Review your streaming subscriptions and rotate services instead of keeping all of them.",
                            category="entertainment", action="View Subscriptions"))
    return tips or list(FALLBACK_SAVING_TIPS)


def detect_spending_anomalies(daily_expenses: Sequence, today: date, threshold_pct: float = 50,
                              min_transactions: int = 5, window_days: int = 7) -> List[Insight]:
    """Flag categories whose recent average is well above their overall average."""
    if len(daily_expenses) < min_transactions:
        return []

    averages = {c: sum(v) / len(v) for c, v in _by_category(daily_expenses).items()}
    anomalies = []
    for category, amounts in _by_category(_within(daily_expenses, today, window_days)).items():
        average = averages.get(category, 0)
        if not average:
            continue
        recent = sum(amounts) / len(amounts)
        if recent <= average * (1 + threshold_pct / 100):
            continue
        increase = round((recent / average - 1) * 100)
        anomalies.append(Insight(
            id=f"anomaly-{category}",
            kind="anomaly",
            title=f"Unusual spending in {category}",
            description=f"Your recent {category} spending is {increase}% higher than your usual average.",
            category=category,
            severity="high" if increase > 100 else "medium" if increase > 50 else "low",
            action="View Details",
        ))
    return anomalies


def analyze_budget_adherence(expenses: Sequence, fmt: Optional[CurrencyFormat] = None) -> List[Insight]:
    alerts = []
    for budget in expenses:
        name = _field(budget, "title")
        category = str(name).lower()
        pct = _field(budget, "percentage", 0) or 0
        if 90 <= pct < 100:
            alerts.append(Insight(f"budget-warning-{category}", "alert", "Budget limit approaching",
                                  f"You've used {pct}% of your {name} budget.",
                                  category=category, severity="medium", action="View Budget"))
        elif pct >= 100:
            overage = round((pct - 100) * parse_amount(_field(budget, "budgeted")) / 100)
            alerts.append(Insight(f"budget-exceeded-{category}", "alert", "Budget exceeded",
                                  f"You've exceeded your {name} budget by {format_currency(overage, fmt)}.",
                                  category=category, severity="high", action="Adjust Budget"))
    return alerts


STARTER_TIPS = (
    Insight("tip-budget", "tip", "Create a personal budget",
            "Track your income and expenses to understand your spending patterns.",
            severity="high", action="Budget Template"),
    Insight("tip-emergency-fund", "tip", "Start an emergency fund",
            "Build a fund covering 3-6 months of essential expenses before investing.",
            severity="high", action="Learn More"),
    Insight("tip-goals", "tip", "Set clear financial goals",
            "Specific, measurable goals make saving and spending decisions easier.",
            severity="medium", action="Goal Setting Guide"),
)

LIQUID_TYPES = {"cash", "savings", "checking"}
INVESTMENT_TYPES = {"stocks", "bonds", "crypto", "etf", "mutual funds", "investment"}


def personalized_tips(daily_expenses: Sequence, assets: Sequence, liabilities: Sequence,
                      today: Optional[date] = None) -> List[Insight]:
    if not daily_expenses and not assets and not liabilities:
        return list(STARTER_TIPS)

    today = today or date.today()
    tips = []
    monthly = _total(_within(daily_expenses, today, 30), "amount")
    liquid = [a for a in assets if str(_field(a, "type")).lower() in LIQUID_TYPES]
    if not liquid or _total(liquid, "value") < monthly * 3:
        tips.append(Insight("tip-emergency-fund", "tip", "Build an emergency fund",
                            "Keep 3-6 months of expenses in easily accessible accounts.",
                            severity="medium", action="Learn More"))

    if any(parse_amount(_field(l, "interest")) > 10 for l in liabilities):
        tips.append(Insight("tip-high-interest-debt", "tip", "Prioritize high-interest debt",
                            "Pay down debts above 10% interest first to minimize interest costs.",
                            severity="high", action="Get Strategy"))

    invested = {str(_field(a, "type")).lower() for a in assets} & INVESTMENT_TYPES
    if assets and len(invested) < 2:
        tips.append(Insight("tip-diversification", "tip", "Diversify your investments",
                            "Spreading money across asset types reduces risk.",
                            action="Learn How"))

    has_retirement = any(
        k in str(_field(a, "type")).lower() for a in assets for k in ("retirement", "401k", "ira")
    )
    if assets and not has_retirement:
        tips.append(Insight("tip-retirement", "tip", "Start retirement planning",
                            "A retirement account gives you tax benefits and compound growth.",
                            severity="medium", action="Retirement Options"))

    if daily_expenses:
        tips.append(Insight("tip-income", "tip", "Consider multiple income streams",
                            "Additional income sources add stability and speed up your goals.",
                            action="Income Ideas"))
    if assets or liabilities:
        tips.append(Insight("tip-tax", "tip", "Optimize your tax strategy",
                            "Review deductions and credits related to your investments and loans.",
                            severity="medium", action="Tax Guide"))
    return tips


def financial_health_score(daily_expenses: Sequence, budgets: Sequence, income: float,
                           total_assets: float, total_liabilities: float) -> int:
    """0..100, starting at 70 and adjusted for budgets, savings and debt load."""
    score = 70.0
    if budgets:
        over = len([b for b in budgets if (_field(b, "percentage", 0) or 0) > 100])
        score -= over / len(budgets) * 20

    spent = _total(daily_expenses, "amount")
    if income > 0:
        savings_ratio = (income - spent) / income
        if savings_ratio > 0.2:
            score += 15
        elif savings_ratio > 0.1:
            score += 10
        elif savings_ratio > 0:
            score += 5
        else:
            score -= 10

    if total_assets > 0 and total_liabilities > 0:
        ratio = total_liabilities / total_assets
        if ratio < 0.3:
            score += 15
        elif ratio < 0.5:
            score += 10
        elif ratio < 0.7:
            score += 5
        elif ratio > 1:
            score -= 10
    return min(100, max(0, round(score)))


Analyzer = Callable[[Dict[str, List[Any]], date], List[Insight]]


def saving_analyzer(snapshot, today):
    return find_saving_opportunities(snapshot.get(DAILY_EXPENSES, []), today)


def anomaly_analyzer(snapshot, today):
    return detect_spending_anomalies(snapshot.get(DAILY_EXPENSES, []), today)


def budget_analyzer(snapshot, today):
    return analyze_budget_adherence(snapshot.get(EXPENSES, []))


def tips_analyzer(snapshot, today):
    return personalized_tips(snapshot.get(DAILY_EXPENSES, []), snapshot.get(ASSETS, []),
                             snapshot.get(LIABILITIES, []), today)


DEFAULT_ANALYZERS = (anomaly_analyzer, saving_analyzer, budget_analyzer, tips_analyzer)


class InsightService:
    """Facade running injected analyzers over a snapshot of every collection.

    analyzers: sequence of functions taking (snapshot, today) -> list of Insight
    """

    def __init__(self, analyzers: Sequence[Analyzer] = DEFAULT_ANALYZERS):
        self.analyzers = analyzers

    def report(self, snapshot: Dict[str, List[Any]], today: Optional[date] = None) -> Dict[str, Any]:
        today = today or date.today()
        report = {"steps": [], "insights": [], "score": None}
        seen = set()
        for analyzer in self.analyzers:
            name = getattr(analyzer, "__name__", str(analyzer))
            try:
                found = analyzer(snapshot, today)
            except Exception as e:
                logger.exception(f"Analyzer {name} failed")
                report["steps"].append({"analyzer": name, "error": str(e)})
                continue
            report["steps"].append({"analyzer": name, "count": len(found)})
            for insight in found:
                if insight.id not in seen:
                    seen.add(insight.id)
                    report["insights"].append(insight)

        report["score"] = financial_health_score(
            snapshot.get(DAILY_EXPENSES, []),
            snapshot.get(EXPENSES, []),
            _total(snapshot.get(INCOME, []), "amount"),
            _total(snapshot.get(ASSETS, []), "value"),
            _total(snapshot.get(LIABILITIES, []), "amount"),
        )
        return report


# --- query intents ---

INTENT_PATTERNS = {
    "get_balance": (
        "what is my balance", "how much money do i have", "show me my balance",
        "what are my assets", "my total assets", "net worth", "how much am i worth",
        "assets and liabilities",
    ),
    "check_budget": (
        "budget", "spending", "how much have i spent", "budget status", "am i over budget",
        "budget progress", "budget remaining", "expense tracking",
    ),
    "spending_category": (
        "spending on", "how much did i spend on", "expenses for", "category spending",
        "transactions in", "money spent on", "category expenses", "show me my spending",
    ),
    "saving_advice": (
        "how can i save", "saving tips", "save money", "savings advice", "ways to save",
        "increase savings", "save more", "help me save", "tips for reducing", "reduce costs",
        "lower expenses", "cut spending", "spend less on", "saving on", "give me tips",
        "how to cut down",
    ),
    "debt_payoff": (
        "pay off debt", "reduce debt", "debt strategy", "debt payoff", "pay down loans",
        "credit card debt", "debt free", "loan repayment", "pay off loans", "debt reduction",
        "manage debt",
    ),
    "investment_advice": (
        "investment", "invest", "stocks", "bonds", "where should i invest", "portfolio",
    ),
}

QUERY_CATEGORIES = (
    "groceries", "food", "dining", "restaurant", "shopping", "clothing", "entertainment",
    "utilities", "rent", "mortgage", "transportation", "car", "gas", "health", "medical",
    "insurance", "education", "travel", "gifts", "subscriptions", "streaming", "electronics",
)

TIMEFRAMES = (
    (("yesterday",), "yesterday"),
    (("today",), "today"),
    (("week", "weekly"), "week"),
    (("month", "monthly"), "month"),
    (("year", "yearly"), "year"),
)

_REDUCE_WORDS = ("reduce", "cut", "save", "saving", "tips", "advice", "lower")


def analyze_query(text: str) -> Dict[str, Any]:
    """Keyword intent detection for a spoken or typed finance question."""
    query = text.lower().strip()
    result = {"intent": "unknown", "confidence": 0.0, "entities": {}}

    category = next((c for c in QUERY_CATEGORIES if c in query), None)
    if category:
        result["entities"]["category"] = category
        result["confidence"] += 0.1
        if category in ("entertainment", "streaming") and any(w in query for w in _REDUCE_WORDS):
            result["intent"] = "saving_advice"
            result["confidence"] = 0.9

    if result["confidence"] < 0.8:
        for intent, patterns in INTENT_PATTERNS.items():
            pattern = next((p for p in patterns if p in query), None)
            if pattern is None:
                continue
            result["intent"] = intent
            result["confidence"] = max(result["confidence"], 0.7)
            if query.startswith(pattern):
                result["confidence"] += 0.2
            timeframe = next((value for words, value in TIMEFRAMES if any(w in query for w in words)), None)
            if timeframe and "timeframe" not in result["entities"]:
                result["entities"]["timeframe"] = timeframe
                result["confidence"] += 0.1
            if result["confidence"] >= 0.8:
                break

    result["confidence"] = round(min(result["confidence"], 1.0), 2)
    return result
