from datetime import date

from finvault.domain import Expense
from finvault.insights import (
    Insight, InsightService, analyze_budget_adherence, analyze_query,
    detect_spending_anomalies, financial_health_score, find_saving_opportunities,
    personalized_tips,
)

TODAY = date(2025, 6, 10)


def make_daily(id, amount, category, day):
    return {"id": id, "title": category, "amount": f"₹{amount}", "category": category,
            "date": f"2025-06-{day:02d}"}


def make_budget(title, budgeted, spent):
    return Expense.create(id=title, title=title, budgeted=budgeted, spent=spent)


def test_few_expenses_get_generic_tips():
    tips = find_saving_opportunities([make_daily("d1", 500, "Dining", 9)], TODAY)
    assert [t.id for t in tips] == ["saving-tracking", "saving-50-30-20"]


def test_saving_opportunity_per_category():
    expenses = [
        make_daily("d1", 400, "Dining", 1),
        make_daily("d2", 600, "Dining", 5),
        make_daily("d3", 20, "Transportation", 6),
    ]
    tips = find_saving_opportunities(expenses, TODAY)
    ids = [t.id for t in tips]
    # 1000 dining -> 200 saving; 20 transport is under min_amount / 2
    assert "saving-dining" in ids
    assert "saving-transportation" not in ids
    assert "saving-food" in ids
    dining = next(t for t in tips if t.id == "saving-dining")
    assert dining.severity == "medium"
    assert "₹200" in dining.description


def test_old_expenses_outside_window_fall_back():
    expenses = [
        {"id": f"d{i}", "amount": "₹900", "category": "Shopping", "date": "2025-01-01"}
        for i in range(3)
    ]
    tips = find_saving_opportunities(expenses, TODAY)
    assert [t.id for t in tips] == ["saving-50-30-20", "saving-automate"]


def test_spending_anomaly():
    expenses = [make_daily(f"d{i}", 100, "Dining", 1) for i in range(1, 5)]
    expenses += [make_daily("d5", 100, "Travel", 1)]
    expenses += [make_daily("d6", 1000, "Dining", 9)]
    anomalies = detect_spending_anomalies(expenses, TODAY, window_days=3)
    assert [a.category for a in anomalies] == ["dining"]
    assert anomalies[0].kind == "anomaly"
    assert anomalies[0].severity == "high"


def test_anomaly_needs_enough_records():
    expenses = [make_daily("d1", 100, "Dining", 1), make_daily("d2", 1000, "Dining", 9)]
    assert detect_spending_anomalies(expenses, TODAY) == []


def test_budget_adherence_thresholds():
    alerts = analyze_budget_adherence([
        make_budget("Food", "₹1,000", "₹890"),
        make_budget("Rent", "₹1,000", "₹900"),
        make_budget("Travel", "₹1,000", "₹1,250"),
    ])
    assert [(a.id, a.severity) for a in alerts] == [
        ("budget-warning-rent", "medium"),
        ("budget-exceeded-travel", "high"),
    ]
    assert "₹250" in alerts[1].description


def test_starter_tips_without_data():
    tips = personalized_tips([], [], [])
    assert [t.id for t in tips] == ["tip-budget", "tip-emergency-fund", "tip-goals"]


def test_personalized_tips():
    assets = [{"id": "a1", "title": "Shares", "value": "₹1,00,000", "type": "Stocks"}]
    liabilities = [{"id": "l1", "title": "Card", "amount": "₹20,000", "interest": "36%"}]
    tips = {t.id for t in personalized_tips([], assets, liabilities, TODAY)}
    assert {"tip-emergency-fund", "tip-high-interest-debt", "tip-diversification",
            "tip-retirement", "tip-tax"} <= tips
    assert "tip-income" not in tips


def test_health_score():
    assert financial_health_score([], [], 0, 0, 0) == 70
    budgets = [make_budget("Food", "₹100", "₹150"), make_budget("Rent", "₹100", "₹50")]
    expenses = [make_daily("d1", 500, "Dining", 1)]
    # -10 for half the budgets over, +15 for saving 50%, +15 for low debt
    assert financial_health_score(expenses, budgets, 1000, 100000, 10000) == 90
    assert financial_health_score(expenses, [], 400, 1000, 2000) == 50


def test_insight_service_survives_failing_analyzer():
    def broken(snapshot, today):
        raise RuntimeError("boom")

    def one_tip(snapshot, today):
        return [Insight("t1", "tip", "Tip", "Do it"), Insight("t1", "tip", "Tip", "Do it")]

    report = InsightService([broken, one_tip]).report({}, today=TODAY)
    assert report["steps"][0] == {"analyzer": "broken", "error": "boom"}
    assert report["steps"][1] == {"analyzer": "one_tip", "count": 2}
    assert [i.id for i in report["insights"]] == ["t1"]
    assert report["score"] == 70


def test_insight_service_default_analyzers():
    snapshot = {"expenses": [make_budget("Food", "₹100", "₹120")]}
    report = InsightService().report(snapshot, today=TODAY)
    ids = [i.id for i in report["insights"]]
    assert "budget-exceeded-food" in ids
    assert "saving-tracking" in ids
    assert all("error" not in s for s in report["steps"])


def test_analyze_query_intents():
    assert analyze_query("What is my net worth")["intent"] == "get_balance"
    r = analyze_query("How much did I spend on dining this week")
    assert r["intent"] == "spending_category"
    assert r["entities"] == {"category": "dining", "timeframe": "week"}

    r = analyze_query("tips to reduce entertainment costs")
    assert r["intent"] == "saving_advice"
    assert r["confidence"] == 0.9

    assert analyze_query("pay off debt fast")["intent"] == "debt_payoff"
    assert analyze_query("hello there")["intent"] == "unknown"
