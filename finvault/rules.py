"""
Pattern tables for the utterance classifier.

Every table is an ordered tuple evaluated first-match-wins, so more specific
rules must sit above the generic ones they would otherwise lose to (mortgage
before loan, mutual fund before stock, gas bill before gas).
"""
import re
from dataclasses import dataclass
from typing import Pattern, Tuple


@dataclass(frozen=True)
class Rule:
    pattern: Pattern
    label: str


@dataclass(frozen=True)
class TitleRule:
    pattern: Pattern
    template: str = "{0}"


def rule(regex: str, label: str) -> Rule:
    return Rule(re.compile(regex), label)


def title(regex: str, template: str = "{0}") -> TitleRule:
    return TitleRule(re.compile(regex), template)


CURRENCY = r"(?:rs\.?|rupees?|inr|₹|\$|dollars?|usd)"
QUALIFIER = r"(?:about|around|approximately|roughly|nearly|almost|over|only|already|just)"
# a number that is not part of a larger number and not a percentage
NUM = r"(?<![\d.])(\d+(?:\.\d+)?)(?![\d.])(?!\s?(?:%|percent|per cent))"
MONEY = rf"(?:{CURRENCY}\s?)?{NUM}"
PCT = r"(?<![\d.])(\d+(?:\.\d+)?)\s?(?:%|percent|per cent)"
FILLER = r"(?:is\s+|of\s+|at\s+|to\s+|for\s+|was\s+)?(?:" + QUALIFIER + r"\s+)?"
# end of a captured noun phrase
PHRASE_END = r"(?=\s+(?:and|but|with|which|that|this|per|every|each|so|is|are|was|worth|of|at|in|from|on|for|yesterday|today|tomorrow|last|since)\b|\s+(?:" + CURRENCY + r"\s?)?\d|\s*$)"

STOPWORDS = {
    "a", "an", "the", "my", "our", "some", "few", "i", "we", "me", "it", "this",
    "that", "monthly", "total", "new", "one", "money", "amount", "budget",
}

# --- assets ---

ASSET_TYPES: Tuple[Rule, ...] = (
    rule(r"\b(?:retirement|401k|401\(k\)|ira|pension|ppf|epf|nps|provident fund)\b", "Retirement"),
    rule(r"\b(?:mutual funds?|sips?|index funds?|etfs?)\b", "Mutual Funds"),
    rule(r"\b(?:crypto(?:currency|currencies)?|bitcoins?|ethereum|btc|eth)\b", "Crypto"),
    rule(r"\b(?:stocks?|shares?|equity|equities|securities)\b", "Stocks"),
    rule(r"\b(?:bonds?|debentures?|treasury|government securit(?:y|ies))\b", "Bonds"),
    rule(r"\b(?:gold|silver|jewel(?:le)?ry|ornaments?|precious metals?)\b", "Gold"),
    rule(r"\b(?:house|home|apartment|flat|property|land|plot|real estate|villa)\b", "Real Estate"),
    rule(r"\b(?:car|bike|motorcycle|scooter|vehicle|truck)\b", "Vehicle"),
    rule(r"\b(?:cash|savings|deposits?|fd|bank|wallet)\b", "Cash"),
)

ASSET_TITLES: Tuple[TitleRule, ...] = (
    title(r"\b(?:have|own|purchased|bought|acquired|hold|holding|got)\s+(?:(?:a|an|the|some|my)\s+)?([a-z][a-z ]*?)\s+(?:worth|valued at|value of|for|that costs|that is worth|which is worth|currently worth)\b"),
    title(r"\bmy\s+([a-z][a-z ]*?)\s+(?:is|are)\s+(?:now\s+)?(?:worth|valued)\b"),
    title(r"\b(?:invested|put)\s+(?:\S+\s+){0,3}?in(?:to)?\s+(?:(?:a|an|the|some)\s+)?([a-z][a-z ]*?)" + PHRASE_END),
    title(r"\b(?:have|own|hold)\s+(?:(?:a|an|the|some|my)\s+)?([a-z][a-z ]*?)" + PHRASE_END),
)

ASSET_KEYWORDS: Tuple[str, ...] = (
    "fixed deposit", "savings account", "retirement account", "mutual funds", "mutual fund",
    "apartment", "house", "flat", "land", "plot", "car", "bike", "gold", "silver",
    "stocks", "shares", "bonds", "bitcoin", "ethereum", "ppf", "401k",
)

ASSET_DEFAULT_TITLES = {
    "Real Estate": "Property",
    "Stocks": "Stock Portfolio",
    "Mutual Funds": "Mutual Fund Investment",
    "Bonds": "Bonds",
    "Crypto": "Crypto Holdings",
    "Gold": "Gold",
    "Retirement": "Retirement Account",
    "Vehicle": "Vehicle",
    "Cash": "Cash Reserve",
    "Other": "Asset",
}

ASSET_VALUE: Tuple[Pattern, ...] = (
    re.compile(rf"\b(?:worth|valued at|value of|value is|valued|priced at|bought (?:it )?for|purchased (?:it )?for|costs?|invested)\s+{FILLER}{MONEY}"),
    re.compile(rf"{MONEY}\s+(?:{CURRENCY}\s+)?(?:worth of|in)\b"),
)

ASSET_GROWTH: Tuple[Pattern, ...] = (
    re.compile(rf"\b(?:increased|grew|up|gained|appreciated|rose|risen|growth) (?:by )?{PCT}"),
    re.compile(rf"{PCT} (?:increase|growth|appreciation|gain|rise|up|return)"),
)

ASSET_DECLINE: Tuple[Pattern, ...] = (
    re.compile(rf"\b(?:decreased|fell|down|lost|depreciated|dropped|fallen|declined) (?:by )?{PCT}"),
    re.compile(rf"{PCT} (?:decrease|loss|depreciation|drop|fall|decline|down)"),
)

# --- liabilities ---

LIABILITY_TYPES: Tuple[Rule, ...] = (
    rule(r"\b(?:mortgage|home loan|housing loan|house loan|property loan)\b", "Mortgage"),
    rule(r"\b(?:car|auto|vehicle|bike|motorcycle|two wheeler) loan\b", "Auto Loan"),
    rule(r"\b(?:student|education|educational|study) loan\b", "Student Loan"),
    rule(r"\bcredit card\b|\bcard (?:debt|dues|bill)\b", "Credit Card"),
    rule(r"\b(?:business|commercial|startup) loan\b", "Business Loan"),
    rule(r"\bgold loan\b", "Gold Loan"),
    rule(r"\b(?:personal|unsecured) loan\b", "Personal Loan"),
    rule(r"\b(?:loan|borrowed)\b", "Personal Loan"),
)

LIABILITY_TITLES: Tuple[TitleRule, ...] = (
    title(r"\b(?:have|took|taken|take|got|owe|on|pay|paying)\s+(?:out\s+)?(?:(?:a|an|the|my)\s+)?((?:[a-z]+\s){0,3}?(?:loan|mortgage|debt|credit card(?: debt)?))\b"),
    title(r"\b(?:loan|debt) (?:for|on) (?:(?:a|an|the|my)\s+)?([a-z]+(?: [a-z]+)?)" + PHRASE_END, "{0} loan"),
    title(r"\bmy\s+((?:[a-z]+\s){0,2}?(?:loan|mortgage|debt))\b"),
)

LIABILITY_KEYWORDS: Tuple[str, ...] = (
    "mortgage", "credit card", "overdraft", "loan", "debt",
)

LIABILITY_DEFAULT_TITLES = {
    "Mortgage": "Home Loan",
    "Auto Loan": "Car Loan",
    "Student Loan": "Student Loan",
    "Credit Card": "Credit Card Debt",
    "Business Loan": "Business Loan",
    "Gold Loan": "Gold Loan",
    "Personal Loan": "Personal Loan",
    "Other": "Liability",
}

INTEREST: Tuple[Pattern, ...] = (
    re.compile(rf"\b(?:interest|rate|apr|roi)\b[a-z ]*?\s{PCT}"),
    re.compile(rf"{PCT}\s+(?:annual\s+|yearly\s+)?(?:interest|rate|apr|p\.?a\.?|per annum)"),
    re.compile(r"\b(?:interest|rate)(?: rate)?\s+(?:of|is|at)\s+(?<![\d.])(\d+(?:\.\d+)?)(?![\d.])"),
    re.compile(PCT),
)

PAYMENT: Tuple[Pattern, ...] = (
    re.compile(rf"\b(?:monthly payment|monthly installment|monthly instalment|monthly emi|emi|installment|instalment|payment|pay|paying)s?\s+{FILLER}{MONEY}"),
    re.compile(rf"{MONEY}\s+(?:{CURRENCY}\s+)?(?:per month|a month|monthly|every month|each month|emi|as emi)\b"),
)

PRINCIPAL: Tuple[Pattern, ...] = (
    re.compile(rf"\b(?:loan|mortgage|debt|borrowed|owe|outstanding|principal|balance)\s+(?:amount\s+)?{FILLER}{MONEY}"),
    re.compile(rf"{MONEY}\s+(?:{CURRENCY}\s+)?(?:[a-z]+\s+){{0,2}}(?:loan|mortgage|debt)\b"),
)

MONTHS = (
    "january", "february", "march", "april", "may", "june", "july",
    "august", "september", "october", "november", "december",
)

_MONTH_RE = "|".join(MONTHS)
DUE_ON_DATE = re.compile(
    rf"\bdue (?:on|date|by|is)?\s*(?:the )?(\d{{1,2}})(?:st|nd|rd|th)? (?:of )?({_MONTH_RE})\b"
    rf"|\bdue (?:on|date|by|is)?\s*({_MONTH_RE}) (\d{{1,2}})(?:st|nd|rd|th)?\b"
)
DUE_MONTHLY = re.compile(r"\bdue (?:on|date|by|is)?\s*(?:the )?(\d{1,2})(?:st|nd|rd|th)?\b")
DUE_IN_DAYS = re.compile(r"\bdue in (\d{1,3}) days?\b")

# --- budgets and daily expenses ---

SPENDING_CATEGORIES: Tuple[Rule, ...] = (
    rule(r"\b(?:grocer(?:y|ies)|vegetables|fruits|supermarket|kirana)\b", "Groceries"),
    rule(r"\b(?:dining|restaurants?|food|meals?|lunch|dinner|breakfast|cafe|coffee|snacks?|eating out|takeout|swiggy|zomato)\b", "Dining"),
    rule(r"\b(?:rent|housing|maintenance|repairs?)\b", "Housing"),
    rule(r"\b(?:electricity|water bill|gas bill|internet|wifi|broadband|phone|mobile|utilit(?:y|ies)|bills?)\b", "Utilities"),
    rule(r"\b(?:insurance|premium)\b", "Insurance"),
    rule(r"\b(?:doctor|medical|medicines?|health(?:care)?|hospital|clinic|dental|pharmacy)\b", "Healthcare"),
    rule(r"\b(?:education|school|college|course|tuition|books?|fees)\b", "Education"),
    rule(r"\b(?:travel|hotels?|flights?|vacation|holiday|trips?|tour)\b", "Travel"),
    rule(r"\b(?:transport(?:ation)?|bus|train|metro|taxi|cab|uber|ola|auto|fuel|petrol|diesel|gas|commute|parking)\b", "Transportation"),
    rule(r"\b(?:movies?|cinema|concerts?|entertainment|games?|netflix|streaming|subscriptions?|spotify|party)\b", "Entertainment"),
    rule(r"\b(?:shopping|clothes|clothing|electronics|gadgets?|accessories|shoes|amazon|flipkart)\b", "Shopping"),
)

BUDGET_TITLES: Tuple[TitleRule, ...] = (
    title(r"\b(?:budget(?:ed)?|allocated?|allocation|set aside|limit)\b.*?\b(?:for|on)\s+(?:the\s+|my\s+)?([a-z][a-z ]*?)" + PHRASE_END),
    title(r"\b(?:spent|spending|spend)\b.*?\b(?:on|for)\s+(?:the\s+|my\s+)?([a-z][a-z ]*?)" + PHRASE_END),
    title(r"\b([a-z][a-z ]*?)\s+budget\b"),
)

SPENDING_KEYWORDS: Tuple[str, ...] = (
    "groceries", "grocery", "dining", "restaurant", "food", "rent", "electricity",
    "internet", "fuel", "petrol", "transport", "travel", "shopping", "entertainment",
    "insurance", "medical", "education", "utilities",
)

BUDGETED: Tuple[Pattern, ...] = (
    re.compile(rf"\b(?:budget(?:ed)?|allocated?|allocation|limit|set aside)\s+{FILLER}{MONEY}"),
    re.compile(rf"\bbudget(?:ed)?\b[a-z ]*?\b(?:is|of|at|to)\s+(?:{QUALIFIER}\s+)?{MONEY}"),
    re.compile(rf"{MONEY}\s+(?:{CURRENCY}\s+)?(?:budget|budgeted|allocated|allocation|limit)\b"),
)

SPENT: Tuple[Pattern, ...] = (
    re.compile(rf"\b(?:spent|used|consumed|spending|paid)\s+{FILLER}{MONEY}"),
    re.compile(rf"{MONEY}\s+(?:{CURRENCY}\s+)?(?:spent|used|so far|already)\b"),
)

# --- daily expenses ---

DAILY_TITLES: Tuple[TitleRule, ...] = (
    title(r"\b(?:spent|paid|bought|pay)\b(?:\s+\S+){0,3}?\s+(?:on|for)\s+(?:(?:a|an|the|my|some)\s+)?([a-z][a-z ]*?)" + PHRASE_END),
    title(r"\b(?:bought|purchased|ordered)\s+(?:(?:a|an|the|some)\s+)?([a-z][a-z ]*?)" + PHRASE_END),
    title(r"\b(?:for|on)\s+(?:(?:a|an|the|my|some)\s+)?([a-z][a-z ]*?)" + PHRASE_END),
)

DAILY_AMOUNT: Tuple[Pattern, ...] = (
    re.compile(rf"\b(?:spent|paid|pay|bought for|costs?|cost me|price (?:is|was)|for)\s+{FILLER}{MONEY}"),
    re.compile(MONEY),
)

NOTES = re.compile(r"\b(?:note|notes|details?)\s*:?\s+(.+)$")
