"""Turn spoken amounts ("ten thousand", "2 lakh", "seven point five") into digits."""
import re
from typing import List, Optional

from finvault.money import format_number

UNITS = {
    "zero": 0, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6,
    "seven": 7, "eight": 8, "nine": 9, "ten": 10, "eleven": 11, "twelve": 12,
    "thirteen": 13, "fourteen": 14, "fifteen": 15, "sixteen": 16,
    "seventeen": 17, "eighteen": 18, "nineteen": 19,
}

TENS = {
    "twenty": 20, "thirty": 30, "forty": 40, "fifty": 50,
    "sixty": 60, "seventy": 70, "eighty": 80, "ninety": 90,
}

SCALES = {
    "thousand": 1_000,
    "lakh": 100_000, "lakhs": 100_000, "lac": 100_000, "lacs": 100_000,
    "million": 1_000_000, "millions": 1_000_000,
    "crore": 10_000_000, "crores": 10_000_000,
    "billion": 1_000_000_000,
}

_DIGITS = re.compile(r"^\d+(?:\.\d+)?$")
_K_SUFFIX = re.compile(r"\b(?!401k\b)(\d+(?:\.\d+)?)\s?k\b")


def _is_word_number(token: str) -> bool:
    return token in UNITS or token in TENS or token in SCALES or token == "hundred"


def _read_number(tokens: List[str], start: int) -> tuple[Optional[float], int]:
    """Read one number phrase at tokens[start]; return (value, next index)."""
    total = 0.0
    current = 0.0
    seen = False
    i = start
    while i < len(tokens):
        tok = tokens[i]
        if _DIGITS.match(tok) and not seen:
            current = float(tok)
            seen = True
        elif tok in UNITS:
            current += UNITS[tok]
            seen = True
        elif tok in TENS:
            current += TENS[tok]
            seen = True
        elif tok == "hundred" and seen:
            current = (current or 1) * 100
        elif tok in SCALES and seen:
            total += (current or 1) * SCALES[tok]
            current = 0.0
        elif tok == "a" and not seen and i + 1 < len(tokens) and (tokens[i + 1] in SCALES or tokens[i + 1] == "hundred"):
            current = 1.0
            seen = True
        elif tok == "and" and seen and i + 1 < len(tokens) and _is_word_number(tokens[i + 1]):
            pass
        elif tok == "point" and seen and i + 1 < len(tokens) and tokens[i + 1] in UNITS:
            decimals = ""
            i += 1
            while i < len(tokens) and tokens[i] in UNITS and UNITS[tokens[i]] < 10:
                decimals += str(UNITS[tokens[i]])
                i += 1
            current += float(f"0.{decimals}") if decimals else 0.0
            continue
        else:
            break
        i += 1
    if not seen:
        return None, start
    return total + current, i


def words_to_digits(text: str) -> str:
    text = _K_SUFFIX.sub(lambda m: format_number(float(m.group(1)) * 1000), text)
    tokens = text.split()
    out: List[str] = []
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        starts_number = (
            _is_word_number(tok) and tok not in SCALES and tok != "hundred"
        ) or (
            tok == "a" and i + 1 < len(tokens) and (tokens[i + 1] in SCALES or tokens[i + 1] == "hundred")
        ) or (
            _DIGITS.match(tok) and i + 1 < len(tokens) and (tokens[i + 1] in SCALES or tokens[i + 1] == "hundred")
        )
        if starts_number:
            value, nxt = _read_number(tokens, i)
            if value is not None and nxt > i:
                out.append(format_number(value))
                i = nxt
                continue
        out.append(tok)
        i += 1
    return " ".join(out)
