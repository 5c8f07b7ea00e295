"""Similarity primitives shared by the matchers.

All functions are pure and return scores in [0, 1] (or a bool).
"""

import re
import unicodedata
from datetime import date
from decimal import Decimal
from typing import Optional

from rapidfuzz.distance import Levenshtein

HONORIFICS = re.compile(r"^(m|mr|mrs|mme|mlle|monsieur|madame|dr|prof)\.?\s+")
NON_ALNUM = re.compile(r"[^a-z0-9\s]")
WHITESPACE = re.compile(r"\s+")

MIN_KEYWORD_LENGTH = 4


def normalize_text(text: Optional[str]) -> str:
    """Lowercase, strip diacritics and punctuation, collapse whitespace."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    stripped = stripped.replace("-", " ")
    stripped = NON_ALNUM.sub("", stripped)
    return WHITESPACE.sub(" ", stripped).strip()


def normalize_name(name: Optional[str]) -> str:
    """Normalize a person or organisation name, dropping a leading title."""
    return HONORIFICS.sub("", normalize_text(name)).strip()


def levenshtein_distance(a: str, b: str) -> int:
    """Number of single-character edits turning ``a`` into ``b``."""
    return Levenshtein.distance(a, b)


def amount_proximity(
    amount: Decimal,
    expected: Decimal,
    full_tolerance: float = 0.10,
    partial_tolerance: float = 0.20,
) -> float:
    """Score how close an amount is to an expected amount.

    Magnitudes are compared, so the sign of a bank amount does not matter.
    Within ``full_tolerance`` (relative to the expected amount) the score is
    1.0; it then falls linearly from 0.5 to 0 across the partial band.
    """
    actual = abs(Decimal(amount))
    target = abs(Decimal(expected))
    if target == 0:
        return 1.0 if actual == 0 else 0.0

    relative = float(abs(actual - target) / target)
    if relative <= full_tolerance:
        return 1.0
    if relative <= partial_tolerance and partial_tolerance > full_tolerance:
        band = partial_tolerance - full_tolerance
        return 0.5 * (partial_tolerance - relative) / band
    return 0.0


def multiple_proximity(amount: Decimal, unit: Decimal) -> float:
    """Score how close ``amount`` is to a whole multiple of ``unit``.

    Used to recognise bulk payments (e.g. three registrations paid at once).
    """
    target = abs(Decimal(unit))
    if target == 0:
        return 0.0
    ratio = float(abs(Decimal(amount)) / target)
    nearest = round(ratio)
    if nearest < 1:
        return 0.0
    return max(0.0, 1.0 - 2.0 * abs(ratio - nearest))


def date_proximity(
    d1: Optional[date],
    d2: Optional[date],
    window_days: int = 90,
    range_end: Optional[date] = None,
) -> float:
    """Score how close two dates are.

    Same day is 1.0, the same calendar month at least 0.9, otherwise the
    score decays linearly with the distance in days and is 0 outside the
    window. When ``range_end`` is given, ``d2`` starts a range and any date
    inside it scores 1.0.
    """
    if d1 is None or d2 is None:
        return 0.0

    if range_end is not None and d2 <= d1 <= range_end:
        return 1.0

    days = abs((d1 - d2).days)
    if range_end is not None:
        days = min(days, abs((d1 - range_end).days))
    if days == 0:
        return 1.0
    if days > window_days:
        return 0.0

    score = 1.0 - days / window_days
    same_month = (d1.year, d1.month) == (d2.year, d2.month) or (
        range_end is not None and (d1.year, d1.month) == (range_end.year, range_end.month)
    )
    if same_month:
        score = max(score, 0.9)
    return score


def name_similarity(a: Optional[str], b: Optional[str]) -> float:
    """Symmetric similarity between two names.

    Exact match after normalisation scores 1.0, reversed word order
    ("Dupont Jean" / "Jean Dupont") 0.95, containment in either direction
    0.9; anything else falls back to a Levenshtein ratio.
    """
    n1 = normalize_name(a)
    n2 = normalize_name(b)
    if not n1 or not n2:
        return 0.0
    if n1 == n2:
        return 1.0

    if " ".join(reversed(n1.split())) == n2:
        return 0.95

    if n1 in n2 or n2 in n1:
        return 0.9

    longest = max(len(n1), len(n2))
    return max(0.0, (longest - levenshtein_distance(n1, n2)) / longest)


def keyword_overlap(memo: Optional[str], label: Optional[str]) -> bool:
    """True when the memo and the label share meaningful text.

    Either normalised string contains the other, or one of the label's
    significant words appears in the memo.
    """
    memo_norm = normalize_text(memo)
    label_norm = normalize_text(label)
    if not memo_norm or not label_norm:
        return False
    if label_norm in memo_norm:
        return True
    if len(memo_norm) >= MIN_KEYWORD_LENGTH and memo_norm in label_norm:
        return True

    memo_words = set(memo_norm.split())
    return any(
        word in memo_words for word in label_norm.split() if len(word) >= MIN_KEYWORD_LENGTH
    )
