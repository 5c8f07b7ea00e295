"""Tunable constants for the entity matcher."""

import os
from dataclasses import dataclass, fields, replace
from typing import Mapping, Optional

ENV_PREFIX = "CLUBLEDGER_"


@dataclass(frozen=True)
class MatcherConfig:
    """Weights and thresholds used to score transaction/candidate pairs.

    Scores are on a 0-100 scale: the weighted similarity sum is multiplied
    by 100 and the keyword bonus is added as flat points.
    """

    amount_weight: float = 0.5
    date_weight: float = 0.3
    name_weight: float = 0.2
    keyword_bonus: float = 20.0

    auto_threshold: int = 85
    review_threshold: int = 50
    quality_floor: int = 50

    # Relative difference bands for amount proximity
    amount_full_tolerance: float = 0.10
    amount_partial_tolerance: float = 0.20

    date_window_days: int = 90

    # A transaction this many times larger than a candidate is treated as a bulk payment
    split_ratio_threshold: float = 1.8
    split_ratio_max: float = 10.0

    def __post_init__(self):
        if self.review_threshold > self.auto_threshold:
            raise ValueError("review_threshold must not exceed auto_threshold")
        if not 0 <= self.amount_full_tolerance <= self.amount_partial_tolerance:
            raise ValueError("amount tolerances must satisfy 0 <= full <= partial")
        if self.date_window_days <= 0:
            raise ValueError("date_window_days must be positive")
        if self.split_ratio_threshold <= 1:
            raise ValueError("split_ratio_threshold must be greater than 1")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "MatcherConfig":
        """Build a config, overriding defaults from CLUBLEDGER_* variables.

        For example ``CLUBLEDGER_AUTO_THRESHOLD=90`` sets ``auto_threshold``.

        Raises:
            ValueError: If a variable cannot be converted to the field type
        """
        if environ is None:
            environ = os.environ

        overrides = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw.strip() == "":
                continue
            try:
                overrides[f.name] = int(raw) if f.type in (int, "int") else float(raw)
            except ValueError:
                raise ValueError(f"Invalid value for {ENV_PREFIX}{f.name.upper()}: '{raw}'")

        return replace(cls(), **overrides)
