"""Sentiment label classification shared by every component.

Providers report sentiment on two different scales: a signed [-1, 1] score
and a [0, 100] percentage.  The scale is disambiguated by magnitude:

    |v| <= 1.2   →  [-1, 1] scale:  v > 0.1 positive, v < -0.1 negative
    otherwise    →  [0, 100] scale: v >= 66 positive, v <= 33 negative

Anything else (``None``, NaN, non-numeric) is neutral.
"""

from __future__ import annotations

import math

from mindshare.models.signals import SentimentLabel

UNIT_SCALE_LIMIT = 1.2
UNIT_POSITIVE_THRESHOLD = 0.1
UNIT_NEGATIVE_THRESHOLD = -0.1
PERCENT_POSITIVE_THRESHOLD = 66.0
PERCENT_NEGATIVE_THRESHOLD = 33.0


def classify(value: float | int | str | None) -> SentimentLabel:
    """Map a raw sentiment score onto a :class:`SentimentLabel`."""
    if value is None or isinstance(value, bool):
        return SentimentLabel.neutral
    try:
        v = float(value)
    except (TypeError, ValueError):
        return SentimentLabel.neutral
    if math.isnan(v):
        return SentimentLabel.neutral

    if abs(v) <= UNIT_SCALE_LIMIT:
        if v > UNIT_POSITIVE_THRESHOLD:
            return SentimentLabel.positive
        if v < UNIT_NEGATIVE_THRESHOLD:
            return SentimentLabel.negative
        return SentimentLabel.neutral

    if v >= PERCENT_POSITIVE_THRESHOLD:
        return SentimentLabel.positive
    if v <= PERCENT_NEGATIVE_THRESHOLD:
        return SentimentLabel.negative
    return SentimentLabel.neutral
