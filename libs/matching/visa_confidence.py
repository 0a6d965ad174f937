"""Visa sponsorship confidence.

Placeholder scoring: the score is drawn from the injected RNG and no job or
user signals are consulted yet.
"""
from __future__ import annotations

import random
from typing import Optional

from libs.matching.models import Job, UserPreferences, VisaConfidence


def calculate_visa_confidence(
    job: Optional[Job], user: Optional[UserPreferences], rng: Optional[random.Random] = None
) -> VisaConfidence:
    score = (rng or random).random() * 100
    if score > 70:
        return VisaConfidence(level="high", label="High", score=score)
    if score > 40:
        return VisaConfidence(level="medium", label="Medium", score=score)
    return VisaConfidence(level="low", label="Low", score=score)


def get_visa_confidence_label(confidence: VisaConfidence) -> str:
    return confidence.label
