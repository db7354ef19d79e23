"""Certificate tiers derived from an information gain score."""

from __future__ import annotations

from enum import Enum


class CertificateTier(str, Enum):
    NONE = "None"
    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"
    DIAMOND = "Diamond"


# Highest threshold first; a score takes the first tier it reaches.
TIER_THRESHOLDS: tuple[tuple[int, CertificateTier], ...] = (
    (80, CertificateTier.DIAMOND),
    (50, CertificateTier.GOLD),
    (25, CertificateTier.SILVER),
    (10, CertificateTier.BRONZE),
)


def classify(score: int) -> CertificateTier:
    for threshold, tier in TIER_THRESHOLDS:
        if score >= threshold:
            return tier
    return CertificateTier.NONE


__all__ = ["TIER_THRESHOLDS", "CertificateTier", "classify"]
