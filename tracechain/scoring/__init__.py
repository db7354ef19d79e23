"""Information gain scoring and certificate classification.

Both are pure functions of their input and safe to call concurrently.
"""

from .certificate import TIER_THRESHOLDS, CertificateTier, classify
from .information_gain import (
    DEFAULT_PARAMS,
    InformationGainParams,
    ReconcileMode,
    compute_information_gain,
)

__all__ = [
    "DEFAULT_PARAMS",
    "TIER_THRESHOLDS",
    "CertificateTier",
    "InformationGainParams",
    "ReconcileMode",
    "classify",
    "compute_information_gain",
]
