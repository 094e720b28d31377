"""Capability-based backend routing.

Each backend declares capability profiles (domain, tasks, languages,
specializations, accuracy). A request becomes a TaskRequirement, every
profile of every reachable backend is scored against it, and the best
scoring backend wins. Ties keep registration order.
"""

from arbitrator.routing.router import CapabilityRouter, RoutingCandidate
from arbitrator.routing.scorer import (
    MAX_SCORE,
    ProfileScore,
    TaskRequirement,
    score_profile,
)

__all__ = [
    "CapabilityRouter",
    "RoutingCandidate",
    "MAX_SCORE",
    "ProfileScore",
    "TaskRequirement",
    "score_profile",
]
