"""Capability scoring for backend routing.

Scores one capability profile against one task requirement. The score
is additive over five dimensions; nothing is ever subtracted:

1. Domain match          10  (exact string equality only)
2. Task match            10  (task type listed in the profile)
3. Language support       5  (requested language listed)
4. Specialization        10  (requested domain listed as a specialization)
5. Performance          0-5  (5 x declared accuracy)

Maximum total is 40. A profile can reach a high score through
specializations and accuracy alone, without matching the primary
domain field.
"""

from dataclasses import dataclass, field

from arbitrator.providers.base import CapabilityProfile

DOMAIN_SCORE = 10.0
TASK_SCORE = 10.0
LANGUAGE_SCORE = 5.0
SPECIALIZATION_SCORE = 10.0
PERFORMANCE_WEIGHT = 5.0

MAX_SCORE = DOMAIN_SCORE + TASK_SCORE + LANGUAGE_SCORE + \
    SPECIALIZATION_SCORE + PERFORMANCE_WEIGHT


@dataclass(frozen=True)
class TaskRequirement:
    """What one inbound request needs from a backend."""
    domain: str
    task_type: str
    language: str | None = None

    def __post_init__(self):
        if not self.domain:
            raise ValueError("TaskRequirement.domain must be non-empty")
        if not self.task_type:
            raise ValueError("TaskRequirement.task_type must be non-empty")


@dataclass
class ProfileScore:
    """Score of one profile, with the per-dimension breakdown."""
    total: float
    scores: dict[str, float] = field(default_factory=dict)

    @property
    def explanation(self) -> str:
        factors = ", ".join(f"{k}={v:g}" for k, v in self.scores.items() if v > 0)
        return f"score={self.total:g} ({factors or 'no overlap'})"


def score_profile(requirement: TaskRequirement, profile: CapabilityProfile) -> ProfileScore:
    """Score ``profile`` for ``requirement``."""
    scores = {
        "domain": DOMAIN_SCORE if profile.domain == requirement.domain else 0.0,
        "task": TASK_SCORE if requirement.task_type in profile.tasks else 0.0,
        "language": (
            LANGUAGE_SCORE
            if requirement.language and requirement.language in profile.language_support
            else 0.0
        ),
        "specialization": (
            SPECIALIZATION_SCORE
            if requirement.domain in profile.specializations
            else 0.0
        ),
        "performance": PERFORMANCE_WEIGHT * profile.performance_metrics.get("accuracy", 0.0),
    }
    return ProfileScore(total=sum(scores.values()), scores=scores)
