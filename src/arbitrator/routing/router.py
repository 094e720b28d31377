"""Capability router.

Picks the backend whose declared capabilities best match a task:
- Only reachable backends are scored (one probe per backend per call)
- Every profile of every backend is scored; the best single profile counts
- Ties go to the backend registered first
- No positive score means no suitable backend (None, not an error)

The router does no retries. A backend that dies after selection fails
its completion request, and the caller decides what to do.
"""

import logging
from dataclasses import dataclass
from typing import Sequence

import httpx

from arbitrator.errors import BackendError
from arbitrator.providers.base import CapabilityProfile, ModelProvider

from .scorer import ProfileScore, TaskRequirement, score_profile

logger = logging.getLogger(__name__)


@dataclass
class RoutingCandidate:
    """One scored (backend, profile) pair."""
    backend: ModelProvider
    profile: CapabilityProfile
    score: ProfileScore


class CapabilityRouter:
    """Routes task requirements to backends by declared capability.

    Usage:
        router = CapabilityRouter()
        backend = await router.select_backend(
            TaskRequirement("code", "generation", "python"),
            factory.configured_providers(),
        )
        if backend is None:
            ...  # report "no capable backend"
    """

    def __init__(self, refresh_probes: bool = False):
        # When True every call re-probes instead of trusting the cache
        self.refresh_probes = refresh_probes

    async def _reachable(self, backend: ModelProvider) -> bool:
        try:
            return await backend.is_reachable(refresh=self.refresh_probes)
        except (httpx.HTTPError, OSError, BackendError) as e:
            logger.warning(f"Probe of {backend.name} failed: {e}")
            return False

    async def rank(
        self,
        requirement: TaskRequirement,
        backends: Sequence[ModelProvider],
    ) -> list[RoutingCandidate]:
        """Score every profile of every reachable backend.

        Returns candidates by descending score; equal scores keep
        registration order.
        """
        candidates: list[RoutingCandidate] = []

        for backend in backends:
            if not await self._reachable(backend):
                logger.debug(f"Skipping unreachable backend {backend.name}")
                continue
            for profile in backend.get_capabilities():
                score = score_profile(requirement, profile)
                logger.debug(
                    f"{backend.name}/{profile.domain}: {score.explanation}")
                candidates.append(RoutingCandidate(backend, profile, score))

        return sorted(candidates, key=lambda c: c.score.total, reverse=True)

    async def select_backend(
        self,
        requirement: TaskRequirement,
        backends: Sequence[ModelProvider],
    ) -> ModelProvider | None:
        """Return the best reachable backend, or None if none is suitable."""
        best: ModelProvider | None = None
        best_score = 0.0

        for candidate in await self.rank(requirement, backends):
            # Strict comparison keeps the first of equal scores
            if candidate.score.total > best_score:
                best_score = candidate.score.total
                best = candidate.backend

        if best is None:
            logger.info(
                f"No suitable backend for domain={requirement.domain} "
                f"task={requirement.task_type}")
        else:
            logger.info(
                f"Routed {requirement.domain}/{requirement.task_type} "
                f"to {best.name} (score {best_score:g})")
        return best
