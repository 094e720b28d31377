"""Tests for capability scoring and backend selection.

Tests:
1. Per-dimension scoring and the documented worked example
2. Selection: ties, determinism, reachability, empty input
3. Ranking order
"""

import asyncio

import httpx
import pytest

from arbitrator.providers.base import CapabilityProfile
from arbitrator.routing import (
    MAX_SCORE,
    CapabilityRouter,
    TaskRequirement,
    score_profile,
)


class FakeBackend:
    """Minimal backend: a name, fixed profiles and a canned probe result."""

    def __init__(self, name, profiles, reachable=True, probe_error=None):
        self.name = name
        self.profiles = profiles
        self.reachable = reachable
        self.probe_error = probe_error
        self.probes = 0

    def get_capabilities(self):
        return list(self.profiles)

    async def is_reachable(self, refresh=False):
        self.probes += 1
        if self.probe_error:
            raise self.probe_error
        return self.reachable


def select(requirement, backends, router=None):
    router = router or CapabilityRouter()
    return asyncio.run(router.select_backend(requirement, backends))


@pytest.fixture
def python_codegen():
    return TaskRequirement("code", "generation", "python")


@pytest.fixture
def profile_a():
    return CapabilityProfile.create(
        "code", ["generation"], language_support=["python"],
        performance_metrics={"accuracy": 0.8})


@pytest.fixture
def profile_b():
    return CapabilityProfile.create(
        "code", ["generation"], specializations=["code"])


# ═══════════════════════════════════════════════════════════════
# 1. SCORING
# ═══════════════════════════════════════════════════════════════

class TestScoring:
    """Test the additive profile score."""

    def test_worked_example(self, python_codegen, profile_a, profile_b):
        """Profile A scores 29, profile B scores 30."""
        assert score_profile(python_codegen, profile_a).total == pytest.approx(29.0)
        assert score_profile(python_codegen, profile_b).total == pytest.approx(30.0)

    def test_breakdown(self, python_codegen, profile_a):
        """Each dimension is reported separately."""
        score = score_profile(python_codegen, profile_a)
        assert score.scores["domain"] == 10
        assert score.scores["task"] == 10
        assert score.scores["language"] == 5
        assert score.scores["specialization"] == 0
        assert score.scores["performance"] == pytest.approx(4.0)
        assert "domain=10" in score.explanation

    def test_max_score(self):
        profile = CapabilityProfile.create(
            "code", ["generation"], language_support=["python"],
            specializations=["code"], performance_metrics={"accuracy": 1.0})
        req = TaskRequirement("code", "generation", "python")
        assert score_profile(req, profile).total == MAX_SCORE == 40

    def test_domain_match_is_exact(self):
        """Case differences are not a domain match."""
        profile = CapabilityProfile.create("Code", ["generation"])
        score = score_profile(TaskRequirement("code", "generation"), profile)
        assert score.scores["domain"] == 0

    def test_no_language_requested(self, profile_a):
        """Without a language the language dimension is zero."""
        score = score_profile(TaskRequirement("code", "generation"), profile_a)
        assert score.scores["language"] == 0

    def test_specialization_without_domain_match(self):
        """A foreign-domain profile can outscore via specializations and accuracy."""
        foreign = CapabilityProfile.create(
            "chat", ["generation"], specializations=["code"],
            performance_metrics={"accuracy": 1.0})
        native = CapabilityProfile.create(
            "code", ["generation"], performance_metrics={"accuracy": 0.2})
        req = TaskRequirement("code", "generation")
        assert score_profile(req, foreign).total == 25
        assert score_profile(req, native).total == 21

    def test_requirement_needs_domain_and_task(self):
        with pytest.raises(ValueError):
            TaskRequirement("", "generation")
        with pytest.raises(ValueError):
            TaskRequirement("code", "")

    def test_metrics_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            CapabilityProfile.create("code", ["generation"],
                                     performance_metrics={"accuracy": 1.5})

    def test_language_monotonicity(self, python_codegen):
        """Adding the requested language never lowers a score."""
        without = CapabilityProfile.create("code", ["generation"])
        with_lang = CapabilityProfile.create(
            "code", ["generation"], language_support=["python"])
        assert score_profile(python_codegen, with_lang).total >= \
            score_profile(python_codegen, without).total


# ═══════════════════════════════════════════════════════════════
# 2. SELECTION
# ═══════════════════════════════════════════════════════════════

class TestSelection:
    """Test CapabilityRouter.select_backend."""

    def test_higher_score_wins(self, python_codegen, profile_a, profile_b):
        a = FakeBackend("a", [profile_a])
        b = FakeBackend("b", [profile_b])
        assert select(python_codegen, [a, b]) is b

    def test_tie_goes_to_first_registered(self, python_codegen, profile_a):
        first = FakeBackend("first", [profile_a])
        second = FakeBackend("second", [profile_a])
        assert select(python_codegen, [first, second]) is first
        assert select(python_codegen, [second, first]) is second

    def test_deterministic(self, python_codegen, profile_a, profile_b):
        backends = [FakeBackend("a", [profile_a]), FakeBackend("b", [profile_b])]
        results = {select(python_codegen, backends).name for _ in range(5)}
        assert results == {"b"}

    def test_best_profile_counts(self, python_codegen, profile_a):
        """A backend is judged by its best profile, not its first."""
        chat = CapabilityProfile.create("chat", ["conversation"])
        multi = FakeBackend("multi", [chat, profile_a])
        single = FakeBackend("single", [CapabilityProfile.create("code", ["generation"])])
        assert select(python_codegen, [single, multi]) is multi

    def test_unreachable_excluded(self, python_codegen, profile_a, profile_b):
        a = FakeBackend("a", [profile_a])
        b = FakeBackend("b", [profile_b], reachable=False)
        assert select(python_codegen, [a, b]) is a

    def test_probe_exception_counts_as_unreachable(self, python_codegen, profile_a, profile_b):
        a = FakeBackend("a", [profile_a])
        b = FakeBackend("b", [profile_b], probe_error=httpx.ConnectError("refused"))
        assert select(python_codegen, [a, b]) is a

    def test_empty_backends(self, python_codegen):
        assert select(python_codegen, []) is None

    def test_all_unreachable(self, python_codegen, profile_a):
        assert select(python_codegen, [FakeBackend("a", [profile_a], reachable=False)]) is None

    def test_zero_score_is_no_match(self):
        """A backend with no overlap at all is not suitable."""
        unrelated = CapabilityProfile.create("chat", ["conversation"])
        req = TaskRequirement("code", "generation")
        assert select(req, [FakeBackend("chat", [unrelated])]) is None

    def test_one_probe_per_backend(self, python_codegen, profile_a):
        backend = FakeBackend("a", [profile_a, profile_a])
        select(python_codegen, [backend])
        assert backend.probes == 1

    def test_profiles_not_mutated(self, python_codegen, profile_a):
        backend = FakeBackend("a", [profile_a])
        select(python_codegen, [backend])
        assert backend.profiles == [profile_a]


# ═══════════════════════════════════════════════════════════════
# 3. RANKING
# ═══════════════════════════════════════════════════════════════

class TestRanking:
    """Test CapabilityRouter.rank."""

    def test_rank_descending_and_stable(self, python_codegen, profile_a, profile_b):
        a = FakeBackend("a", [profile_a])
        b = FakeBackend("b", [profile_b])
        a2 = FakeBackend("a2", [profile_a])
        ranked = asyncio.run(CapabilityRouter().rank(python_codegen, [a, b, a2]))
        assert [c.backend.name for c in ranked] == ["b", "a", "a2"]

    def test_rank_skips_unreachable(self, python_codegen, profile_a):
        down = FakeBackend("down", [profile_a], reachable=False)
        ranked = asyncio.run(CapabilityRouter().rank(python_codegen, [down]))
        assert ranked == []
