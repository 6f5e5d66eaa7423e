"""
SAF Scorer - Similarity-Adjusted-Feedback Ranking
==================================================

Scores an explanation by blending its own engagement rate (saves / views)
with the rates of its lineage ancestors. Each ancestor is weighted by:

- Similarity: how close its content is to the explanation (0.0-1.0)
- Feedback volume: n / (n + volume_saturation), so thinly-viewed ancestors count less
- Depth: depth_decay ** (depth - 1), parents count most

Formula:
    inherited = sum(w_a * rate_a) / sum(w_a)
    saf       = (saves + prior_strength * prior) / (views + prior_strength)
    final     = saf + exploration_weight * wilson_width(saves, views)

where prior is the inherited rate, or baseline_rate when no ancestor carries
weight.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .wilson import DEFAULT_Z, wilson_interval


@dataclass
class ScoringParams:
    """Tunable parameters for SAF scoring"""

    max_depth: int = 5
    depth_decay: float = 0.5
    volume_saturation: float = 20.0
    prior_strength: float = 10.0
    baseline_rate: float = 0.1
    exploration_weight: float = 0.1
    wilson_z: float = DEFAULT_Z
    min_similarity: float = 0.0

    def __post_init__(self):
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {self.max_depth}")
        if not 0.0 < self.depth_decay <= 1.0:
            raise ValueError(f"depth_decay must be in (0, 1], got {self.depth_decay}")
        if self.volume_saturation < 0 or self.prior_strength < 0 or self.exploration_weight < 0:
            raise ValueError("volume_saturation, prior_strength and exploration_weight must be non-negative")
        if not 0.0 <= self.baseline_rate <= 1.0:
            raise ValueError(f"baseline_rate must be in [0, 1], got {self.baseline_rate}")
        if not 0.0 <= self.min_similarity < 1.0:
            raise ValueError(f"min_similarity must be in [0, 1), got {self.min_similarity}")
        if self.wilson_z <= 0:
            raise ValueError(f"wilson_z must be positive, got {self.wilson_z}")


@dataclass
class AncestorSignal:
    """Raw inputs for one ancestor of the explanation being scored"""

    ancestor_id: int
    depth: int
    similarity: float
    views: int = 0
    saves: int = 0


@dataclass
class AncestorContribution:
    """How much one ancestor contributed to an inherited rate"""

    ancestor_id: int
    depth: int
    similarity: float
    views: int
    saves: int
    feedback_weight: float
    raw_weight: float
    weight: float
    ancestor_rate: float

    def to_dict(self) -> dict[str, Any]:
        return {k: round(v, 4) if isinstance(v, float) else v for k, v in self.__dict__.items()}


@dataclass
class SafResult:
    """Result of SAF scoring"""

    explanation_id: int
    views: int
    saves: int
    own_rate: float | None
    inherited_rate: float | None
    prior_rate: float
    saf_score: float
    wilson_lower: float
    wilson_upper: float
    exploration_bonus: float
    final_score: float
    contributions: list[AncestorContribution] = field(default_factory=list)
    calculated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        def _round(value):
            return round(value, 4) if isinstance(value, float) else value

        return {
            "explanation_id": self.explanation_id,
            "views": self.views,
            "saves": self.saves,
            "own_rate": _round(self.own_rate),
            "inherited_rate": _round(self.inherited_rate),
            "prior_rate": _round(self.prior_rate),
            "saf_score": _round(self.saf_score),
            "wilson_lower": _round(self.wilson_lower),
            "wilson_upper": _round(self.wilson_upper),
            "exploration_bonus": _round(self.exploration_bonus),
            "final_score": _round(self.final_score),
            "contributions": [c.to_dict() for c in self.contributions],
            "calculated_at": self.calculated_at.isoformat(),
        }


def _trials(views: int, saves: int) -> tuple[int, int]:
    """Sanitized (trials, successes); a save implies a view."""
    views = max(0, int(views))
    saves = max(0, int(saves))
    trials = max(views, saves)
    return trials, saves


class SafScorer:
    """
    Similarity-Adjusted-Feedback scoring.

    Pure computation: callers supply counts and ancestor signals, the scorer
    never touches the database.
    """

    def __init__(self, params: ScoringParams | None = None):
        self.params = params or ScoringParams()

    def feedback_weight(self, views: int) -> float:
        """Saturating volume weight n / (n + k); 1.0 when k is 0 and n > 0."""
        if views <= 0:
            return 0.0
        return views / (views + self.params.volume_saturation)

    def depth_weight(self, depth: int) -> float:
        return self.params.depth_decay ** (depth - 1)

    def contributions(self, ancestors: Iterable[AncestorSignal]) -> list[AncestorContribution]:
        """
        Weight every ancestor within max_depth and normalize the weights.

        Normalized weights sum to 1.0 when at least one raw weight is
        positive, otherwise they are all 0.
        """
        results = []
        for signal in ancestors:
            if signal.depth < 1 or signal.depth > self.params.max_depth:
                continue
            trials, saves = _trials(signal.views, signal.saves)
            similarity = max(0.0, min(1.0, signal.similarity))
            effective_similarity = max(similarity - self.params.min_similarity, 0.0)
            feedback = self.feedback_weight(trials)
            raw = effective_similarity * feedback * self.depth_weight(signal.depth)
            results.append(
                AncestorContribution(
                    ancestor_id=signal.ancestor_id,
                    depth=signal.depth,
                    similarity=similarity,
                    views=trials,
                    saves=saves,
                    feedback_weight=feedback,
                    raw_weight=raw,
                    weight=0.0,
                    ancestor_rate=saves / trials if trials else 0.0,
                )
            )

        total = sum(c.raw_weight for c in results)
        if total > 0:
            for c in results:
                c.weight = c.raw_weight / total

        results.sort(key=lambda c: (-c.weight, c.depth, c.ancestor_id))
        return results

    def inherited_rate(self, contributions: list[AncestorContribution]) -> float | None:
        if not any(c.weight > 0 for c in contributions):
            return None
        return sum(c.weight * c.ancestor_rate for c in contributions)

    def score(
        self,
        explanation_id: int,
        views: int,
        saves: int,
        ancestors: Iterable[AncestorSignal] = (),
    ) -> SafResult:
        """
        Calculate the SAF score for one explanation.

        Args:
            explanation_id: Explanation being scored
            views: Total views of the explanation
            saves: Total saves of the explanation
            ancestors: Signals for each lineage ancestor

        Returns:
            SafResult with the component breakdown
        """
        p = self.params
        trials, saves = _trials(views, saves)

        contributions = self.contributions(ancestors)
        inherited = self.inherited_rate(contributions)
        prior = inherited if inherited is not None else p.baseline_rate

        denom = trials + p.prior_strength
        if denom > 0:
            saf = (saves + p.prior_strength * prior) / denom
        else:
            saf = prior

        lower, upper = wilson_interval(saves, trials, p.wilson_z)
        bonus = p.exploration_weight * (upper - lower)

        return SafResult(
            explanation_id=explanation_id,
            views=trials,
            saves=saves,
            own_rate=saves / trials if trials else None,
            inherited_rate=inherited,
            prior_rate=prior,
            saf_score=saf,
            wilson_lower=lower,
            wilson_upper=upper,
            exploration_bonus=bonus,
            final_score=saf + bonus,
            contributions=contributions,
        )

    @staticmethod
    def rank(results: Iterable[SafResult]) -> list[SafResult]:
        """Sort by final score, then SAF score, then id."""
        return sorted(results, key=lambda r: (-r.final_score, -r.saf_score, r.explanation_id))

    def top_n(self, results: Iterable[SafResult], n: int = 10) -> list[SafResult]:
        return self.rank(results)[:n]

    def filter_above_threshold(self, results: Iterable[SafResult], threshold: float = 0.5) -> list[SafResult]:
        return [r for r in self.rank(results) if r.final_score >= threshold]
