"""
Difficulty distribution planning.

The standard six-question quiz is 3 easy / 2 medium / 1 hard. Other sizes
scale at roughly 50/33/17 with at least one hard question. When the pool is
short the planner clamps, redistributes the deficit (easy first), warns below
the minimum viable size, and as a last resort switches to an emergency
distribution of at most three questions per difficulty.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from dailyquiz.core.composer.config import ComposerConfig
from libs.domain_types import DIFFICULTY_ORDER, DifficultyLevel

logger = logging.getLogger(__name__)

EASY_RATIO = 0.5
MEDIUM_RATIO = 0.33
MIN_VIABLE_FLOOR = 3
MIN_VIABLE_RATIO = 0.5
EMERGENCY_TOTAL_THRESHOLD = 3
EMERGENCY_MAX_PER_DIFFICULTY = 3
EMERGENCY_WARNING = (
    "EMERGENCY MODE: Using minimal distribution due to severe question shortage"
)
RECOMMENDED_EFFICIENCY = 0.8
RECOMMENDED_DEPTH_MULTIPLIER = 2

Distribution = Dict[DifficultyLevel, int]


@dataclass
class ValidationResult:
    """Outcome of a validation pass."""

    is_valid: bool
    issues: List[str] = field(default_factory=list)


@dataclass
class DistributionPlan:
    distribution: Distribution
    target: Distribution
    fallbacks: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    emergency: bool = False

    @property
    def total(self) -> int:
        return sum(self.distribution.values())


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def target_distribution(total_questions: int) -> Distribution:
    """Target counts per difficulty for a quiz of ``total_questions``."""
    if total_questions == 6:
        return {
            DifficultyLevel.EASY: 3,
            DifficultyLevel.MEDIUM: 2,
            DifficultyLevel.HARD: 1,
        }

    easy = _round_half_up(total_questions * EASY_RATIO)
    medium = _round_half_up(total_questions * MEDIUM_RATIO)
    hard = max(1, total_questions - easy - medium)
    return {
        DifficultyLevel.EASY: easy,
        DifficultyLevel.MEDIUM: medium,
        DifficultyLevel.HARD: hard,
    }


def _available(available: Mapping[DifficultyLevel, int], difficulty: DifficultyLevel) -> int:
    return max(0, int(available.get(difficulty, 0) or 0))


def min_viable_size(target_question_count: int) -> int:
    return max(MIN_VIABLE_FLOOR, math.floor(target_question_count * MIN_VIABLE_RATIO))


def _redistribute(
    distribution: Distribution,
    available: Mapping[DifficultyLevel, int],
    deficit: int,
) -> Dict[DifficultyLevel, int]:
    """Spread ``deficit`` over difficulties with headroom, easy first."""
    added: Dict[DifficultyLevel, int] = {}
    remaining = deficit
    for difficulty in DIFFICULTY_ORDER:
        if remaining <= 0:
            break
        headroom = _available(available, difficulty) - distribution[difficulty]
        can_add = min(remaining, headroom)
        if can_add > 0:
            distribution[difficulty] += can_add
            added[difficulty] = can_add
            remaining -= can_add
    return added


def emergency_distribution(available: Mapping[DifficultyLevel, int]) -> Distribution:
    """At most three questions per difficulty from whatever exists."""
    return {
        difficulty: min(_available(available, difficulty), EMERGENCY_MAX_PER_DIFFICULTY)
        for difficulty in DIFFICULTY_ORDER
    }


def distribution_with_fallbacks(
    config: ComposerConfig, available: Mapping[DifficultyLevel, int]
) -> DistributionPlan:
    """Fit the target distribution to the available pool.

    Every short difficulty contributes exactly one fallback entry (the
    reduction plus where the deficit went) and exactly one warning naming it.
    """
    target = target_distribution(config.target_question_count)
    plan = DistributionPlan(distribution=dict(target), target=dict(target))

    shortfalls = [
        d for d in DIFFICULTY_ORDER if _available(available, d) < target[d]
    ]
    if not shortfalls:
        logger.debug("Target distribution can be met exactly")
        return plan

    logger.warning(f"Applying fallback strategies for {len(shortfalls)} difficulty levels")

    for difficulty in shortfalls:
        needed = target[difficulty]
        have = _available(available, difficulty)
        deficit = needed - have
        plan.distribution[difficulty] = have

        added = _redistribute(plan.distribution, available, deficit)
        compensated = sum(added.values())
        fallback = f"{difficulty.value}: reduced from {needed} to {have} (deficit: {deficit})"
        if added:
            moved = ", ".join(f"+{count} {d.value}" for d, count in added.items())
            fallback += f"; compensated with {moved}"
        plan.fallbacks.append(fallback)

        if compensated < deficit:
            plan.warnings.append(
                f"Insufficient {difficulty.value} questions: could not fully compensate "
                f"for deficit. Short by {deficit - compensated} questions."
            )
        else:
            plan.warnings.append(
                f"Insufficient {difficulty.value} questions: deficit of {deficit} "
                f"redistributed to other difficulties."
            )

    total_actual = plan.total
    minimum = min_viable_size(config.target_question_count)
    if total_actual < minimum:
        plan.warnings.append(
            f"Quiz size {total_actual} is below minimum viable size {minimum}. "
            f"Consider increasing question pool or relaxing anti-repeat rules."
        )

    if total_actual < EMERGENCY_TOTAL_THRESHOLD:
        plan.distribution = emergency_distribution(available)
        plan.emergency = True
        for difficulty in DIFFICULTY_ORDER:
            count = plan.distribution[difficulty]
            if count > 0:
                plan.fallbacks.append(f"Emergency: using {count} {difficulty.value} questions")
        plan.warnings.append(EMERGENCY_WARNING)

    logger.warning(
        "Final distribution: Easy=%d, Medium=%d, Hard=%d",
        plan.distribution[DifficultyLevel.EASY],
        plan.distribution[DifficultyLevel.MEDIUM],
        plan.distribution[DifficultyLevel.HARD],
    )
    return plan


def validate_distribution(
    distribution: Mapping[DifficultyLevel, int],
    available: Mapping[DifficultyLevel, int],
) -> ValidationResult:
    """Check a distribution is feasible against the pool."""
    issues: List[str] = []
    for difficulty in DIFFICULTY_ORDER:
        needed = distribution.get(difficulty, 0)
        have = _available(available, difficulty)
        if needed < 0:
            issues.append(f"{difficulty.value}: negative count {needed} is invalid")
        elif needed > have:
            issues.append(f"{difficulty.value}: need {needed} but only {have} available")

    if sum(distribution.values()) == 0:
        issues.append("Total question count cannot be zero")

    return ValidationResult(is_valid=not issues, issues=issues)


def recommended_distribution(
    available: Mapping[DifficultyLevel, int], total: Optional[int] = None
) -> Dict[str, object]:
    """How well the pool supports the target, plus pool-growth advice.

    Returns:
        Dict with the target ``distribution``, ``efficiency`` (0-1 share of the
        target the pool can meet) and ``recommendations``.
    """
    total = total or 6
    target = target_distribution(total)

    achievable = sum(
        min(target[d], _available(available, d)) for d in DIFFICULTY_ORDER
    )
    efficiency = achievable / total

    recommendations: List[str] = []
    if efficiency < RECOMMENDED_EFFICIENCY:
        recommendations.append(
            "Consider adding more questions to improve distribution flexibility"
        )
    for difficulty in DIFFICULTY_ORDER:
        have = _available(available, difficulty)
        recommended = target[difficulty] * RECOMMENDED_DEPTH_MULTIPLIER
        if have < recommended:
            recommendations.append(
                f"Consider adding more {difficulty.value} questions "
                f"(current: {have}, recommended: {recommended}+)"
            )

    return {
        "distribution": target,
        "efficiency": efficiency,
        "recommendations": recommendations,
    }
