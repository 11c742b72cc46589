"""BMI, habit scoring and diet recommendations for child nutrition records."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from engines.scoring import round_half_up
from schemas import EatingHabits, NutritionAnalysis, NutritionRecommendation, NutritionRecord, PhysicalMeasurement
from scoring_config import NutritionPolicy

logger = logging.getLogger(__name__)

UNDERWEIGHT = "underweight"
NORMAL_WEIGHT = "normal_weight"
OVERWEIGHT = "overweight"
OBESE = "obese"

HABIT_FIELDS = (
    "eats_breakfast_regularly",
    "drinks_enough_water",
    "eats_fruits_daily",
    "eats_vegetables_daily",
    "limits_junk_food",
    "has_regular_meal_times",
    "enjoys_variety_of_foods",
    "eats_appropriate_portions",
)

PRIORITY_RANK = {"critical": 4, "high": 3, "medium": 2, "low": 1}


def calculate_bmi(height_cm: float, weight_kg: float) -> float:
    """``weight / height_m ** 2`` rounded to one decimal; 0 for unusable input."""

    if height_cm <= 0 or weight_kg <= 0:
        return 0.0
    height_m = height_cm / 100.0
    return round_half_up(weight_kg / (height_m * height_m), 1)


def bmi_category(bmi: float, policy: Optional[NutritionPolicy] = None) -> str:
    policy = policy or NutritionPolicy()
    if bmi < policy.underweight_below:
        return UNDERWEIGHT
    if bmi < policy.overweight_from:
        return NORMAL_WEIGHT
    if bmi < policy.obese_from:
        return OVERWEIGHT
    return OBESE


def is_healthy_bmi(bmi: float, policy: Optional[NutritionPolicy] = None) -> bool:
    return bmi_category(bmi, policy) == NORMAL_WEIGHT


def healthy_habits_score(habits: EatingHabits) -> float:
    """Share of the eight healthy habits that hold, as a percentage."""

    healthy = sum(1 for name in HABIT_FIELDS if getattr(habits, name))
    return round_half_up(healthy / len(HABIT_FIELDS) * 100.0, 1)


def health_score(bmi: float, habits_score: float, policy: Optional[NutritionPolicy] = None) -> float:
    policy = policy or NutritionPolicy()
    baseline = policy.healthy_bmi_baseline if is_healthy_bmi(bmi, policy) else policy.unhealthy_bmi_baseline
    return round_half_up(0.5 * baseline + 0.5 * habits_score, 1)


def measurement_bmi(measurement: PhysicalMeasurement) -> float:
    return calculate_bmi(measurement.height_cm, measurement.weight_kg)


def sort_by_priority(recommendations: Sequence[NutritionRecommendation]) -> List[NutritionRecommendation]:
    return sorted(recommendations, key=lambda item: PRIORITY_RANK[item.priority], reverse=True)


class NutritionHealthScorer:
    """Derive the nutrition analysis and recommendation set for a child.

    Derived values (BMI, category, scores) are always recomputed from the
    stored measurement and habits; they are never persisted alongside them.
    """

    def __init__(self, policy: Optional[NutritionPolicy] = None) -> None:
        self.policy = policy or NutritionPolicy()

    def analyze(self, record: NutritionRecord) -> NutritionAnalysis:
        bmi = measurement_bmi(record.physical_measurement)
        category = bmi_category(bmi, self.policy)
        habits = healthy_habits_score(record.eating_habits)
        return NutritionAnalysis(
            bmi=bmi,
            bmi_category=category,
            health_score=health_score(bmi, habits, self.policy),
            healthy_habits_score=habits,
            is_healthy_weight=category == NORMAL_WEIGHT,
        )

    def recommend(
        self,
        records: Sequence[NutritionRecord],
        *,
        now: Optional[datetime] = None,
    ) -> List[NutritionRecommendation]:
        if not records:
            return []

        created_at = now or datetime.now(timezone.utc)
        latest = records[-1]
        analysis = self.analyze(latest)
        habits = latest.eating_habits
        recommendations: List[NutritionRecommendation] = []

        def add(category: str, text: str, priority: str, target: str) -> None:
            recommendations.append(
                NutritionRecommendation(
                    category=category,
                    recommendation=text,
                    priority=priority,
                    target_area=target,
                    created_at=created_at,
                )
            )

        if analysis.bmi_category == UNDERWEIGHT:
            priority = "critical" if analysis.bmi < self.policy.severe_underweight_below else "high"
            add(
                "diet",
                "Increase caloric intake with nutritious, energy-dense foods. Include more protein, "
                "healthy fats, and complex carbohydrates.",
                priority,
                "Weight Gain",
            )
            add(
                "medical",
                "Consult with a pediatrician to rule out underlying health conditions affecting weight.",
                "critical",
                "Medical Consultation",
            )
        elif analysis.bmi_category in (OVERWEIGHT, OBESE):
            priority = "critical" if analysis.bmi_category == OBESE else "high"
            add(
                "diet",
                "Focus on balanced meals with controlled portions. Reduce sugary drinks and processed foods.",
                priority,
                "Weight Management",
            )
            add(
                "exercise",
                "Increase physical activity to at least 60 minutes daily. Include both aerobic and "
                "strength exercises.",
                priority,
                "Physical Activity",
            )

        if not habits.eats_breakfast_regularly:
            add(
                "habits",
                "Establish a regular breakfast routine. A nutritious breakfast improves focus and energy "
                "throughout the day.",
                "medium",
                "Breakfast Habits",
            )
        if not habits.drinks_enough_water:
            add(
                "habits",
                "Increase water intake to 6-8 glasses daily. Proper hydration supports overall health "
                "and cognitive function.",
                "medium",
                "Hydration",
            )
        if not habits.eats_fruits_daily or not habits.eats_vegetables_daily:
            add(
                "diet",
                "Include at least 5 servings of fruits and vegetables daily for essential vitamins and minerals.",
                "high",
                "Fruits & Vegetables",
            )
        if not habits.limits_junk_food:
            add(
                "habits",
                "Reduce junk food consumption. Replace with healthier snack alternatives like nuts, "
                "fruits, and yogurt.",
                "high",
                "Junk Food Reduction",
            )
        if not habits.has_regular_meal_times:
            add(
                "habits",
                "Establish consistent meal times to regulate metabolism and improve digestion.",
                "medium",
                "Meal Timing",
            )
        if not habits.enjoys_variety_of_foods:
            add(
                "diet",
                "Introduce variety in meals to ensure diverse nutrient intake and develop healthy eating patterns.",
                "low",
                "Food Variety",
            )
        if not habits.eats_appropriate_portions:
            add(
                "diet",
                "Serve age-appropriate portion sizes and encourage eating slowly so hunger and fullness "
                "cues are recognised.",
                "medium",
                "Portion Control",
            )

        if len(records) >= 2:
            previous_bmi = measurement_bmi(records[-2].physical_measurement)
            change = analysis.bmi - previous_bmi
            if abs(change) > self.policy.bmi_change_alert:
                direction = "increased" if change > 0 else "decreased"
                logger.debug("BMI %s by %.1f between the last two records", direction, abs(change))
                add(
                    "medical",
                    f"Significant BMI change detected ({direction} by {abs(change):.1f}). Monitor closely "
                    "and consult healthcare provider if trend continues.",
                    "high",
                    "BMI Monitoring",
                )

        if analysis.healthy_habits_score >= self.policy.excellent_habits_score:
            add(
                "habits",
                "Excellent eating habits! Continue maintaining this healthy lifestyle.",
                "low",
                "Positive Reinforcement",
            )

        return sort_by_priority(recommendations)


def analyze_nutrition(
    latest_record: NutritionRecord,
    policy: Optional[NutritionPolicy] = None,
) -> NutritionAnalysis:
    return NutritionHealthScorer(policy).analyze(latest_record)


def generate_recommendations(
    records: Sequence[NutritionRecord],
    policy: Optional[NutritionPolicy] = None,
    *,
    now: Optional[datetime] = None,
) -> List[NutritionRecommendation]:
    return NutritionHealthScorer(policy).recommend(records, now=now)
