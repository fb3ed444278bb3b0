from __future__ import annotations

import logging

from models import Tier, UserCapabilityProfile

logger = logging.getLogger(__name__)


class ProfilingService:
    """Derive a user's capability profile from body metrics and experience."""

    ACTIVITY_POINTS = {"sedentary": 0, "active": 10, "sport": 20}
    GENDERS = {"male": 1, "female": 0}

    @staticmethod
    def experience_points(experience_months: float) -> int:
        if experience_months < 3:
            return 5
        if experience_months < 6:
            return 15
        if experience_months < 12:
            return 30
        if experience_months < 24:
            return 45
        return 60

    @classmethod
    def activity_points(cls, activity_level: str) -> int:
        try:
            return cls.ACTIVITY_POINTS[activity_level.lower()]
        except (KeyError, AttributeError):
            raise ValueError(f"unknown activity level: {activity_level}") from None

    @classmethod
    def gender_code(cls, gender: str | int) -> int:
        if isinstance(gender, int) and gender in (0, 1):
            return gender
        try:
            return cls.GENDERS[str(gender).lower()]
        except KeyError:
            raise ValueError(f"unknown gender: {gender}") from None

    @staticmethod
    def bmi(weight: float, height: float) -> float:
        """Return the body-mass index for ``weight`` in kg and ``height`` in m."""
        if weight <= 0 or height <= 0:
            raise ValueError("weight and height must be positive")
        return weight / (height * height)

    @classmethod
    def estimate_body_fat(cls, bmi: float, age: float, gender: int) -> float:
        return 1.20 * bmi + 0.23 * age - 10.8 * gender - 5.4

    @staticmethod
    def composition_multiplier(body_fat: float, gender: int, bmi: float) -> float:
        if bmi < 18.5:
            return 0.90
        if gender == 1:
            bands = ((13, False), (17, True), (24, True), (29, True))
        else:
            bands = ((20, False), (24, True), (31, True), (37, True))
        for value, (limit, inclusive) in zip((1.20, 1.10, 1.00, 0.90), bands):
            if body_fat < limit or (inclusive and body_fat == limit):
                return value
        return 0.80

    @staticmethod
    def tier_for(s_rpg: float) -> Tier:
        if s_rpg > 65:
            return Tier.AVANZADO
        if s_rpg >= 36:
            return Tier.INTERMEDIO
        return Tier.BASICO

    def calculate(
        self,
        age: float,
        gender: str | int,
        experience_months: float,
        weight: float,
        height: float,
        activity_level: str,
        medical_condition: bool,
        known_body_fat: float | None = None,
    ) -> UserCapabilityProfile:
        """Score the user and return the profile for the resulting tier.

        ``known_body_fat`` overrides the BMI-based estimate when given.
        A medical condition zeroes the score so the user starts at the
        basic tier.
        """
        if age < 0 or experience_months < 0:
            raise ValueError("age and experience_months must be non-negative")
        gender_code = self.gender_code(gender)
        bmi = self.bmi(weight, height)
        body_fat = known_body_fat
        if not body_fat:
            body_fat = self.estimate_body_fat(bmi, age, gender_code)
        multiplier = self.composition_multiplier(body_fat, gender_code, bmi)
        points = self.experience_points(experience_months) + self.activity_points(
            activity_level
        )
        s_rpg = points * multiplier * (0 if medical_condition else 1)
        tier = self.tier_for(s_rpg)
        logger.info("Profile scored s_rpg=%.1f tier=%s", s_rpg, tier.value)
        return UserCapabilityProfile.for_tier(
            tier,
            s_rpg=s_rpg,
            composition_multiplier=multiplier,
            estimated_body_fat=body_fat,
        )
