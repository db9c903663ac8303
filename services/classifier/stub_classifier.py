"""Placeholder crop classifier.

Decodes and resizes the stored image like a real model's preprocessing
would, then produces a random health score and the matching canned
assessment. Swap it for `OpenAIImageClassifier` (or any object with the same
`classify` coroutine) without touching the lifecycle manager.
"""

from __future__ import annotations

import asyncio
import random
from typing import Dict, List, Optional, Tuple

from PIL import Image

from models.analysis_record import CropAssessment

INPUT_SIZE: Tuple[int, int] = (224, 224)

# (exclusive lower bound, condition, issues, recommendations), checked in order.
CONDITION_BANDS: List[Tuple[int, str, List[str], List[str]]] = [
    (
        90,
        "excellent",
        [],
        [
            "Excellent crop condition maintained",
            "Continue current farming practices",
            "Consider sharing success with community",
        ],
    ),
    (
        75,
        "good",
        [],
        [
            "Good overall condition",
            "Monitor for any changes",
            "Maintain regular care schedule",
        ],
    ),
    (
        50,
        "fair",
        ["Minor stress indicators"],
        [
            "Check irrigation system",
            "Inspect for pests",
            "Consider soil testing",
        ],
    ),
]

POOR_BAND: Tuple[str, List[str], List[str]] = (
    "poor",
    ["Visible stress", "Poor growth"],
    [
        "Immediate attention required",
        "Consult agricultural expert",
        "Consider treatment options",
    ],
)


def condition_for_score(score: int) -> Tuple[str, List[str], List[str]]:
    """Map a health score to (condition, issues, recommendations)."""
    for lower_bound, condition, issues, recommendations in CONDITION_BANDS:
        if score > lower_bound:
            return condition, list(issues), list(recommendations)
    condition, issues, recommendations = POOR_BAND
    return condition, list(issues), list(recommendations)


def _static_details() -> Dict[str, Dict[str, object]]:
    return {
        "soil_analysis": {
            "type": "loamy",
            "moisture_level": "moist",
            "nutrient_deficiencies": [],
            "ph_estimate": 6.5,
            "texture": "Medium",
            "color": "Dark brown",
            "organic_matter": "Adequate",
        },
        "pest_analysis": {
            "detected": False,
            "pests": [],
            "disease": {"detected": False, "name": "", "symptoms": [], "treatment": []},
        },
        "environmental_factors": {
            "lighting": "Adequate",
            "season": "Growing season",
            "weather_conditions": "Favorable",
            "irrigation_status": "Optimal",
        },
    }


class StubCropClassifier:
    """Random-score classifier behind the crop classifier interface.

    Args:
        rng: Randomness source; inject a seeded `random.Random` for
            reproducible scores.
    """

    model_name = "stub-crop-classifier"

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.Random()

    @classmethod
    async def load(cls, rng: Optional[random.Random] = None) -> "StubCropClassifier":
        return cls(rng)

    async def classify(self, image_path: str) -> CropAssessment:
        """Assess the image stored at `image_path`.

        Raises:
            OSError: If the file is missing or is not a decodable image.
        """
        await asyncio.to_thread(self._preprocess, image_path)

        score = self._rng.randint(60, 99)
        condition, issues, recommendations = condition_for_score(score)
        return CropAssessment(
            condition=condition,
            health_score=score,
            issues=issues,
            recommendations=recommendations,
            detected_crop="Unknown Crop",
            confidence=0.75,
            details=_static_details(),
        )

    @staticmethod
    def _preprocess(image_path: str) -> Tuple[int, int]:
        with Image.open(image_path) as img:
            resized = img.convert("RGB").resize(INPUT_SIZE)
            return resized.size
