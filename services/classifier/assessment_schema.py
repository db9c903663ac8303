"""Schema definitions for the crop assessment tool call."""

from typing import Any, Dict

CONDITIONS = ["excellent", "good", "fair", "poor"]

FUNCTION_NAME = "report_crop_assessment"

FUNCTION_DEFINITION: Dict[str, Any] = {
    "type": "function",
    "name": FUNCTION_NAME,
    "description": "Return the crop, its condition, a health score, visible issues, and recommendations.",
    "parameters": {
        "type": "object",
        "properties": {
            "detected_crop": {
                "type": "string",
                "description": "Common name of the crop in the photo, or 'Unknown Crop'.",
            },
            "condition": {
                "type": "string",
                "description": "Overall crop condition.",
                "enum": CONDITIONS,
            },
            "health_score": {
                "type": "integer",
                "description": "Crop health from 0 (dead) to 100 (perfect).",
            },
            "issues": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Visible problems such as disease, pests, or nutrient stress.",
            },
            "recommendations": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Practical next steps for the farmer.",
            },
            "confidence": {
                "type": "number",
                "description": "Confidence in the assessment between 0 and 1.",
            },
        },
        "required": ["detected_crop", "condition", "health_score", "issues", "recommendations", "confidence"],
        "additionalProperties": False,
    },
    "strict": True,
}
