"""Static catalogues served by the AI routes."""

from typing import Any, Dict, List

AVAILABLE_MODELS: List[Dict[str, Any]] = [
    {
        "id": "mobilenet-v2",
        "name": "MobileNet V2",
        "description": "Lightweight model for mobile and edge devices",
        "categories": ["crop_classification", "health_assessment"],
        "accuracy": 0.75,
        "speed": "fast",
        "size": "14MB",
    },
    {
        "id": "agricultural-net",
        "name": "AgriculturalNet",
        "description": "Specialized model for agricultural applications",
        "categories": ["crop_classification", "disease_detection", "pest_identification"],
        "accuracy": 0.85,
        "speed": "medium",
        "size": "45MB",
    },
]

# Location and soil inputs are accepted by the route but not used yet.
CROP_SUGGESTIONS: List[Dict[str, Any]] = [
    {
        "crop": "Rice",
        "suitability": 85,
        "reasons": ["Suitable for tropical climate", "High water availability", "Good soil conditions"],
        "growing_season": "Kharif",
        "expected_yield": "4-5 tons/hectare",
        "market_price": "₹18-22/kg",
        "investment": "Medium",
        "risks": ["Water logging", "Pest attacks"],
        "recommendations": ["Use quality seeds", "Proper water management", "Regular pest monitoring"],
    },
    {
        "crop": "Wheat",
        "suitability": 75,
        "reasons": ["Suitable for temperate climate", "Good soil drainage", "Moderate water requirement"],
        "growing_season": "Rabi",
        "expected_yield": "3-4 tons/hectare",
        "market_price": "₹20-25/kg",
        "investment": "Low",
        "risks": ["Frost damage", "Rust diseases"],
        "recommendations": ["Timely sowing", "Disease resistant varieties", "Proper fertilization"],
    },
    {
        "crop": "Cotton",
        "suitability": 70,
        "reasons": ["Warm climate suitable", "Well-drained soil", "Long growing season"],
        "growing_season": "Kharif",
        "expected_yield": "2-3 tons/hectare",
        "market_price": "₹45-55/kg",
        "investment": "High",
        "risks": ["Pest attacks", "Weather fluctuations"],
        "recommendations": ["BT cotton varieties", "Integrated pest management", "Proper spacing"],
    },
]
