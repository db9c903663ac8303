"""Offline farming answers used when the chat provider is unavailable."""

from __future__ import annotations

import random
from typing import List, Optional, Tuple

# Checked in this order; the first category with a matching keyword wins.
KNOWLEDGE_BASE: List[Tuple[str, List[str], List[str]]] = [
	(
		"soil_health",
		["soil", "fertilizer", "nutrients", "ph", "compost", "manure"],
		[
			"Healthy soil should have a pH between 6.0-7.0 for most crops. Test your soil annually and add organic matter regularly.",
			"For nutrient deficiencies, consider balanced NPK fertilizers. Nitrogen for leaf growth, Phosphorus for roots, Potassium for overall health.",
			"Compost improves soil structure, water retention, and microbial activity. Apply 2-4 inches of compost annually.",
			"Crop rotation helps maintain soil health and reduces pest buildup. Rotate between different plant families each season.",
		],
	),
	(
		"pest_control",
		["pest", "insect", "bug", "worm", "disease", "fungus", "bacteria"],
		[
			"Integrated Pest Management (IPM) combines cultural, biological, and chemical controls. Start with prevention and monitoring.",
			"Beneficial insects like ladybugs, lacewings, and parasitic wasps help control pests naturally. Plant flowers to attract them.",
			"For fungal diseases, ensure proper air circulation, avoid overhead watering, and apply copper-based fungicides if needed.",
			"Neem oil is effective against many pests and diseases. Mix 2 tablespoons per gallon of water and spray weekly.",
		],
	),
	(
		"water_management",
		["water", "irrigation", "drainage", "moisture", "drought", "flood"],
		[
			"Water deeply but infrequently to encourage deep root growth. Most crops need 1-2 inches of water per week.",
			"Drip irrigation saves water and reduces disease risk by keeping foliage dry. Install during dry periods.",
			"Mulching conserves moisture, suppresses weeds, and regulates soil temperature. Apply 2-4 inches around plants.",
			"Good drainage is crucial. Raised beds or contour planting can help prevent waterlogging in heavy soils.",
		],
	),
	(
		"crop_selection",
		["crop", "plant", "variety", "seed", "sowing", "planting", "harvest"],
		[
			"Choose crop varieties suited to your climate, soil type, and market demand. Check local growing calendars.",
			"Heirloom varieties offer unique flavors and genetic diversity, while hybrids provide uniformity and disease resistance.",
			"Direct seeding works for crops like beans, carrots, and lettuce. Transplants give a head start for tomatoes and peppers.",
			"Succession planting every 2-3 weeks ensures continuous harvest of crops like lettuce, radishes, and beans.",
		],
	),
	(
		"weather_climate",
		["weather", "climate", "season", "temperature", "rain", "frost"],
		[
			"Monitor weather forecasts regularly. Prepare for extreme conditions with protective covers or irrigation.",
			"Frost-sensitive crops need protection when temperatures drop below 32°F (0°C). Use row covers or cold frames.",
			"High temperatures above 90°F (32°C) can stress plants. Provide shade and increase watering frequency.",
			"Season extension techniques like greenhouses, cold frames, and row covers allow year-round production.",
		],
	),
]

DEFAULT_RESPONSE = (
	"I'm here to help with farming questions! You can ask me about soil health, pest control, "
	"water management, crop selection, or weather conditions. What would you like to know?"
)


class LocalResponder:
	"""Keyword lookup over `KNOWLEDGE_BASE`.

	Args:
		rng: Randomness source used to pick a response within the matched
			category. Anything with a `choice(seq)` method works.
	"""

	def __init__(self, rng: Optional[random.Random] = None) -> None:
		self._rng = rng or random.Random()

	@staticmethod
	def match_category(text: str) -> Optional[str]:
		"""Return the first category with a keyword contained in `text`."""
		lowered = text.lower()
		for category, keywords, _ in KNOWLEDGE_BASE:
			if any(keyword in lowered for keyword in keywords):
				return category
		return None

	@staticmethod
	def candidates(category: str) -> List[str]:
		for name, _, responses in KNOWLEDGE_BASE:
			if name == category:
				return list(responses)
		raise KeyError(f"Unknown category {category}")

	def respond(self, text: str) -> str:
		category = self.match_category(text)
		if category is None:
			return DEFAULT_RESPONSE
		return self._rng.choice(self.candidates(category))
