"""Prompt helpers and static content for the chatbot."""

from __future__ import annotations

from typing import Dict, List


def chat_system_prompt(language: str) -> str:
	"""Return the agronomist persona prompt for the requested language."""
	return (
		"You are an agricultural expert assistant. "
		f"Provide helpful, accurate farming advice in {language}. "
		"Be concise but informative. Focus on practical solutions that farmers can implement."
	)


QUICK_RESPONSES: List[Dict[str, object]] = [
	{
		"category": "Soil Health",
		"questions": [
			"How can I improve my soil quality?",
			"What is the ideal pH for vegetables?",
			"How often should I test my soil?",
		],
	},
	{
		"category": "Pest Control",
		"questions": [
			"How do I identify common garden pests?",
			"What are organic pest control methods?",
			"How can I prevent fungal diseases?",
		],
	},
	{
		"category": "Water Management",
		"questions": [
			"How much should I water my plants?",
			"What is the best irrigation method?",
			"How can I conserve water in farming?",
		],
	},
	{
		"category": "Crop Selection",
		"questions": [
			"What crops grow best in my area?",
			"When should I plant vegetables?",
			"How do I choose the right seeds?",
		],
	},
	{
		"category": "Weather & Climate",
		"questions": [
			"How does weather affect crop growth?",
			"What crops are drought resistant?",
			"How can I protect crops from frost?",
		],
	},
]
