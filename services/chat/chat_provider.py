"""Chat completions through OpenAI's Responses API."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from openai import AsyncOpenAI

from models.chat_models import ChatMessage
from services.classifier.response_parser import extract_text


class OpenAIChatProvider:
	"""Answer a user message given a system prompt and prior turns."""

	def __init__(
		self,
		client: AsyncOpenAI,
		model: str = "gpt-4o-mini",
		*,
		max_output_tokens: int = 300,
		temperature: float = 0.7,
	) -> None:
		if client is None:
			raise ValueError("AsyncOpenAI client is required.")
		self.client = client
		self.model_name = model
		self.max_output_tokens = max_output_tokens
		self.temperature = temperature

	async def complete(self, system_prompt: str, history: Sequence[ChatMessage], new_message: str) -> str:
		"""Return the assistant reply text.

		Raises:
			RuntimeError: If the provider returned no text.
		"""
		inputs: List[Dict[str, Any]] = [{"role": "system", "content": system_prompt}]
		inputs += [{"role": msg.role, "content": msg.content} for msg in history]
		inputs.append({"role": "user", "content": new_message})

		try:
			response = await self.client.responses.create(
				model=self.model_name,
				input=inputs,
				max_output_tokens=self.max_output_tokens,
				temperature=self.temperature,
			)
		except Exception as exc:
			logging.error("OpenAI chat request failed: %s", exc)
			raise

		text = extract_text(response).strip()
		if not text:
			raise RuntimeError("Chat response did not include text.")
		return text
