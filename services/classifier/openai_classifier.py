"""Crop image assessment using OpenAI's Responses API."""

import base64
import logging
import time
from pathlib import Path
from typing import Any, Dict, List

from openai import AsyncOpenAI

from models.analysis_record import CropAssessment
from services.binary_store import BinaryStore
from services.classifier.assessment_schema import FUNCTION_DEFINITION, FUNCTION_NAME
from services.classifier.prompts import build_system_prompt, build_user_prompt
from services.classifier.response_parser import extract_usage, parse_function_call

_MIME_BY_SUFFIX = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


def to_image_data_url(image_bytes: bytes, mime_type: str) -> str:
    """Encode raw image bytes as a data URL suitable for vision input."""
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


class OpenAIImageClassifier:
    """Classify stored crop images with a vision-capable model."""

    def __init__(self, client: AsyncOpenAI, binaries: BinaryStore, model: str = "gpt-4o-mini") -> None:
        """Initialize the classifier with an OpenAI async client.

        Args:
            client: OpenAI async client.
            binaries: Store the classified images are read from.
            model: Vision-capable model name.
        """
        if client is None:
            raise ValueError("OpenAI client must be provided.")
        self.client = client
        self.binaries = binaries
        self.model_name = model
        self.system_prompt = build_system_prompt()

    async def classify(self, image_path: str) -> CropAssessment:
        """Assess the image stored at `image_path`."""
        start_time = time.time()
        image_bytes = await self.binaries.read(image_path)
        mime_type = _MIME_BY_SUFFIX.get(Path(image_path).suffix.lower(), "image/jpeg")

        inputs = self._build_inputs(to_image_data_url(image_bytes, mime_type))
        response = await self._create_response(inputs)
        assessment = self._parse_response(response)

        usage = extract_usage(response)
        logging.info(
            "Crop assessment latency %.3fs (input_tokens=%s, output_tokens=%s)",
            time.time() - start_time,
            usage["input_tokens"],
            usage["output_tokens"],
        )
        return assessment

    def _build_inputs(self, image_url: str) -> List[Dict[str, Any]]:
        return [
            {"type": "message", "role": "system", "content": [{"type": "input_text", "text": self.system_prompt}]},
            {"type": "message", "role": "user", "content": [{"type": "input_text", "text": build_user_prompt()}]},
            {"type": "message", "role": "user", "content": [{"type": "input_image", "image_url": image_url}]},
        ]

    async def _create_response(self, inputs: List[Dict[str, Any]]) -> Any:
        """Send the multimodal request to the OpenAI Responses API."""
        try:
            return await self.client.responses.create(
                model=self.model_name,
                input=inputs,
                tools=[FUNCTION_DEFINITION],
                tool_choice={"type": "function", "name": FUNCTION_NAME},
            )
        except Exception as exc:
            logging.error("Error during OpenAI Responses API call: %s", exc)
            raise

    def _parse_response(self, response: Any) -> CropAssessment:
        """Parse the assessment output from the model."""
        try:
            args = parse_function_call(response, tool_name=FUNCTION_NAME)
        except Exception as exc:
            logging.error("Error parsing OpenAI response: %s", exc)
            logging.error("Full response object: %r", response)
            raise

        score = max(0, min(100, int(args.get("health_score") or 0)))
        return CropAssessment(
            condition=args.get("condition") or "fair",
            health_score=score,
            issues=list(args.get("issues") or []),
            recommendations=list(args.get("recommendations") or []),
            detected_crop=args.get("detected_crop") or "Unknown Crop",
            confidence=float(args.get("confidence") or 0.0),
        )
