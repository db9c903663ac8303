"""Build the classifier capability selected by configuration."""

from __future__ import annotations

import random
from typing import Optional

from openai import AsyncOpenAI

from services.binary_store import BinaryStore
from services.classifier.lazy_capability import LazyCapability
from services.classifier.openai_classifier import OpenAIImageClassifier
from services.classifier.stub_classifier import StubCropClassifier
from utils.config import AppConfig


def build_classifier_capability(
    config: AppConfig,
    binaries: BinaryStore,
    openai_client: Optional[AsyncOpenAI] = None,
    rng: Optional[random.Random] = None,
) -> LazyCapability:
    """Return a lazily loaded classifier for `config.classifier_backend`.

    The `openai` backend reads images through `binaries`.

    Raises:
        RuntimeError: If the `openai` backend is selected without a client.
    """
    if config.classifier_backend == "openai":
        if openai_client is None:
            raise RuntimeError("CLASSIFIER_BACKEND=openai requires OPENAI_API_KEY to be set")

        async def load_openai() -> OpenAIImageClassifier:
            return OpenAIImageClassifier(openai_client, binaries, model=config.classifier_model)

        return LazyCapability(load_openai, name="OpenAI crop classifier")

    async def load_stub() -> StubCropClassifier:
        return await StubCropClassifier.load(rng)

    return LazyCapability(load_stub, name="stub crop classifier")
