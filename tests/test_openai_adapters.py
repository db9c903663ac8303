import json
from types import SimpleNamespace

import pytest

from models.errors import StorageError
from services.binary_store import BinaryStore
from services.chat.chat_provider import OpenAIChatProvider
from services.classifier.assessment_schema import FUNCTION_NAME
from services.classifier.factory import build_classifier_capability
from services.classifier.openai_classifier import OpenAIImageClassifier
from models.chat_models import ChatMessage

from conftest import png_bytes


class FakeResponses:
    def __init__(self, response):
        self.response = response
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        return self.response


def fake_client(response):
    return SimpleNamespace(responses=FakeResponses(response))


async def test_classifier_reads_function_call_arguments(tmp_path):
    image = tmp_path / "leaf.png"
    image.write_bytes(png_bytes())
    arguments = {
        "condition": "good",
        "health_score": 140,
        "issues": ["Yellowing"],
        "recommendations": ["Add nitrogen"],
        "detected_crop": "Rice",
        "confidence": 0.8,
    }
    response = SimpleNamespace(
        output=[SimpleNamespace(type="function_call", name=FUNCTION_NAME, arguments=json.dumps(arguments))],
        usage=None,
    )
    client = fake_client(response)

    assessment = await OpenAIImageClassifier(client, BinaryStore(tmp_path), model="vision-test").classify(str(image))

    assert assessment.detected_crop == "Rice"
    assert assessment.health_score == 100
    request = client.responses.requests[0]
    assert request["model"] == "vision-test"
    assert request["tool_choice"] == {"type": "function", "name": FUNCTION_NAME}
    assert request["input"][2]["content"][0]["image_url"].startswith("data:image/png;base64,")


async def test_classifier_without_function_call_raises(tmp_path):
    image = tmp_path / "leaf.png"
    image.write_bytes(png_bytes())
    client = fake_client(SimpleNamespace(output=[], usage=None))

    with pytest.raises(RuntimeError):
        await OpenAIImageClassifier(client, BinaryStore(tmp_path)).classify(str(image))


async def test_classifier_reads_only_inside_the_upload_directory(tmp_path):
    store_dir = tmp_path / "images"
    store_dir.mkdir()
    outside = tmp_path / "secret.png"
    outside.write_bytes(png_bytes())
    client = fake_client(SimpleNamespace(output=[], usage=None))

    with pytest.raises(StorageError):
        await OpenAIImageClassifier(client, BinaryStore(store_dir)).classify(str(outside))
    assert client.responses.requests == []


async def test_factory_builds_openai_backend(app_config, tmp_path):
    app_config.classifier_backend = "openai"
    client = fake_client(SimpleNamespace(output=[], usage=None))

    capability = build_classifier_capability(app_config, BinaryStore(tmp_path), client)
    classifier = await capability.get()

    assert isinstance(classifier, OpenAIImageClassifier)
    with pytest.raises(RuntimeError):
        build_classifier_capability(app_config, BinaryStore(tmp_path))


async def test_chat_provider_sends_history_and_returns_text():
    client = fake_client(SimpleNamespace(output_text=" Mulch the beds. ", output=[]))
    provider = OpenAIChatProvider(client, model="chat-test")
    history = [ChatMessage(role="user", content="hi"), ChatMessage(role="assistant", content="hello")]

    reply = await provider.complete("system", history, "how to save water?")

    assert reply == "Mulch the beds."
    sent = client.responses.requests[0]["input"]
    assert [m["role"] for m in sent] == ["system", "user", "assistant", "user"]
    assert sent[-1]["content"] == "how to save water?"


async def test_chat_provider_rejects_empty_reply():
    provider = OpenAIChatProvider(fake_client(SimpleNamespace(output_text="", output=[])))
    with pytest.raises(RuntimeError):
        await provider.complete("system", [], "hi")
