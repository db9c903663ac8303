import asyncio
import io
from pathlib import Path

import pytest
from PIL import Image

from dal.analysis_dal import AnalysisDAL
from dal.chat_dal import ChatSessionDAL
from dal.record_store import RecordStore
from dal.user_dal import UserDAL
from models.analysis_record import CropAssessment
from services.analysis_lifecycle import AnalysisLifecycleManager
from services.binary_store import BinaryStore
from services.classifier.lazy_capability import LazyCapability
from utils.auth import create_access_token
from utils.config import AppConfig
from utils.database_init import AsyncDatabaseInitializer

JWT_SECRET = "test-secret"


def png_bytes(size=(16, 16), color=(40, 160, 60)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


class CountingClassifier:
    """Classifier double that records how often it ran."""

    model_name = "counting-classifier"

    def __init__(self, health_score=88, delay=0.0, error=None):
        self.calls = 0
        self.health_score = health_score
        self.delay = delay
        self.error = error

    async def classify(self, image_path):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return CropAssessment(
            condition="good",
            health_score=self.health_score,
            issues=["Leaf spots"],
            recommendations=["Keep monitoring"],
            detected_crop="Maize",
            confidence=0.9,
        )


class FixedChoice:
    """Stands in for random.Random; always picks the first candidate."""

    def choice(self, seq):
        return seq[0]

    def randint(self, a, b):
        return b


def capability_for(classifier):
    async def load():
        return classifier

    return LazyCapability(load, name=type(classifier).__name__)


def token_for(user_id: str, name: str = "Farmer") -> str:
    return create_access_token(user_id, JWT_SECRET, name=name)


@pytest.fixture
def db(tmp_path):
    return AsyncDatabaseInitializer(tmp_path / "db")


@pytest.fixture
def store(db):
    return RecordStore(db)


@pytest.fixture
def upload_dir(tmp_path) -> Path:
    return tmp_path / "uploads" / "images"


@pytest.fixture
def classifier():
    return CountingClassifier()


@pytest.fixture
def make_lifecycle(store, upload_dir):
    def build(classifier, timeout=5.0, max_upload_bytes=1024 * 1024):
        return AnalysisLifecycleManager(
            AnalysisDAL(store),
            UserDAL(store),
            BinaryStore(upload_dir),
            capability_for(classifier),
            classify_timeout=timeout,
            max_upload_bytes=max_upload_bytes,
        )

    return build


@pytest.fixture
def lifecycle(make_lifecycle, classifier):
    return make_lifecycle(classifier)


@pytest.fixture
def chat_sessions(store):
    return ChatSessionDAL(store)


@pytest.fixture
def app_config(tmp_path):
    return AppConfig(
        database_dir=tmp_path / "db",
        upload_dir=tmp_path / "uploads",
        jwt_secret=JWT_SECRET,
        classifier_timeout=5.0,
        chat_timeout=1.0,
    )
