"""Pytest configuration, Hypothesis profiles and shared fixtures."""

import logging

import pytest
from hypothesis import settings
from hypothesis import strategies as st

from stellanow_sdk.config import EnvConfig, ProjectInfo
from stellanow_sdk.core.messages import EntityType
from tests.fakes import FakeAuthStrategy, FakeTransport

# Register Hypothesis profiles
settings.register_profile("ci", max_examples=100)
settings.register_profile("dev", max_examples=20)

# Load dev profile by default, CI can override via --hypothesis-profile=ci
settings.load_profile("dev")

ORGANIZATION_ID = "6f1c1a3e-8f59-4c7e-9d83-2b7c1f2e4a10"
PROJECT_ID = "0d4a5e2b-97b1-4f3a-a6c4-5e8f9b7d3c21"

_id_text = st.text(
    alphabet=st.characters(categories=("Ll", "Lu", "Nd")), min_size=1, max_size=12
)


@st.composite
def entity_refs(draw: st.DrawFn, min_size: int = 1, max_size: int = 4) -> list[EntityType]:
    """Generate non-empty lists of entity references."""
    pairs = draw(st.lists(st.tuples(_id_text, _id_text), min_size=min_size, max_size=max_size))
    return [EntityType(entity_type_definition_id=t, entity_id=i) for t, i in pairs]


@pytest.fixture
def project_info() -> ProjectInfo:
    return ProjectInfo(organization_id=ORGANIZATION_ID, project_id=PROJECT_ID)


@pytest.fixture
def env_config() -> EnvConfig:
    return EnvConfig.custom("https://api.test.stella.cloud", "wss://ingestor.test.stella.cloud:8083/mqtt")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def auth_strategy() -> FakeAuthStrategy:
    return FakeAuthStrategy()


class LogCapture(logging.Handler):
    """Custom handler to capture log records for testing."""

    def __init__(self):
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    def messages(self) -> list[str]:
        return [r.getMessage() for r in self.records]


@pytest.fixture
def log_capture():
    """Capture everything logged under the ``stellanow_sdk`` logger."""
    logger = logging.getLogger("stellanow_sdk")
    handler = LogCapture()
    handler.setLevel(logging.DEBUG)
    original_level = logger.level

    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)

    yield handler

    logger.removeHandler(handler)
    logger.setLevel(original_level)
