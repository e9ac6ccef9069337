"""
Global test configuration fixtures for metaloc tests.

Provides configuration objects, the in-memory repository and error/progress
trackers shared by the unit tests.
"""

from __future__ import annotations

import pytest

from metaloc.config.schema import (
    ExportConfig,
    ExportOptionsConfig,
    ImportConfig,
    MetalocConfig,
    RepositoryConfig,
    ServicesConfig,
)
from metaloc.utils.core.error_tracker import ErrorTracker
from metaloc.utils.progress_tracker import SILENT_CONFIG, ProgressTracker
from tests.utils import FakeRepository, build_sample_repository


@pytest.fixture
def base_config() -> MetalocConfig:
    """A minimal valid configuration."""
    return MetalocConfig(
        services=ServicesConfig(
            repository=RepositoryConfig(url="https://contoso.crm.dynamics.com", token="test-token"),
        ),
    )


@pytest.fixture
def export_options() -> ExportOptionsConfig:
    return ExportOptionsConfig()


@pytest.fixture
def export_config() -> ExportConfig:
    """Export of the sample solution in every installed language."""
    return ExportConfig(solution="contoso")


@pytest.fixture
def import_config() -> ImportConfig:
    return ImportConfig(progress_log_interval=1)


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def sample_repository() -> FakeRepository:
    return build_sample_repository()


@pytest.fixture
def errors() -> ErrorTracker:
    return ErrorTracker()


@pytest.fixture
def progress() -> ProgressTracker:
    return ProgressTracker(config=SILENT_CONFIG)
