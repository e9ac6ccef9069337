"""
Test utilities package for metaloc tests.

``fake_repository`` holds an in-memory ``MetadataRepository``;
``test_helpers`` builds a populated sample repository and temporary
configuration files.
"""

from __future__ import annotations

from .fake_repository import FakeRepository, label_payload
from .test_helpers import build_sample_repository, create_temp_config_file

__all__ = [
    "FakeRepository",
    "build_sample_repository",
    "create_temp_config_file",
    "label_payload",
]
