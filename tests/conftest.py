"""Pytest fixtures for offload tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the package is importable when running pytest from repo root
# (e.g. without pip install -e .)
_src = Path(__file__).resolve().parent.parent / "src"
if _src.is_dir() and str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from cqrs_ddd_offload.attributes import Attribute, Message  # noqa: E402
from cqrs_ddd_offload.config import OffloadSettings  # noqa: E402
from cqrs_ddd_offload.memory import InMemoryBlobStore  # noqa: E402

BUCKET = "offload-bucket"


@pytest.fixture
def sample_attributes() -> dict[str, Attribute]:
    return {
        "test": Attribute.string("test"),
        "test2": Attribute.number("123"),
        "test3": Attribute.binary(b"\x01\x02\x03"),
    }


@pytest.fixture
def sample_message(sample_attributes: dict[str, Attribute]) -> Message:
    return Message(body="test", attributes=sample_attributes)


@pytest.fixture
def store() -> InMemoryBlobStore:
    return InMemoryBlobStore(buckets={BUCKET})


@pytest.fixture
def settings() -> OffloadSettings:
    return OffloadSettings(bucket=BUCKET, region_name="us-east-1")
