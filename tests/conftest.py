from __future__ import annotations

import pytest

from chatterm.config import ChatConfig


@pytest.fixture
def config() -> ChatConfig:
    return ChatConfig(api_key="test-key", base_url="https://api.test")


@pytest.fixture
def lines_config() -> ChatConfig:
    return ChatConfig(api_key="test-key", base_url="https://api.test", stream_format="lines")
