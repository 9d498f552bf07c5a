from __future__ import annotations

import pytest

from passerelle.config import PasserelleConfig


@pytest.fixture
def settings() -> PasserelleConfig:
    return PasserelleConfig(
        api_keys=["test-key"],
        claude_model=None,
        default_allowed_tools=[],
        ollama_api_enabled=True,
        claude_timeout_ms=5000,
    )
