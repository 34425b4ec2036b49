"""Pytest configuration and shared fixtures for testing."""

from pathlib import Path

import pytest

from toolgate.configuration.config import Settings
from toolgate.infrastructure.sandbox import SandboxPathResolver


@pytest.fixture
def sandbox_dir(tmp_path: Path) -> Path:
    """Empty sandbox directory for one test."""
    sandbox = tmp_path / "sandbox"
    sandbox.mkdir()
    return sandbox.resolve()


@pytest.fixture
def resolver(sandbox_dir: Path) -> SandboxPathResolver:
    return SandboxPathResolver(sandbox_dir)


@pytest.fixture
def settings(sandbox_dir: Path) -> Settings:
    """Settings pointing at the test sandbox with a fake upstream and no delays."""
    return Settings(
        sandbox_dir=sandbox_dir,
        llm_base_url="http://llm.test",
        llm_model="test-model",
        llm_validate_model_on_startup=False,
        llm_retry_base_delay=0.0,
        llm_retry_max_delay=0.0,
        tool_retry_base_delay=0.0,
        tool_retry_max_delay=0.0,
        rate_limit_enabled=False,
        environment="development",
    )
