"""Shared test fixtures and utilities."""

from pathlib import Path
from typing import List, Optional

import pytest

from transbatch.config import PipelineConfig
from transbatch.errors import TransformFailedError
from transbatch.transform_client import TransformOptions


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep profile and cache files out of the real user config directory."""
    home = tmp_path / "home"
    monkeypatch.setenv("TRANSBATCH_HOME", str(home))
    monkeypatch.delenv("TRANSBATCH_API_KEY", raising=False)
    monkeypatch.delenv("DEBUG", raising=False)
    return home


@pytest.fixture
def input_dir(tmp_path):
    """Empty input root."""
    root = tmp_path / "input"
    root.mkdir()
    return root


@pytest.fixture
def write_file(input_dir):
    """Factory fixture to write files relative to the input root."""
    def _write(path: str, content: bytes = b"image bytes"):
        file_path = input_dir / path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(content)
        return file_path
    return _write


@pytest.fixture
def make_config(input_dir, tmp_path):
    """Factory fixture for a PipelineConfig over the input root."""
    def _make(
        output_dir: Optional[Path] = None,
        cache_path: Optional[Path] = None,
        include=None,
        model: str = "gemini-2.5-flash",
    ) -> PipelineConfig:
        return PipelineConfig(
            input_dir=input_dir.resolve(),
            output_dir=(output_dir or input_dir / "translated").resolve(),
            options=TransformOptions(model=model),
            include=include,
            cache_path=cache_path,
        )
    return _make


class FakeClient:
    """Stands in for TransformClient; fails for configured file names."""

    def __init__(self, fail_names=()):
        self.fail_names = set(fail_names)
        self.calls: List[Path] = []

    def transform(self, path: Path, options: TransformOptions) -> bytes:
        path = Path(path)
        self.calls.append(path)
        if path.name in self.fail_names:
            raise TransformFailedError(
                f"Transform failed for {path.name} after 3 attempts",
                status=500,
                body="boom",
                attempts=3,
            )
        return b"translated:" + path.read_bytes()

    def close(self) -> None:
        pass


@pytest.fixture
def fake_client():
    return FakeClient()
