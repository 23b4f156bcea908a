"""Shared fixtures: a source zone and a destination zone under tmp_path."""

from pathlib import Path

import pytest


@pytest.fixture
def source_root(tmp_path) -> Path:
    """Root of the source zone."""
    root = tmp_path / "downloads"
    root.mkdir()
    return root


@pytest.fixture
def destination_root(tmp_path) -> Path:
    """Root of the destination zone."""
    root = tmp_path / "media"
    root.mkdir()
    return root


@pytest.fixture
def outside(tmp_path) -> Path:
    """A directory outside both zones."""
    other = tmp_path / "media-other"
    other.mkdir()
    (other / "secret.txt").write_text("do not touch")
    return other


@pytest.fixture
def zone_env(monkeypatch, source_root, destination_root):
    """Point the zone environment variables at the test zones."""
    monkeypatch.setenv("DOWNLOAD_PATH", str(source_root))
    monkeypatch.setenv("MEDIA_PATH", str(destination_root))
