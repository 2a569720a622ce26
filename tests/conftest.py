"""Pytest configuration and fixtures."""

from pathlib import Path
from typing import Callable

import pytest

from vaultexport.config import ExportConfig
from vaultexport.exporter import Exporter
from vaultexport.models import ExportSummary


def write_files(root: Path, files: dict[str, str | bytes]) -> Path:
    """Create ``files`` (vault-relative path -> content) below ``root``."""
    root.mkdir(parents=True, exist_ok=True)
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def make_vault(tmp_path: Path) -> Callable[[dict[str, str | bytes]], Path]:
    """Factory building a vault directory from a mapping of files."""

    def _make(files: dict[str, str | bytes]) -> Path:
        return write_files(tmp_path / "vault", files)

    return _make


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Empty, existing export destination."""
    out = tmp_path / "out"
    out.mkdir()
    return out


@pytest.fixture
def export_vault(make_vault, output_dir: Path) -> Callable[..., ExportSummary]:
    """Build a vault from files and export it to ``output_dir``."""

    def _export(files: dict[str, str | bytes], config: ExportConfig | None = None) -> ExportSummary:
        vault = make_vault(files)
        return Exporter(vault, output_dir, config).run()

    return _export
