"""Filesystem repository for archiving replay runs."""
from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from portfolio_ledger.domain.archive.entities import (
    ArchiveFile,
    ArchiveReceipt,
    ReplayArchiveRequest,
    iter_all_files,
)

logger = logging.getLogger(__name__)


def _normalize_run_id(run_id: str) -> str:
    if not run_id:
        return "run"
    digits = re.findall(r"\d", run_id)
    if len(digits) >= 14:
        normalized = f"{''.join(digits[:8])}_{''.join(digits[8:14])}"
        return normalized + "".join(digits[14:])
    sanitized = re.sub(r"[^0-9A-Za-z_-]+", "", run_id.strip())
    return sanitized or "run"


def _safe_file_name(name: str) -> str:
    # Archived files always land directly inside the run directory.
    return Path(name).name or "file"


class FileSystemArchiveRepository:
    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def save_run(self, request: ReplayArchiveRequest) -> ArchiveReceipt:
        run_id = _normalize_run_id(request.run_id)
        run_dir = self._root / run_id
        run_dir.mkdir(parents=True, exist_ok=True)

        for archive_file in iter_all_files(request):
            (run_dir / _safe_file_name(archive_file.name)).write_bytes(archive_file.content)

        manifest = {
            "run_id": run_id,
            "status": request.status,
            "issues": request.issue_count,
            "fatal": request.fatal,
            "inputs": [self._manifest_entry(item) for item in request.inputs],
            "outputs": [self._manifest_entry(item) for item in request.outputs],
        }
        (run_dir / "manifest.json").write_text(json.dumps(manifest, indent=2), encoding="utf-8")
        logger.info("Archived replay run %s to %s", run_id, run_dir)
        return ArchiveReceipt(run_id=run_id, location=run_dir)

    def list_runs(self) -> list[str]:
        if not self._root.is_dir():
            return []
        return sorted(path.name for path in self._root.iterdir() if (path / "manifest.json").is_file())

    @staticmethod
    def _manifest_entry(archive_file: ArchiveFile) -> dict[str, object]:
        return {"name": _safe_file_name(archive_file.name), "bytes": len(archive_file.content)}
