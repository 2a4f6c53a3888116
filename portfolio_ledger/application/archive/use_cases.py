"""Archive application use cases."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from portfolio_ledger.domain.archive.entities import ArchiveFile, ArchiveReceipt, ReplayArchiveRequest
from portfolio_ledger.domain.results import ReplayReport
from portfolio_ledger.infrastructure.archive.file_repository import FileSystemArchiveRepository


@dataclass(slots=True)
class ArchiveReplayUseCase:
    repository: FileSystemArchiveRepository

    def execute(self, request: ReplayArchiveRequest) -> ArchiveReceipt:
        return self.repository.save_run(request)

    def archive_report(
        self,
        report: ReplayReport,
        inputs: Sequence[ArchiveFile],
        outputs: Sequence[ArchiveFile],
        run_id: str | None = None,
    ) -> ArchiveReceipt:
        request = ReplayArchiveRequest(
            run_id=run_id or datetime.now().strftime("%Y%m%d_%H%M%S"),
            inputs=inputs,
            outputs=outputs,
            status=report.status_message(),
            issue_count=len(report.issues),
            fatal=report.fatal,
        )
        return self.execute(request)
