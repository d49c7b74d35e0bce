"""Commit a one-shot build as two flat files.

``ResultsData.txt`` holds one comma separated row per :class:`ResultsDay` and
``Aggregates.txt`` one row of :class:`Aggregates`, both in declared field
order.  Both files are written to the work directory and copied to temp files
beside the published copies before either published copy is replaced, so a
failed build leaves the previous pair in place.
"""
from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from pydantic import BaseModel

from ..bounds.schemas import field_order
from ..build.jobs import BuildJob, CommitContext
from ..errors import AccessError

logger = logging.getLogger(__name__)

RESULTS_FILE = "ResultsData.txt"
AGGREGATES_FILE = "Aggregates.txt"


def format_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def format_row(model: BaseModel) -> str:
    return ",".join(format_value(getattr(model, name)) for name in field_order(type(model)))


def _stage(lines: Iterable[str], name: str, work_dir: Path, results_dir: Path) -> Path:
    """Write ``name`` to the work directory and copy it to a temp file beside its published path."""

    work_path = work_dir / name
    work_path.write_text("".join(f"{line}\n" for line in lines))

    with tempfile.NamedTemporaryFile(dir=results_dir, suffix=".tmp", delete=False) as handle:
        temp_path = Path(handle.name)
    try:
        shutil.copyfile(work_path, temp_path)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise
    return temp_path


class FileResultsSink:
    """Never superseded; only the last job of a build is written."""

    def __init__(self, work_dir: Union[str, Path] = ".", results_dir: Union[str, Path] = "CObsResults"):
        self.work_dir = Path(work_dir)
        self.results_dir = Path(results_dir)
        self.published: List[Path] = []

    async def register_build(self) -> None:
        return None

    async def is_superseded(self) -> bool:
        return False

    def _write(self, job: BuildJob) -> List[Path]:
        artifacts = [
            (RESULTS_FILE, [format_row(day) for day in job.results_days]),
            (AGGREGATES_FILE, [format_row(job.aggregates)]),
        ]
        staged: List[Path] = []
        try:
            self.work_dir.mkdir(parents=True, exist_ok=True)
            self.results_dir.mkdir(parents=True, exist_ok=True)
            for name, lines in artifacts:
                staged.append(_stage(lines, name, self.work_dir, self.results_dir))
            # Both temp files exist before either published file is touched.
            published = []
            for (name, _), temp_path in zip(artifacts, staged):
                target = self.results_dir / name
                shutil.move(str(temp_path), str(target))
                published.append(target)
            return published
        except OSError as exc:
            raise AccessError(str(exc)) from exc
        finally:
            for temp_path in staged:
                temp_path.unlink(missing_ok=True)

    async def commit_job(self, job: BuildJob, is_last: bool, context: CommitContext) -> None:
        if not is_last:
            return
        if job.aggregates is None:
            raise ValueError(f"job {job.series_index} has no aggregates to commit")
        self.published = await asyncio.to_thread(self._write, job)
        logger.info("published %s", ", ".join(str(path) for path in self.published))

    async def commit(
        self,
        jobs: Sequence[BuildJob],
        checkpoint_id: Optional[str],
        read_position: int,
        min_index: int,
        build_from_index: int,
        max_index: int,
    ) -> None:
        if not jobs:
            raise ValueError("cannot commit an empty build queue")
        context = CommitContext(checkpoint_id, read_position, min_index, build_from_index, max_index)
        await self.commit_job(jobs[-1], True, context)


__all__ = ["FileResultsSink", "format_row", "format_value", "RESULTS_FILE", "AGGREGATES_FILE"]
