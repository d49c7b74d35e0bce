"""Getting raw days into a source: flat-file parsing and log ingestion."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Sequence, Union

from ..core.days import RawDay, RowStatus, parse_row, validate_row
from ..errors import AccessError, RowValidationError
from ..events.log import EventData, EventLog
from ..events.schemas import CHECKPOINT, SOURCE_DAY_RECEIVED, SourceDayReceived

logger = logging.getLogger(__name__)


def source_stream(stream: str) -> str:
    return f"{stream}-source"


def parse_source_lines(lines: Sequence[str]) -> List[RawDay]:
    """Validate comma separated rows; the error ordinal is the 1-based line number."""

    days: List[RawDay] = []
    for number, line in enumerate(lines, 1):
        fields = [field.strip() for field in line.split(",")]
        status = validate_row(fields)
        if status is not RowStatus.OK:
            raise RowValidationError(number, status)
        days.append(parse_row(fields))
    return days


def read_source_file(path: Union[str, Path]) -> List[RawDay]:
    try:
        text = Path(path).read_text()
    except OSError as exc:
        raise AccessError(str(exc)) from exc
    return parse_source_lines(text.splitlines())


async def append_source_batch(
    log: EventLog, stream: str, days: Sequence[RawDay], checkpoint: bool = True
) -> int:
    """Append ``days`` to the source stream, closed by a checkpoint unless told otherwise.

    Returns the position of the last appended event.
    """

    events = [
        EventData(SOURCE_DAY_RECEIVED, SourceDayReceived.from_day(day).to_payload())
        for day in days
    ]
    if checkpoint:
        events.append(EventData(CHECKPOINT, {}))
    position = await log.append(source_stream(stream), events)
    logger.info(
        "ingested %d day(s) into %s%s",
        len(days),
        source_stream(stream),
        " with checkpoint" if checkpoint else "",
    )
    return position


__all__ = ["source_stream", "parse_source_lines", "read_source_file", "append_source_batch"]
