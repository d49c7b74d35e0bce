from __future__ import annotations

from dataclasses import replace

import pytest

from cobs.core.days import RowStatus
from cobs.errors import AccessError, ContiguityError, DecodeError, RowValidationError
from cobs.events.log import EventData, open_event_log
from cobs.events.schemas import (
    CHECKPOINT,
    CHECKPOINT_CLEAR,
    CHECKPOINT_PROGRESS_MARK,
    SOURCE_DAY_RECEIVED,
    CheckpointClear,
    CheckpointProgressMark,
)
from cobs.source.reader import EventSource, FileSource
from cobs.source.writer import append_source_batch
from fakes import make_day, make_days

STREAM = "test"


async def _last_checkpoint(log) -> str:
    events = await log.read_stream(f"{STREAM}-source")
    return [e for e in events if e.event_type == CHECKPOINT][-1].event_id


async def _clear(log) -> None:
    checkpoint_id = await _last_checkpoint(log)
    await log.append(
        f"{STREAM}-source",
        [EventData(CHECKPOINT_CLEAR, CheckpointClear(checkpoint_id=checkpoint_id).to_payload())],
    )


async def _mark(log, cutoff: int) -> None:
    checkpoint_id = await _last_checkpoint(log)
    payload = CheckpointProgressMark(checkpoint_id=checkpoint_id, handled_index_cutoff=cutoff)
    await log.append(f"{STREAM}-source", [EventData(CHECKPOINT_PROGRESS_MARK, payload.to_payload())])


@pytest.mark.asyncio
async def test_fresh_stream_builds_from_first_day(dsn) -> None:
    async with open_event_log(dsn) as log:
        days = make_days(5)
        position = await append_source_batch(log, STREAM, days)
        read = await EventSource(log, STREAM).read_series()
        assert read.build_from == days[0].date
        assert read.build_from_index == 0
        assert [d.timeline_index for d in read.days] == list(range(5))
        assert read.read_position == position == 5
        assert read.last_checkpoint_id == await _last_checkpoint(log)
        assert read.handled == {}


@pytest.mark.asyncio
async def test_new_batch_after_clear_builds_from_its_first_day(dsn) -> None:
    async with open_event_log(dsn) as log:
        await append_source_batch(log, STREAM, make_days(5))
        await _clear(log)
        await append_source_batch(log, STREAM, make_days(3, first=5))
        read = await EventSource(log, STREAM).read_series()
        assert len(read.days) == 8
        assert read.build_from == make_day(5).date
        assert read.build_from_index == 5
        assert len(read.handled) == 5


@pytest.mark.asyncio
async def test_revised_day_rebuilds_from_the_revision(dsn) -> None:
    async with open_event_log(dsn) as log:
        await append_source_batch(log, STREAM, make_days(5))
        await _clear(log)
        revised = replace(make_days(5)[2], daily_new_cases=7)
        await append_source_batch(log, STREAM, [revised] + make_days(3, first=5))
        read = await EventSource(log, STREAM).read_series()
        assert read.build_from == revised.date
        assert read.build_from_index == 2
        assert read.days[2].daily_new_cases == 7


@pytest.mark.asyncio
async def test_days_after_last_checkpoint_are_ignored(dsn) -> None:
    async with open_event_log(dsn) as log:
        await append_source_batch(log, STREAM, make_days(5))
        await _clear(log)
        await append_source_batch(log, STREAM, make_days(3, first=5), checkpoint=False)
        read = await EventSource(log, STREAM).read_series()
        assert len(read.days) == 5
        assert read.build_from_index == 5


@pytest.mark.asyncio
async def test_progress_mark_resumes_after_cutoff(dsn) -> None:
    async with open_event_log(dsn) as log:
        await append_source_batch(log, STREAM, make_days(8))
        await _mark(log, cutoff=5)
        read = await EventSource(log, STREAM).read_series()
        assert read.build_from_index == 6
        assert len(read.handled) == 6


@pytest.mark.asyncio
async def test_missing_stream_is_an_access_error(dsn) -> None:
    async with open_event_log(dsn) as log:
        with pytest.raises(AccessError):
            await EventSource(log, STREAM).read_series()


@pytest.mark.asyncio
async def test_gap_is_a_contiguity_error(dsn) -> None:
    async with open_event_log(dsn) as log:
        await append_source_batch(log, STREAM, [make_day(0), make_day(2)])
        with pytest.raises(ContiguityError):
            await EventSource(log, STREAM).read_series()


@pytest.mark.asyncio
async def test_malformed_payload_reports_event_ordinal(dsn) -> None:
    async with open_event_log(dsn) as log:
        await append_source_batch(log, STREAM, make_days(2), checkpoint=False)
        await log.append(f"{STREAM}-source", [EventData(SOURCE_DAY_RECEIVED, {"date": "2020-03-03"})])
        with pytest.raises(DecodeError) as info:
            await EventSource(log, STREAM).read_series()
        assert info.value.ordinal == 3


@pytest.mark.asyncio
async def test_out_of_range_payload_reports_status(dsn) -> None:
    async with open_event_log(dsn) as log:
        bad = replace(make_day(0), tests=-1)
        await append_source_batch(log, STREAM, [make_day(1), bad])
        with pytest.raises(RowValidationError) as info:
            await EventSource(log, STREAM).read_series()
        assert info.value.ordinal == 2
        assert info.value.status is RowStatus.TESTS_NEGATIVE


@pytest.mark.asyncio
async def test_file_source_is_a_single_job(tmp_path) -> None:
    path = tmp_path / "SourceData.txt"
    path.write_text(
        "\n".join(
            f"{d.date.isoformat()} , {d.daily_new_cases}, {d.tests}, {d.positivity}, {d.mortality}, {d.hospitalizations}"
            for d in make_days(6)
        )
        + "\n"
    )
    read = await FileSource(path).read_series()
    assert len(read.days) == 6
    assert read.build_from_index == 5
    assert read.last_checkpoint_id is None


@pytest.mark.asyncio
async def test_file_source_reports_line_number(tmp_path) -> None:
    path = tmp_path / "SourceData.txt"
    path.write_text("2020-03-01,1,1,1,1,1\n2020-03-02,1,1,1,1\n")
    with pytest.raises(RowValidationError) as info:
        await FileSource(path).read_series()
    assert info.value.ordinal == 2
    assert info.value.status is RowStatus.WRONG_NUMBER_OF_COLUMNS


@pytest.mark.asyncio
async def test_missing_file_is_an_access_error(tmp_path) -> None:
    with pytest.raises(AccessError):
        await FileSource(tmp_path / "absent.txt").read_series()
