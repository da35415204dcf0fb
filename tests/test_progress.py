from __future__ import annotations

import re
import threading

import allure
import pytest

from fixmd.batch.progress import ProgressAggregator, progress_bar

pytestmark = [
    allure.epic("Batch Safety"),
    allure.feature("Progress Accounting"),
]

_STATUS_RE = re.compile(
    r"Processing: (?P<processed>\d+)/(?P<total>\d+) .* "
    r"Success: (?P<succeeded>\d+) \| Failed: (?P<failed>\d+)",
)


class _FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_record_and_render_with_elapsed_time() -> None:
    clock = _FakeClock()
    rendered: list[str] = []
    aggregator = ProgressAggregator(4, clock=clock, on_render=rendered.append)

    clock.now = 101.5
    line = aggregator.record_success()
    clock.now = 103.0
    aggregator.record_failure()

    assert line == (
        "[=====               ] Processing: 1/4 (25.0%) | Success: 1 | Failed: 0 | Elapsed: 1.5s"
    )
    assert rendered[1].endswith("Processing: 2/4 (50.0%) | Success: 1 | Failed: 1 | Elapsed: 3.0s")
    counters = aggregator.snapshot()
    assert (counters.processed, counters.succeeded, counters.failed) == (2, 1, 1)
    assert counters.started_at == 100.0


def test_finish_renders_complete_summary() -> None:
    clock = _FakeClock()
    aggregator = ProgressAggregator(2, clock=clock)
    aggregator.record_success()
    aggregator.record_failure()
    clock.now = 102.3

    line = aggregator.finish()

    assert line == (
        "[====================] Completed: 2/2 (100%) | Success: 1 | Failed: 1 | Elapsed: 2.3s"
    )


def test_recording_beyond_total_is_rejected() -> None:
    aggregator = ProgressAggregator(1)
    aggregator.record_success()

    with pytest.raises(ValueError, match="more than 1"):
        aggregator.record_failure()

    assert aggregator.snapshot().processed == 1


def test_concurrent_updates_keep_counters_consistent() -> None:
    threads_count = 8
    per_thread = 125
    total = threads_count * per_thread
    rendered: list[str] = []
    aggregator = ProgressAggregator(total, on_render=rendered.append)
    start = threading.Barrier(threads_count)

    def _worker(index: int) -> None:
        start.wait()
        for step in range(per_thread):
            if (index + step) % 3 == 0:
                aggregator.record_failure()
            else:
                aggregator.record_success()

    threads = [threading.Thread(target=_worker, args=(i,)) for i in range(threads_count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    counters = aggregator.snapshot()
    assert counters.processed == total
    assert counters.succeeded + counters.failed == total
    assert len(rendered) == total

    processed_seen = []
    for line in rendered:
        match = _STATUS_RE.search(line)
        assert match is not None
        processed = int(match["processed"])
        assert processed == int(match["succeeded"]) + int(match["failed"])
        assert processed <= int(match["total"])
        processed_seen.append(processed)
    assert processed_seen == list(range(1, total + 1))
    assert processed_seen.count(total) == 1


def test_empty_batch_reports_full_progress() -> None:
    aggregator = ProgressAggregator(0)
    assert aggregator.snapshot().percentage == 100.0
    assert "Completed: 0/0" in aggregator.finish()


@pytest.mark.parametrize(
    ("percentage", "expected"),
    [(0, " " * 20), (50, "=" * 10 + " " * 10), (99.9, "=" * 19 + " "), (100, "=" * 20)],
)
def test_progress_bar_width(percentage: float, expected: str) -> None:
    assert progress_bar(percentage) == expected
