"""
Tests for batch.scheduler

Test Coverage:
- Concurrency bound and pool drain
- Per-job retry, backoff and state recording
- Stop requests before dispatch
"""

import threading
import time
from pathlib import Path

import pytest

from examsplit.batch.scheduler import BatchJob, BatchScheduler, is_rate_limited
from examsplit.batch.state import BatchStateStore
from examsplit.splitter.detection.client import PageDetectionError, RateLimitError


def _jobs(tmp_path, count):
    return [
        BatchJob(tmp_path / "exams" / f"doc{i}.pdf", tmp_path / "output" / f"doc{i}.zip")
        for i in range(1, count + 1)
    ]


class ConcurrencyProbe:
    """Runner that records how many calls overlap."""

    def __init__(self, fail=(), hold=0.02):
        self.fail = set(fail)
        self.hold = hold
        self.lock = threading.Lock()
        self.active = 0
        self.peak = 0
        self.calls = []

    def __call__(self, job):
        with self.lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
            self.calls.append(job.name)
        try:
            time.sleep(self.hold)
            if job.name in self.fail:
                raise PageDetectionError(f"Detection failed for {job.name}", page_number=1)
        finally:
            with self.lock:
                self.active -= 1


@pytest.fixture
def store(tmp_path):
    return BatchStateStore(tmp_path / ".batch-state.json")


class TestBatchScheduler:
    """Tests for BatchScheduler.run()."""

    def test_run_when_one_document_always_fails_then_state_records_attempts(self, tmp_path, store, no_sleep):
        """5 documents, concurrency 2, doc3 always fails."""
        jobs = _jobs(tmp_path, 5)
        runner = ConcurrencyProbe(fail={"doc3.pdf"})
        scheduler = BatchScheduler(runner, store, concurrency=2, max_retries=3, sleep=no_sleep)

        report = scheduler.run(jobs)

        state = store.load()
        doc3 = str(jobs[2].source_path)
        assert sorted(state.completed) == sorted(str(j.source_path) for j in jobs if j is not jobs[2])
        assert state.failed[doc3].attempts == 3
        assert "doc3.pdf" in state.failed[doc3].last_error
        assert set(report.failed) == {doc3}
        assert len(report.succeeded) == 4
        assert report.not_started == []
        assert runner.calls.count("doc3.pdf") == 3

    def test_run_when_many_jobs_then_never_exceeds_concurrency(self, tmp_path, store, no_sleep):
        runner = ConcurrencyProbe(hold=0.03)
        scheduler = BatchScheduler(runner, store, concurrency=3, sleep=no_sleep)

        report = scheduler.run(_jobs(tmp_path, 10))

        assert runner.peak <= 3
        assert report.peak_active <= 3
        assert report.peak_active >= 2
        assert len(report.succeeded) == 10

    def test_run_when_fewer_jobs_than_workers_then_all_run(self, tmp_path, store, no_sleep):
        report = BatchScheduler(ConcurrencyProbe(), store, concurrency=5, sleep=no_sleep).run(_jobs(tmp_path, 2))
        assert len(report.succeeded) == 2

    def test_run_when_no_jobs_then_empty_report(self, store):
        report = BatchScheduler(ConcurrencyProbe(), store).run([])
        assert report.succeeded == [] and report.failed == {} and report.peak_active == 0

    def test_run_when_failure_then_backs_off_exponentially(self, tmp_path, store, no_sleep):
        runner = ConcurrencyProbe(fail={"doc1.pdf"}, hold=0)
        BatchScheduler(runner, store, concurrency=1, max_retries=3, sleep=no_sleep).run(_jobs(tmp_path, 1))
        assert no_sleep.delays == [2.0, 4.0]

    def test_run_when_transient_failure_then_success_clears_failure(self, tmp_path, store, no_sleep):
        attempts = []

        def flaky(job):
            attempts.append(job.name)
            if len(attempts) == 1:
                raise ValueError("first try fails")

        report = BatchScheduler(flaky, store, concurrency=1, sleep=no_sleep).run(_jobs(tmp_path, 1))

        assert len(report.succeeded) == 1
        assert store.load().failed == {}
        assert no_sleep.delays == [2.0]

    def test_run_when_stopped_before_start_then_nothing_dispatched(self, tmp_path, store):
        stop = threading.Event()
        stop.set()
        runner = ConcurrencyProbe()

        report = BatchScheduler(runner, store, concurrency=2, stop_event=stop).run(_jobs(tmp_path, 3))

        assert runner.calls == []
        assert len(report.not_started) == 3

    def test_run_when_stopped_mid_run_then_in_flight_job_finishes(self, tmp_path, store, no_sleep):
        stop = threading.Event()
        finished = []

        def runner(job):
            stop.set()
            time.sleep(0.01)
            finished.append(job.name)

        report = BatchScheduler(runner, store, concurrency=1, stop_event=stop, sleep=no_sleep).run(_jobs(tmp_path, 4))

        assert finished == ["doc1.pdf"]
        assert report.succeeded == [str(tmp_path / "exams" / "doc1.pdf")]
        assert len(report.not_started) == 3

    def test_init_when_concurrency_zero_then_raises_error(self, store):
        with pytest.raises(ValueError, match="concurrency"):
            BatchScheduler(ConcurrencyProbe(), store, concurrency=0)


class TestBackoff:
    """Tests for backoff and rate-limit detection."""

    def test_backoff_when_plain_error_then_power_of_two(self, store):
        scheduler = BatchScheduler(ConcurrencyProbe(), store)
        assert scheduler.backoff(1, ValueError()) == 2.0
        assert scheduler.backoff(3, ValueError()) == 8.0

    def test_backoff_when_rate_limited_then_multiplied(self, store):
        scheduler = BatchScheduler(ConcurrencyProbe(), store, rate_limit_factor=3.0)
        assert scheduler.backoff(2, RateLimitError("429")) == 12.0

    def test_is_rate_limited_when_page_error_flagged_then_true(self):
        assert is_rate_limited(PageDetectionError("x", page_number=1, rate_limited=True)) is True
        assert is_rate_limited(PageDetectionError("x", page_number=1)) is False

    def test_is_rate_limited_when_cause_is_rate_limit_then_true(self):
        try:
            try:
                raise RateLimitError("429")
            except RateLimitError as e:
                raise RuntimeError("document failed") from e
        except RuntimeError as outer:
            assert is_rate_limited(outer) is True

    def test_job_key_when_built_then_is_source_path_string(self):
        job = BatchJob(Path("exams/a.pdf"), Path("output/a.zip"))
        assert job.key == str(Path("exams/a.pdf"))
        assert job.name == "a.pdf"
