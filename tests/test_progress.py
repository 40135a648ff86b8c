"""Tests for the logging progress adapter."""

import logging

from transcript_matrix.adapters.local.log_progress import LogProgressAdapter


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class TestLogProgressAdapter:
    def test_logs_total_time_and_forgets_finished_runs(self, caplog):
        clock = FakeClock()
        adapter = LogProgressAdapter(clock=clock)

        with caplog.at_level(logging.INFO, logger="transcript_matrix.adapters.local.log_progress"):
            adapter.report("run1", "extracting_media")
            clock.now = 103.0
            adapter.report("run1", "transcribing", progress=0.5, detail="openai ok")
            assert adapter.active_runs() == ["run1"]
            clock.now = 112.5
            adapter.report("run1", "done", progress=1.0)

        messages = [r.getMessage() for r in caplog.records]
        assert "[run1] transcribing 50%: openai ok" in messages
        assert "[run1] done (total 12.5s)" in messages
        assert adapter.active_runs() == []

    def test_failures_log_as_warnings(self, caplog):
        adapter = LogProgressAdapter(clock=FakeClock())
        with caplog.at_level(logging.INFO, logger="transcript_matrix.adapters.local.log_progress"):
            adapter.report("run2", "failed", progress=1.0, detail="all providers failed")
        assert caplog.records[-1].levelno == logging.WARNING
