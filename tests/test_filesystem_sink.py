"""Tests for the scoped output directory and the atomic result sink."""

import json
import os
from datetime import datetime, timezone

import pytest

from transcript_matrix.adapters.local.filesystem_sink import (
    INDEX_FILENAME, FilesystemResultSink, OutputDirectory, clear_contents,
)
from transcript_matrix.domain.errors import PersistenceError
from transcript_matrix.domain.models import (
    AnalysisDocument, AnalysisProvider, TranscriptionProvider, TranscriptResult, TranscriptSegment,
)

FIXED_TIME = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def result(provider=TranscriptionProvider.OPENAI):
    return TranscriptResult(
        provider=provider,
        segments=(TranscriptSegment(0.0, 1.5, "Hello world."), TranscriptSegment(1.5, 3.0, "Bye.")),
    )


class TestOutputDirectory:
    def test_creates_missing_directory(self, tmp_path):
        target = tmp_path / "out" / "video"
        with OutputDirectory(target) as path:
            assert path == target
            assert target.is_dir()

    def test_rebuild_removes_previous_contents(self, tmp_path):
        target = tmp_path / "video"
        (target / "frames").mkdir(parents=True)
        (target / "frames" / "frame-1.jpg").write_bytes(b"old")
        (target / "stale.json").write_text("{}")

        with OutputDirectory(target):
            assert list(target.iterdir()) == []

    def test_falls_back_to_clearing_contents(self, tmp_path):
        target = tmp_path / "video"
        target.mkdir()
        (target / "stale.txt").write_text("old")
        attempts = []
        sleeps = []

        def stuck_rmtree(path):
            attempts.append(path)
            raise PermissionError("directory in use")

        with OutputDirectory(target, removal_attempts=3, removal_delay=0.25,
                             rmtree=stuck_rmtree, sleep=sleeps.append):
            assert target.is_dir()
            assert list(target.iterdir()) == []

        assert len(attempts) == 3
        assert sleeps == [0.25, 0.25]

    def test_exit_removes_partial_files(self, tmp_path):
        target = tmp_path / "video"
        with OutputDirectory(target):
            (target / ".transcription_openai.json.abc.partial").write_text("half")
            (target / "kept.json").write_text("{}")
        assert [p.name for p in target.iterdir()] == ["kept.json"]

    def test_exit_cleans_up_when_block_raises(self, tmp_path):
        target = tmp_path / "video"
        with pytest.raises(RuntimeError):
            with OutputDirectory(target):
                (target / "x.partial").write_text("half")
                raise RuntimeError("boom")
        assert list(target.iterdir()) == []


class TestClearContents:
    def test_clears_files_and_directories(self, tmp_path):
        (tmp_path / "a").mkdir()
        (tmp_path / "a" / "b.txt").write_text("b")
        (tmp_path / "c.txt").write_text("c")
        assert clear_contents(tmp_path) == []
        assert list(tmp_path.iterdir()) == []


class TestFilesystemResultSink:
    def test_write_transcript_files(self, tmp_path):
        sink = FilesystemResultSink(tmp_path, clock=lambda: FIXED_TIME)
        written = sink.write_transcript(result())

        assert written == ["transcription_openai.json", "transcription_openai_raw.txt"]
        data = json.loads((tmp_path / "transcription_openai.json").read_text(encoding="utf-8"))
        assert data == [
            {"start": 0.0, "end": 1.5, "text": "Hello world."},
            {"start": 1.5, "end": 3.0, "text": "Bye."},
        ]
        assert (tmp_path / "transcription_openai_raw.txt").read_text(encoding="utf-8") == "Hello world.\nBye.\n"

    def test_index_lists_only_given_results(self, tmp_path):
        sink = FilesystemResultSink(tmp_path, clock=lambda: FIXED_TIME)
        sink.write_index("lecture.mp4", [result(TranscriptionProvider.AMAZON)])

        index = json.loads((tmp_path / INDEX_FILENAME).read_text(encoding="utf-8"))
        assert index["video"] == "lecture.mp4"
        assert index["providers"] == ["amazon"]
        assert list(index["transcriptions"]) == ["amazon"]
        assert index["created_at"].startswith("2024-01-02T03:04:05")

    def test_write_analysis_uses_pair_filename(self, tmp_path):
        sink = FilesystemResultSink(tmp_path)
        doc = AnalysisDocument(
            provider=AnalysisProvider.ANTHROPIC,
            source=TranscriptionProvider.GEMINI,
            include_images=True,
            content='{"lessonInfo": {}}',
        )
        name = sink.write_analysis(doc)
        assert name == "analysis_anthropic_transcribed_by_gemini_with_images.json"
        assert (tmp_path / name).read_text(encoding="utf-8") == '{"lessonInfo": {}}'
        assert sink.list_artifacts() == [name]

    def test_failed_replace_raises_persistence_error_and_leaves_no_temp(self, tmp_path, monkeypatch):
        sink = FilesystemResultSink(tmp_path)

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", broken_replace)
        with pytest.raises(PersistenceError) as excinfo:
            sink.write_transcript(result())

        assert "transcription_openai.json" in excinfo.value.path
        assert list(tmp_path.iterdir()) == []
        assert sink.list_artifacts() == []
