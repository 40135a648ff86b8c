"""Tests for the HTTP surface."""

import pytest
from fastapi.testclient import TestClient

from conftest import FakeAnalyzer, FakeMedia, FakeTranscriber, RecordingProgress, make_segments, permanent
from transcript_matrix.config import Config
from transcript_matrix.domain.errors import MediaExtractionError
from transcript_matrix.domain.models import AnalysisProvider as AP
from transcript_matrix.domain.models import TranscriptionProvider as TP
from transcript_matrix.retry import RetryPolicy
from transcript_matrix.use_cases.run_matrix import RunMatrixUseCase


@pytest.fixture
def cfg(monkeypatch, tmp_path):
    monkeypatch.delenv("API_KEYS", raising=False)
    monkeypatch.setenv("TRANSCRIPTION_PROVIDERS", "openai,amazon")
    monkeypatch.setenv("ANALYSIS_PROVIDERS", "anthropic")
    monkeypatch.setenv("OUTPUT_DIR", str(tmp_path / "output"))
    yield Config.reload()
    Config._instance = None


def factory_for(transcribers, analyzers, media=None):
    calls = []

    def factory(only_transcribe):
        calls.append(only_transcribe)
        return RunMatrixUseCase(
            media=media or FakeMedia(),
            transcribers={t.provider: t for t in transcribers},
            analyzers={} if only_transcribe else {a.provider: a for a in analyzers},
            progress=RecordingProgress(),
            retry_policy=RetryPolicy(max_attempts=1, base_delay=0.0),
        )

    factory.calls = calls
    return factory


def client_for(cfg, factory):
    from transcript_matrix.api import create_app

    return TestClient(create_app(use_case_factory=factory, config=cfg))


class TestApi:
    def test_health(self, cfg):
        resp = client_for(cfg, factory_for([], [])).get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    def test_providers(self, cfg):
        resp = client_for(cfg, factory_for([], [])).get("/v1/providers")
        assert resp.json() == {"object": "list", "transcription": ["openai", "amazon"], "analysis": ["anthropic"]}

    def test_run_returns_summary(self, cfg, video_file):
        factory = factory_for(
            [FakeTranscriber(TP.OPENAI, make_segments(3)), FakeTranscriber(TP.AMAZON, error=permanent("amazon"))],
            [FakeAnalyzer(AP.ANTHROPIC)],
        )
        resp = client_for(cfg, factory).post("/v1/runs", json={"video_path": str(video_file)})

        assert resp.status_code == 200
        body = resp.json()
        assert body["state"] == "done"
        assert body["transcribed_by"] == ["openai"]
        assert body["analyses"] == [{"analysis_provider": "anthropic", "transcription_provider": "openai"}]
        assert [f["provider"] for f in body["failures"]] == ["amazon"]
        assert "all_transcriptions.json" in body["artifacts"]
        assert factory.calls == [False]

    def test_only_transcribe_flag_is_forwarded(self, cfg, video_file):
        factory = factory_for([FakeTranscriber(TP.OPENAI)], [FakeAnalyzer(AP.ANTHROPIC)])
        resp = client_for(cfg, factory).post(
            "/v1/runs", json={"video_path": str(video_file), "only_transcribe": True}
        )
        assert resp.status_code == 200
        assert resp.json()["analyses"] == []
        assert factory.calls == [True]

    def test_all_providers_failed_is_502(self, cfg, video_file):
        factory = factory_for([FakeTranscriber(TP.OPENAI, error=permanent("openai", "quota"))], [])
        resp = client_for(cfg, factory).post("/v1/runs", json={"video_path": str(video_file)})

        assert resp.status_code == 502
        assert resp.json()["failures"][0]["provider"] == "openai"

    def test_media_failure_is_422(self, cfg, video_file):
        factory = factory_for([FakeTranscriber(TP.OPENAI)], [], media=FakeMedia(error=MediaExtractionError("corrupt")))
        resp = client_for(cfg, factory).post("/v1/runs", json={"video_path": str(video_file)})
        assert resp.status_code == 422

    def test_missing_video_is_400(self, cfg, tmp_path):
        resp = client_for(cfg, factory_for([], [])).post("/v1/runs", json={"video_path": str(tmp_path / "nope.mp4")})
        assert resp.status_code == 400

    def test_missing_credentials_is_400(self, cfg, video_file, monkeypatch):
        from transcript_matrix.api import create_app

        for key in ("OPENAI_API_KEY", "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_S3_BUCKET"):
            monkeypatch.delenv(key, raising=False)
        client = TestClient(create_app(config=cfg))
        resp = client.post("/v1/runs", json={"video_path": str(video_file), "only_transcribe": True})

        assert resp.status_code == 400
        assert "OPENAI_API_KEY" in resp.json()["missing"]


class TestApiKeys:
    def test_runs_require_key_when_configured(self, cfg, video_file, monkeypatch):
        monkeypatch.setenv("API_KEYS", "secret-1,secret-2")
        client = client_for(cfg, factory_for([FakeTranscriber(TP.OPENAI)], []))

        assert client.post("/v1/runs", json={"video_path": str(video_file)}).status_code == 401
        bad = client.post("/v1/runs", json={"video_path": str(video_file)},
                          headers={"Authorization": "Bearer wrong"})
        assert bad.status_code == 403
        good = client.post("/v1/runs", json={"video_path": str(video_file), "only_transcribe": True},
                           headers={"Authorization": "Bearer secret-2"})
        assert good.status_code == 200
        assert client.get("/health").status_code == 200
