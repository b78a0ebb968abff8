from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from bowlcoach.analysis.cancel import CancelToken
from bowlcoach.analysis.orchestrator import AnalysisOrchestrator, AnalysisRequest, analyze_video
from bowlcoach.analysis.prompts import COACH_PROMPT
from bowlcoach.analysis.repair import RepairState
from bowlcoach.analysis.sections import FALLBACK_REPORT, is_valid
from bowlcoach.errors import AnalysisCancelled, ProviderUnavailable, RemoteProcessingFailed, RemoteProcessingTimeout
from bowlcoach.provider.base import MediaPart

from conftest import WELL_FORMED_REPORT, FakeClock, FakeProvider


def _request(path: Path) -> AnalysisRequest:
    return AnalysisRequest(local_file_path=path, mime_type="video/quicktime", model="gemini-test", api_key="k")


def _orchestrator(provider: FakeProvider, clock: FakeClock) -> AnalysisOrchestrator:
    return AnalysisOrchestrator(lambda api_key: provider, clock=clock, sleep=clock.sleep)


def test_happy_path_sequences_calls_and_cleans_up(sample_video: Path, fake_clock: FakeClock) -> None:
    provider = FakeProvider(states=["PROCESSING", "PROCESSING", "ACTIVE"])
    result = _orchestrator(provider, fake_clock).analyze(_request(sample_video))

    assert result.text == WELL_FORMED_REPORT
    assert result.outcome is RepairState.VALID
    assert provider.calls == ["upload", "get_status", "get_status", "get_status", "generate", "delete"]
    assert provider.deleted == ["files/abc123"]


def test_generation_uses_the_ready_snapshot_not_the_upload_handle(sample_video: Path, fake_clock: FakeClock) -> None:
    provider = FakeProvider()
    _orchestrator(provider, fake_clock).analyze(_request(sample_video))

    first_call = provider.generated[0]
    assert first_call[0] == MediaPart(uri="https://ready/abc123", mime_type="video/mp4")
    assert first_call[1] == COACH_PROMPT


@pytest.mark.parametrize(
    "reply",
    [
        "",
        "The bowler has a lovely action.",
        SimpleNamespace(candidates=[]),
        None,
    ],
)
def test_result_always_has_five_sections(sample_video: Path, fake_clock: FakeClock, reply: object) -> None:
    provider = FakeProvider(replies=[reply])
    result = _orchestrator(provider, fake_clock).analyze(_request(sample_video))

    assert is_valid(result.text)
    assert result.text == FALLBACK_REPORT
    assert provider.calls.count("generate") == 2
    assert provider.calls.count("delete") == 1


def test_reformat_prompt_carries_the_first_pass_text(sample_video: Path, fake_clock: FakeClock) -> None:
    provider = FakeProvider(replies=["  loose prose  ", WELL_FORMED_REPORT])
    result = _orchestrator(provider, fake_clock).analyze(_request(sample_video))

    assert result.text == WELL_FORMED_REPORT
    reformat_contents = provider.generated[1]
    assert len(reformat_contents) == 1
    assert reformat_contents[0].endswith("Source text:\nloose prose\n")


@pytest.mark.parametrize(
    ("states", "fail_on", "expected"),
    [
        (["FAILED"], None, RemoteProcessingFailed),
        (["PROCESSING"], None, RemoteProcessingTimeout),
        (["ACTIVE"], "get_status", ProviderUnavailable),
        (["ACTIVE"], "generate", ProviderUnavailable),
    ],
)
def test_failures_propagate_and_still_delete_once(
    sample_video: Path, fake_clock: FakeClock, states, fail_on, expected
) -> None:
    provider = FakeProvider(states=states, fail_on=fail_on)
    with pytest.raises(expected):
        _orchestrator(provider, fake_clock).analyze(_request(sample_video))

    assert provider.calls.count("delete") == 1
    assert provider.calls[-1] == "delete"


def test_upload_failure_leaves_nothing_to_delete(sample_video: Path, fake_clock: FakeClock) -> None:
    provider = FakeProvider(fail_on="upload")
    with pytest.raises(ProviderUnavailable, match="upload exploded"):
        _orchestrator(provider, fake_clock).analyze(_request(sample_video))

    assert provider.calls == ["upload"]


def test_delete_failure_never_masks_the_primary_error(sample_video: Path, fake_clock: FakeClock) -> None:
    provider = FakeProvider(states=["FAILED"], fail_delete=True)
    with pytest.raises(RemoteProcessingFailed):
        _orchestrator(provider, fake_clock).analyze(_request(sample_video))


def test_delete_failure_does_not_fail_a_good_analysis(sample_video: Path, fake_clock: FakeClock) -> None:
    provider = FakeProvider(fail_delete=True)
    result = _orchestrator(provider, fake_clock).analyze(_request(sample_video))

    assert result.text == WELL_FORMED_REPORT
    assert provider.deleted == ["files/abc123"]


def test_cancellation_stops_provider_calls_but_releases_the_upload(sample_video: Path, fake_clock: FakeClock) -> None:
    provider = FakeProvider(states=["PROCESSING"])
    cancel = CancelToken()

    def sleep_then_cancel(seconds: float) -> None:
        fake_clock.sleep(seconds)
        cancel.cancel()

    orchestrator = AnalysisOrchestrator(lambda api_key: provider, clock=fake_clock, sleep=sleep_then_cancel)
    with pytest.raises(AnalysisCancelled):
        orchestrator.analyze(_request(sample_video), cancel)

    assert "generate" not in provider.calls
    assert provider.calls == ["upload", "get_status", "delete"]


def test_analyze_video_returns_text(sample_video: Path) -> None:
    provider = FakeProvider()
    text = analyze_video(_request(sample_video), provider_factory=lambda api_key: provider)
    assert text == WELL_FORMED_REPORT
