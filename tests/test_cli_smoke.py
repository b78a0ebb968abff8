from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from bowlcoach.analysis.sections import FALLBACK_REPORT
from bowlcoach.main import app
from bowlcoach.settings import Settings

from conftest import WELL_FORMED_REPORT, FakeProvider

runner = CliRunner()


@pytest.fixture()
def provider(monkeypatch: pytest.MonkeyPatch) -> FakeProvider:
    fake = FakeProvider(states=["PROCESSING", "ACTIVE"])
    settings = Settings(gemini_api_key="test-key", poll_interval_s=0.01)
    monkeypatch.setattr("bowlcoach.main.get_settings", lambda: settings)
    monkeypatch.setattr("bowlcoach.main.instantiate_provider_factory", lambda settings: lambda api_key: fake)
    return fake


def test_cli_analyze_prints_report(provider: FakeProvider, sample_video: Path) -> None:
    result = runner.invoke(app, ["analyze", "--input", str(sample_video)])

    assert result.exit_code == 0, result.output
    assert WELL_FORMED_REPORT in result.output
    assert provider.calls == ["upload", "get_status", "get_status", "generate", "delete"]


def test_cli_analyze_reports_fallback(provider: FakeProvider, sample_video: Path) -> None:
    provider.replies = ["not structured"]
    result = runner.invoke(app, ["analyze", "--input", str(sample_video)])

    assert result.exit_code == 0, result.output
    assert FALLBACK_REPORT.splitlines()[0] in result.output


def test_cli_analyze_failure_exits_nonzero(provider: FakeProvider, sample_video: Path) -> None:
    provider.states = ["FAILED"]
    result = runner.invoke(app, ["analyze", "--input", str(sample_video)])

    assert result.exit_code == 1
    assert provider.calls[-1] == "delete"


def test_cli_requires_credential(monkeypatch: pytest.MonkeyPatch, sample_video: Path) -> None:
    monkeypatch.setattr("bowlcoach.main.get_settings", lambda: Settings(gemini_api_key=None))
    result = runner.invoke(app, ["analyze", "--input", str(sample_video)])

    assert result.exit_code == 1
