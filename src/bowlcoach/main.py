"""bowlcoach CLI entrypoint."""

from __future__ import annotations

import mimetypes
import sys
from pathlib import Path
from typing import Optional

import typer
import uvicorn

from .analysis.orchestrator import AnalysisOrchestrator, AnalysisRequest, ProviderFactory
from .errors import BowlCoachError, CredentialMissing
from .provider.gemini import GeminiFilesClient
from .settings import Settings, get_settings
from .util.logging import get_logger, set_level
from .web.app import create_app

app = typer.Typer(add_completion=False)
logger = get_logger(__name__)


def instantiate_provider_factory(settings: Settings) -> ProviderFactory:
    """Return the factory used to build a provider client from the configured credential."""
    return GeminiFilesClient


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (defaults to HOST)"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port (defaults to PORT)"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
) -> None:
    """Run the HTTP service."""
    settings = get_settings()
    if verbose:
        set_level("DEBUG")
    elif settings.log_level:
        set_level(settings.log_level)
    web_app = create_app(settings, provider_factory=instantiate_provider_factory(settings))
    uvicorn.run(
        web_app,
        host=host or settings.host,
        port=port or settings.port,
        timeout_keep_alive=65,
        log_config=None,
    )


@app.command()
def analyze(
    input: Path = typer.Option(..., "--input", exists=True, dir_okay=False, readable=True),
    mime_type: Optional[str] = typer.Option(None, "--mime-type", help="Override the guessed video MIME type"),
    model: Optional[str] = typer.Option(None, "--model", help="Gemini model name"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
) -> None:
    """Analyze one local side-on clip and print the coaching report."""
    if verbose:
        set_level("DEBUG")
    settings = get_settings()

    try:
        if not settings.gemini_api_key:
            raise CredentialMissing("GEMINI_API_KEY is required for video analysis.")
        request = AnalysisRequest(
            local_file_path=input,
            mime_type=mime_type or mimetypes.guess_type(input.name)[0] or "video/mp4",
            model=model or settings.gemini_model,
            api_key=settings.gemini_api_key,
        )
        orchestrator = AnalysisOrchestrator(
            instantiate_provider_factory(settings),
            poll_interval=settings.poll_interval_s,
            poll_timeout=settings.poll_timeout_s,
        )
        result = orchestrator.analyze(request)
    except BowlCoachError as exc:
        typer.secho(f"Analysis failed: {exc.message}", err=True, fg=typer.colors.RED)
        logger.debug("Analysis error", exc_info=True)
        raise typer.Exit(code=1)

    typer.echo(result.text)
    if not result.structurally_valid:
        typer.secho(
            "Model output could not be structured; showing the fallback report.",
            err=True,
            fg=typer.colors.YELLOW,
        )


if __name__ == "__main__":
    sys.exit(app())
