from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console

from pr_heatmap.adapters.github.github_client import GitHubApiError, GitHubClient
from pr_heatmap.adapters.github.pr_listing import list_open_pull_requests, write_pr_file
from pr_heatmap.common.logging_config import configure_logging
from pr_heatmap.domain.errors import SetupFailure
from pr_heatmap.pipeline.config import EXAMPLE_CONFIG
from pr_heatmap.pipeline.progress_ui import progress_ui, skipped_table, summary_table
from pr_heatmap.pipeline.renderer import OUTPUT_FORMATS
from pr_heatmap.pipeline.runner import BatchRunner


app = typer.Typer(add_completion=False, help="Find files likely to conflict across open pull requests.")
console = Console()


def _fail(exc: Exception) -> NoReturn:
    console.print(f"[red]error:[/red] {exc}")
    raise typer.Exit(code=1)


@app.command()
def run(
    repo: str = typer.Argument(..., help="Path to a local clone of the target repository"),
    prs: str = typer.Argument(..., help="JSON file from `gh pr list --json ...`"),
    config: Optional[str] = typer.Option(None, help="Path to a pr-heatmap TOML config"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Where to write the heatmap"),
    fmt: Optional[str] = typer.Option(None, "--format", help="Output format: html | json"),
    workers: Optional[int] = typer.Option(None, min=1, help="Concurrent PR workers"),
    max_prs: Optional[int] = typer.Option(None, min=1, help="Analyse only the first N pull requests"),
    skip_fetch: bool = typer.Option(False, "--skip-fetch", help="Only use commits already in the repository"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Analyse pull requests and write the conflict heatmap."""
    try:
        runner = BatchRunner.from_config_path(Path(config).expanduser() if config else None)
    except SetupFailure as exc:
        _fail(exc)

    cfg = runner.config
    if fmt is not None:
        if fmt not in OUTPUT_FORMATS:
            raise typer.BadParameter(f"format must be one of: {', '.join(OUTPUT_FORMATS)}")
        cfg.output.format = fmt  # type: ignore[assignment]
    if workers is not None:
        cfg.analysis.workers = workers
    if max_prs is not None:
        cfg.analysis.max_prs = max_prs
    if skip_fetch:
        cfg.git.skip_fetch = True

    configure_logging(logging.DEBUG if verbose else cfg.logging.level, log_dir=cfg.logging.log_dir)

    with progress_ui() as ui:
        runner.ui = ui
        try:
            summary = runner.run(Path(repo), Path(prs), Path(output) if output else None)
        except SetupFailure as exc:
            _fail(exc)

    console.print(summary_table(summary))
    if summary.skipped:
        console.print(skipped_table(summary))
    console.print(f"Wrote [bold]{summary.output_path}[/bold]")


@app.command()
def init_config(
    path: str = typer.Argument(
        "pr_heatmap.toml",
        help="Where to write the configuration TOML",
    ),
) -> None:
    """Write an example pr_heatmap.toml."""
    out = Path(path).expanduser()
    if out.exists():
        raise typer.BadParameter(f"Refusing to overwrite existing file: {out}")

    out.write_text(EXAMPLE_CONFIG)
    typer.echo(f"Wrote {out} (edit it, then run: pr-heatmap run <repo> <prs.json> --config {out})")


@app.command()
def list_prs(
    repo: str = typer.Argument(..., help="GitHub repository as owner/repo"),
    output: str = typer.Option("prs.json", "--output", "-o", help="Where to write the PR list"),
    limit: int = typer.Option(500, min=1, help="Maximum number of open PRs"),
    token_env_var: str = typer.Option("GITHUB_TOKEN", help="Env var holding a GitHub token"),
    api_base_url: str = typer.Option("https://api.github.com", help="GitHub API base URL"),
) -> None:
    """Write the open PRs of a GitHub repository in the `gh pr list --json` format.

    Equivalent to running `gh pr list` yourself; `run` only reads the file.
    """
    configure_logging(logging.INFO)
    client = GitHubClient(token=os.environ.get(token_env_var, ""), api_base_url=api_base_url)
    try:
        records = list_open_pull_requests(client, repo, limit=limit)
    except (GitHubApiError, ValueError) as exc:
        _fail(exc)

    out = write_pr_file(records, Path(output))
    typer.echo(f"Wrote {len(records)} pull requests to {out}")


if __name__ == "__main__":
    app()
