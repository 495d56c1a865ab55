from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from itertools import islice
from pathlib import Path, PurePosixPath

from pr_heatmap.adapters.git.repository import GitError, GitRepository, open_repository
from pr_heatmap.domain.entities import BatchSummary, FileChangeSet, PrOutcome, PullRequestDescriptor
from pr_heatmap.domain.errors import FetchFailed, PerPrFailure, SetupFailure
from pr_heatmap.pipeline.aggregator import FrequencyAggregator
from pr_heatmap.pipeline.config import HeatmapConfig
from pr_heatmap.pipeline.diff_analyzer import DiffAnalyzer
from pr_heatmap.pipeline.pr_loader import load_pull_requests
from pr_heatmap.pipeline.progress_ui import Ui
from pr_heatmap.pipeline.renderer import render, write_heatmap

logger = logging.getLogger(__name__)


def _is_hidden(path: str) -> bool:
    return any(part.startswith(".") for part in PurePosixPath(path).parts)


@dataclass
class BatchRunner:
    """Fetch, diff and aggregate a batch of pull requests, then render.

    PRs are processed by a bounded thread pool. A failure in one PR never
    affects the others: it is logged and the PR is left out of the counts.
    Rendering starts only after every worker has finished.
    """

    config: HeatmapConfig = field(default_factory=HeatmapConfig)
    ui: Ui | None = None

    @classmethod
    def from_config_path(cls, config_path: Path | None, ui: Ui | None = None) -> "BatchRunner":
        if config_path is None:
            return cls(config=HeatmapConfig(), ui=ui)
        try:
            cfg = HeatmapConfig.load(config_path)
        except (OSError, ValueError) as exc:
            raise SetupFailure(f"Invalid config file {config_path}: {exc}") from exc
        return cls(config=cfg, ui=ui)

    @property
    def analyzer(self) -> DiffAnalyzer:
        return DiffAnalyzer(ignore_paths=tuple(self.config.analysis.ignore_paths))

    def open(self, repo_path: Path) -> GitRepository:
        git_cfg = self.config.git
        return open_repository(
            repo_path,
            base_remote=git_cfg.base_remote,
            remote_url_template=git_cfg.remote_url_template,
            fetch_timeout=git_cfg.fetch_timeout_seconds,
        )

    # --- per PR ----------------------------------------------------------

    def changes_for(self, repo: GitRepository, pr: PullRequestDescriptor) -> FileChangeSet:
        git_cfg = self.config.git
        if git_cfg.skip_fetch:
            if not repo.has_commit(pr.head_commit):
                raise FetchFailed(f"Head commit {pr.head_commit} not present and fetching is disabled")
            head = repo.rev_parse(pr.head_commit)
        else:
            head = repo.ensure_remote_branch(
                pr.head_owner,
                pr.head_repo,
                pr.head_branch,
                pr.head_commit,
                local_ref=git_cfg.local_ref(pr.id),
            )
        base = repo.resolve_branch(pr.base_branch)
        return self.analyzer.analyze(repo, base, head)

    def analyze_one(
        self,
        repo: GitRepository,
        pr: PullRequestDescriptor,
        aggregator: FrequencyAggregator,
    ) -> PrOutcome:
        try:
            changes = self.changes_for(repo, pr)
        except PerPrFailure as exc:
            exc.pr_id = pr.id
            logger.warning("Skipping PR #%d: %s", pr.id, exc.reason)
            return PrOutcome(pr_id=pr.id, analyzed=False, reason=exc.reason)
        except Exception as exc:
            logger.exception("Unexpected failure analysing PR #%d", pr.id)
            return PrOutcome(pr_id=pr.id, analyzed=False, reason=f"{type(exc).__name__}: {exc}")

        aggregator.record(changes)
        logger.info("PR #%d touches %d existing files", pr.id, len(changes))
        return PrOutcome(pr_id=pr.id, analyzed=True, changed_files=len(changes))

    def analyze_all(
        self,
        repo: GitRepository,
        prs: list[PullRequestDescriptor],
        aggregator: FrequencyAggregator,
    ) -> list[PrOutcome]:
        """Run every PR through the worker pool; outcomes come back in input order."""
        outcomes: list[PrOutcome | None] = [None] * len(prs)
        task = self.ui.add_task("Analysing pull requests", total=len(prs)) if self.ui else None

        workers = max(1, min(self.config.analysis.workers, len(prs) or 1))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="pr-worker") as ex:
            futs = {ex.submit(self.analyze_one, repo, pr, aggregator): i for i, pr in enumerate(prs)}
            for fut in as_completed(futs):
                outcomes[futs[fut]] = fut.result()
                if self.ui is not None and task is not None:
                    self.ui.advance(task)

        return [o for o in outcomes if o is not None]

    # --- whole batch -----------------------------------------------------

    def current_tree(self, repo: GitRepository) -> frozenset[str]:
        out_cfg = self.config.output
        if out_cfg.tree_source == "worktree":
            return repo.list_worktree(include_hidden=out_cfg.include_hidden)
        try:
            files = repo.list_tree(out_cfg.tree_ref)
        except GitError as exc:
            raise SetupFailure(f"Cannot list files at {out_cfg.tree_ref}: {exc}") from exc
        if out_cfg.include_hidden:
            return files
        return frozenset(p for p in files if not _is_hidden(p))

    def run(self, repo_path: Path, prs_path: Path, output: Path | None = None) -> BatchSummary:
        repo = self.open(repo_path)
        batch = load_pull_requests(prs_path)

        max_prs = self.config.analysis.max_prs
        prs = list(islice(batch, max_prs))
        load_warnings = tuple(batch.warnings)
        logger.info("Loaded %d pull requests from %s (%d malformed)", len(prs), prs_path, len(load_warnings))

        aggregator = FrequencyAggregator()
        outcomes = self.analyze_all(repo, prs, aggregator)

        frequencies = aggregator.snapshot()
        entries = render(self.current_tree(repo), frequencies)

        out_cfg = self.config.output
        target = output if output is not None else out_cfg.resolved_path()
        try:
            out_path = write_heatmap(entries, target, fmt=out_cfg.format, title=out_cfg.title)
        except OSError as exc:
            raise SetupFailure(f"Cannot write heatmap to {target}: {exc}") from exc

        summary = BatchSummary(
            outcomes=tuple(outcomes),
            load_warnings=load_warnings,
            output_path=out_path,
            files_rendered=len(entries),
        )
        logger.info(
            "Analysed %d of %d pull requests (%d skipped); wrote %s",
            summary.analyzed,
            len(outcomes),
            len(summary.skipped),
            out_path,
        )
        return summary
