from __future__ import annotations

from pathlib import Path

from pr_heatmap.pipeline.config import EXAMPLE_CONFIG, HeatmapConfig


def test_defaults() -> None:
    cfg = HeatmapConfig()

    assert cfg.git.remote_url_template == "git@github.com:{owner}/{repo}"
    assert cfg.git.local_ref(12) == "refs/heads/pull-request-12"
    assert cfg.analysis.workers == 4
    assert cfg.analysis.max_prs is None
    assert "Cargo.lock" in cfg.analysis.ignore_paths
    assert cfg.output.format == "html"
    assert cfg.output.path == "prmap.html"


def test_example_config_loads(tmp_path: Path) -> None:
    path = tmp_path / "pr_heatmap.toml"
    path.write_text(EXAMPLE_CONFIG)

    cfg = HeatmapConfig.load(path)

    assert cfg.git.fetch_timeout_seconds == 120
    assert cfg.output.tree_source == "ref"
    assert cfg.logging.level == "INFO"


def test_empty_local_ref_template_disables_refs(tmp_path: Path) -> None:
    path = tmp_path / "cfg.toml"
    path.write_text('[git]\nlocal_ref_template = ""\n[output]\nformat = "json"\npath = "~/heat.json"\n')

    cfg = HeatmapConfig.load(path)

    assert cfg.git.local_ref(3) is None
    assert cfg.output.format == "json"
    assert cfg.output.resolved_path() == Path.home().resolve() / "heat.json"
