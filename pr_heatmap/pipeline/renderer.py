from __future__ import annotations

import html
import json
from pathlib import Path
from typing import Iterable, Mapping, Sequence

from pr_heatmap.domain.entities import N_BUCKETS, HeatmapEntry, Intensity

# ColorBrewer "Spectral", cool to hot.
PALETTE: Mapping[Intensity, str] = {
    Intensity.LOWEST: "#99d594",
    Intensity.LOW: "#ffffbf",
    Intensity.HIGH: "#fc8d59",
}

OUTPUT_FORMATS = ("html", "json")

_STYLE = """
html {
    font-family: ui-sans-serif, system-ui, -apple-system, "Segoe UI", Roboto, "Helvetica Neue", Arial, sans-serif;
}
ul { list-style: none; padding: 0; }
li { display: flex; gap: 1rem; align-items: center; }
.swatch { width: 4rem; height: 1rem; }
.count { width: 3rem; text-align: right; font-variant-numeric: tabular-nums; }
.legend li { display: inline-flex; margin-right: 1rem; }
"""


def intensity_for(count: int, max_count: int) -> Intensity:
    """Bucket a count relative to the busiest file of the run."""
    if max_count <= 0 or count <= 0:
        return Intensity.LOWEST
    # floor(count / max_count * N_BUCKETS) in exact integer arithmetic
    bucket = count * N_BUCKETS // max_count
    return Intensity(min(max(bucket, 0), N_BUCKETS - 1))


def render(tree: Iterable[str], frequencies: Mapping[str, int]) -> list[HeatmapEntry]:
    """One entry per file of the current tree, sorted by path.

    Paths that only exist in `frequencies` (renamed or deleted since the PR
    branched) are dropped.
    """
    max_count = max(frequencies.values(), default=0)
    entries: list[HeatmapEntry] = []
    for path in sorted(set(tree)):
        count = int(frequencies.get(path, 0))
        entries.append(HeatmapEntry(path=path, count=count, intensity=intensity_for(count, max_count)))
    return entries


def to_html(entries: Sequence[HeatmapEntry], *, title: str = "Pull request heatmap") -> str:
    esc_title = html.escape(title)
    lines = [
        "<!DOCTYPE html>",
        "<html>",
        "<head>",
        '<meta charset="utf-8">',
        f"<title>{esc_title}</title>",
        f"<style>{_STYLE}</style>",
        "</head>",
        "<body>",
        f"<h1>{esc_title}</h1>",
        '<ul class="legend">',
    ]
    for level in Intensity:
        lines.append(
            f'<li><div class="swatch" style="background-color: {PALETTE[level]}"></div>'
            f"{level.name.lower()}</li>"
        )
    lines.append("</ul>")
    lines.append('<ul class="files">')
    for entry in entries:
        lines.append(
            f'<li data-count="{entry.count}" data-intensity="{entry.intensity.name.lower()}">'
            f'<div class="swatch" style="background-color: {PALETTE[entry.intensity]}"></div>'
            f'<span class="count">{entry.count}</span>'
            f"<span>{html.escape(entry.path)}</span></li>"
        )
    lines.extend(["</ul>", "</body>", "</html>", ""])
    return "\n".join(lines)


def to_json(entries: Sequence[HeatmapEntry]) -> str:
    payload = [
        {"path": e.path, "count": e.count, "intensity": e.intensity.name.lower()}
        for e in entries
    ]
    return json.dumps(payload, indent=2, sort_keys=True) + "\n"


def write_heatmap(entries: Sequence[HeatmapEntry], path: Path, *, fmt: str = "html", title: str | None = None) -> Path:
    if fmt == "html":
        text = to_html(entries, title=title) if title else to_html(entries)
    elif fmt == "json":
        text = to_json(entries)
    else:
        raise ValueError(f"Unknown output format: {fmt} (expected one of {', '.join(OUTPUT_FORMATS)})")

    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path
