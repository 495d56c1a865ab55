"""Pull request conflict heatmap pipeline.

This package provides:
- Run configuration (TOML)
- Loading of PR descriptors produced by `gh pr list --json ...`
- Merge-base diffing and per-file change frequency aggregation
- Heatmap rendering (HTML or JSON)

A PR that cannot be fetched or diffed is skipped and reported; only an
unusable repository or input file stops the run.
"""
