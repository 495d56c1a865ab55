from __future__ import annotations


class PrHeatmapError(RuntimeError):
    """Base class for all errors raised by the heatmap pipeline."""


class SetupFailure(PrHeatmapError):
    """Unrecoverable problem with the run inputs. Aborts the whole batch."""


class RepositoryNotFound(SetupFailure):
    pass


class InputUnreadable(SetupFailure):
    pass


class PerPrFailure(PrHeatmapError):
    """A single pull request could not be analysed. The batch continues."""

    def __init__(self, message: str, *, pr_id: int | None = None) -> None:
        super().__init__(message)
        self.pr_id = pr_id

    @property
    def reason(self) -> str:
        return f"{type(self).__name__}: {self}"


class BranchNotFound(PerPrFailure):
    pass


class FetchFailed(PerPrFailure):
    pass


class NoCommonAncestor(PerPrFailure):
    pass


class DiffUnavailable(PerPrFailure):
    pass


class MalformedDescriptor(PerPrFailure):
    pass
