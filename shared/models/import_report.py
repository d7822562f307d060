"""Outcome models of a book import run."""

from enum import Enum

from pydantic import BaseModel, computed_field


class ImportState(str, Enum):
    """Pipeline states of one manuscript, in order.

    SKIPPED replaces PERSISTED..INDEXED for an unchanged manuscript; FAILED
    is terminal and reachable from any state.
    """

    LOADED = "loaded"
    FINGERPRINT_CHECKED = "fingerprint_checked"
    SKIPPED = "skipped"
    PERSISTED = "persisted"
    SUMMARIZED = "summarized"
    INDEXED = "indexed"
    RELOCATED = "relocated"
    FAILED = "failed"


class ImportResult(BaseModel):
    """Outcome of one manuscript.

    Attributes:
        filename:  Source file name.
        reference: Book reference, None if the file could not be parsed.
        state:     Terminal state: RELOCATED or FAILED.
        reached:   Furthest pipeline state before the terminal one.
        error:     Failure reason, None on success.
    """

    filename: str
    reference: str | None = None
    state: ImportState = ImportState.LOADED
    reached: ImportState | None = None
    error: str | None = None

    @property
    def is_failed(self) -> bool:
        return self.state == ImportState.FAILED

    @property
    def is_skipped(self) -> bool:
        return not self.is_failed and self.reached == ImportState.SKIPPED


class ImportReport(BaseModel):
    results: list[ImportResult] = []

    @computed_field
    @property
    def processed(self) -> int:
        return sum(1 for r in self.results if not r.is_failed and not r.is_skipped)

    @computed_field
    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.is_skipped)

    @computed_field
    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.is_failed)
