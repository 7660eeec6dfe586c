"""Run report for restore operations.

The builder only accumulates: the loader appends each table's terminal
outcome in catalog order and ``build()`` freezes the lists.

Usage:
    builder = RunReportBuilder()
    builder.add_success("profiles", written=3, skipped=0, mode="replace")
    builder.add_warning("approval_logs", "Skipped 1 records ...")
    report = builder.build()
    report.model_dump()
"""

from pydantic import BaseModel, ConfigDict, Field

from db_snapshot.backup.models import RestoreMode


class TableSuccess(BaseModel):
    """A table whose load completed."""

    model_config = ConfigDict(frozen=True)

    table: str
    records_written: int
    records_skipped: int = 0
    mode: RestoreMode


class TableFailure(BaseModel):
    """A table whose load failed; earlier batches may have been written."""

    model_config = ConfigDict(frozen=True)

    table: str
    error: str
    records_written: int = 0


class TableWarning(BaseModel):
    """A non-fatal, counted condition (integrity drops, failed merge batches)."""

    model_config = ConfigDict(frozen=True)

    table: str
    message: str


class RunReport(BaseModel):
    """Per-table outcome of one restore run."""

    model_config = ConfigDict(frozen=True)

    success: tuple[TableSuccess, ...] = ()
    errors: tuple[TableFailure, ...] = ()
    skipped: tuple[str, ...] = ()
    warnings: tuple[TableWarning, ...] = ()

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def records_written(self) -> int:
        """Rows written across successful and failed tables."""
        return sum(s.records_written for s in self.success) + sum(
            e.records_written for e in self.errors
        )

    def written_for(self, table: str) -> int | None:
        """Rows written for *table* if it succeeded, else ``None``."""
        for s in self.success:
            if s.table == table:
                return s.records_written
        return None

    def summary(self) -> str:
        """One-line human summary."""
        return (
            f"{len(self.success)} tables restored ({self.records_written} records), "
            f"{len(self.errors)} failed, {len(self.skipped)} skipped, "
            f"{len(self.warnings)} warnings"
        )


class RunReportBuilder:
    """Append-only accumulator for a ``RunReport``."""

    def __init__(self) -> None:
        self._success: list[TableSuccess] = []
        self._errors: list[TableFailure] = []
        self._skipped: list[str] = []
        self._warnings: list[TableWarning] = []

    def add_success(self, table: str, written: int, skipped: int, mode: RestoreMode) -> None:
        self._success.append(
            TableSuccess(table=table, records_written=written, records_skipped=skipped, mode=mode)
        )

    def add_error(self, table: str, error: str, records_written: int = 0) -> None:
        self._errors.append(
            TableFailure(table=table, error=error, records_written=records_written)
        )

    def add_skipped(self, table: str) -> None:
        self._skipped.append(table)

    def add_warning(self, table: str, message: str) -> None:
        self._warnings.append(TableWarning(table=table, message=message))

    def build(self) -> RunReport:
        """Return the accumulated outcomes as an immutable report."""
        return RunReport(
            success=tuple(self._success),
            errors=tuple(self._errors),
            skipped=tuple(self._skipped),
            warnings=tuple(self._warnings),
        )
