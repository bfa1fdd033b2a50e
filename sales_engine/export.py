"""
Report export: CSV and printable HTML documents.

Both formats are rendered from the same ``(header, rows)`` pair, so the
printable document always shows exactly the rows and column order of the
CSV file.
"""
import csv
import io
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from jinja2 import Environment, PackageLoader, select_autoescape

from sales_engine.calendar_keys import Clock, resolve_now
from sales_engine.exceptions import ExportError
from sales_engine.models import (
    AggregateBucket,
    Employee,
    PayrollRow,
    ProfitSummary,
    SalesFilter,
)
from sales_engine.observability import Timer, get_logger, metrics

logger = get_logger(__name__)

SALES_HEADER = ["period", "totalSales", "unitsSold", "filter"]
PROFIT_HEADER = ["product", "totalProfit", "monthlyProfit", "weeklyProfit", "dailyProfit", "filter"]
ATTENDANCE_HEADER = ["Employee", "Email", "Role", "Present", "Late", "Absent", "Leave", "Total Days"]
PAYROLL_HEADER = [
    "Employee", "Email", "Role", "Hourly Rate", "Regular Hours", "Regular Pay",
    "Overtime Hours", "Overtime Pay", "Bonus", "Deductions", "Gross Pay", "Net Pay",
]

EXPORT_FORMATS = ("csv", "html")
EXPORT_KINDS = ("sales", "profit", "payroll", "attendance")

NOTHING_TO_EXPORT = "Nothing to export"

_env = Environment(
    loader=PackageLoader("sales_engine", "templates"),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)


def _money(value: float) -> str:
    return f"{value:.2f}"


def _cell(value: Any) -> str:
    return "" if value is None else str(value)


# ═══════════════════════════════════════════════════════════════════════════════
# RENDERERS
# ═══════════════════════════════════════════════════════════════════════════════

def to_csv(rows: Iterable[Sequence[Any]], header: Sequence[str]) -> str:
    """CSV text with every field quoted and the header row first."""
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow([_cell(name) for name in header])
    for row in rows:
        writer.writerow([_cell(value) for value in row])
    return output.getvalue()


def to_printable_document(
    rows: Iterable[Sequence[Any]],
    header: Sequence[str],
    metadata: Optional[Mapping[str, Any]] = None,
    clock: Optional[Clock] = None,
) -> str:
    """
    Standalone HTML document with a table of the rows, ready to print.

    ``metadata`` may carry ``title``, ``filter``, ``range`` and any further
    label/value pairs, which are listed above the table.
    """
    metadata = dict(metadata or {})
    title = str(metadata.pop("title", "Report"))
    generated_at = resolve_now(clock).strftime("%Y-%m-%d %H:%M")

    template = _env.get_template("report.html")
    return template.render(
        title=title,
        generated_at=generated_at,
        metadata={str(key): _cell(value) for key, value in metadata.items()},
        header=[_cell(name) for name in header],
        rows=[[_cell(value) for value in row] for row in rows],
    )


# ═══════════════════════════════════════════════════════════════════════════════
# ROW BUILDERS
# ═══════════════════════════════════════════════════════════════════════════════

def sales_report_rows(buckets: Iterable[AggregateBucket], sales_filter: SalesFilter) -> List[List[str]]:
    """One row per period bucket, in window order."""
    label = SalesFilter(sales_filter).label
    return [
        [bucket.label, _money(bucket.total_sales), str(bucket.units_sold), label]
        for bucket in buckets
    ]


def profit_report_rows(summary: ProfitSummary, sales_filter: SalesFilter) -> List[List[str]]:
    """Overall "All products" row followed by one row per product."""
    label = SalesFilter(sales_filter).label
    totals = summary.totals
    rows = [[
        "All products",
        _money(totals.total),
        _money(totals.monthly),
        _money(totals.weekly),
        _money(totals.daily),
        label,
    ]]
    for entry in summary.per_product:
        rows.append([
            entry.label,
            _money(entry.totals.total),
            _money(entry.totals.monthly),
            _money(entry.totals.weekly),
            _money(entry.totals.daily),
            label,
        ])
    return rows


def payroll_report_rows(rows: Iterable[PayrollRow]) -> List[List[str]]:
    return [
        [
            row.employee.name,
            row.employee.email,
            row.employee.role,
            _money(row.salary.hourly_rate),
            _money(row.regular_hours),
            _money(row.regular_pay),
            _money(row.salary.overtime_hours),
            _money(row.overtime_pay),
            _money(row.salary.bonus),
            _money(row.salary.deductions),
            _money(row.gross_pay),
            _money(row.net_pay),
        ]
        for row in rows
    ]


def attendance_report_rows(employees: Iterable[Employee]) -> List[List[str]]:
    return [
        [
            employee.name,
            employee.email,
            employee.role,
            str(employee.counts.present),
            str(employee.counts.late),
            str(employee.counts.absent),
            str(employee.counts.leave),
            str(employee.counts.total_days),
        ]
        for employee in employees
    ]


# ═══════════════════════════════════════════════════════════════════════════════
# EXPORT
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class ExportResult:
    """Rendered export, or an empty no-op result."""
    kind: str
    fmt: str
    content: str = ""
    row_count: int = 0
    message: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.row_count == 0

    @property
    def media_type(self) -> str:
        return "text/csv" if self.fmt == "csv" else "text/html"

    @property
    def filename(self) -> str:
        return f"{self.kind}_report.{self.fmt}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "format": self.fmt,
            "rowCount": self.row_count,
            "message": self.message,
            "filename": self.filename,
        }


def build_export(
    kind: str,
    header: Sequence[str],
    rows: Sequence[Sequence[Any]],
    fmt: str = "csv",
    metadata: Optional[Mapping[str, Any]] = None,
    clock: Optional[Clock] = None,
) -> ExportResult:
    """
    Render rows in the requested format.

    An empty row set is not an error: the result carries no content and the
    message "Nothing to export".

    Raises:
        ExportError: If the format is not supported
    """
    fmt = str(fmt or "").strip().lower()
    if fmt not in EXPORT_FORMATS:
        raise ExportError(f"Unsupported export format '{fmt}'", fmt=fmt)

    rows = list(rows or [])
    metadata = dict(metadata or {})
    if not rows:
        logger.info(f"Export skipped: no {kind} rows")
        metrics.record_report(kind, fmt, 0)
        return ExportResult(kind=kind, fmt=fmt, message=NOTHING_TO_EXPORT, metadata=metadata)

    with Timer(f"export_{kind}_{fmt}", logger) as timer:
        if fmt == "csv":
            content = to_csv(rows, header)
        else:
            content = to_printable_document(rows, header, metadata, clock)

    metrics.record_report(kind, fmt, len(rows))
    logger.info(
        f"Exported {len(rows)} {kind} rows as {fmt}",
        extra={"duration_ms": round(timer.elapsed_ms, 2)},
    )
    return ExportResult(
        kind=kind,
        fmt=fmt,
        content=content,
        row_count=len(rows),
        message=f"Exported {len(rows)} rows",
        metadata=metadata,
    )
