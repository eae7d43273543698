"""Offline analysis report over a history database."""

import json
import logging
import os
from datetime import datetime
from enum import Enum
from pathlib import Path

from procmon.errors import InvalidTimestampError, QueryError, ReportError, StorageUnavailable
from procmon.formatting import format_bytes
from procmon.history import HistoryStore
from procmon.stats import AnalysisResult, analyze

logger = logging.getLogger(__name__)

NO_RECORDS_MESSAGE = (
    "No records found matching the criteria. Try:\n"
    "  - Widening the time range\n"
    "  - Checking the process name filter\n"
    "  - Verifying data exists in the database"
)


class OutputFormat(Enum):
    TABLE = "table"
    JSON = "json"


def parse_timestamp(text: str) -> datetime:
    """
    Parse an ISO-8601 / RFC 3339 date-time.

    A value without an offset is taken as local time.

    Raises:
        InvalidTimestampError: `text` is not a valid date-time.
    """
    candidate = text.strip()
    # fromisoformat only accepts a trailing Z from Python 3.11 on
    if candidate.endswith(("Z", "z")):
        candidate = candidate[:-1] + "+00:00"
    try:
        value = datetime.fromisoformat(candidate)
    except ValueError:
        raise InvalidTimestampError(text) from None
    if value.tzinfo is None:
        value = value.astimezone()
    return value


def build_report(
    location: str | os.PathLike,
    name: str | None = None,
    start: str | None = None,
    end: str | None = None,
) -> AnalysisResult:
    """
    Load matching records from `location` and summarise them.

    Raises:
        ReportError: Missing database, invalid time filter, unreadable data
            or an empty result set, with a message fit for end users.
    """
    path = Path(location)
    if not path.exists():
        raise ReportError(f"Database file not found: {path}")

    try:
        start_at = parse_timestamp(start) if start is not None else None
        end_at = parse_timestamp(end) if end is not None else None
    except InvalidTimestampError as exc:
        raise ReportError(str(exc)) from exc

    try:
        with HistoryStore.open(path, readonly=True) as store:
            snapshots = store.query(start=start_at, end=end_at, name=name)
    except StorageUnavailable as exc:
        raise ReportError(str(exc)) from exc
    except QueryError as exc:
        raise ReportError(str(exc)) from exc

    if not snapshots:
        raise ReportError(NO_RECORDS_MESSAGE)

    logger.debug("analysing %d record(s) from %s", len(snapshots), path)
    return analyze(snapshots)


def render_table(result: AnalysisResult, name: str | None = None) -> str:
    """Render the analysis as a human-readable report."""
    rule = "=" * 70
    lines = [
        rule,
        "Analysis Report",
        rule,
        "",
        "Time Range:",
        f"  From: {result.time_range.start.isoformat()}",
        f"  To:   {result.time_range.end.isoformat()}",
    ]
    if name is not None:
        lines.append(f"  Filter: process name contains '{name}'")

    mem = result.memory_stats
    cpu = result.cpu_stats
    count = result.process_count
    lines += [
        "",
        "Memory Statistics:",
        f"  Min:  {format_bytes(mem.min_bytes)}",
        f"  Avg:  {format_bytes(mem.avg_bytes)}",
        f"  Max:  {format_bytes(mem.max_bytes)}",
        "",
        "CPU Statistics:",
        f"  Min:  {cpu.min_percent:.2f}%",
        f"  Avg:  {cpu.avg_percent:.2f}%",
        f"  Max:  {cpu.max_percent:.2f}%",
        "",
        "Process Count:",
        f"  Range: {count.min}-{count.max}",
        f"  Avg:   {count.avg:.1f}",
        "",
        "Peak Details:",
    ]
    for peak in result.peak_details:
        value = format_bytes(peak.value) if peak.metric == "Memory" else f"{peak.value:.2f}%"
        lines.append(
            f"  {peak.metric} Peak: {value} at {peak.timestamp.isoformat()} "
            f"(PID: {peak.pid}, {peak.process_name})"
        )
    lines += ["", f"Total Records: {result.total_records}", rule]
    return "\n".join(lines)


def render_json(result: AnalysisResult) -> str:
    """Render the analysis as indented JSON."""
    return json.dumps(result.to_dict(), indent=2)


def run_report(
    location: str | os.PathLike,
    name: str | None = None,
    start: str | None = None,
    end: str | None = None,
    output_format: OutputFormat = OutputFormat.TABLE,
) -> str:
    """Build the report and render it in the requested format."""
    result = build_report(location, name=name, start=start, end=end)
    if output_format is OutputFormat.JSON:
        return render_json(result)
    return render_table(result, name)
