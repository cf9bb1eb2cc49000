from datetime import datetime, timezone
from dateutil import parser as date_parser

from models.sync import CycleReport
from models.types import as_utc


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse a stored timestamp into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = date_parser.isoparse(value)
        except (ValueError, OverflowError, TypeError):
            return None
    return as_utc(dt)


def print_cycle_summary(report: CycleReport) -> None:
    """Print check cycle summary."""
    print(f"\n{'=' * 60}")
    print(f"[{datetime.now()}] Check Cycle Complete!")
    print(f"{'=' * 60}")
    print(f"✓ Processed: {report.processed_count}")
    print(f"⊘ Skipped:   {report.skipped_count}")
    print(f"✗ Failed:    {report.error_count}")
    print(f"Duration:    {report.duration_ms}ms")
    print(f"{'=' * 60}\n")
