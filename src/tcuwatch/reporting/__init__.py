"""Report generators.

Each generator is a pure function over the registry and the liveness
store. It returns a frozen model and comes with a renderer for the
notification text and the log stream lines.
"""

from tcuwatch.reporting.daily import DailySummary, build_daily_summary, render_daily_summary
from tcuwatch.reporting.inactivity import (
    GroupFindings,
    InactivityAlert,
    build_inactivity_alert,
    inactivity_log_lines,
    render_inactivity_alert,
)
from tcuwatch.reporting.status import (
    GroupStatus,
    StatusReport,
    StatusTally,
    build_status_report,
    render_status_report,
)

__all__ = [
    "DailySummary",
    "GroupFindings",
    "GroupStatus",
    "InactivityAlert",
    "StatusReport",
    "StatusTally",
    "build_daily_summary",
    "build_inactivity_alert",
    "build_status_report",
    "inactivity_log_lines",
    "render_daily_summary",
    "render_inactivity_alert",
    "render_status_report",
]
