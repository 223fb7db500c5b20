"""Protocol and policy constants."""

from __future__ import annotations

#: Every TCU status line starts with this marker.
PAYLOAD_PREFIX = "#M1,"

#: Minimum number of comma separated fields in a status line.
PAYLOAD_MIN_FIELDS = 3

#: Separators tried, in order, when splitting ``<project><sep><ncu>``.
TOPIC_SEPARATORS: tuple[str, ...] = ("_", "-")

DEFAULT_TIMEOUT_MINUTES = 30
DEFAULT_CHECK_INTERVAL_MINUTES = 10
DEFAULT_STATUS_INTERVAL_MINUTES = 60
DEFAULT_QUIET_START_HOUR = 19
DEFAULT_QUIET_END_HOUR = 6
DEFAULT_DAILY_SUMMARY_TIME = "09:00"

DEFAULT_MONITORING_TZ = "Asia/Kolkata"
DEFAULT_REPORTING_TZ = "UTC"

# Contacts are national numbers of this length unless they carry a country code.
DEFAULT_COUNTRY_CODE = "91"
NATIONAL_NUMBER_DIGITS = 10

# Log stream names.
STREAM_INACTIVE = "inactive_tcus"
STREAM_STATUS = "status_report"
STREAM_DISPATCH_ERRORS = "dispatch_errors"


def communications_stream(project: str, ncu: str) -> str:
    """Per-NCU stream that records every status line received."""
    return f"{project}_{ncu}_communications"
