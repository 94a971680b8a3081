"""Prometheus metrics for deposit imports.

Counts parse outcomes per file format and records how often reference
template matching and header re-resolution succeed, so mapping drift across
vendor report versions shows up on dashboards.
"""

from prometheus_client import Counter, Histogram

# Parsing metrics
deposit_files_parsed_total = Counter(
    "deposit_import_files_parsed_total",
    "Total number of deposit files parsed",
    ["file_format", "status"]  # file_format: csv|excel|pdf|unknown, status: success|error
)

deposit_parse_duration_seconds = Histogram(
    "deposit_import_parse_duration_seconds",
    "Time spent reconstructing the header/row table in seconds",
    ["file_format"],
    buckets=[0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

deposit_rows_parsed = Histogram(
    "deposit_import_rows_parsed",
    "Number of data rows recovered per parsed file",
    ["file_format"],
    buckets=[1, 10, 50, 100, 500, 1000, 5000, 20000]
)

# Mapping metrics
template_matches_total = Counter(
    "deposit_import_template_matches_total",
    "Reference template lookups by outcome",
    ["outcome"]  # outcome: matched|ambiguous|no_origin|no_company|empty
)

header_resolutions_total = Counter(
    "deposit_import_header_resolutions_total",
    "Recorded header re-resolutions by outcome",
    ["outcome"]  # outcome: resolved|ambiguous|not_found
)
