"""Application constants."""

USER_AGENT = "balloon-trajectories/1.0 (+hourly trajectory enrichment; contact: configured-email)"
HOURS_PER_BATCH = 24
HOUR_FILENAMES = tuple(f"{hour:02d}.json" for hour in range(HOURS_PER_BATCH))
START_FILENAME = HOUR_FILENAMES[0]
END_FILENAME = HOUR_FILENAMES[-1]
MIN_PAYLOAD_BYTES = 1000
MAX_RETRY_ATTEMPTS = 5
RETRY_DELAY_MS = 1000
DEFAULT_MIN_INTERVAL_MS = 1200
COORDINATE_PRECISION = 2
ARCHIVE_BUCKET_FORMAT = "%Y-%m-%d-%H"
STAGES = (
    "archive",
    "download",
    "process",
    "publish",
)
EXIT_SUCCESS = 0
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "filename",
    "coordinate",
    "event",
    "status",
    "attempt",
    "duration_ms",
    "count",
    "error_code",
    "message",
)
