"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for pipeline failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class StageError(PipelineError):
    """Raised for stage failures that abort the run."""

    error_code = "STAGE_ERROR"


class FetchError(PipelineError):
    """One hour file could not be fetched, validated or written."""

    error_code = "FETCH_ERROR"


class ResolutionError(PipelineError):
    """An external geocoding lookup failed for one coordinate."""

    error_code = "RESOLUTION_ERROR"


class CacheUnavailable(PipelineError):
    """The coordinate cache could not be read or written."""

    error_code = "CACHE_UNAVAILABLE"


class ArchiveCopyError(PipelineError):
    """A single file failed to copy into an archive bucket."""

    error_code = "ARCHIVE_COPY_ERROR"

    def __init__(self, filename: str, reason: str) -> None:
        super().__init__(f"Failed to archive {filename}: {reason}")
        self.filename = filename
        self.reason = reason


class AssemblyError(PipelineError):
    """A snapshot file is missing or malformed."""

    error_code = "ASSEMBLY_ERROR"


class PublishError(PipelineError):
    """Publishing output artifacts failed."""

    error_code = "PUBLISH_ERROR"
