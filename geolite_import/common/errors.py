"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for import failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class StageError(PipelineError):
    """Raised for stage failures that abort the run."""

    error_code = "STAGE_ERROR"


class DownloadError(StageError):
    """Raised when the archive cannot be fetched or was not written."""

    error_code = "DOWNLOAD_ERROR"


class ExtractError(StageError):
    """Raised for unreadable archives or missing payload files."""

    error_code = "EXTRACT_ERROR"


class SchemaError(StageError):
    """Raised when a destination table cannot be probed, created or reset."""

    error_code = "SCHEMA_ERROR"


class LoadError(StageError):
    """Raised for insert failures and unreadable CSV inputs."""

    error_code = "LOAD_ERROR"


class RunInProgressError(StageError):
    """Raised when another run already holds the identity's working directory."""

    error_code = "RUN_IN_PROGRESS"


class RunTimeoutError(StageError):
    """Raised when a run exceeds its execution-time allowance."""

    error_code = "RUN_TIMEOUT"
