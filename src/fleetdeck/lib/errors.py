"""Custom exception hierarchy for FleetDeck configuration and deploy operations."""


class FleetDeckError(Exception):
    """Base exception for all FleetDeck errors.

    All FleetDeck-specific exceptions inherit from this class, enabling
    centralized exception handling in the CLI.
    """

    pass


class ExpectedError(FleetDeckError):
    """Exception raised for user errors that are shown verbatim.

    Used for invalid flag combinations and for projects that cannot be
    deployed to the target fleet. No stack trace is shown for these.

    Attributes:
        message: Human-readable error message
    """

    def __init__(self, message: str) -> None:
        """Create an expected error with a user-facing message."""
        self.message = message
        super().__init__(message)


class ConfigError(FleetDeckError):
    """Exception raised for configuration errors.

    This exception is raised when settings or project files cannot be loaded
    or parsed. It includes field-specific information to help users identify
    and fix configuration issues.

    Attributes:
        field: The configuration field that caused the error
        message: Human-readable error message describing the issue
    """

    def __init__(self, field: str, message: str) -> None:
        """Initialize ConfigError with field and message.

        Args:
            field: Configuration field name where error occurred
            message: Descriptive error message
        """
        self.field = field
        self.message = message
        super().__init__(f"Configuration error in '{field}': {message}")


class ValidationError(FleetDeckError):
    """Exception raised for validation errors during configuration parsing.

    Attributes:
        field: The field that failed validation
        message: Description of the validation failure
        expected: Human description of expected value/type
        actual: The actual value that failed validation
    """

    def __init__(
        self,
        field: str,
        message: str,
        expected: str,
        actual: str,
    ) -> None:
        """Initialize ValidationError with detailed information.

        Args:
            field: Field that failed validation (dot notation for nested fields)
            message: Description of what went wrong
            expected: Human-readable description of expected value
            actual: The actual value that failed
        """
        self.field = field
        self.message = message
        self.expected = expected
        self.actual = actual
        full_message = (
            f"Validation error in '{field}': {message}\n"
            f"  Expected: {expected}\n"
            f"  Got: {actual}"
        )
        super().__init__(full_message)


class DeploymentError(FleetDeckError):
    """Exception raised when a build or release operation fails.

    Attributes:
        operation: The deploy stage that failed (build, push, release, ...)
        message: Human-readable error message
    """

    def __init__(self, operation: str, message: str) -> None:
        """Create a deployment error for the given stage."""
        self.operation = operation
        self.message = message
        super().__init__(f"{operation} failed: {message}")


class DockerNotAvailableError(DeploymentError):
    """Exception raised when the Docker daemon cannot be reached."""

    def __init__(self, operation: str, detail: str | None = None) -> None:
        """Create an error pointing the user at the Docker daemon."""
        message = (
            "Docker daemon is not available. "
            "Ensure Docker is running or pass --docker/--dockerHost."
        )
        if detail:
            message += f"\nOriginal error: {detail}"
        super().__init__(operation=operation, message=message)


class InternalConsistencyError(FleetDeckError):
    """Exception raised when the image record set does not match the project."""

    def __init__(self, message: str) -> None:
        """Create an internal consistency error."""
        self.message = message
        super().__init__(message)


class FleetConnectionError(FleetDeckError):
    """Error raised when the fleet API cannot be reached.

    Attributes:
        base_url: The API URL that failed
    """

    def __init__(self, base_url: str, original_error: Exception | None = None) -> None:
        """Initialize FleetConnectionError with the URL and optional cause.

        Args:
            base_url: The API URL that failed to connect
            original_error: The underlying exception that caused the failure
        """
        self.base_url = base_url
        message = (
            f"Failed to connect to the fleet API at {base_url}.\n"
            "Check your network connection and the configured base URL."
        )
        if original_error:
            message += f"\nOriginal error: {original_error}"
        super().__init__(message)


class FleetAPIError(FleetDeckError):
    """Error raised when the fleet API returns a non-success status.

    Attributes:
        url: Request URL
        status_code: HTTP status code returned
        detail: Error detail from the response body, if any
    """

    def __init__(self, url: str, status_code: int, detail: str | None = None) -> None:
        """Create an API error from a failed response."""
        self.url = url
        self.status_code = status_code
        self.detail = detail
        message = f"Fleet API request to {url} failed with status {status_code}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class ResourceNotFoundError(FleetDeckError):
    """Base class for 404 responses rewritten into user-facing messages."""

    def __init__(self, message: str) -> None:
        """Create a not-found error with a clear message."""
        self.message = message
        super().__init__(message)


class FleetNotFoundError(ResourceNotFoundError):
    """Raised when the target fleet does not exist or is not accessible."""

    def __init__(self, app_name: str) -> None:
        """Create an error naming the missing fleet."""
        self.app_name = app_name
        super().__init__(
            f"Fleet not found: {app_name}\n"
            "Check the name, or use <owner>/<fleet> for fleets shared with you."
        )


class ReleaseNotFoundError(ResourceNotFoundError):
    """Raised when a release id cannot be resolved."""

    def __init__(self, release_id: int | str) -> None:
        """Create an error naming the missing release."""
        self.release_id = release_id
        super().__init__(f"Release not found: {release_id}")


class DeviceNotFoundError(ResourceNotFoundError):
    """Raised when a device uuid cannot be resolved."""

    def __init__(self, uuid: str) -> None:
        """Create an error naming the missing device."""
        self.uuid = uuid
        super().__init__(f"Device not found: {uuid}")
