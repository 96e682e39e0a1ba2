"""
Standard exit codes for opshub commands.

Following Unix/POSIX conventions for command-line tools. The `check` command
is the exception: its exit code is the number of error-severity results.
"""
from typing import Optional

# Standard POSIX exit codes
SUCCESS = 0              # Successful termination
GENERAL_ERROR = 1        # General errors
USAGE_ERROR = 2          # Misuse of shell command (wrong arguments, etc.)

# Application-specific exit codes (64-113 are typically available)
CONFIG_ERROR = 66        # Configuration or registry file error
PERMISSION_ERROR = 67    # Insufficient permissions
DATA_ERROR = 70          # Data format or validation error
PARTIAL_SUCCESS = 71     # Some repositories succeeded, some failed
INTERRUPTED = 130        # Terminated by Ctrl+C (SIGINT)

# Largest exit code a process can report without wrapping
MAX_EXIT_CODE = 255

# Exit code mappings for common exceptions
EXCEPTION_EXIT_CODES = {
    'FileNotFoundError': GENERAL_ERROR,
    'PermissionError': PERMISSION_ERROR,
    'TimeoutError': GENERAL_ERROR,
    'ValueError': DATA_ERROR,
    'KeyError': DATA_ERROR,
    'JSONDecodeError': DATA_ERROR,
    'TOMLDecodeError': CONFIG_ERROR,
    'ConfigError': CONFIG_ERROR,
    'KeyboardInterrupt': INTERRUPTED,
}


def get_exit_code_for_exception(exc: Exception) -> int:
    """
    Get the appropriate exit code for an exception.

    Args:
        exc: The exception that occurred

    Returns:
        Appropriate exit code
    """
    exc_name = exc.__class__.__name__
    return EXCEPTION_EXIT_CODES.get(exc_name, GENERAL_ERROR)


def clamp_exit_code(count: int) -> int:
    """Turn a count into an exit code that cannot wrap around to 0."""
    return max(0, min(count, MAX_EXIT_CODE))


class CommandError(Exception):
    """
    Exception that commands can raise to indicate specific exit codes.
    """
    def __init__(self, message: str, exit_code: int = GENERAL_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


class ConfigError(CommandError):
    """Raised when a settings or registry file is missing or malformed."""
    def __init__(self, message: str):
        super().__init__(message, CONFIG_ERROR)


class ValidationError(CommandError):
    """Raised when a command argument is malformed (e.g. a release version)."""
    def __init__(self, message: str):
        super().__init__(message, GENERAL_ERROR)


class ReleaseError(CommandError):
    """Raised when a release-blocking step (the test suite) fails."""
    def __init__(self, message: str, repository: Optional[str] = None):
        super().__init__(message, GENERAL_ERROR)
        self.repository = repository


class PartialSuccessError(CommandError):
    """Raised when some repositories succeed and some fail."""
    def __init__(self, message: str, succeeded: int = 0, failed: int = 0):
        super().__init__(message, PARTIAL_SUCCESS)
        self.succeeded = succeeded
        self.failed = failed
