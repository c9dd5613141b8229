from typing import Optional

from selenium.common.exceptions import TimeoutException


class ConfigurationError(ValueError):
    """Raised immediately when a wait or a setting is misused; never retried."""


class UnsupportedOperationError(Exception):
    pass


class UnexpectedCountError(Exception):
    pass


class NoSuchValueError(Exception):
    pass


class WaitTimeoutError(TimeoutException):
    """
    The only error a Wait raises on its own. The last ignored exception,
    if there was one, is chained as __cause__.
    """

    def __init__(self, timeout: float, elapsed: float, timeout_message: Optional[str] = None):
        self.timeout = timeout
        self.elapsed = elapsed
        self.timeout_message = timeout_message or ""
        message = f"Timed out after {timeout:g} seconds"
        if self.timeout_message:
            message = f"{message}: {self.timeout_message}"
        super().__init__(message)
