import time
from logging import getLogger
from numbers import Number
from typing import Callable, Iterable, List, Optional, Type, TypeVar

from webdriver_components.exceptions import ConfigurationError, WaitTimeoutError

logger = getLogger(__name__)

__all__ = ["Wait", "DEFAULT_POLL_INTERVAL"]

T = TypeVar("T")

DEFAULT_POLL_INTERVAL = 0.5


class Wait:
    """
    A polling loop that is agnostic to what it waits on. Unlike selenium's WebDriverWait
    it does not need a driver; the condition takes no arguments.

        Wait(timeout=5).set_message("Save button never appeared").until(save_button.is_displayed)

    The configuration (timeout, interval, message, ignored exceptions) may be changed
    between calls to `until`; nothing else is kept between calls.
    """

    def __init__(
        self,
        timeout: float = 60,
        poll_interval: Optional[float] = None,
        message: str = "",
        ignored_exceptions: Iterable[Type[BaseException]] = (),
    ):
        self.timeout = timeout
        self.poll_interval = DEFAULT_POLL_INTERVAL if poll_interval is None else poll_interval
        self.message = message
        if ignored_exceptions is None:
            raise ConfigurationError("ignored_exceptions cannot be None; pass an empty sequence instead")
        self._ignored_exceptions: List[Type[BaseException]] = []
        self.ignore(*ignored_exceptions)

    def __repr__(self):
        return (
            f"{self.__class__.__name__}(timeout={self.timeout}, poll_interval={self.poll_interval}, "
            f"message={self.message!r}, ignored_exceptions={self.ignored_exceptions})"
        )

    @property
    def ignored_exceptions(self) -> tuple:
        return tuple(self._ignored_exceptions)

    def set_message(self, message: str) -> "Wait":
        self.message = message
        return self

    def set_timeout(self, timeout: float) -> "Wait":
        self.timeout = timeout
        return self

    def set_poll_interval(self, poll_interval: float) -> "Wait":
        self.poll_interval = poll_interval
        return self

    def ignore(self, *exception_types: Type[BaseException]) -> "Wait":
        """
        Exceptions of these types (or their subclasses) raised by the condition are
        swallowed while polling. Anything else ends the wait immediately.
        """
        for exception_type in exception_types:
            if not (isinstance(exception_type, type) and issubclass(exception_type, BaseException)):
                raise ConfigurationError(f"All types to be ignored must be exception classes, got {exception_type!r}")
        self._ignored_exceptions.extend(exception_types)
        return self

    def until(self, condition: Callable[[], T]) -> T:
        """
        Repeatedly calls `condition` until one of the following occurs:
          - it returns True, or any object other than None/False
          - it raises an exception that is not ignored (which propagates)
          - the timeout expires (WaitTimeoutError)

        The deadline is checked after each attempt, so a zero timeout still tries once.
        """
        if not callable(condition):
            raise ConfigurationError(f"Condition must be callable, got {condition!r}")

        last_exception: Optional[BaseException] = None
        start = time.monotonic()
        end_time = start + self.timeout
        while True:
            try:
                result = condition()
            except tuple(self._ignored_exceptions) as e:
                last_exception = e
            else:
                if _is_fulfilled(result):
                    return result

            now = time.monotonic()
            if now >= end_time:
                err = WaitTimeoutError(self.timeout, now - start, self.message)
                logger.debug(f"{err.msg} ({now - start:.2f}s elapsed)")
                raise err from last_exception

            time.sleep(self.poll_interval)

    def try_until(self, condition: Callable[[], T]) -> bool:
        """Same as until, but reports a timeout as False instead of raising."""
        try:
            self.until(condition)
            return True
        except WaitTimeoutError:
            return False

    def until_with_refresh(self, condition: Callable[[], bool], refresh: Callable[[], None], refresh_timeout: float = 5):
        """
        Gives `condition` `refresh_timeout` seconds to become true; if it doesn't,
        calls `refresh` (e.g. reloads the page) and tries again, until this wait's
        own timeout expires.
        """
        name = getattr(condition, "__name__", repr(condition))
        iteration = 0

        def attempt() -> bool:
            nonlocal iteration
            iteration += 1
            logger.info(f"Starting wait with refresh and checking '{name}'")
            if self._inner(refresh_timeout).try_until(condition):
                logger.info(f"Condition '{name}' is fulfilled")
                return True
            logger.debug(f"Refreshing... {iteration} (attempts)")
            refresh()
            return False

        previous, self.message = self.message, self.message or f"Condition '{name}' wasn't fulfilled during the timeout."
        try:
            return self.until(attempt)
        finally:
            self.message = previous

    def until_with_action(
        self,
        action: Callable[[], None],
        condition: Callable[[], bool],
        condition_timeout: float = 5,
        warning: Optional[str] = None,
    ) -> bool:
        """Repeats `action` until `condition` holds within `condition_timeout` after it."""
        name = getattr(condition, "__name__", repr(condition))

        def attempt() -> bool:
            action()
            logger.debug(f"Waiting for the condition '{name}' to be fulfilled.")
            if self._inner(condition_timeout).try_until(condition):
                return True
            logger.warning(warning or f"Condition '{name}' is not fulfilled, the action will be executed again.")
            return False

        previous, self.message = self.message, self.message or f"Condition '{name}' wasn't fulfilled during the timeout."
        try:
            return self.until(attempt)
        finally:
            self.message = previous

    def try_until_then(self, condition: Callable[[], bool], action: Callable[[], None], condition_timeout: float = 5) -> bool:
        """Runs `action` once `condition` holds; False if it never did within `condition_timeout`."""
        if not self._inner(condition_timeout).try_until(condition):
            logger.warning(f"Condition '{getattr(condition, '__name__', condition)}' is not fulfilled.")
            return False
        action()
        return True

    def _inner(self, timeout: float) -> "Wait":
        return Wait(timeout=timeout, poll_interval=self.poll_interval, ignored_exceptions=self._ignored_exceptions)


def _is_fulfilled(result) -> bool:
    if isinstance(result, bool):
        return result
    if result is None:
        return False
    if isinstance(result, Number):
        raise ConfigurationError(
            f"Can only wait on an object or boolean response, tried to use type: {type(result).__name__}"
        )
    return True
