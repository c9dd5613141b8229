import json
import os
import pprint
from contextlib import contextmanager
from datetime import datetime
from logging import getLogger
from typing import Any, Callable, List, Optional, Tuple, Union
from urllib.parse import urlsplit

import selenium.webdriver.remote.webdriver
from selenium import webdriver
from selenium.common.exceptions import NoSuchWindowException, WebDriverException
from selenium.webdriver.common.by import By as By_
from selenium.webdriver.remote.webelement import WebElement

from webdriver_components.exceptions import UnexpectedCountError
from webdriver_components.locators import By
from webdriver_components.models import Screenshot
from webdriver_components.wait import DEFAULT_POLL_INTERVAL, Wait

logger = getLogger(__name__)

__all__ = [
    "Browser",
    "BrowserError",
    "Chrome",
    "Remote",
]

ARTIFACT_TIME_FORMAT = "%H-%M-%S-%f"


class Browser(selenium.webdriver.remote.webdriver.WebDriver):
    """
    A selenium webdriver with session-level conveniences: screenshots, tabs,
    page readiness, error detection and storing failure artifacts.
    """

    # Evaluated in the page; the page counts as ready once it returns true.
    ready_script = "return document.readyState === 'complete' && !window.ngBusy"

    def __init__(
        self,
        *args,
        window_size: Optional[Tuple[int, int]] = None,
        page_load_timeout: float = 30,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        if window_size:
            self.set_window_size(*window_size)
        else:
            self.maximize_window()
        self.autocapture = True  # automatically capture screenshots
        self.page_load_timeout = page_load_timeout
        self.poll_interval = poll_interval
        # Captures taken with snap() since the plugin last collected them.
        self.screenshots: List[Screenshot] = []
        logger.debug(f"New WebDriver session is '{self.session_id}'")

    @contextmanager
    def autocapture_off(self):
        """Context manager temporarily disabling automatic screenshot generation."""
        previous_autocapture = self.autocapture  # for nesting
        self.autocapture = False
        try:
            yield
        finally:
            self.autocapture = previous_autocapture

    def find_element(self, by: Union[By, str] = By_.ID, value: Optional[Any] = None) -> WebElement:
        """Overrides the base find_element method to support the 'By' enum"""
        if isinstance(by, By):
            by = by.value
        return super().find_element(by, value)

    def find_elements(self, by: Union[By, str] = By_.ID, value: Optional[Any] = None) -> List[WebElement]:
        """Overrides the base find_elements method to support the 'By' enum"""
        if isinstance(by, By):
            by = by.value
        return super().find_elements(by, value)

    @contextmanager
    def _resize_for_screenshot(self):
        original_size = self.get_window_size()
        required_width = self.execute_script("return document.body.parentNode.scrollWidth")
        required_height = self.execute_script("return document.body.parentNode.scrollHeight")
        self.set_window_size(required_width, required_height)
        try:
            yield
        finally:
            self.set_window_size(original_size["width"], original_size["height"])

    def get(self, url: str, snap: bool = False, caption: Optional[str] = None):
        logger.info(f"Navigating to {url}")
        super().get(url)
        if self.autocapture and snap:
            if not caption:
                caption = f"Render {url}"
            self.snap(caption=caption)

    def snap(self, caption: Optional[str] = None, is_error: bool = False):
        """
        Store the screenshot as a base64 png in memory.
        Resize the window ahead of time so the full page shows in the shot.
        """
        with self._resize_for_screenshot():
            b64_image = self.find_element(By_.TAG_NAME, "body").screenshot_as_base64
        self.screenshots.append(Screenshot.from_base64(b64_image, caption=caption, is_error=is_error))

    def pop_screenshots(self) -> List[Screenshot]:
        """The captures taken since the last call; the browser forgets them."""
        screenshots, self.screenshots = self.screenshots, []
        return screenshots

    # Tabs and windows

    def open_tab(self):
        self.execute_script("window.open('');")
        self.switch_to.window(self.window_handles[-1])

    def close_tab(self):
        self.close()
        if self.window_handles:
            self.switch_to.window(self.window_handles[-1])

    @contextmanager
    def tab_context(self):
        self.open_tab()
        try:
            yield
        finally:
            self.close_tab()

    def switch_to_tab(self, name: str):
        if name not in self.window_handles:
            raise NoSuchWindowException(
                f"Cannot find window name '{name}'. Please check if the tab/window wasn't closed accidentally."
            )
        self.switch_to.window(name)

    def try_switch_to_tab(self, index: int) -> bool:
        handles = self.window_handles
        if 0 <= index < len(handles):
            self.switch_to.window(handles[index])
            return True
        return False

    def close_tab_at(self, index: int, return_to: int = 0) -> bool:
        if self.try_switch_to_tab(index):
            self.close()
            self.try_switch_to_tab(return_to)
            return True
        return False

    def open_and_switch_to_new_tab(self, action: Callable[[], None], wait: Wait):
        """Runs `action`, which is expected to open exactly one new tab, and switches to it."""
        if len(self.window_handles) != 1:
            raise UnexpectedCountError("There is unexpected count of opened tabs/windows. There has to be only one.")
        original = self.current_window_handle
        action()
        wait.set_message("Count of window handles was different from 2.").until(lambda: len(self.window_handles) == 2)
        new_handle = next(handle for handle in self.window_handles if handle != original)
        self.switch_to_tab(new_handle)

    def get_wait(self, timeout: Optional[float] = None) -> Wait:
        """A fresh Wait bounded by the page load timeout, polling at the configured interval."""
        timeout = self.page_load_timeout if timeout is None else timeout
        return Wait(timeout=timeout, poll_interval=self.poll_interval)

    # URLs

    @property
    def url_path(self) -> str:
        return urlsplit(self.current_url).path

    @property
    def url_path_and_query(self) -> str:
        parts = urlsplit(self.current_url)
        result = parts.path or "/"
        if parts.query:
            result = f"{result}?{parts.query}"
        if parts.fragment:
            result = f"{result}#{parts.fragment}"
        return result

    def wait_for_url_changed(self, url: Optional[str] = None, action: Optional[Callable[[], None]] = None):
        """
        Waits until the url differs from `url` (full url, or path and query).
        If `action` is given, the current url is remembered, then the action runs.
        """
        if action is not None:
            url = self.current_url
            action()
        logger.debug(f"Waiting for url to change from '{url}'")
        if url.lower().startswith("http"):

            def changed():
                return self.current_url != url

        else:

            def changed():
                return self.url_path_and_query != url

        self.get_wait().set_message(f"Url wasn't changed from '{url}' during the timeout.").until(changed)
        self.wait_for_ready()
        self.check_for_errors()
        logger.debug(f"Url was changed to '{self.current_url}'")

    def wait_for_url_contains(self, substring: str, case_sensitive: bool = True):
        def contains():
            if case_sensitive:
                return substring in self.current_url
            return substring.lower() in self.current_url.lower()

        self.get_wait().set_message(f"'{substring}' wasn't contained in url during the timeout.").until(contains)

    def scroll_top(self):
        self.execute_script("window.scrollTo(0, 0);")

    # Readiness and error detection

    def is_page_ready(self) -> bool:
        ready = bool(self.execute_script(self.ready_script))
        logger.debug(f"Page ready: {ready}")
        return ready

    def wait_for_ready(self, timeout: Optional[float] = None):
        self.get_wait(timeout).set_message(
            f"Page '{self.current_url}' wasn't completely ready during the timeout, "
            f"because '{self.ready_script}' was still returning false."
        ).until(self.is_page_ready)

    def is_page_not_found(self) -> bool:
        return "page not found" in (self.title or "").lower()

    def is_in_error_state(self) -> bool:
        title = self.title or ""
        source = self.page_source or ""
        error_in_title = title.lower().startswith("error")
        error_in_source = "HTTP ERROR" in source or any(
            marker in source.lower() for marker in ("this site can’t be reached", "bad gateway")
        )
        logs = self.get_logs("browser")
        error_in_logs = any(
            entry.get("level") == "SEVERE"
            and "status" in entry.get("message", "").lower()
            and any(m in entry.get("message", "").lower() for m in ("failed to load resource", "request failed"))
            for entry in logs
        )
        if error_in_title or error_in_source or error_in_logs:
            logger.error(f"Title of the page: {title}")
            logger.error(f"Source of the page:\n{source}")
            logger.error("Browser logs:\n" + "\n".join(entry.get("message", "") for entry in logs))
            return True
        return False

    def check_for_errors(self):
        if self.is_in_error_state():
            raise BrowserError(self, f"Fatal HTTP error has been detected on the page '{self.current_url}'!")
        if self.is_page_not_found():
            raise BrowserError(self, f"HTTP 404 error has been detected on the page '{self.current_url}'!")

    # Logs and failure artifacts

    def get_logs(self, log_type: str = "browser") -> List[dict]:
        """Returns the entries of the given log, or an empty list where the driver has no such log."""
        try:
            if log_type not in self.log_types:
                return []
            return self.get_log(log_type) or []
        except (WebDriverException, AttributeError):
            logger.warning(f"Cannot get logs for the log type '{log_type}'")
            return []

    @staticmethod
    def _artifact_path(directory: str, name: str, extension: str, suffix: str = "") -> str:
        os.makedirs(directory, exist_ok=True)
        stamp = datetime.now().strftime(ARTIFACT_TIME_FORMAT)
        suffix = f"_{suffix}" if suffix else ""
        return os.path.join(directory, f"{name}{suffix}_{stamp}.{extension}")

    def store_page_source(self, directory: str, suffix: str = "") -> Optional[str]:
        source = self.page_source
        if not source:
            return None
        filename = self._artifact_path(directory, "page", "html", suffix)
        with open(filename, "w", encoding="utf-8") as f:
            f.write(source)
        logger.info(f"Saving page source to '{filename}'")
        return filename

    def store_logs(self, directory: str, log_type: str = "browser", suffix: str = "") -> Optional[str]:
        entries = self.get_logs(log_type)
        if not entries:
            logger.warning(f"There are no '{log_type}' logs available and they won't be stored")
            return None
        filename = self._artifact_path(directory, log_type, "log", suffix)
        with open(filename, "a", encoding="utf-8") as f:
            f.write("\n".join(json.dumps(entry) for entry in entries))
        logger.info(f"Saving '{log_type}' logs to '{filename}'")
        return filename

    def store_screenshot(self, directory: str, suffix: str = "") -> Optional[str]:
        filename = self._artifact_path(directory, "screenshot", "png", suffix)
        if not self.get_screenshot_as_file(filename):
            return None
        logger.info(f"Saving screenshot to '{filename}'")
        return filename

    @contextmanager
    def wrap_exception(self, message):
        """Wrap any exceptions caught in a BrowserError with message."""
        try:
            yield
        except Exception as e:
            if not isinstance(e, BrowserError):
                err = BrowserError(self, message)
                err.orig = e
            else:
                err = e

            # Only capture this screenshot if the error occurred
            # in a context that didn't automatically log the error.
            if not self.screenshots or not self.screenshots[-1].is_error:
                try:
                    self.snap(caption=f"Python error: {type(e).__name__}", is_error=True)
                except WebDriverException:  # pragma: no cover
                    logger.warning(f"Could not take screenshot after encountering error {e=}.")

            raise err from None


class BrowserError(Exception):
    """Error to raise for a meaningful browser error report."""

    def __init__(self, browser: Browser, message, *args):
        self.message = message
        self.url = browser.current_url
        self.logs = browser.get_logs("browser")
        self.log_last_http(browser)
        self.orig = None
        super().__init__(message, self.url, self.logs, *args)

    @staticmethod
    def log_last_http(browser):
        """Log the last http transaction as an error."""
        logs = browser.get_logs("har")
        if not logs:
            return
        last_message = json.loads(logs[-1].get("message", "{}"))
        entries = last_message.get("log", {}).get("entries", [])
        if not entries:
            return
        message = pprint.pformat(entries[-1])
        logger.error(f"Last HTTP transaction: {message}")


class Chrome(Browser, webdriver.Chrome):
    def clear_cache(self):
        self.execute_cdp_cmd("Network.clearBrowserCache", {})


class Remote(Browser, webdriver.Remote):
    pass
