from logging import getLogger
from typing import Optional, Type, TypeVar
from urllib.parse import quote, urlsplit, urlunsplit

from webdriver_components.context import TestContext
from webdriver_components.exceptions import ConfigurationError

logger = getLogger(__name__)

__all__ = ["BasePage"]

P = TypeVar("P", bound="BasePage")


class BasePage:
    """
    A page of the application under test, addressed by its path relative to the
    configured base url. Subclasses declare their components as properties, so each
    access builds a component bound to this page's context:

        class LoginPage(BasePage):
            path = "/login"

            @property
            def submit(self) -> Button:
                return Button(self.context, TestIdLocator(test_id="login-submit"))
    """

    path: Optional[str] = None

    def __init__(self, context: TestContext, path: Optional[str] = None):
        self.context = context
        self.url: Optional[str] = None
        path = path or self.path
        if path is None:
            path = self.driver.url_path_and_query
        self.set_url(path)

    def __repr__(self):
        return f"{type(self).__name__}(url={self.url!r})"

    @property
    def driver(self):
        return self.context.driver

    @property
    def settings(self):
        return self.context.settings

    def set_url(self, path: str):
        if path is None:
            raise ValueError("Parameter path cannot be None")
        if not path.startswith("/"):
            raise ValueError(f"Given path '{path}' has to start with /")
        if not self.settings.base_url:
            raise ConfigurationError("The base url is not configured; set WDC_BASE_URL or pass --base-url.")
        self.path = path
        self.url = self.settings.base_url.rstrip("/") + path

    def _with_credentials(self, url: str) -> str:
        parts = urlsplit(url)
        user, password = self.settings.user_name, self.settings.user_password
        netloc = f"{quote(user, safe='')}:{quote(password, safe='')}@{parts.hostname}"
        if parts.port:
            netloc = f"{netloc}:{parts.port}"
        return urlunsplit(parts._replace(netloc=netloc))

    def _navigate(self, url: str):
        if not self.context.is_logged_in and self.settings.user_name and self.settings.user_password:
            logger.debug(f"Opening {url} with user authorization.")
            self.driver.get(self._with_credentials(url))
            self.context.is_logged_in = True
        else:
            logger.debug(f"Opening {url}.")
            self.driver.get(url)
        if self.context.main_window is None:
            self.context.main_window = self.driver.current_window_handle
        self.wait_for_ready()

    def open(self, url: Optional[str] = None):
        """
        Opens the page (or `url`). The first navigation of a test embeds the
        configured credentials in the url for basic authentication.
        """
        self._navigate(url or self.url)

    def open_path(self, path: str):
        if not path.startswith("/"):
            raise ValueError(f"Given path '{path}' has to start with /")
        parts = urlsplit(self.url)
        self._navigate(f"{parts.scheme}://{parts.netloc}{path}")

    def back(self, page_class: Optional[Type[P]] = None) -> Optional[P]:
        """Navigates back and waits for the url to change; returns a `page_class` page if given."""
        self.driver.wait_for_url_changed(action=self.driver.back)
        self.wait_for_ready()
        if page_class is not None:
            return page_class(self.context)
        return None

    def refresh(self):
        logger.debug("Page will be refreshed")
        self.context.refresh()
        self.wait_for_ready()

    def close(self):
        logger.debug("Window/tab will be closed")
        if self.driver.current_window_handle == self.context.main_window:
            logger.warning(
                "Closing of the main window is forbidden. Use close only on pages opened from the main window."
            )
            return
        self.driver.close()
        if self.context.main_window:
            self.driver.switch_to.window(self.context.main_window)

    def is_ready(self) -> bool:
        return self.context.is_ready()

    def wait_for_ready(self):
        self.context.wait_for_ready()
