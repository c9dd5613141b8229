import logging
from typing import Iterable, Optional, Type

from webdriver_components.settings import Settings
from webdriver_components.wait import Wait

logger = logging.getLogger(__name__)


class TestContext:
    """
    Everything a page or component needs to talk to the browser for one test:
    the driver, the settings, a logger tagged with the test id, and a factory
    for fresh waits. Pages and components receive it at construction.

        context = TestContext(driver=browser, settings=Settings())
        page = HomePage(context)
    """

    __test__ = False

    def __init__(self, driver, settings: Optional[Settings] = None, test_id: str = ""):
        self.driver = driver
        self.settings = settings or Settings()
        self.test_id = test_id
        self.logger = logging.LoggerAdapter(logging.getLogger("webdriver_components.test"), {"test_id": test_id})
        self.main_window: Optional[str] = None
        self.is_logged_in = False

    def __repr__(self):
        return f"{self.__class__.__name__}(test_id={self.test_id!r}, driver={self.driver!r})"

    def get_wait(
        self,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        ignored_exceptions: Iterable[Type[BaseException]] = (),
    ) -> Wait:
        """
        A new Wait for element-level conditions; unset values come from the settings.
        Every call returns a separate instance so messages never leak between waits.
        """
        if timeout is None:
            timeout = self.settings.page_element_timeout
        if poll_interval is None:
            poll_interval = self.settings.poll_interval
        logger.debug(f"Initialize custom wait with timeout '{timeout}(s)' and interval '{poll_interval}(s)'")
        return Wait(timeout=timeout, poll_interval=poll_interval, ignored_exceptions=ignored_exceptions)

    @property
    def wait(self) -> Wait:
        return self.get_wait()

    def page_load_wait(self) -> Wait:
        return self.get_wait(timeout=self.settings.page_load_timeout)

    def is_ready(self) -> bool:
        return self.driver.is_page_ready()

    def wait_for_ready(self):
        self.driver.wait_for_ready(timeout=self.settings.page_load_timeout)

    def refresh(self):
        self.driver.refresh()
