from typing import Dict, List, Optional, Tuple
from urllib.parse import urlsplit

import pytest
from selenium.common.exceptions import NoSuchElementException, StaleElementReferenceException

from webdriver_components.context import TestContext
from webdriver_components.locators import Locator
from webdriver_components.settings import Settings


class FakeSearchContext:
    """
    Answers find_element(s) from registered matches. A queue registered with
    `queue` is consumed one result per lookup (exceptions are raised), and its last
    entry keeps being returned.
    """

    def __init__(self):
        self.matches: Dict[Tuple[str, str], List["FakeElement"]] = {}
        self.queued: Dict[Tuple[str, str], list] = {}
        self.lookups = 0

    def add(self, locator: Locator, *elements: "FakeElement"):
        self.matches[locator.payload] = list(elements)
        return elements[0] if len(elements) == 1 else elements

    def add_raw(self, by: str, value: str, *elements: "FakeElement"):
        self.matches[(by, value)] = list(elements)

    def queue(self, locator: Locator, *results):
        self.queued[locator.payload] = list(results)

    def find_element(self, by, value=None):
        self.lookups += 1
        queue = self.queued.get((by, value))
        if queue:
            result = queue.pop(0) if len(queue) > 1 else queue[0]
            if isinstance(result, BaseException):
                raise result
            return result
        matches = self.matches.get((by, value))
        if not matches:
            raise NoSuchElementException(f"no such element: {by}={value}")
        return matches[0]

    def find_elements(self, by, value=None):
        return list(self.matches.get((by, value), []))


class FakeElement(FakeSearchContext):
    def __init__(
        self,
        text: str = "",
        displayed: bool = True,
        enabled: bool = True,
        selected: bool = False,
        tag_name: str = "div",
        attributes: Optional[dict] = None,
        properties: Optional[dict] = None,
        css: Optional[dict] = None,
        location: Optional[dict] = None,
        size: Optional[dict] = None,
    ):
        super().__init__()
        self._text = text
        self.displayed = displayed
        self.enabled = enabled
        self.selected = selected
        self.tag_name = tag_name
        self.attributes = attributes or {}
        self.properties = properties or {}
        self.css = css or {}
        self._location = location or {"x": 0, "y": 0}
        self._size = size or {"width": 10, "height": 10}
        self.stale = False
        self.clicks = 0
        self.keys: List[str] = []
        self.clears = 0

    def _check(self):
        if self.stale:
            raise StaleElementReferenceException("stale element reference: element is not attached to the page")

    @property
    def text(self) -> str:
        self._check()
        return self._text

    @property
    def location(self) -> dict:
        self._check()
        return self._location

    @property
    def size(self) -> dict:
        self._check()
        return self._size

    def is_displayed(self) -> bool:
        self._check()
        return self.displayed

    def is_enabled(self) -> bool:
        self._check()
        return self.enabled

    def is_selected(self) -> bool:
        self._check()
        return self.selected

    def click(self):
        self._check()
        self.clicks += 1
        self.selected = not self.selected

    def send_keys(self, *value):
        self._check()
        self.keys.append("".join(value))

    def clear(self):
        self._check()
        self.clears += 1

    def get_dom_attribute(self, name):
        self._check()
        return self.attributes.get(name)

    def get_attribute(self, name):
        return self.get_dom_attribute(name)

    def get_property(self, name):
        self._check()
        return self.properties.get(name)

    def value_of_css_property(self, name):
        self._check()
        return self.css.get(name, "")

    def find_element(self, by, value=None):
        self._check()
        return super().find_element(by, value)

    def find_elements(self, by, value=None):
        self._check()
        return super().find_elements(by, value)


class FakeSwitchTo:
    def __init__(self, driver: "FakeDriver"):
        self.driver = driver

    def window(self, name):
        self.driver.current_window_handle = name


class FakeDriver(FakeSearchContext):
    """Stands in for the Browser; only what pages and components call is implemented."""

    def __init__(self, current_url: str = "https://example.com/home?tab=1"):
        super().__init__()
        self.current_url = current_url
        self.history: List[str] = []
        self.ready = True
        self.ready_waits = 0
        self.refreshes = 0
        self.closed: List[str] = []
        self.scripts: List[tuple] = []
        self.script_result = None
        self.window_handles = ["main"]
        self.current_window_handle = "main"
        self.switch_to = FakeSwitchTo(self)

    @property
    def url_path_and_query(self) -> str:
        parts = urlsplit(self.current_url)
        path = parts.path or "/"
        return f"{path}?{parts.query}" if parts.query else path

    def get(self, url: str):
        self.history.append(self.current_url)
        self.current_url = url

    def back(self):
        self.current_url = self.history.pop()

    def refresh(self):
        self.refreshes += 1

    def close(self):
        self.closed.append(self.current_window_handle)
        self.window_handles.remove(self.current_window_handle)

    def execute_script(self, script, *args):
        self.scripts.append((script, args))
        return self.script_result

    def is_page_ready(self) -> bool:
        return self.ready

    def wait_for_ready(self, timeout=None):
        self.ready_waits += 1

    def wait_for_url_changed(self, url=None, action=None):
        if action is not None:
            action()


@pytest.fixture
def fast_settings() -> Settings:
    return Settings(
        page_element_timeout=0.2,
        page_load_timeout=0.2,
        poll_interval=0.01,
        base_url="https://example.com",
        user_name=None,
        user_password=None,
    )


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def context(driver, fast_settings) -> TestContext:
    context = TestContext(driver=driver, settings=fast_settings, test_id="unit")
    context.main_window = "main"
    return context
