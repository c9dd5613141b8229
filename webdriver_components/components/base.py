import time
from logging import getLogger
from typing import Callable, List, Optional, Type, TypeVar

from selenium.common.exceptions import (
    NoSuchElementException,
    StaleElementReferenceException,
    WebDriverException,
)
from selenium.webdriver.common.action_chains import ActionChains
from selenium.webdriver.remote.webelement import WebElement

from webdriver_components.context import TestContext
from webdriver_components.exceptions import UnsupportedOperationError, WaitTimeoutError
from webdriver_components.locators import By, Locator
from webdriver_components.wait import Wait

logger = getLogger(__name__)

__all__ = ["BaseComponent", "locate"]

C = TypeVar("C", bound="BaseComponent")

Guard = Callable[[WebElement], Optional[WebElement]]

BODY = Locator(search_method=By.TAG_NAME, search_value="body")

# Stale references are retried this many times per evaluation before they propagate.
DEFAULT_STALE_RETRIES = 1

_IS_DISPLAYED_JS = """
var elem = arguments[0];
var style = getComputedStyle(elem);
if (style.display === 'none') return false;
if (style.visibility !== 'visible') return false;
if (style.opacity < 0.1) return false;
if (elem.offsetWidth + elem.offsetHeight + elem.getBoundingClientRect().height +
    elem.getBoundingClientRect().width === 0) {
    return false;
}
var elemCenter = {
    x: elem.getBoundingClientRect().left + elem.offsetWidth / 2,
    y: elem.getBoundingClientRect().top + elem.offsetHeight / 2
};
if (elemCenter.x < 0) return false;
if (elemCenter.x > (document.documentElement.clientWidth || window.innerWidth)) return false;
if (elemCenter.y < 0) return false;
if (elemCenter.y > (document.documentElement.clientHeight || window.innerHeight)) return false;
var pointContainer = document.elementFromPoint(elemCenter.x, elemCenter.y);
do {
    if (pointContainer === elem) return true;
} while (pointContainer = pointContainer.parentNode);
return false;
"""

_OWN_TEXT_JS = """
return Array.prototype.filter.call(arguments[0].childNodes, function (node) {
    return node.nodeType === Node.TEXT_NODE;
}).map(function (node) { return node.textContent; }).join('').trim();
"""


def itself(element):
    return element


def displayed(element):
    return element if element.is_displayed() else None


def not_displayed(element):
    return element if not element.is_displayed() else None


def enabled(element):
    return element if element.is_displayed() and element.is_enabled() else None


def enabled_only(element):
    return element if element.is_enabled() else None


def disabled(element):
    return element if element.is_displayed() and not element.is_enabled() else None


def _name(func) -> str:
    return getattr(func, "__name__", repr(func))


def locate(search_context, locator: Locator, wait: Wait) -> WebElement:
    """Waits for the locator to match in the search context and returns the element it found."""
    logger.debug(f"Waiting for presence of the element located by '{locator}'")
    return (
        wait.ignore(NoSuchElementException)
        .set_message(f"Element located by '{locator}' wasn't found during the timeout.")
        .until(lambda: search_context.find_element(*locator.payload))
    )


class BaseComponent:
    """
    Wraps whatever element `locator` matches within `search_context` (the driver,
    unless given). The element is never cached: every check or action locates it
    again and immediately evaluates it, so a re-rendered node is picked up instead
    of failing on a stale reference.

    A component is itself a search context, so components can be nested:

        form = BaseComponent(context, Locator(search_method=By.ID, search_value="login"))
        submit = Button(context, Locator(search_method=By.CSS_SELECTOR, search_value="button"), form)
    """

    def __init__(self, context: TestContext, locator: Optional[Locator] = None, search_context=None):
        self.context = context
        self.locator = locator or BODY
        self._search_context = search_context

    def __str__(self):
        return f"'{type(self).__name__}' with locator '{self.locator}'"

    def __repr__(self):
        return f"{type(self).__name__}(locator={self.locator!r})"

    @property
    def driver(self):
        return self.context.driver

    @property
    def search_context(self):
        if self._search_context is None:
            return self.context.driver
        return self._search_context

    def set_search_context(self, search_context):
        self._search_context = search_context

    @property
    def element(self) -> WebElement:
        """
        A freshly located element; waits for it to be present first. Checks and
        child lookups never go through here, they locate the element without waiting.
        """
        return locate(self.search_context, self.locator, self.context.get_wait())

    # The evaluator

    def evaluate_bool(
        self,
        guard: Guard,
        action: Optional[Callable[[WebElement], None]] = None,
        element_missing_result: bool = False,
        driver_error_result: bool = False,
        stale_retries: int = DEFAULT_STALE_RETRIES,
    ) -> bool:
        """
        Locates the element, passes it through `guard` and, if the guard returns it,
        runs `action` on it right away.

        Returns True when the guard passed (and the action ran), False when the guard
        returned None. A missing element returns `element_missing_result` (pass True when
        waiting for absence); any other driver error returns `driver_error_result`.
        A stale reference re-runs the whole evaluation, at most `stale_retries` times,
        after which the StaleElementReferenceException propagates.
        """
        try:
            logger.debug(f"Trying to evaluate '{_name(guard)}' on {self}.")
            element = guard(self._current_element())
            if element is None:
                logger.debug(f"{self} matching the condition not found.")
                return False
            if action is not None:
                logger.debug(f"Trying to evaluate action '{_name(action)}' on {self}.")
                action(element)
            return True
        except StaleElementReferenceException:
            if stale_retries <= 0:
                logger.debug(f"Stale reference again for {self}; giving up.")
                raise
            logger.debug(f"Catching stale reference for {self}; evaluating again.")
            return self.evaluate_bool(
                guard,
                action,
                element_missing_result=element_missing_result,
                driver_error_result=driver_error_result,
                stale_retries=stale_retries - 1,
            )
        except NoSuchElementException:
            logger.debug(f"Catching no such element for {self}.")
            return element_missing_result
        except WebDriverException as e:
            logger.debug(f"Catching WebDriverException for {self}: {e.msg}")
            return driver_error_result

    def evaluate_string(self, guard: Guard, action: Callable[[WebElement], Optional[str]]) -> Optional[str]:
        """
        Like evaluate_bool, but returns what `action` computes from the element.
        A failed guard, a missing element or a stale reference all return None;
        other errors propagate.
        """
        try:
            logger.debug(f"Trying to evaluate '{_name(guard)}' on {self}.")
            element = guard(self._current_element())
            if element is None:
                logger.debug(f"{self} matching the condition not found.")
                return None
            return action(element)
        except StaleElementReferenceException:
            logger.debug(f"Catching stale reference for {self}.")
            return None
        except NoSuchElementException:
            logger.debug(f"Catching no such element for {self}.")
            return None

    # States

    def is_present(self) -> bool:
        return self.evaluate_bool(itself)

    def is_not_present(self) -> bool:
        # A driver error means we can't tell yet, so it must not count as absent.
        return not self.evaluate_bool(itself, driver_error_result=True)

    def is_displayed(self) -> bool:
        return self.evaluate_bool(displayed)

    def is_not_displayed(self) -> bool:
        return self.evaluate_bool(not_displayed, element_missing_result=True)

    def is_enabled(self) -> bool:
        return self.evaluate_bool(enabled)

    def is_enabled_only(self) -> bool:
        return self.evaluate_bool(enabled_only)

    def is_disabled(self) -> bool:
        return self.evaluate_bool(disabled)

    def is_displayed_js(self) -> bool:
        return bool(self.driver.execute_script(_IS_DISPLAYED_JS, self.element))

    def is_clicked(self) -> bool:
        return self.evaluate_bool(displayed, lambda element: element.click(), driver_error_result=True)

    def is_height_changing(self, sleep: float = 0.1) -> bool:
        before = self.get_css_value("height")
        time.sleep(sleep)
        return before != self.get_css_value("height")

    def overlaps(self, other: "BaseComponent") -> bool:
        first, second = _bounds(self.element), _bounds(other.element)
        return not (
            first["top"] > second["bottom"]
            or first["right"] < second["left"]
            or first["bottom"] < second["top"]
            or first["left"] > second["right"]
        )

    def vertically_overlaps(self, other: "BaseComponent") -> bool:
        first, second = _bounds(self.element), _bounds(other.element)
        return not (first["top"] > second["bottom"] or first["bottom"] < second["top"])

    # Waits

    def _wait_until(self, condition: Callable[[], bool], message: str, timeout: Optional[float] = None):
        return self.context.get_wait(timeout).set_message(message).until(condition)

    def wait_for_present(self, timeout: Optional[float] = None):
        self._wait_until(self.is_present, f"{self} should be present on the page during the timeout.", timeout)

    def wait_for_not_present(self, timeout: Optional[float] = None):
        self._wait_until(self.is_not_present, f"{self} shouldn't be present on the page during the timeout.", timeout)

    def wait_for_displayed(self, timeout: Optional[float] = None):
        self._wait_until(self.is_displayed, f"{self} should be displayed on the page during the timeout.", timeout)

    def wait_for_not_displayed(self, timeout: Optional[float] = None):
        self._wait_until(
            self.is_not_displayed, f"{self} shouldn't be displayed on the page during the timeout.", timeout
        )

    def wait_for_enabled(self, timeout: Optional[float] = None):
        self._wait_until(self.is_enabled, f"{self} should be enabled on the page during the timeout.", timeout)

    def wait_for_disabled(self, timeout: Optional[float] = None):
        self._wait_until(self.is_disabled, f"{self} should be disabled on the page during the timeout.", timeout)

    def is_ready(self) -> bool:
        return self.context.is_ready()

    def wait_for_ready(self):
        self.context.wait_for_ready()

    # Values

    def get_text(self) -> str:
        """
        The rendered text of the element. Selenium normalizes whitespace here ('a   b' => 'a b');
        use get_dom_property('innerHTML') to keep it.
        """
        text = self._wait_until(
            lambda: self.evaluate_string(displayed, lambda element: element.text),
            f"Couldn't get text of the {self} during the timeout.",
        )
        logger.debug(f"Text of the {self} is '{text}'.")
        return text

    def get_inner_text(self) -> str:
        """Text of the element's own text nodes, without the text of its children."""
        text = self._wait_until(
            lambda: self.evaluate_string(displayed, lambda element: self.driver.execute_script(_OWN_TEXT_JS, element)),
            f"Couldn't get inner text of the {self} during the timeout.",
        )
        logger.debug(f"Inner text of the {self} is '{text}'.")
        return text

    def get_dom_attribute(self, name: str, timeout: Optional[float] = None) -> str:
        value = self._wait_until(
            lambda: self.evaluate_string(itself, lambda element: element.get_dom_attribute(name)),
            f"Couldn't get value of the DOM attribute '{name}' of the {self} during the timeout.",
            timeout,
        )
        logger.debug(f"Value of the DOM attribute '{name}' of the {self} is '{value}'.")
        return value

    def get_dom_property(self, name: str, timeout: Optional[float] = None) -> str:
        value = self._wait_until(
            lambda: self.evaluate_string(itself, lambda element: element.get_property(name)),
            f"Couldn't get value of the DOM property '{name}' of the {self} during the timeout.",
            timeout,
        )
        logger.debug(f"Value of the DOM property '{name}' of the {self} is '{value}'.")
        return value

    def try_get_dom_attribute(self, name: str, timeout: float = 2) -> Optional[str]:
        """Like get_dom_attribute, but None if the attribute never showed up."""
        try:
            return self.get_dom_attribute(name, timeout)
        except WaitTimeoutError:
            logger.warning(f"Cannot find DOM attribute '{name}' of the {self}.")
            return None

    def get_css_value(self, name: str) -> str:
        return self._wait_until(
            lambda: self.evaluate_string(itself, lambda element: element.value_of_css_property(name)),
            f"Couldn't get CSS value '{name}' of the {self} during the timeout.",
        )

    def get_location(self) -> dict:
        return self.element.location

    def get_size(self) -> dict:
        return self.element.size

    # Interaction

    def click(self):
        self._wait_until(self.is_clicked, f"{self} wasn't clicked during the timeout.")

    def click_js(self):
        self.driver.execute_script("arguments[0].click();", self.element)

    def click_if_displayed(self, action: Optional[Callable[[], None]] = None) -> bool:
        if not self.is_displayed():
            return False
        (action or self.click)()
        return True

    def scroll_to(self, child: Optional["BaseComponent"] = None):
        """
        Scrolls the element into the middle of the viewport. With `child`, scrolls to
        this component first (which may lazily render the child), then to the child.
        """
        if child is not None:
            self.wait_for_present()
            self.scroll_to()
            child.wait_for_present()
            child.scroll_to()
            return
        logger.debug(f"Scrolling to {self}.")
        self.evaluate_bool(itself, self._scroll_into_view)
        self.wait_for_ready()

    def _scroll_into_view(self, element: WebElement):
        self.driver.execute_script('arguments[0].scrollIntoView({block: "center", inline: "center"});', element)

    def scroll_to_and_click(self):
        self.scroll_to()
        self.click()
        self.wait_for_ready()

    def hover(self):
        ActionChains(self.driver).move_to_element(self.element).perform()
        self.wait_for_ready()

    def hover_and_click(self):
        ActionChains(self.driver).move_to_element(self.element).click().perform()
        self.wait_for_ready()

    def double_click(self):
        ActionChains(self.driver).double_click(self.element).perform()
        self.wait_for_ready()

    # Search context

    def _current_element(self) -> WebElement:
        # No waiting here: a missing element raises NoSuchElementException, so a
        # child evaluated within this component reads as missing too.
        return self.search_context.find_element(*self.locator.payload)

    def find_element(self, by=By.ID.value, value: Optional[str] = None) -> WebElement:
        if isinstance(by, By):
            by = by.value
        logger.debug(f"Trying to find element '{by}: {value}' in {self}.")
        return self._current_element().find_element(by, value)

    def find_elements(self, by=By.ID.value, value: Optional[str] = None) -> List[WebElement]:
        if isinstance(by, By):
            by = by.value
        for attempt in range(2):
            try:
                return self._current_element().find_elements(by, value)
            except NoSuchElementException:
                logger.debug(f"{self} isn't present, so nothing inside it matches '{by}: {value}'.")
                return []
            except StaleElementReferenceException:
                if attempt:
                    logger.critical(
                        f"Catching stale reference in {self} again. "
                        f"Please investigate if there is a missing wait-for step."
                    )
                    raise
                logger.debug(f"Catching stale reference in {self}. Trying to find elements again.")

    def find_components(self, component_class: Type[C], locator: Locator) -> List[C]:
        """
        One component per element `locator` (an XPath) currently matches within this one,
        each bound to its own indexed locator, e.g. '(.//li)[2]'.
        """
        if locator.search_method is not By.XPATH:
            raise UnsupportedOperationError(
                f"Used mechanism '{locator.search_method.value}' isn't supported; please use only XPath locators."
            )
        count = len(self.find_elements(*locator.payload))
        return [component_class(self.context, locator.nth(i), self) for i in range(1, count + 1)]


def _bounds(element: WebElement) -> dict:
    location, size = element.location, element.size
    return {
        "top": location["y"],
        "left": location["x"],
        "bottom": location["y"] + size["height"],
        "right": location["x"] + size["width"],
    }
