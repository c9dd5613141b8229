import string
from enum import Enum
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict
from selenium.webdriver.common.by import By as By_

from webdriver_components.exceptions import UnsupportedOperationError

__all__ = [
    "By",
    "Locator",
    "XPathWithSubstringLocator",
    "TestIdLocator",
]

_XPATH_TRANSLATE_CASE = f"translate(., '{string.ascii_uppercase}', '{string.ascii_lowercase}')"


class By(Enum):
    """
    An Enum based on selenium's By object, so that values can be explicitly declared.
    """

    ID = By_.ID
    XPATH = By_.XPATH
    LINK_TEXT = By_.LINK_TEXT
    PARTIAL_LINK_TEXT = By_.PARTIAL_LINK_TEXT
    NAME = By_.NAME
    TAG_NAME = By_.TAG_NAME
    CLASS_NAME = By_.CLASS_NAME
    CSS_SELECTOR = By_.CSS_SELECTOR


class Locator(BaseModel):
    """
    Describes how to find zero or more elements in a search context. A locator is frozen
    once built; components keep the same locator for every attempt of a wait.

    Usage:

        danger_locator = Locator(search_method=By.CSS_SELECTOR, search_value='div.panel.panel-danger')
        driver.find_element(*danger_locator.payload)
    """

    model_config = ConfigDict(frozen=True)

    search_method: By
    search_value: Optional[str] = None

    @property
    def payload(self) -> Tuple[str, str]:
        return self.search_method.value, self.selector

    @property
    def selector(self) -> str:
        return self.search_value or ""

    @property
    def description(self) -> str:
        desc = f"{self.search_method.value}"
        if self.search_value:
            desc = f'{desc} whose value is "{self.search_value}"'
        return desc

    def nth(self, index: int) -> "Locator":
        """
        Returns an XPath locator matching only the index-th (1-based) element
        matched by this one, e.g. '(//li)[3]'.
        """
        if self.search_method is not By.XPATH:
            raise UnsupportedOperationError(
                f"Used mechanism '{self.search_method.value}' isn't supported; please use only XPath locators."
            )
        if index < 1:
            raise ValueError(f"XPath indexes start at 1, got {index}")
        return Locator(search_method=By.XPATH, search_value=f"({self.selector})[{index}]")

    def __str__(self) -> str:
        return f"By.{self.search_method.name}: {self.selector}"


class XPathWithSubstringLocator(Locator):
    """
    The CSS spec does not allow for selectors based on element text, making XPath ideal for
    such searches. This subclass searches for a given tag with the substring displayed; matches are
    case-insensitive.

    locator = XPathWithSubstringLocator(tag='div', displayed_substring='hello')  # will match <div>HELLO</div>
    """

    search_method: Literal[By.XPATH] = By.XPATH
    tag: str
    displayed_substring: str

    @property
    def selector(self) -> str:
        return _xpath_contains(f"//{self.tag}", self.displayed_substring)

    @property
    def description(self) -> str:
        desc = f"tag[{self.tag}]"
        if self.displayed_substring:
            desc = f'{desc} containing the string "{self.displayed_substring}"'
        return desc


class TestIdLocator(Locator):
    """Finds elements by their data-testid attribute."""

    __test__ = False  # keep pytest from collecting this class

    search_method: Literal[By.CSS_SELECTOR] = By.CSS_SELECTOR
    test_id: str

    @property
    def selector(self) -> str:
        return f"[data-testid='{self.test_id}']"

    @property
    def description(self) -> str:
        return f'test id "{self.test_id}"'


def _xpath_contains(node, substring):
    if '"' in substring:
        raise ValueError("double quotes in substring not supported")
    substring = substring.lower()
    return f'{node}[contains({_XPATH_TRANSLATE_CASE}, "{substring}")]'
