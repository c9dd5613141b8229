from logging import getLogger
from typing import Dict

from selenium.common.exceptions import NoSuchElementException
from selenium.webdriver.common.keys import Keys
from selenium.webdriver.support.select import Select

from webdriver_components.components.base import BaseComponent, enabled
from webdriver_components.exceptions import NoSuchValueError

logger = getLogger(__name__)

__all__ = ["Button", "Checkbox", "DropDownList", "Simple", "TextInput"]


class Simple(BaseComponent):
    """A plain element; clicking it does not wait for the page to settle."""

    def scroll_to_and_click(self):
        self.scroll_to()
        self.click()


class Button(BaseComponent):
    def click(self):
        self.wait_for_enabled()
        super().click()
        self.wait_for_ready()

    def click_js(self):
        self.wait_for_enabled()
        super().click_js()
        self.wait_for_ready()


class TextInput(BaseComponent):
    def send_keys(self, text: str):
        if text is None:
            raise ValueError("text cannot be None")
        logger.debug(f"Text to be filled into {self} is '{text}'.")
        self._wait_until(lambda: self.is_send_keys(text), f"{self} couldn't be set during the timeout.")

    def is_send_keys(self, text: str) -> bool:
        return self.evaluate_bool(enabled, lambda element: element.send_keys(text))

    def clear(self):
        self._wait_until(self.is_cleared, f"{self} couldn't be cleared during the timeout.")

    def is_cleared(self) -> bool:
        return self.evaluate_bool(enabled, lambda element: element.clear())

    def clear_js(self):
        self.wait_for_enabled()
        self.driver.execute_script("arguments[0].value = '';", self.element)
        self._wait_until(lambda: not self.get_text_js(), f"{self} couldn't be cleared during the timeout.")

    def clear_with_backspace(self):
        self.wait_for_enabled()
        # the cursor is not always at the end of the text
        self.element.send_keys(Keys.END)
        while self.get_text_js():
            self.element.send_keys(Keys.BACKSPACE)

    def send_keys_js(self, text: str):
        if text is None:
            raise ValueError("text cannot be None")
        logger.debug(f"Text to be filled into {self} is '{text}'.")
        self.wait_for_enabled()
        self.driver.execute_script("arguments[0].value = arguments[1];", self.element, text)

    def get_text_js(self) -> str:
        text = self.driver.execute_script("return arguments[0].value;", self.element) or ""
        logger.debug(f"Text of the {self} is '{text}'.")
        return text

    def get_value(self) -> str:
        value = self.get_dom_property("value")
        logger.debug(f"Value of the {self} is '{value}'.")
        return value

    def send_enter(self):
        self.send_keys(Keys.ENTER)

    def send_space(self):
        self.send_keys(Keys.SPACE)

    def send_backspace(self):
        self.send_keys(Keys.BACKSPACE)

    def select_all(self):
        self.send_keys(Keys.CONTROL + "a")

    def hover_and_click(self):
        self.wait_for_enabled()
        super().hover_and_click()


def _selected(element):
    return element if element.is_selected() else None


def _not_selected(element):
    return element if not element.is_selected() else None


class Checkbox(BaseComponent):
    def is_checked(self) -> bool:
        return self.evaluate_bool(_selected)

    def is_not_checked(self) -> bool:
        return self.evaluate_bool(_not_selected)

    def check(self):
        if self.is_not_checked():
            self._wait_until(lambda: self._toggle() and self.is_checked(), f"{self} wasn't checked during the timeout.")

    def uncheck(self):
        if self.is_checked():
            self._wait_until(
                lambda: self._toggle() and self.is_not_checked(), f"{self} wasn't unchecked during the timeout."
            )

    def _toggle(self) -> bool:
        self.click()
        return True


class DropDownList(BaseComponent):
    """A native <select>; every call wraps a freshly located element."""

    @property
    def select(self) -> Select:
        return Select(self.element)

    def select_first(self):
        self.select.select_by_index(0)

    def select_last(self):
        select = self.select
        select.select_by_index(len(select.options) - 1)

    def select_next(self) -> bool:
        select = self.select
        options = select.options
        next_position = options.index(select.first_selected_option) + 1
        if next_position >= len(options):
            logger.warning(f"Selected value of the {self} is the last one; there is no next option.")
            return False
        select.select_by_index(next_position)
        return True

    def select_by_index(self, index: int):
        self.select.select_by_index(index)

    def select_by_value(self, value: str):
        select = self.select
        try:
            select.select_by_value(value)
        except NoSuchElementException as e:
            raise NoSuchValueError(f"{self} has no option with the value '{value}'") from e

    def select_by_text(self, text: str):
        select = self.select
        try:
            select.select_by_visible_text(text)
        except NoSuchElementException as e:
            raise NoSuchValueError(f"{self} has no option with the text '{text}'") from e

    def get_options(self) -> Dict[int, str]:
        return {i: option.text for i, option in enumerate(self.select.options)}

    def get_selected_option_value(self) -> str:
        return self.select.first_selected_option.get_property("value") or ""

    def get_selected_option_text(self) -> str:
        return self.select.first_selected_option.text
