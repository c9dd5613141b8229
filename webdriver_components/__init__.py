from .components import BaseComponent, Button, Checkbox, DropDownList, Simple, TextInput
from .context import TestContext
from .exceptions import (
    ConfigurationError,
    NoSuchValueError,
    UnexpectedCountError,
    UnsupportedOperationError,
    WaitTimeoutError,
)
from .locators import By, Locator, TestIdLocator, XPathWithSubstringLocator
from .pages import BasePage
from .settings import Settings
from .wait import Wait
