from typing import Optional, Tuple

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_WINDOW_SIZE = "1920,1080"


class Settings(BaseSettings):
    """
    Automatically derives from environment variables (prefixed with WDC_, e.g.
    WDC_PAGE_ELEMENT_TIMEOUT=20) and translates truthy/falsey strings into bools.
    Anything that is better expressed per run is a command-line option instead;
    see 'pytest_addoption()' in the plugin.
    """

    model_config = SettingsConfigDict(env_prefix="WDC_", env_file=".env", extra="ignore")

    # Seconds a component waits for an element (or a state of it).
    page_element_timeout: float = 10
    # Seconds to wait for navigation and page readiness.
    page_load_timeout: float = 30
    poll_interval: float = 0.5

    base_url: Optional[str] = None
    user_name: Optional[str] = None
    user_password: Optional[str] = None

    headless: bool = True
    # "width,height"; the window is maximized when unset.
    window_size: Optional[str] = None
    selenium_server: Optional[str] = None

    logs_path: Optional[str] = None
    # Keep per-test logs and artifacts for passing tests too.
    store_logs_always: bool = False

    # If set to True, will generate a new browser instance within every request
    # for a given scope, instead of only creating a single instance and generating
    # contexts for each test.
    # This has a significant performance impact,
    # but sometimes cannot be avoided.
    disable_session_browser: bool = False

    @field_validator("*", mode="before")
    @classmethod
    def handle_empty_string(cls, v, info):
        if isinstance(v, str) and not v.strip():
            return cls.model_fields[info.field_name].default
        return v

    @field_validator("window_size")
    @classmethod
    def validate_window_size(cls, v):
        if v is not None:
            parse_window_size(v)
        return v

    @model_validator(mode="after")
    def headless_needs_window_size(self):
        if self.headless and not self.window_size:
            self.window_size = DEFAULT_WINDOW_SIZE
        return self

    @property
    def window_dimensions(self) -> Optional[Tuple[int, int]]:
        if not self.window_size:
            return None
        return parse_window_size(self.window_size)


def parse_window_size(value: str, delimiter: str = ",") -> Tuple[int, int]:
    format_error = (
        f"Accepted format is 'width{delimiter}height' (e.g. 1920{delimiter}1080 or 375{delimiter}850) "
        f"and width and height must be greater than 0."
    )
    width, sep, height = value.partition(delimiter)
    if not sep or not width.strip():
        raise ValueError(f"Window size '{value}' doesn't contain width and height separated by '{delimiter}'. {format_error}")
    try:
        size = int(width.strip()), int(height.strip())
    except ValueError:
        raise ValueError(f"Window size '{value}' cannot be parsed. {format_error}") from None
    if min(size) <= 0:
        raise ValueError(f"Window size '{value}' cannot be parsed. {format_error}")
    return size
