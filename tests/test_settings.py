import pytest
from pydantic import ValidationError

from webdriver_components.settings import Settings, parse_window_size


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmpdir):
    for name in ("PAGE_ELEMENT_TIMEOUT", "BASE_URL", "HEADLESS", "WINDOW_SIZE", "STORE_LOGS_ALWAYS", "USER_NAME"):
        monkeypatch.delenv(f"WDC_{name}", raising=False)
    # A .env in the working directory would be read too.
    monkeypatch.chdir(str(tmpdir))


def test_defaults():
    settings = Settings()
    assert settings.page_element_timeout == 10
    assert settings.page_load_timeout == 30
    assert settings.poll_interval == 0.5
    assert settings.base_url is None
    assert settings.headless is True
    assert settings.window_size == "1920,1080"
    assert settings.window_dimensions == (1920, 1080)


def test_from_environment(monkeypatch):
    monkeypatch.setenv("WDC_PAGE_ELEMENT_TIMEOUT", "20")
    monkeypatch.setenv("WDC_BASE_URL", "https://example.com")
    monkeypatch.setenv("WDC_STORE_LOGS_ALWAYS", "1")
    settings = Settings()
    assert settings.page_element_timeout == 20
    assert settings.base_url == "https://example.com"
    assert settings.store_logs_always is True


def test_from_env_file(tmpdir):
    tmpdir.join(".env").write("WDC_USER_NAME=jane\n")
    assert Settings().user_name == "jane"


def test_blank_values_use_defaults(monkeypatch):
    monkeypatch.setenv("WDC_PAGE_ELEMENT_TIMEOUT", " ")
    monkeypatch.setenv("WDC_BASE_URL", "")
    settings = Settings()
    assert settings.page_element_timeout == 10
    assert settings.base_url is None


def test_window_size_not_defaulted_with_head(monkeypatch):
    monkeypatch.setenv("WDC_HEADLESS", "false")
    settings = Settings()
    assert settings.window_size is None
    assert settings.window_dimensions is None


def test_window_size_from_environment(monkeypatch):
    monkeypatch.setenv("WDC_WINDOW_SIZE", "375, 850")
    assert Settings().window_dimensions == (375, 850)


@pytest.mark.parametrize("value", ["1920", "1920x1080", "a,b", "0,100", "-5,100", ",100"])
def test_invalid_window_size(value):
    with pytest.raises(ValidationError):
        Settings(window_size=value)


@pytest.mark.parametrize(
    "value, delimiter, expected",
    [("1920,1080", ",", (1920, 1080)), (" 800 , 600 ", ",", (800, 600)), ("1024x768", "x", (1024, 768))],
)
def test_parse_window_size(value, delimiter, expected):
    assert parse_window_size(value, delimiter) == expected


def test_parse_window_size_error_message():
    with pytest.raises(ValueError) as excinfo:
        parse_window_size("1920")
    assert "separated by ','" in str(excinfo.value)
