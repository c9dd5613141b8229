from webdriver_components.context import TestContext
from webdriver_components.settings import Settings
from webdriver_components.wait import Wait


def test_get_wait_uses_settings(context, fast_settings):
    wait = context.get_wait()
    assert isinstance(wait, Wait)
    assert wait.timeout == fast_settings.page_element_timeout
    assert wait.poll_interval == fast_settings.poll_interval
    assert wait.ignored_exceptions == ()


def test_get_wait_overrides(context):
    wait = context.get_wait(timeout=3, poll_interval=0.1, ignored_exceptions=[KeyError])
    assert (wait.timeout, wait.poll_interval, wait.ignored_exceptions) == (3, 0.1, (KeyError,))


def test_waits_are_independent(context):
    context.wait.set_message("first")
    assert context.wait.message == ""
    assert context.get_wait() is not context.get_wait()


def test_page_load_wait(context, fast_settings):
    assert context.page_load_wait().timeout == fast_settings.page_load_timeout


def test_ready_and_refresh(context, driver):
    assert context.is_ready()
    driver.ready = False
    assert not context.is_ready()
    context.wait_for_ready()
    context.refresh()
    assert driver.ready_waits == 1
    assert driver.refreshes == 1


def test_default_settings(driver, monkeypatch):
    monkeypatch.delenv("WDC_PAGE_ELEMENT_TIMEOUT", raising=False)
    context = TestContext(driver)
    assert isinstance(context.settings, Settings)
    assert context.main_window is None
    assert not context.is_logged_in
