import logging
import os
import shutil
import sys
import tempfile
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Dict, Iterator, List, NamedTuple, Optional, Type

import pytest
from selenium import webdriver

from .browser import Browser, BrowserError, Chrome, Remote
from .context import TestContext
from .exceptions import WaitTimeoutError
from .models import Artifact, ArtifactKind, Outcome, Report, TestResult, WaitFailure, make_test_id
from .report_exporter import ReportExporter
from .settings import Settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Every browser gets these unless the chrome_options fixture is overridden.
CHROME_ARGUMENTS = (
    "--incognito",
    "--disable-application-cache",
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--remote-allow-origins=*",
    "--disable-search-engine-choice-screen",
)

# Fixture names a test may hold its browser under.
BROWSER_FIXTURES = ("browser", "class_browser")

_SETTINGS = Settings()


class CallSummary(NamedTuple):
    """What pytest_runtest_makereport saw of the test's call phase."""

    report: pytest.TestReport
    excinfo: Optional[pytest.ExceptionInfo]
    doc: Optional[str]


def pytest_addoption(parser):
    group = parser.getgroup("webdriver_components")
    group.addoption(
        "--selenium-server",
        action="store",
        dest="selenium_server",
        default=_SETTINGS.selenium_server or os.environ.get("REMOTE_SELENIUM"),
        help="Remote selenium webdriver to connect to (eg localhost:4444)",
    )
    group.addoption(
        "--report-dir",
        action="store",
        dest="report_dir",
        default=os.environ.get("REPORT_DIR", _SETTINGS.logs_path or os.path.join(os.getcwd(), "webdriver-report")),
        help="Where report.json, index.html, per-test logs and failure artifacts are written.",
    )
    group.addoption(
        "--report-title",
        action="store",
        dest="report_title",
        default="Webdriver Components Summary",
        help="Title of the HTML report. Override the report_title fixture for a constant one.",
    )
    group.addoption(
        "--base-url",
        action="store",
        dest="base_url",
        default=None,
        help="The url pages are relative to; overrides WDC_BASE_URL.",
    )


# Configuration


@pytest.fixture(scope="session")
def settings(request) -> Settings:
    """
    The settings read from the environment, with command-line options applied on top.
    Override this fixture to configure tests in code.
    """
    base_url = request.config.getoption("base_url")
    if base_url:
        return _SETTINGS.model_copy(update={"base_url": base_url})
    return _SETTINGS


@pytest.fixture(scope="session")
def selenium_server(request) -> Optional[str]:
    """The --selenium-server host, or None to run a local Chrome."""
    value = (request.config.getoption("selenium_server") or "").strip()
    return value or None


@pytest.fixture(scope="session")
def report_dir(request) -> str:
    """The report directory, emptied of the previous run's screenshots."""
    dir_ = request.config.getoption("report_dir")
    shutil.rmtree(os.path.join(dir_, "screenshots"), ignore_errors=True)
    os.makedirs(dir_, exist_ok=True)
    return dir_


@pytest.fixture(scope="session")
def report_title(request) -> str:
    return request.config.getoption("report_title")


# Browsers


@pytest.fixture(scope="session")
def chrome_options(settings) -> webdriver.ChromeOptions:
    """
    Extend it to add your own arguments:

        @pytest.fixture(scope='session')
        def chrome_options(chrome_options):
            chrome_options.add_argument("--lang=de")
            return chrome_options
    """
    options = webdriver.ChromeOptions()
    if settings.headless:
        options.add_argument("--headless=new")
    for argument in CHROME_ARGUMENTS:
        options.add_argument(argument)
    # Browser console logs are attached to failures.
    options.set_capability("goog:loggingPrefs", {"browser": "ALL"})
    return options


@pytest.fixture(scope="session")
def browser_args(selenium_server, chrome_options, settings) -> Dict[str, object]:
    args = {
        "options": chrome_options,
        "window_size": settings.window_dimensions,
        "page_load_timeout": settings.page_load_timeout,
        "poll_interval": settings.poll_interval,
    }
    if selenium_server:
        args["command_executor"] = f"http://{selenium_server}/wd/hub"
    return args


@pytest.fixture(scope="session")
def browser_class(browser_args) -> Type[Browser]:
    return Remote if "command_executor" in browser_args else Chrome


@pytest.fixture(scope="session")
def build_browser(browser_args, browser_class) -> Callable[[], Browser]:
    logger.info(f"Browsers will be {browser_class.__name__} instances built with {browser_args}")
    return lambda: browser_class(**browser_args)


@contextmanager
def running_browser(build_browser: Callable[[], Browser]) -> Iterator[Browser]:
    browser = build_browser()
    try:
        yield browser
    finally:
        logger.info(f"Trying to quit WebDriver session '{browser.session_id}'")
        browser.quit()


@pytest.fixture(scope="session")
def session_browser(build_browser) -> Browser:
    """
    One browser for the whole run; each test gets its own tab in it. Only started
    when a test needs it, and never with WDC_DISABLE_SESSION_BROWSER=1.
    """
    with running_browser(build_browser) as browser:
        yield browser


@pytest.fixture(scope="session")
def session_browser_disabled(settings) -> bool:
    if settings.disable_session_browser:
        logger.warning("Every test starts its own browser; this is a lot slower than sharing the session browser.")
    return settings.disable_session_browser


@pytest.fixture(scope="session")
def browser_context() -> Callable[..., Browser]:
    """
    Runs a block in a new tab of `browser`, deleting cookies and closing the tab afterwards:

        def test_something(browser_context, session_browser):
            with browser_context(session_browser) as browser:
                browser.get('https://www.example.com')

    Cookies of other domains survive delete_all_cookies; pass urls on those
    domains as `cookie_urls` to clear them too.
    """

    @contextmanager
    def inner(browser: Browser, cookie_urls: Optional[List[str]] = None) -> Iterator[Browser]:
        with browser.tab_context():
            try:
                yield browser
            finally:
                browser.delete_all_cookies()
                for url in cookie_urls or ():
                    browser.get(url)
                    browser.delete_all_cookies()

    return inner


@contextmanager
def _test_browser(request, build_browser, browser_context) -> Iterator[Browser]:
    if request.getfixturevalue("session_browser_disabled"):
        with running_browser(build_browser) as browser:
            yield browser
    else:
        with browser_context(request.getfixturevalue("session_browser")) as browser:
            yield browser


@pytest.fixture
def browser(request, build_browser, browser_context) -> Browser:
    """A tab of the session browser for this test, or a browser of its own when the session browser is disabled."""
    with _test_browser(request, build_browser, browser_context) as browser:
        yield browser


@pytest.fixture(scope="class")
def class_browser(request, build_browser, browser_context) -> Browser:
    """Like browser, shared by the tests of a class and bound to it as 'self.browser'."""
    with _test_browser(request, build_browser, browser_context) as browser:
        request.cls.browser = browser
        yield browser


@pytest.fixture
def test_context(request, browser, settings) -> TestContext:
    """
    The context pages and components are built from. Each test gets its own,
    bound to the test's browser tab.
    """
    context = TestContext(driver=browser, settings=settings, test_id=make_test_id(request.node.nodeid))
    context.main_window = browser.current_window_handle
    return context


# Logs and the report


@pytest.fixture(scope="session")
def test_report(report_title) -> Report:
    return Report(title=report_title, arguments=" ".join(sys.argv[1:]))


@pytest.fixture(scope="session", autouse=True)
def report_generator(report_dir, test_report):
    """
    Writes the report once the session ends. Parallel workers each hold a
    worker.* file while running; every worker but the last one leaves its results
    behind, and the last one merges them and writes the report.
    """
    with tempfile.NamedTemporaryFile(prefix="worker.", dir=report_dir) as worker_file:
        worker = os.path.basename(worker_file.name)[len("worker.") :]
        yield
    test_report.finish()
    exporter = ReportExporter()
    if any(f.startswith("worker.") for f in os.listdir(report_dir)):
        exporter.export_worker_result(test_report, report_dir, worker)
        return
    exporter.merge_worker_results(test_report, report_dir)
    exporter.export_all(test_report, report_dir)


@pytest.fixture(autouse=True)
def test_logger(request, report_dir, settings):
    """
    Writes everything the framework logs during the test to logs/<test id>.log in the
    report directory. The file is kept for failed tests, or always with WDC_STORE_LOGS_ALWAYS=1.
    """
    test_id = make_test_id(request.node.nodeid)
    log_dir = os.path.join(report_dir, "logs")
    os.makedirs(log_dir, exist_ok=True)
    filename = os.path.join(log_dir, f"{test_id}.log")

    handler = logging.FileHandler(filename, mode="w", encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger = logging.getLogger("webdriver_components")
    previous_level = package_logger.level
    package_logger.setLevel(logging.DEBUG)
    package_logger.addHandler(handler)
    test_log = logging.LoggerAdapter(logging.getLogger("webdriver_components.test"), {"test_id": test_id})
    test_log.info(f'TEST START "{request.node.nodeid}"')
    try:
        yield filename
    finally:
        summary = getattr(request.node, "call_summary", None)
        failed = bool(summary and summary.report.failed)
        test_log.info("TEST END")
        test_log.info(f"Test Result: {'failure' if failed else 'success'}")
        if failed and summary.excinfo:
            test_log.error(f"Error Message:\n{summary.excinfo.exconly()}")
        package_logger.removeHandler(handler)
        package_logger.setLevel(previous_level)
        handler.close()
        if not failed and not settings.store_logs_always:
            os.remove(filename)


def _describe_error(result: TestResult, error: BaseException):
    result.error = f"{type(error).__name__}: {error}"
    if isinstance(error, BrowserError):
        result.console_errors = [entry.get("message", "") for entry in error.logs]
        if error.orig is not None:
            result.error = f"{result.error}\nCaused by {error.orig!r}"
    elif isinstance(error, WaitTimeoutError):
        result.wait_failure = WaitFailure.from_error(error)
        if result.wait_failure.last_error:
            result.error = f"{result.error}\nLast ignored error: {result.wait_failure.last_error}"


def _test_browser_of(node) -> Optional[Browser]:
    funcargs = getattr(node, "funcargs", {})
    return next((funcargs[name] for name in BROWSER_FIXTURES if isinstance(funcargs.get(name), Browser)), None)


@pytest.fixture(autouse=True)
def report_test(report_generator, request, test_report, test_logger, report_dir, settings):
    """Adds the test's result to the report once it has run. Without it, the test isn't reported."""
    result = TestResult(nodeid=request.node.nodeid)
    yield
    result.finished = datetime.now()

    summary: Optional[CallSummary] = getattr(request.node, "call_summary", None)
    if summary is None:
        logger.error(
            f"Test {request.node.nodeid} reported no outcome; usually a fixture failed while setting up the test."
        )
    else:
        result.description = summary.doc
        result.outcome = Outcome.failure if summary.report.failed or summary.excinfo else Outcome.success
        if summary.excinfo:
            _describe_error(result, summary.excinfo.value)

    result.artifacts = list(getattr(request.node, "failure_artifacts", []))
    if os.path.exists(test_logger) and (result.outcome != Outcome.success or settings.store_logs_always):
        result.artifacts.insert(0, Artifact(kind=ArtifactKind.log, path=os.path.relpath(test_logger, report_dir)))

    browser = _test_browser_of(request.node)
    if browser is not None:
        result.screenshots = browser.pop_screenshots()

    test_report.results.append(result)


def store_failure_artifacts(browser: Browser, directory: str, report_dir: str) -> List[Artifact]:
    """Saves the page source, browser logs and a screenshot; a failure to save one never hides the test's error."""
    artifacts = []
    for kind, store in (
        (ArtifactKind.page_source, browser.store_page_source),
        (ArtifactKind.browser_logs, browser.store_logs),
        (ArtifactKind.screenshot, browser.store_screenshot),
    ):
        try:
            filename = store(directory, suffix="error")
        except Exception:
            logger.error(f"Cannot store the {kind.value} of the failed test.", exc_info=True)
            continue
        if filename:
            artifacts.append(Artifact(kind=kind, path=os.path.relpath(filename, report_dir)))
    return artifacts


@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """
    Keeps the outcome of the test's call for the report_test and test_logger fixtures.
    Failure artifacts are stored here because the browser tab is still open at this point.
    """
    outcome = yield

    report = outcome.get_result()
    if report.when != "call":
        return
    doc = getattr(getattr(item, "function", None), "__doc__", None)
    item.call_summary = CallSummary(report=report, excinfo=call.excinfo, doc=doc)
    browser = _test_browser_of(item)
    if report.failed and browser is not None:
        report_dir = item.config.getoption("report_dir")
        directory = os.path.join(report_dir, "artifacts", make_test_id(item.nodeid))
        item.failure_artifacts = store_failure_artifacts(browser, directory, report_dir)
