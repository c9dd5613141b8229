import os
from datetime import datetime, timedelta

import pytest
from selenium.common.exceptions import NoSuchElementException

from webdriver_components.exceptions import WaitTimeoutError
from webdriver_components.models import (
    Artifact,
    ArtifactKind,
    Outcome,
    Report,
    Screenshot,
    TestResult,
    WaitFailure,
    format_duration,
    make_test_id,
)


def test_screenshot_path_is_content_based():
    first = Screenshot.from_base64("cG5n", caption="Render login")
    assert first.path.startswith("screenshots/")
    assert first.path.endswith(".png")
    assert Screenshot.from_base64("cG5n").path == first.path
    assert Screenshot.from_base64("b3RoZXI=").path != first.path


def test_write_screenshot(tmpdir):
    screenshot = Screenshot.from_base64("cG5n")
    assert screenshot.write(str(tmpdir))
    with open(os.path.join(str(tmpdir), screenshot.path), "rb") as f:
        assert f.read() == b"png"


def test_write_screenshot_without_data(tmpdir):
    screenshot = Screenshot(path="screenshots/gone.png")
    assert not screenshot.write(str(tmpdir))
    assert not os.path.exists(os.path.join(str(tmpdir), screenshot.path))


@pytest.mark.parametrize("seconds, expected", [(0.4, "0s"), (59.9, "59s"), (60, "1m 0s"), (129.5, "2m 9s")])
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


def test_result_duration():
    started = datetime(2024, 1, 1, 12, 0, 0)
    result = TestResult(nodeid="a", started=started, finished=started + timedelta(seconds=3, milliseconds=250))
    assert result.duration == 3.25


def test_make_test_id():
    assert make_test_id("tests/test_login.py::TestLogin::test_submit[chrome]") == (
        "tests-test_login-py-TestLogin-test_submit-chrome"
    )


def test_test_result_id():
    assert TestResult(nodeid="tests/test_a.py::test_b").test_id == "tests-test_a-py-test_b"


def test_test_result_artifact():
    result = TestResult(
        nodeid="a",
        artifacts=[
            Artifact(kind=ArtifactKind.log, path="logs/a.log"),
            Artifact(kind="page source", path="artifacts/a/page.html"),
        ],
    )
    assert result.artifact(ArtifactKind.page_source).path == "artifacts/a/page.html"
    assert result.artifact(ArtifactKind.screenshot) is None


def test_wait_failure_from_error():
    error = WaitTimeoutError(timeout=2, elapsed=2.01234, timeout_message="Save button should be displayed")
    error.__cause__ = NoSuchElementException("no such element")
    failure = WaitFailure.from_error(error)
    assert failure.timeout == 2
    assert failure.elapsed == 2.012
    assert failure.message == "Save button should be displayed"
    assert failure.last_error.startswith("NoSuchElementException: ")


def test_wait_failure_without_cause():
    assert WaitFailure.from_error(WaitTimeoutError(timeout=0, elapsed=0)).last_error is None


@pytest.mark.parametrize(
    "outcomes, expected",
    [
        ([], Outcome.never_started),
        ([Outcome.success], Outcome.success),
        ([Outcome.success, Outcome.failure], Outcome.failure),
        ([Outcome.success, Outcome.never_started], Outcome.failure),
    ],
)
def test_report_outcome(outcomes, expected):
    report = Report(title="Summary", results=[TestResult(nodeid=str(i), outcome=o) for i, o in enumerate(outcomes)])
    assert report.outcome == expected


def test_report_failures():
    report = Report(
        title="Summary",
        results=[
            TestResult(nodeid="a", outcome=Outcome.success),
            TestResult(nodeid="b", outcome=Outcome.failure),
            TestResult(nodeid="c", outcome=Outcome.never_started),
        ],
    )
    assert report.num_failures == 2
    assert [r.nodeid for r in report.failures] == ["b", "c"]


def test_report_json():
    report = Report(
        title="Summary",
        results=[
            TestResult(
                nodeid="a",
                outcome=Outcome.failure,
                artifacts=[Artifact(kind=ArtifactKind.log, path="logs/a.log")],
                wait_failure=WaitFailure(timeout=1, elapsed=1.1, message="never"),
            )
        ],
    )
    report.finish()
    copy = Report.model_validate_json(report.model_dump_json())
    assert copy.results[0].artifacts == [Artifact(kind=ArtifactKind.log, path="logs/a.log")]
    assert copy.results[0].wait_failure.message == "never"
    assert copy.outcome == Outcome.failure
    assert copy.finished == report.finished
