"""
What a test run leaves behind: one TestResult per test, collected into a Report
that the ReportExporter writes as report.json and index.html.
"""
import base64
import os
import re
from datetime import datetime
from enum import Enum
from hashlib import sha256
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field

from webdriver_components.exceptions import WaitTimeoutError


class Outcome(Enum):
    success = "success"
    failure = "failure"
    never_started = "never started"


class ArtifactKind(str, Enum):
    log = "log"
    page_source = "page source"
    browser_logs = "browser logs"
    screenshot = "screenshot"


class Artifact(BaseModel):
    """A file stored for a test, e.g. the page source at the moment it failed."""

    kind: ArtifactKind
    path: str  # relative to the report directory


class Screenshot(BaseModel):
    """
    A capture taken with Browser.snap. It stays in memory until the report is
    written; identical captures share a path, so they are written once.
    """

    path: str
    caption: Optional[str] = None
    is_error: bool = False
    data: Optional[str] = None  # base64 png

    @classmethod
    def from_base64(cls, data: str, caption: Optional[str] = None, is_error: bool = False) -> "Screenshot":
        digest = sha256(data.encode("UTF-8")).hexdigest()
        return cls(path=f"screenshots/{digest}.png", caption=caption, is_error=is_error, data=data)

    def write(self, report_dir: str) -> bool:
        if not self.data:
            return False
        filename = os.path.join(report_dir, self.path)
        os.makedirs(os.path.dirname(filename), exist_ok=True)
        with open(filename, "wb") as f:
            f.write(base64.b64decode(self.data.encode("UTF-8")))
        return True


class WaitFailure(BaseModel):
    """The wait a test timed out on, and the last error it had been ignoring."""

    timeout: float
    elapsed: float
    message: str
    last_error: Optional[str] = None

    @classmethod
    def from_error(cls, error: WaitTimeoutError) -> "WaitFailure":
        cause = error.__cause__
        return cls(
            timeout=error.timeout,
            elapsed=round(error.elapsed, 3),
            message=error.timeout_message,
            last_error=f"{type(cause).__name__}: {cause}" if cause else None,
        )


class TestResult(BaseModel):
    __test__ = False

    nodeid: str
    outcome: Outcome = Outcome.never_started
    description: Optional[str] = None
    started: datetime = Field(default_factory=datetime.now)
    finished: Optional[datetime] = None
    error: Optional[str] = None
    wait_failure: Optional[WaitFailure] = None
    console_errors: List[str] = []
    artifacts: List[Artifact] = []
    screenshots: List[Screenshot] = []

    @computed_field
    @property
    def test_id(self) -> str:
        return make_test_id(self.nodeid)

    @computed_field
    @property
    def duration(self) -> float:
        """Seconds the test took, or has taken so far."""
        return round(((self.finished or datetime.now()) - self.started).total_seconds(), 2)

    def artifact(self, kind: ArtifactKind) -> Optional[Artifact]:
        return next((a for a in self.artifacts if a.kind == kind), None)


class Report(BaseModel):
    title: str
    arguments: Optional[str] = None
    started: datetime = Field(default_factory=datetime.now)
    finished: Optional[datetime] = None
    results: List[TestResult] = []

    @computed_field
    @property
    def outcome(self) -> Outcome:
        if self.failures:
            return Outcome.failure
        if self.results:
            return Outcome.success
        return Outcome.never_started

    @computed_field
    @property
    def duration(self) -> float:
        return round(((self.finished or datetime.now()) - self.started).total_seconds(), 2)

    @property
    def failures(self) -> List[TestResult]:
        return [result for result in self.results if result.outcome != Outcome.success]

    @property
    def num_failures(self) -> int:
        return len(self.failures)

    def finish(self):
        self.finished = datetime.now()


def make_test_id(nodeid: str) -> str:
    """A file-name friendly id for a pytest node id: 'tests/test_a.py::test_b' => 'tests-test_a-py-test_b'."""
    test_id = re.sub(r"[^\w]", "-", nodeid)
    test_id = re.sub(r"-+", "-", test_id)
    return test_id.strip("-")


def format_duration(seconds: float) -> str:
    """'2m 9s' for 129.5 seconds; under a minute, just the seconds."""
    minutes, seconds = divmod(int(seconds), 60)
    if minutes:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"
