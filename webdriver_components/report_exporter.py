import glob
import logging
import os
from typing import List

import jinja2

from webdriver_components.models import Outcome, Report, format_duration

logger = logging.getLogger(__name__)
here = os.path.dirname(os.path.abspath(__file__))

WORKER_RESULT_SUFFIX = ".result.json"

# Screenshots are written as files next to the report, so report.json only keeps their paths.
_WITHOUT_SCREENSHOT_DATA = {"results": {"__all__": {"screenshots": {"__all__": {"data"}}}}}


class ReportExporter:
    """
    Writes a Report into the report directory: report.json, the screenshots taken
    with Browser.snap and index.html. Per-test logs and failure artifacts are already
    there; the report only links to them.
    """

    def __init__(self, template_dir: str = os.path.join(here, "templates"), template_name: str = "report.html"):
        self.env = jinja2.Environment(loader=jinja2.FileSystemLoader(template_dir), autoescape=True)
        self.env.filters["duration"] = format_duration
        self.template = self.env.get_template(template_name)

    def export_json(
        self, report: Report, report_dir: str, filename: str = "report.json", keep_screenshot_data: bool = False
    ) -> str:
        exclude = None if keep_screenshot_data else _WITHOUT_SCREENSHOT_DATA
        path = os.path.join(report_dir, filename)
        with open(path, "w", encoding="utf-8") as f:
            f.write(report.model_dump_json(indent=4, exclude=exclude))
        logger.info(f"Report JSON saved to {path}")
        return path

    def export_worker_result(self, report: Report, report_dir: str, worker: str) -> str:
        """Another worker is still running; it will merge this result into the final report."""
        return self.export_json(report, report_dir, f"{worker}{WORKER_RESULT_SUFFIX}", keep_screenshot_data=True)

    @staticmethod
    def merge_worker_results(report: Report, report_dir: str) -> List[str]:
        """Moves the results other workers left behind into `report`, deleting their files."""
        merged = []
        for path in sorted(glob.glob(os.path.join(report_dir, f"*{WORKER_RESULT_SUFFIX}"))):
            with open(path, encoding="utf-8") as f:
                worker_report = Report.model_validate_json(f.read())
            report.results.extend(worker_report.results)
            os.remove(path)
            merged.append(path)
            logger.info(f"Merged {len(worker_report.results)} results from {path}")
        return merged

    @staticmethod
    def export_screenshots(report: Report, report_dir: str) -> int:
        written = set()
        for result in report.results:
            for screenshot in result.screenshots:
                if screenshot.path not in written and screenshot.write(report_dir):
                    written.add(screenshot.path)
        if written:
            logger.info(f"Saved {len(written)} screenshots to {os.path.join(report_dir, 'screenshots')}")
        return len(written)

    def export_html(self, report: Report, report_dir: str, filename: str = "index.html") -> str:
        path = os.path.join(report_dir, filename)
        self.template.stream(report=report, Outcome=Outcome).dump(path, encoding="utf-8")
        logger.info(f"Exported report HTML to {path}")
        return path

    def export_all(self, report: Report, report_dir: str):
        self.export_screenshots(report, report_dir)
        self.export_json(report, report_dir)
        self.export_html(report, report_dir)
