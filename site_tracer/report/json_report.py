# site_tracer/report/json_report.py

"""
JSON report for SiteTracer.

Serializes a CrawlReport to a file.
"""
import json
from pathlib import Path

from site_tracer.aggregator import CrawlReport


def render_json(report: CrawlReport, output_path: Path | str, *, pretty: bool = True) -> Path:
    """
    Save *report* as JSON at *output_path*.

    :param report: finished CrawlReport
    :param output_path: path of the JSON file
    :param pretty: indent with two spaces
    :return: Path of the saved file

    Example:
    ```python
    from site_tracer.report.json_report import render_json
    report_path = render_json(report, 'reports/crawl-report.json')
    ```
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open('w', encoding='utf-8') as f:
        json.dump(report.to_dict(), f, ensure_ascii=False, indent=2 if pretty else None)

    return output
