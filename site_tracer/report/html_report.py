"""site_tracer.report.html_report: HTML report rendered with Jinja2."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from site_tracer.aggregator import CrawlReport

DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"


def render_html(
    report: CrawlReport,
    template_dir: Optional[Union[Path, str]],
    output_path: Union[Path, str],
    *,
    seed_url: str = "",
) -> Path:
    """Render the report from ``report.html.j2`` and save it.

    Args:
        report: the CrawlReport.
        template_dir: directory with Jinja2 templates; ``None`` uses the
            template shipped with the package.
        output_path: path of the resulting HTML file.
        seed_url: shown in the page title.

    Returns:
        Path of the saved HTML file.
    """
    template_dir = Path(template_dir) if template_dir else DEFAULT_TEMPLATE_DIR
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    env = Environment(
        loader=FileSystemLoader(str(template_dir)),
        autoescape=select_autoescape(["html", "xml", "j2"]),
    )
    template = env.get_template("report.html.j2")

    context: dict[str, Any] = {
        "seed_url": seed_url,
        "summary": report.to_dict()["summary"],
        "types": report.types,
        "status_codes": report.status_codes,
        "samples": report.samples,
    }

    output_path.write_text(template.render(**context), encoding="utf-8")
    return output_path
