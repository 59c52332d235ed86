"""Value formatting and text summary rendering for analysis reports."""

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader

TEMPLATES_DIR = Path(__file__).parent.parent / 'templates'
SUMMARY_TEMPLATE = 'summary.txt.j2'

_UNITS = (
    (1024 ** 3, 'GB'),
    (1024 ** 2, 'MB'),
    (1024, 'KB'),
)


def format_size(size: int) -> str:
    """Human readable byte count: "512 B", "1.50 KB", "1.00 MB"."""
    for threshold, unit in _UNITS:
        if size >= threshold:
            return f"{size / threshold:.2f} {unit}"
    return f"{size} B"


def format_address(address: int) -> str:
    """Zero padded 32-bit style hex address."""
    return f"0x{address:08x}"


def render_summary(report: dict[str, Any], template_path: Path = None) -> str:
    """Render a plain text summary of an analysis report.

    Args:
        report: Report dictionary from ReportGenerator
        template_path: Alternative Jinja2 template

    Raises:
        FileNotFoundError: If template file doesn't exist
        jinja2.TemplateError: If template has syntax errors
    """
    template_file = Path(template_path) if template_path else TEMPLATES_DIR / SUMMARY_TEMPLATE
    if not template_file.exists():
        raise FileNotFoundError(f"Template file not found: {template_file}")

    env = Environment(
        loader=FileSystemLoader(template_file.parent),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters['size'] = format_size
    env.filters['address'] = format_address
    template = env.get_template(template_file.name)
    return template.render(**report)
