"""HTML to PDF rendering of registry messages."""

import base64
import binascii
import logging
import re
from pathlib import Path
from typing import Optional

from jinja2 import Environment, select_autoescape
from playwright.sync_api import sync_playwright

from meetapp_api.errors import RenderError

logger = logging.getLogger(__name__)

PRINT_CSS = """
@page { size: A4; margin: 1cm 1.5cm; }
body { font-family: "DejaVu Sans", Arial, sans-serif; font-size: 12px; }
table { width: 100% !important; max-width: 100% !important; table-layout: fixed; border-collapse: collapse; }
td, th { word-wrap: break-word; overflow-wrap: break-word; }
div { max-width: 100% !important; box-sizing: border-box; }
img { max-width: 100%; }
h1.red_small { color: #c00; font-size: 16px; font-weight: bold; margin: 0 0 12px 0; }
"""

_env = Environment(autoescape=select_autoescape(default=True, default_for_string=True))

DOCUMENT_TEMPLATE = _env.from_string(
    """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<style>{{ css | safe }}</style>
</head>
<body>
{% if title %}<table class="title"><tr><td><h1 class="red_small">{{ title }}</h1></td></tr></table>
{% endif %}{{ body | safe }}
</body>
</html>"""
)

_FULL_DOCUMENT = re.compile(r"<!DOCTYPE|<html", re.IGNORECASE)
_HEAD_CLOSE = re.compile(r"</head\s*>", re.IGNORECASE)
_HEAD_OPEN = re.compile(r"<head(\s[^>]*)?>", re.IGNORECASE)
_BODY_OPEN = re.compile(r"<body", re.IGNORECASE)


def decode_body(body: str) -> str:
    """Decode a base64 message body; bodies that are not base64 are returned as-is."""
    try:
        return base64.b64decode(body, validate=True).decode("utf-8")
    except (binascii.Error, ValueError):
        return body


def prepare_html(html: str, title: Optional[str] = None) -> str:
    """Make registry markup printable: inject print CSS or wrap a fragment."""
    style = f"<style>{PRINT_CSS}</style>"
    if not _FULL_DOCUMENT.search(html):
        return DOCUMENT_TEMPLATE.render(css=PRINT_CSS, title=title, body=html)

    match = _HEAD_CLOSE.search(html)
    if match:
        return html[: match.start()] + style + html[match.start():]
    match = _HEAD_OPEN.search(html)
    if match:
        return html[: match.end()] + style + html[match.end():]
    match = _BODY_OPEN.search(html)
    if match:
        return html[: match.start()] + f"<head>{style}</head>" + html[match.start():]
    return DOCUMENT_TEMPLATE.render(css=PRINT_CSS, title=None, body=html)


class ChromiumPdfEngine:
    """Headless Chromium printing through Playwright."""

    def render(self, html: str, output_path: Path, paper_size: str = "A4", landscape: bool = False):
        with sync_playwright() as playwright:
            browser = playwright.chromium.launch()
            try:
                page = browser.new_page()
                page.set_content(html, wait_until="load")
                page.pdf(
                    path=str(output_path),
                    format=paper_size,
                    landscape=landscape,
                    print_background=True,
                    prefer_css_page_size=True,
                )
            finally:
                browser.close()


class HtmlRenderer:
    """Renders registry message HTML into PDF files."""

    def __init__(self, engine=None):
        self.engine = engine or ChromiumPdfEngine()

    def render(
        self,
        html: str,
        output_path: Path,
        title: Optional[str] = None,
        paper_size: str = "A4",
        landscape: bool = False,
    ) -> Path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        document = prepare_html(html, title)
        try:
            self.engine.render(document, output_path, paper_size=paper_size, landscape=landscape)
        except Exception as e:
            raise RenderError(f"Failed to render PDF {output_path.name}: {e}") from e
        if not output_path.exists():
            raise RenderError(f"Renderer produced no file: {output_path.name}")
        logger.debug(f"Rendered {output_path.name}")
        return output_path
