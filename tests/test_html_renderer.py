"""Tests for registry message rendering."""

import base64

import pytest

from meetapp_api.errors import RenderError
from meetapp_api.rendering.html import HtmlRenderer, decode_body, prepare_html
from tests.conftest import FakePdfEngine


class TestDecodeBody:
    def test_decodes_base64(self):
        encoded = base64.b64encode("<p>Привет</p>".encode("utf-8")).decode("ascii")
        assert decode_body(encoded) == "<p>Привет</p>"

    def test_returns_raw_markup(self):
        assert decode_body("<p>plain</p>") == "<p>plain</p>"


class TestPrepareHtml:
    def test_wraps_fragment_with_escaped_title(self):
        html = prepare_html("<p>Body</p>", title="Notice <A & B>")

        assert html.startswith("<!DOCTYPE html>")
        assert '<h1 class="red_small">Notice &lt;A &amp; B&gt;</h1>' in html
        assert "<p>Body</p>" in html
        assert "@page" in html

    def test_fragment_without_title_has_no_heading(self):
        html = prepare_html("<p>Body</p>")
        assert "red_small\">" not in html

    def test_injects_css_before_head_close(self):
        html = prepare_html("<html><head><title>x</title></head><body>y</body></html>")

        assert html.index("<style>") < html.index("</head>")
        assert html.index("<title>") < html.index("<style>")

    def test_injects_css_after_head_open(self):
        html = prepare_html("<html><head><meta charset='utf-8'><body>y</body></html>")
        assert html.startswith("<html><head><style>")

    def test_adds_head_before_body(self):
        html = prepare_html("<!DOCTYPE html><html><body>y</body></html>")
        assert "<head><style>" in html
        assert html.index("<head><style>") < html.index("<body>")


class TestHtmlRenderer:
    def test_render_writes_pdf(self, tmp_path):
        engine = FakePdfEngine()
        output = HtmlRenderer(engine).render("<p>Hi</p>", tmp_path / "out" / "m.pdf", title="Title")

        assert output.exists()
        assert "Title" in engine.documents[0]

    def test_engine_failure_becomes_render_error(self, tmp_path):
        with pytest.raises(RenderError):
            HtmlRenderer(FakePdfEngine(fail=True)).render("<p>Hi</p>", tmp_path / "m.pdf")
