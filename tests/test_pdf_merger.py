"""Tests for PDF merging and engine fallback."""

import subprocess
from unittest.mock import patch

import pytest
from pypdf import PdfReader

from meetapp_api.errors import MergeError, UnsupportedCompressionError
from meetapp_api.pdf.merger import GhostscriptMergeEngine, MergeEngine, PdfMerger, PypdfMergeEngine
from tests.conftest import LANDSCAPE_A4, write_pdf


class RecordingEngine(MergeEngine):
    """Fallback engine stand-in that writes a one-page PDF."""

    name = "recording"

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def merge(self, paths, output_path):
        self.calls.append(list(paths))
        if self.error:
            raise self.error
        return write_pdf(output_path, 1)


class UnavailableEngine(RecordingEngine):
    @property
    def available(self):
        return False


class TestPypdfMergeEngine:
    def test_merges_pages_in_order_keeping_orientation(self, tmp_path):
        portrait = write_pdf(tmp_path / "portrait.pdf", pages=2)
        wide = write_pdf(tmp_path / "wide.pdf", pages=1, size=LANDSCAPE_A4)
        output = tmp_path / "out" / "merged.pdf"

        PypdfMergeEngine().merge([portrait, wide], output)

        pages = PdfReader(str(output)).pages
        assert len(pages) == 3
        assert pages[0].mediabox.width < pages[0].mediabox.height
        assert pages[2].mediabox.width > pages[2].mediabox.height

    def test_skips_missing_and_unreadable_files(self, tmp_path):
        good = write_pdf(tmp_path / "good.pdf", pages=1)
        broken = tmp_path / "broken.pdf"
        broken.write_bytes(b"this is not a pdf")
        output = tmp_path / "merged.pdf"

        PypdfMergeEngine().merge([tmp_path / "missing.pdf", broken, good], output)

        assert len(PdfReader(str(output)).pages) == 1

    def test_no_readable_files_raises(self, tmp_path):
        broken = tmp_path / "broken.pdf"
        broken.write_bytes(b"garbage")

        with pytest.raises(MergeError):
            PypdfMergeEngine().merge([broken], tmp_path / "merged.pdf")

    def test_compression_failure_aborts_merge(self, tmp_path):
        source = write_pdf(tmp_path / "a.pdf")

        with patch("meetapp_api.pdf.merger.PdfReader", side_effect=ValueError("Unsupported compression technique")):
            with pytest.raises(UnsupportedCompressionError):
                PypdfMergeEngine().merge([source], tmp_path / "merged.pdf")


class TestPdfMerger:
    def test_empty_input_raises(self, tmp_path):
        merger = PdfMerger(fallback=UnavailableEngine())
        with pytest.raises(MergeError):
            merger.merge([], tmp_path / "merged.pdf")

    def test_prefers_available_fallback(self):
        fallback = RecordingEngine()
        merger = PdfMerger(primary=PypdfMergeEngine(), fallback=fallback, prefer_toolchain=True)
        assert merger.engine is fallback

    def test_uses_primary_when_fallback_unavailable(self):
        merger = PdfMerger(fallback=UnavailableEngine(), prefer_toolchain=True)
        assert isinstance(merger.engine, PypdfMergeEngine)

    def test_switches_to_fallback_on_compression_error(self, tmp_path):
        source = write_pdf(tmp_path / "a.pdf")
        fallback = RecordingEngine()
        merger = PdfMerger(primary=PypdfMergeEngine(), fallback=fallback, prefer_toolchain=False)
        output = tmp_path / "merged.pdf"

        with patch("meetapp_api.pdf.merger.PdfReader", side_effect=ValueError("compression not supported")):
            merger.merge([source], output)

        assert output.exists()
        assert fallback.calls == [[source]]
        assert merger.engine is fallback

    def test_reports_both_engines_when_fallback_fails(self, tmp_path):
        source = write_pdf(tmp_path / "a.pdf")
        fallback = RecordingEngine(error=MergeError("gs exited with code 1"))
        merger = PdfMerger(primary=PypdfMergeEngine(), fallback=fallback, prefer_toolchain=False)

        with patch("meetapp_api.pdf.merger.PdfReader", side_effect=ValueError("compression not supported")):
            with pytest.raises(MergeError) as exc_info:
                merger.merge([source], tmp_path / "merged.pdf")

        message = str(exc_info.value)
        assert "pypdf" in message
        assert "recording: gs exited with code 1" in message


class TestGhostscriptMergeEngine:
    def test_command_line(self, tmp_path):
        engine = GhostscriptMergeEngine(binary="/usr/bin/gs", discover=False)
        command = engine.command([tmp_path / "a.pdf", tmp_path / "b.pdf"], tmp_path / "out.pdf")

        assert command == [
            "/usr/bin/gs",
            "-dBATCH",
            "-dNOPAUSE",
            "-q",
            "-sDEVICE=pdfwrite",
            "-dPDFSETTINGS=/prepress",
            f"-sOutputFile={tmp_path / 'out.pdf'}",
            str(tmp_path / "a.pdf"),
            str(tmp_path / "b.pdf"),
        ]

    def test_unavailable_without_binary(self):
        assert GhostscriptMergeEngine(discover=False).available is False

    def test_non_zero_exit_raises(self, tmp_path):
        source = write_pdf(tmp_path / "a.pdf")
        engine = GhostscriptMergeEngine(binary="gs", discover=False)
        failed = subprocess.CompletedProcess(args=[], returncode=1, stdout="", stderr="Unrecoverable error")

        with patch("meetapp_api.pdf.merger.subprocess.run", return_value=failed):
            with pytest.raises(MergeError, match="Unrecoverable error"):
                engine.merge([source], tmp_path / "merged.pdf")

    def test_missing_inputs_raise(self, tmp_path):
        engine = GhostscriptMergeEngine(binary="gs", discover=False)
        with pytest.raises(MergeError):
            engine.merge([tmp_path / "missing.pdf"], tmp_path / "merged.pdf")
