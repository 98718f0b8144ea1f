"""Tests for PDF page counting."""

import subprocess
from unittest.mock import patch

import pytest

from meetapp_api.errors import PageCountError
from meetapp_api.pdf.page_counter import PageCounter
from tests.conftest import write_pdf


@pytest.fixture
def counter():
    return PageCounter(discover=False)


def test_counts_pages_with_pypdf(tmp_path, counter):
    path = write_pdf(tmp_path / "four.pdf", pages=4)
    assert counter.count_pages(path) == 4


def test_falls_back_to_byte_scan(tmp_path, counter):
    path = write_pdf(tmp_path / "three.pdf", pages=3)

    with patch.object(counter, "count_with_pypdf", side_effect=ValueError("broken xref")):
        assert counter.count_pages(path) == 3


def test_scan_counts_page_objects_without_count(tmp_path, counter):
    path = tmp_path / "objects.pdf"
    path.write_bytes(b"%PDF-1.4\n1 0 obj << /Type /Page >>\n2 0 obj << /Type /Page >>\n3 0 obj << /Type /Pages >>\n")

    assert counter.count_by_scanning(path) == 2


def test_scan_counts_page_references(tmp_path, counter):
    path = tmp_path / "refs.pdf"
    path.write_bytes(b"%PDF-1.4\n/Page 4 0 R\n/Page 5 0 R\n/Page 6 0 R\n")

    assert counter.count_by_scanning(path) == 3


def test_corrupted_file_fails_after_all_methods(tmp_path, counter):
    path = tmp_path / "corrupted.pdf"
    path.write_bytes(b"\x00\x01 definitely not a document")

    with patch.object(counter, "count_with_pypdf", wraps=counter.count_with_pypdf) as pypdf_method, \
         patch.object(counter, "count_with_ghostscript", wraps=counter.count_with_ghostscript) as gs_method, \
         patch.object(counter, "count_by_scanning", wraps=counter.count_by_scanning) as scan_method:
        with pytest.raises(PageCountError):
            counter.count_pages(path)

    pypdf_method.assert_called_once()
    gs_method.assert_called_once()
    scan_method.assert_called_once()


def test_missing_file_raises(tmp_path, counter):
    with pytest.raises(PageCountError):
        counter.count_pages(tmp_path / "missing.pdf")


class TestGhostscriptCount:
    def test_parses_last_number_on_success(self, tmp_path):
        path = write_pdf(tmp_path / "a.pdf")
        counter = PageCounter(ghostscript_binary="gs", discover=False)
        result = subprocess.CompletedProcess(args=[], returncode=0, stdout="12\n", stderr="")

        with patch("meetapp_api.pdf.page_counter.subprocess.run", return_value=result) as run:
            assert counter.count_with_ghostscript(path) == 12

        command = run.call_args.args[0]
        assert command[:3] == ["gs", "-q", "-dNODISPLAY"]
        assert command[-1].endswith(".ps")

    def test_parses_first_number_on_failure(self, tmp_path):
        path = write_pdf(tmp_path / "a.pdf")
        counter = PageCounter(ghostscript_binary="gs", discover=False)
        result = subprocess.CompletedProcess(args=[], returncode=1, stdout="7\n", stderr="warning in 250000 objects")

        with patch("meetapp_api.pdf.page_counter.subprocess.run", return_value=result):
            assert counter.count_with_ghostscript(path) == 7

    def test_rejects_output_without_page_count(self, tmp_path):
        path = write_pdf(tmp_path / "a.pdf")
        counter = PageCounter(ghostscript_binary="gs", discover=False)
        result = subprocess.CompletedProcess(args=[], returncode=0, stdout="0\n", stderr="")

        with patch("meetapp_api.pdf.page_counter.subprocess.run", return_value=result):
            with pytest.raises(ValueError):
                counter.count_with_ghostscript(path)
