"""PDF page counting with three fallback methods."""

import logging
import os
import re
import subprocess
import tempfile
from pathlib import Path
from typing import Optional

from pypdf import PdfReader

from meetapp_api.errors import PageCountError
from meetapp_api.pdf.ghostscript import find_ghostscript

logger = logging.getLogger(__name__)

MAX_PAGES = 100000

_COUNT = re.compile(rb"/Count\s+(\d+)")
_PAGE_OBJECT = re.compile(rb"/Type\s*/Page[^s]")
_PAGE_REFERENCE = re.compile(rb"/Page\s+\d+\s+0\s+R")


class PageCounter:
    """Counts pages of a PDF: pypdf, then Ghostscript, then a raw byte scan."""

    def __init__(self, ghostscript_binary: Optional[str] = None, discover: bool = True, timeout: int = 60):
        self.ghostscript = find_ghostscript(ghostscript_binary) if discover else ghostscript_binary
        self.timeout = timeout

    def count_pages(self, path) -> int:
        path = Path(path)
        if not path.exists():
            raise PageCountError(f"File not found: {path}")

        errors = []
        for method in (self.count_with_pypdf, self.count_with_ghostscript, self.count_by_scanning):
            try:
                return method(path)
            except Exception as e:
                logger.debug(f"Page count method {method.__name__} failed for {path.name}: {e}")
                errors.append(f"{method.__name__}: {e}")

        raise PageCountError(f"Could not count pages of {path.name}: {'; '.join(errors)}")

    def count_with_pypdf(self, path: Path) -> int:
        count = len(PdfReader(str(path)).pages)
        if count <= 0:
            raise ValueError("document has no pages")
        return count

    def count_with_ghostscript(self, path: Path) -> int:
        if not self.ghostscript:
            raise RuntimeError("Ghostscript is not installed")

        pdf_path = str(path).replace("\\", "/").replace("(", r"\(").replace(")", r"\)")
        fd, script = tempfile.mkstemp(suffix=".ps")
        try:
            with os.fdopen(fd, "w") as fh:
                fh.write(f"({pdf_path}) (r) file runpdfbegin pdfpagecount = quit\n")
            result = subprocess.run(
                [self.ghostscript, "-q", "-dNODISPLAY", f"--permit-file-read={path}", script],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        finally:
            os.unlink(script)

        numbers = [int(n) for n in re.findall(r"\d+", f"{result.stdout}\n{result.stderr}")]
        valid = [n for n in numbers if 0 < n < MAX_PAGES]
        if not valid:
            raise ValueError(f"no page count in Ghostscript output (exit code {result.returncode})")
        if result.returncode != 0:
            return valid[0]
        return valid[-1]

    def count_by_scanning(self, path: Path) -> int:
        content = path.read_bytes()

        match = _COUNT.search(content)
        if match and int(match.group(1)) > 0:
            return int(match.group(1))

        pages = len(_PAGE_OBJECT.findall(content))
        if pages > 0:
            return pages

        references = len(_PAGE_REFERENCE.findall(content))
        if references > 0:
            return references

        raise ValueError("no page markers found")
