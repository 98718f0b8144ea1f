"""PDF merging with an automatic fallback engine.

The primary engine is pypdf. Some inputs use compression schemes it cannot
handle; when that happens it raises ``UnsupportedCompressionError`` and the
merger retries the whole batch with Ghostscript. When Ghostscript is present
and preferred it is selected up front.
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Sequence

from pypdf import PdfReader, PdfWriter

from meetapp_api.errors import MergeError, UnsupportedCompressionError
from meetapp_api.pdf.ghostscript import find_ghostscript
from meetapp_api.utils.metrics import merge_fallbacks

logger = logging.getLogger(__name__)


def is_compression_error(error: BaseException) -> bool:
    return "compression" in str(error).lower()


class MergeEngine(ABC):
    name = "engine"

    @property
    def available(self) -> bool:
        return True

    @abstractmethod
    def merge(self, paths: Sequence[Path], output_path: Path) -> Path:
        """Merge ``paths`` in order into ``output_path``."""


class PypdfMergeEngine(MergeEngine):
    """Page-by-page import keeping each page's size and rotation."""

    name = "pypdf"

    def merge(self, paths: Sequence[Path], output_path: Path) -> Path:
        if not paths:
            raise MergeError("No files to merge")

        writer = PdfWriter()
        processed = 0
        for path in paths:
            path = Path(path)
            if not path.exists():
                logger.warning(f"File for merge not found, skipping: {path}")
                continue
            try:
                reader = PdfReader(str(path))
                for page in reader.pages:
                    writer.add_page(page)
                processed += 1
            except Exception as e:
                if is_compression_error(e):
                    raise UnsupportedCompressionError(f"{path.name}: {e}") from e
                logger.error(f"Failed to import {path.name} into merged PDF: {e}")

        if processed == 0:
            raise MergeError("None of the files could be merged")

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(output_path, "wb") as fh:
                writer.write(fh)
        except Exception as e:
            if is_compression_error(e):
                raise UnsupportedCompressionError(f"Writing {output_path.name}: {e}") from e
            raise MergeError(f"Failed to write merged PDF: {e}") from e

        if not output_path.exists():
            raise MergeError(f"Merged PDF was not created: {output_path}")
        logger.info(f"Merged {processed} files with {self.name}")
        return output_path


class GhostscriptMergeEngine(MergeEngine):
    """Merge through the Ghostscript ``pdfwrite`` device."""

    name = "ghostscript"

    def __init__(self, binary: Optional[str] = None, discover: bool = True, timeout: int = 300):
        self.binary = find_ghostscript(binary) if discover else binary
        self.timeout = timeout

    @property
    def available(self) -> bool:
        return bool(self.binary)

    def command(self, paths: Sequence[Path], output_path: Path) -> list:
        return [
            self.binary,
            "-dBATCH",
            "-dNOPAUSE",
            "-q",
            "-sDEVICE=pdfwrite",
            "-dPDFSETTINGS=/prepress",
            f"-sOutputFile={output_path}",
            *[str(p) for p in paths],
        ]

    def merge(self, paths: Sequence[Path], output_path: Path) -> Path:
        if not self.available:
            raise MergeError("Ghostscript is not installed")

        existing = []
        for path in paths:
            if Path(path).exists():
                existing.append(Path(path))
            else:
                logger.warning(f"File for merge not found, skipping: {path}")
        if not existing:
            raise MergeError("No existing files to merge")

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            result = subprocess.run(
                self.command(existing, output_path),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise MergeError(f"Ghostscript failed to start: {e}") from e

        if result.returncode != 0:
            output = (result.stderr or result.stdout or "").strip()
            raise MergeError(f"Ghostscript exited with code {result.returncode}: {output}")
        if not output_path.exists():
            raise MergeError(f"Ghostscript did not create {output_path}")
        logger.info(f"Merged {len(existing)} files with {self.name}")
        return output_path


class PdfMerger:
    """Merges PDFs with the primary engine, switching to the fallback on compression errors."""

    def __init__(
        self,
        primary: Optional[MergeEngine] = None,
        fallback: Optional[MergeEngine] = None,
        prefer_toolchain: bool = True,
    ):
        self.primary = primary or PypdfMergeEngine()
        self.fallback = fallback if fallback is not None else GhostscriptMergeEngine()
        if prefer_toolchain and self.fallback.available:
            self.engine = self.fallback
        else:
            self.engine = self.primary

    def merge(self, paths: Sequence[Path], output_path: Path) -> Path:
        if not paths:
            raise MergeError("No files to merge")

        try:
            return self.engine.merge(paths, output_path)
        except UnsupportedCompressionError as e:
            if self.engine is self.fallback or not self.fallback.available:
                raise MergeError(f"{self.primary.name}: {e}") from e
            logger.warning(f"Primary merge engine hit unsupported compression, switching to {self.fallback.name}: {e}")
            merge_fallbacks.labels(engine=self.fallback.name).inc()
            try:
                result = self.fallback.merge(paths, output_path)
            except MergeError as fallback_error:
                raise MergeError(
                    f"{self.primary.name}: {e}. {self.fallback.name}: {fallback_error}"
                ) from fallback_error
            self.engine = self.fallback
            return result
