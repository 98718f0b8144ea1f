"""Ghostscript binary discovery."""

import glob
import logging
import os
import shutil
from typing import Optional

logger = logging.getLogger(__name__)

EXECUTABLE_NAMES = ("gs", "gswin64c", "gswin32c")
INSTALL_GLOBS = (
    r"C:\Program Files\gs\gs*\bin\gswin64c.exe",
    r"C:\Program Files (x86)\gs\gs*\bin\gswin32c.exe",
)
WELL_KNOWN_PATHS = ("/usr/bin/gs", "/usr/local/bin/gs", "/opt/homebrew/bin/gs")


def find_ghostscript(configured: Optional[str] = None) -> Optional[str]:
    """Locate a Ghostscript executable, or ``None`` when none is installed."""
    if configured:
        if os.path.isfile(configured) or shutil.which(configured):
            return shutil.which(configured) or configured
        logger.warning(f"Configured Ghostscript binary not found: {configured}")

    for name in EXECUTABLE_NAMES:
        found = shutil.which(name)
        if found:
            return found

    for pattern in INSTALL_GLOBS:
        matches = sorted(glob.glob(pattern), reverse=True)
        if matches:
            return matches[0]

    for path in WELL_KNOWN_PATHS:
        if os.path.isfile(path) and os.access(path, os.X_OK):
            return path
    return None
