"""Per-application scratch directory for downloads and rendered PDFs."""

import gc
import logging
import os
import shutil
from pathlib import Path

from meetapp_api.utils.text import random_slug, slugify

logger = logging.getLogger(__name__)


class GenerationWorkspace:
    """Temporary directory owned by one application; removed after every run."""

    def __init__(self, root: Path, application_id: int):
        self.path = Path(root) / str(application_id)

    def file_path(self, filename: str) -> Path:
        """Unique path inside the workspace for ``filename``."""
        self.path.mkdir(parents=True, exist_ok=True)
        name = Path(filename)
        return self.path / f"{random_slug()}_{slugify(name.stem)}{name.suffix.lower()}"

    def output_path(self, filename: str) -> Path:
        self.path.mkdir(parents=True, exist_ok=True)
        return self.path / filename

    def cleanup(self):
        if not self.path.exists():
            return
        # Release lingering file handles from readers before removal
        gc.collect()
        try:
            shutil.rmtree(self.path)
            return
        except OSError as e:
            logger.warning(f"Failed to remove workspace {self.path}, removing entries one by one: {e}")

        for root, dirs, files in os.walk(self.path, topdown=False):
            for name in files:
                try:
                    os.remove(os.path.join(root, name))
                except OSError as e:
                    logger.warning(f"Failed to remove temp file {name}: {e}")
            for name in dirs:
                try:
                    os.rmdir(os.path.join(root, name))
                except OSError as e:
                    logger.warning(f"Failed to remove temp directory {name}: {e}")
        try:
            os.rmdir(self.path)
        except OSError as e:
            logger.warning(f"Failed to remove workspace {self.path}: {e}")
