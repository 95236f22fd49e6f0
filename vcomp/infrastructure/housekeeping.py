import logging
import time
from pathlib import Path
from typing import Iterable, Optional

class HousekeepingService:
    """Removes compression artifacts left behind by earlier sessions."""

    def __init__(self, extension: str = ".mp4"):
        self.extension = extension
        self.logger = logging.getLogger(__name__)

    def cleanup_scratch(
        self,
        scratch_dir: Path,
        keep: Iterable[Path] = (),
        older_than: Optional[float] = None,
    ) -> int:
        """Deletes leftover outputs in ``scratch_dir``.

        Files listed in ``keep`` are never touched. With ``older_than`` set,
        only files not modified for that many seconds are removed, so outputs
        another process is still writing survive.
        """
        if not scratch_dir.exists():
            return 0

        keep_set = {Path(p).resolve() for p in keep}
        cutoff = time.time() - older_than if older_than is not None else None
        removed = 0
        for leftover in scratch_dir.glob(f"*{self.extension}"):
            if leftover.resolve() in keep_set or not leftover.is_file():
                continue
            try:
                if cutoff is not None and leftover.stat().st_mtime > cutoff:
                    continue
                leftover.unlink()
                removed += 1
            except OSError as e:
                self.logger.warning(f"Could not remove {leftover}: {e}")

        if removed > 0:
            self.logger.info(f"Cleaned up {removed} leftover file(s) in {scratch_dir}")
        return removed
