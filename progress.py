# progress.py
"""
Progress writes for polling clients.

Within one processing run the persisted percentage only moves forward: the two
analysis chains report concurrently, so a late "analyzing" write from one chain
must not overwrite a "saving" write from the other.
"""
import logging
from typing import Dict

logger = logging.getLogger("procedo.progress")

# Milestones (percent, step)
SUBMITTED = (5, "Document received")
EXTRACTING = (10, "Extracting text from PDF...")
CLASSIFIED = 25  # step text carries the detected jurisdiction
ANALYZING = (40, "Running AI analysis...")
SAVING = (80, "Saving results...")
COMPLETE = (100, "Complete")


class ProgressReporter:
    def __init__(self, store):
        self.store = store
        self._high_water: Dict[str, int] = {}

    def begin(self, case_id: str) -> None:
        self._high_water[case_id] = 0

    def finish(self, case_id: str) -> None:
        self._high_water.pop(case_id, None)

    def current(self, case_id: str) -> int:
        return self._high_water.get(case_id, 0)

    async def report(self, case_id: str, percent: int, step: str) -> bool:
        """
        Persist progress unless it would move backwards in this run.

        Returns:
            bool: True when the write happened
        """
        percent = max(0, min(100, int(percent)))
        if percent < self._high_water.get(case_id, 0):
            logger.debug("Skipping progress %d%% for %s (already at %d%%)", percent, case_id, self._high_water[case_id])
            return False
        self._high_water[case_id] = percent
        await self.store.update_progress(case_id, percent, step)
        logger.info("[%s] %d%% %s", case_id, percent, step)
        return True

    async def fail(self, case_id: str, message: str) -> None:
        """Terminal error state; the only place progress drops (to 0)."""
        await self.store.mark_error(case_id, message)
        self.finish(case_id)
