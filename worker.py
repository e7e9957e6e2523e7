# worker.py
"""
In-process job queue. The HTTP layer enqueues and returns immediately; worker
tasks pull jobs and run the orchestrator to completion.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Set

from errors import CaseAlreadyProcessing
from settings import settings

logger = logging.getLogger("procedo.worker")

INTERRUPTED_MESSAGE = "Analysis interrupted by shutdown. Re-analyze the case to retry."


@dataclass(frozen=True)
class AnalysisJob:
    case_id: str
    org_id: str
    file_url: Optional[str] = None
    document_text: Optional[str] = None
    jurisdiction_hint: Optional[str] = None


class AnalysisQueue:
    def __init__(self, orchestrator, concurrency: int = None, maxsize: int = None):
        self.orchestrator = orchestrator
        self.concurrency = concurrency or settings.WORKER_CONCURRENCY
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize or settings.QUEUE_MAX_SIZE)
        self._tasks: List[asyncio.Task] = []
        self._queued: Set[str] = set()
        self.completed = 0

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def start(self) -> None:
        if self._tasks:
            return
        for i in range(self.concurrency):
            self._tasks.append(asyncio.create_task(self._worker(i), name=f"procedo-worker-{i}"))
        logger.info("Started %d analysis workers", self.concurrency)

    async def stop(self) -> None:
        for t in self._tasks:
            t.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Analysis workers stopped")

    def enqueue(self, job: AnalysisJob) -> None:
        """Raises asyncio.QueueFull when the backlog is at capacity."""
        self.queue.put_nowait(job)
        self._queued.add(job.case_id)
        logger.info("Queued case %s (backlog=%d)", job.case_id, self.queue.qsize())

    def is_queued(self, case_id: str) -> bool:
        return case_id in self._queued

    async def join(self) -> None:
        await self.queue.join()

    async def _interrupted(self, job: AnalysisJob) -> None:
        logger.warning("Case %s interrupted by worker shutdown", job.case_id)
        try:
            await self.orchestrator.cases.mark_error(job.case_id, INTERRUPTED_MESSAGE)
        except Exception:
            logger.exception("Could not record interruption for case %s", job.case_id)

    async def _worker(self, index: int) -> None:
        while True:
            job = await self.queue.get()
            self._queued.discard(job.case_id)
            try:
                await self.orchestrator.run(
                    job.case_id,
                    job.org_id,
                    file_url=job.file_url,
                    document_text=job.document_text,
                    jurisdiction_hint=job.jurisdiction_hint,
                )
            except asyncio.CancelledError:
                await self._interrupted(job)
                raise
            except CaseAlreadyProcessing:
                logger.warning("Worker %d skipped case %s: already processing", index, job.case_id)
            except Exception:
                logger.exception("Worker %d crashed on case %s", index, job.case_id)
            finally:
                self.completed += 1
                self.queue.task_done()
