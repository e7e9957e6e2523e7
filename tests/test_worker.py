# -*- coding: utf-8 -*-
import asyncio

import pytest

from errors import CaseAlreadyProcessing
from worker import INTERRUPTED_MESSAGE, AnalysisJob, AnalysisQueue


class RecordingOrchestrator:
    def __init__(self, fail_for=()):
        self.runs = []
        self.fail_for = set(fail_for)

    async def run(self, case_id, tenant_id, **kwargs):
        self.runs.append((case_id, tenant_id, kwargs))
        if case_id in self.fail_for:
            raise CaseAlreadyProcessing(case_id)
        await asyncio.sleep(0)


@pytest.mark.asyncio
class TestAnalysisQueue:
    async def test_jobs_are_handed_to_the_orchestrator(self):
        orchestrator = RecordingOrchestrator()
        queue = AnalysisQueue(orchestrator, concurrency=2, maxsize=10)
        queue.start()
        queue.enqueue(AnalysisJob(case_id="c1", org_id="org_1", file_url="file:///a.pdf", jurisdiction_hint="ICC"))
        queue.enqueue(AnalysisJob(case_id="c2", org_id="org_1", file_url="file:///b.pdf"))
        await asyncio.wait_for(queue.join(), timeout=5)
        await queue.stop()

        assert sorted(r[0] for r in orchestrator.runs) == ["c1", "c2"]
        c1 = next(r for r in orchestrator.runs if r[0] == "c1")
        assert c1[2]["jurisdiction_hint"] == "ICC"
        assert queue.completed == 2
        assert not queue.running

    async def test_failed_job_does_not_stop_the_worker(self):
        orchestrator = RecordingOrchestrator(fail_for={"c1"})
        queue = AnalysisQueue(orchestrator, concurrency=1, maxsize=10)
        queue.start()
        queue.enqueue(AnalysisJob(case_id="c1", org_id="org_1"))
        queue.enqueue(AnalysisJob(case_id="c2", org_id="org_1"))
        await asyncio.wait_for(queue.join(), timeout=5)
        await queue.stop()
        assert [r[0] for r in orchestrator.runs] == ["c1", "c2"]

    async def test_backlog_is_bounded(self):
        queue = AnalysisQueue(RecordingOrchestrator(), concurrency=1, maxsize=1)
        queue.enqueue(AnalysisJob(case_id="c1", org_id="org_1"))
        with pytest.raises(asyncio.QueueFull):
            queue.enqueue(AnalysisJob(case_id="c2", org_id="org_1"))

    async def test_queued_case_is_tracked_until_picked_up(self):
        orchestrator = RecordingOrchestrator()
        queue = AnalysisQueue(orchestrator, concurrency=1, maxsize=10)
        queue.enqueue(AnalysisJob(case_id="c1", org_id="org_1"))
        assert queue.is_queued("c1")

        queue.start()
        await asyncio.wait_for(queue.join(), timeout=5)
        await queue.stop()
        assert not queue.is_queued("c1")

    async def test_shutdown_ends_running_case_in_error(self, case_store):
        class HangingOrchestrator:
            def __init__(self, cases):
                self.cases = cases
                self.started = asyncio.Event()

            async def run(self, case_id, tenant_id, **kwargs):
                self.started.set()
                await asyncio.Event().wait()

        case_store.add("c1")
        orchestrator = HangingOrchestrator(case_store)
        queue = AnalysisQueue(orchestrator, concurrency=1, maxsize=10)
        queue.start()
        queue.enqueue(AnalysisJob(case_id="c1", org_id="org_1"))
        await asyncio.wait_for(orchestrator.started.wait(), timeout=5)
        await queue.stop()

        case = case_store.cases["c1"]
        assert (case["status"], case["error_message"]) == ("error", INTERRUPTED_MESSAGE)
