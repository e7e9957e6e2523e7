# -*- coding: utf-8 -*-
import pytest

from progress import ProgressReporter


@pytest.mark.asyncio
class TestProgressReporter:
    async def test_never_moves_backwards_within_a_run(self, case_store):
        case_store.add("c1")
        progress = ProgressReporter(case_store)
        progress.begin("c1")

        assert await progress.report("c1", 40, "Running AI analysis...")
        assert await progress.report("c1", 80, "Saving results...")
        assert not await progress.report("c1", 40, "Running AI analysis...")

        assert case_store.percents("c1") == [40, 80]
        assert case_store.cases["c1"]["current_step"] == "Saving results..."

    async def test_equal_value_is_written(self, case_store):
        case_store.add("c1")
        progress = ProgressReporter(case_store)
        progress.begin("c1")
        await progress.report("c1", 40, "a")
        assert await progress.report("c1", 40, "b")

    async def test_clamped_to_range(self, case_store):
        case_store.add("c1")
        progress = ProgressReporter(case_store)
        progress.begin("c1")
        await progress.report("c1", 140, "over")
        assert case_store.cases["c1"]["progress"] == 100

    async def test_new_run_starts_from_zero(self, case_store):
        case_store.add("c1")
        progress = ProgressReporter(case_store)
        progress.begin("c1")
        await progress.report("c1", 100, "Complete")
        progress.finish("c1")

        progress.begin("c1")
        assert await progress.report("c1", 5, "Document received")

    async def test_fail_resets_to_zero(self, case_store):
        case_store.add("c1")
        progress = ProgressReporter(case_store)
        progress.begin("c1")
        await progress.report("c1", 10, "Extracting text from PDF...")
        await progress.fail("c1", "Failed to extract text from PDF.")

        case = case_store.cases["c1"]
        assert (case["status"], case["progress"], case["error_message"]) == \
            ("error", 0, "Failed to extract text from PDF.")
        assert progress.current("c1") == 0
