"""
Unit tests for the discontinue pipeline.

Run: pytest tests/unit/test_discontinue_service.py -v
"""

import pytest

from models.catalog import RecordStatus
from models.sync import DiscontinueAction, JobKind, RunStatus
from services.discontinue_service import DiscontinueService
from tests.factories import DestinationRecordFactory, FeedRecordFactory


@pytest.fixture
def pipeline(make_pipeline):
    return make_pipeline(DiscontinueService)


def seed(source, destination, total: int = 10, listed: int = 8) -> list:
    """`total` active tagged records; the feed lists the first `listed`."""
    records = [DestinationRecordFactory.create(sku=f"S{i}") for i in range(total)]
    destination.records = list(records)
    source.records = [FeedRecordFactory.create(sku=f"S{i}") for i in range(listed)]
    return records


class TestDiscontinueRun:
    """Tests for DiscontinueService.run()"""

    def test_drafts_records_missing_from_feed(self, pipeline, source, destination, activity, token_for):
        records = seed(source, destination, total=10, listed=8)

        summary = pipeline.run(token_for(JobKind.DISCONTINUE))

        assert summary.status == RunStatus.COMPLETED
        assert summary.counts["missing"] == 2
        assert summary.counts["discontinued"] == 2
        assert destination.writes("update_status") == [
            (records[8].id, RecordStatus.DRAFT),
            (records[9].id, RecordStatus.DRAFT),
        ]
        assert destination.writes("delete") == []
        assert activity.get_stats().discontinued == 2

    def test_ignores_drafts_untagged_and_skuless(self, pipeline, source, destination, token_for):
        seed(source, destination, total=10, listed=10)
        destination.records += [
            DestinationRecordFactory.create(sku="GONE-1", status=RecordStatus.DRAFT),
            DestinationRecordFactory.create(sku="GONE-2", tags={"Other"}),
            DestinationRecordFactory.create(sku=None),
        ]

        summary = pipeline.run(token_for(JobKind.DISCONTINUE))

        assert summary.counts["missing"] == 0
        assert destination.calls == []

    def test_sku_comparison_is_case_insensitive(self, pipeline, source, destination, token_for):
        destination.records = [DestinationRecordFactory.create(sku="abc-1")]
        source.records = [FeedRecordFactory.create(sku="ABC-1")]

        pipeline.run(token_for(JobKind.DISCONTINUE))

        assert destination.calls == []

    def test_halts_above_percentage_limit(self, pipeline, source, destination, guard, token_for):
        """4 of 10 missing with a 30% limit halts."""
        records = seed(source, destination, total=10, listed=6)

        summary = pipeline.run(token_for(JobKind.DISCONTINUE))

        assert summary.status == RunStatus.HALTED
        assert destination.calls == []
        assert isinstance(guard.pending_action, DiscontinueAction)
        assert [r.id for r in guard.pending_action.records] == [r.id for r in records[6:]]

    def test_at_percentage_limit_proceeds(self, pipeline, source, destination, token_for):
        """3 of 10 missing with a 30% limit proceeds."""
        seed(source, destination, total=10, listed=7)

        summary = pipeline.run(token_for(JobKind.DISCONTINUE))

        assert summary.status == RunStatus.COMPLETED
        assert len(destination.writes("update_status")) == 3


class TestMissRuns:
    """Tests for the consecutive-miss threshold."""

    def test_waits_for_consecutive_misses(self, pipeline, source, destination, token_for):
        pipeline.settings.discontinue_miss_runs = 2
        records = seed(source, destination, total=10, listed=9)

        first = pipeline.run(token_for(JobKind.DISCONTINUE))
        assert first.counts["missing"] == 1
        assert first.counts["candidates"] == 0
        assert destination.calls == []

        pipeline.run(token_for(JobKind.DISCONTINUE))
        assert destination.writes("update_status") == [(records[9].id, RecordStatus.DRAFT)]

    def test_reappearing_sku_starts_over(self, pipeline, source, destination, token_for):
        pipeline.settings.discontinue_miss_runs = 2
        seed(source, destination, total=10, listed=9)
        full_feed = [FeedRecordFactory.create(sku=f"S{i}") for i in range(10)]
        partial_feed = list(source.records)

        pipeline.run(token_for(JobKind.DISCONTINUE))
        source.records = full_feed
        pipeline.run(token_for(JobKind.DISCONTINUE))
        source.records = partial_feed
        pipeline.run(token_for(JobKind.DISCONTINUE))

        assert destination.calls == []
