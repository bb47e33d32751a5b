"""
Unit tests for the create-new pipeline.

Run: pytest tests/unit/test_product_creation_service.py -v
"""

import pytest

from models.sync import CreateAction, JobKind, RunStatus
from services.product_creation_service import ProductCreationService, build_product_payload
from tests.factories import SUPPLIER_TAG, DestinationRecordFactory, FeedRecordFactory, SourceItemFactory


@pytest.fixture
def pipeline(make_pipeline):
    return make_pipeline(ProductCreationService)


class TestBuildProductPayload:
    """Tests for build_product_payload()"""

    def test_single_tagged_variant(self):
        item = SourceItemFactory.create(sku="A1", title="Red Mug")

        payload = build_product_payload(item, SUPPLIER_TAG)

        assert payload["title"] == "Red Mug"
        assert payload["handle"] == "red-mug"
        assert payload["tags"] == SUPPLIER_TAG
        assert payload["status"] == "active"
        assert payload["variants"] == [
            {"sku": "A1", "price": "9.99", "inventory_management": "shopify"}
        ]


class TestCreateNewRun:
    """Tests for ProductCreationService.run()"""

    def test_creates_missing_sku_and_sets_level(self, pipeline, source, destination, activity, token_for):
        destination.records = [DestinationRecordFactory.create(sku="EXISTING")]
        source.records = [
            FeedRecordFactory.create(sku="existing"),
            FeedRecordFactory.create(sku="A1", inventory=7),
        ]

        summary = pipeline.run(token_for(JobKind.CREATE_NEW))

        assert summary.status == RunStatus.COMPLETED
        assert summary.counts["candidates"] == 1
        assert summary.counts["created"] == 1
        assert destination.calls == [
            ("create_record", "A1"),
            ("set_inventory", "new-inv-1", 7),
        ]
        assert activity.get_stats().new_products == 1

    def test_title_match_is_not_proposed_as_new(self, pipeline, source, destination, activity, token_for):
        """A1 is missing by SKU but 'Red Mug' exists: left for sku-remap, not duplicated."""
        destination.records = [DestinationRecordFactory.create(sku=None, title="Red Mug")]
        source.records = [FeedRecordFactory.create(sku="A1", title="Red Mug")]

        summary = pipeline.run(token_for(JobKind.CREATE_NEW))

        assert summary.counts["candidates"] == 0
        assert summary.counts["unlinked"] == 1
        assert destination.calls == []
        assert any("sku-remap" in entry.message for entry in activity.get_logs())

    def test_one_record_links_one_item(self, pipeline, source, destination, token_for):
        """Two feed items titled 'Red Mug' and one store record: the second is new."""
        destination.records = [DestinationRecordFactory.create(sku=None, title="Red Mug")]
        source.records = [
            FeedRecordFactory.create(sku="A1", title="Red Mug"),
            FeedRecordFactory.create(sku="A2", title="Red Mug"),
        ]

        summary = pipeline.run(token_for(JobKind.CREATE_NEW))

        assert summary.counts["unlinked"] == 1
        assert destination.writes("create_record") == [("A2",)]

    def test_sku_in_store_is_never_created(self, pipeline, source, destination, token_for):
        """Q1 exists; an earlier item with the same title must not push it out as new."""
        destination.records = [DestinationRecordFactory.create(sku="Q1", title="Red Mug")]
        source.records = [
            FeedRecordFactory.create(sku="P1", title="Red Mug"),
            FeedRecordFactory.create(sku="Q1", title="Red Mug Blue"),
        ]

        summary = pipeline.run(token_for(JobKind.CREATE_NEW))

        assert summary.counts.get("unlinked", 0) == 0
        assert destination.writes("create_record") == [("P1",)]

    def test_similar_title_is_still_created(self, pipeline, source, destination, token_for):
        """Fuzzy matches do not block creation."""
        destination.records = [DestinationRecordFactory.create(title="Large Red Ceramic Mug")]
        source.records = [FeedRecordFactory.create(sku="C1", title="Large Red Ceramic Cup")]

        pipeline.run(token_for(JobKind.CREATE_NEW))

        assert destination.writes("create_record") == [("C1",)]

    def test_untagged_sku_is_still_created(self, pipeline, source, destination, token_for):
        """Records outside the supplier tag are not ours and do not count."""
        destination.records = [DestinationRecordFactory.create(sku="A1", tags=set())]
        source.records = [FeedRecordFactory.create(sku="A1")]

        pipeline.run(token_for(JobKind.CREATE_NEW))

        assert destination.writes("create_record") == [("A1",)]

    def test_batch_capped_per_run(self, pipeline, source, destination, token_for):
        pipeline.settings.max_create_per_run = 2
        source.records = [FeedRecordFactory.create(sku=f"N{i}") for i in range(5)]

        summary = pipeline.run(token_for(JobKind.CREATE_NEW))

        assert summary.counts["candidates"] == 5
        assert summary.counts["created"] == 2
        assert destination.writes("create_record") == [("N0",), ("N1",)]

    def test_halts_above_absolute_cap(self, pipeline, source, destination, guard, token_for):
        pipeline.settings.max_new_products = 2
        source.records = [FeedRecordFactory.create(sku=f"N{i}") for i in range(3)]

        summary = pipeline.run(token_for(JobKind.CREATE_NEW))

        assert summary.status == RunStatus.HALTED
        assert destination.calls == []
        assert isinstance(guard.pending_action, CreateAction)
        assert [i.sku for i in guard.pending_action.items] == ["N0", "N1", "N2"]

    def test_split_failure_is_counted_not_rolled_back(self, pipeline, source, destination, activity, token_for):
        source.records = [FeedRecordFactory.create(sku="A1")]
        destination.fail_on["set_inventory"] = {"*"}

        summary = pipeline.run(token_for(JobKind.CREATE_NEW))

        assert summary.status == RunStatus.COMPLETED
        assert summary.counts["split_failures"] == 1
        assert "created" not in summary.counts
        assert summary.error_count == 1
        assert destination.writes("delete") == []
        # The record exists in the store, so it still counts as created
        assert activity.get_stats().new_products == 1
        assert any(key.startswith("split failure") for key in activity.get_error_tally())

    def test_create_failure_moves_on(self, pipeline, source, destination, token_for):
        source.records = [FeedRecordFactory.create(sku="A1"), FeedRecordFactory.create(sku="A2")]
        destination.fail_on["create_record"] = {"A1"}

        summary = pipeline.run(token_for(JobKind.CREATE_NEW))

        assert summary.counts["failed"] == 1
        assert summary.counts["created"] == 1
        assert destination.writes("set_inventory") == [("new-inv-1", 10)]
