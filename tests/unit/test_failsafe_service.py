"""
Unit tests for FailsafeGuard.

Run: pytest tests/unit/test_failsafe_service.py -v
"""

import pytest

from models.sync import CreateAction, DiscontinueAction, InventoryAction, InventoryUpdate, JobKind
from services.failsafe_service import FailsafeGuard
from tests.factories import DestinationRecordFactory, SourceItemFactory


def inventory_action(count: int) -> InventoryAction:
    return InventoryAction(updates=[
        InventoryUpdate(
            title=f"Item {i}",
            sku=f"SKU-{i}",
            inventory_item_id=f"inv-{i}",
            current_inventory=0,
            new_inventory=5,
        )
        for i in range(count)
    ])


# ===================
# EVALUATE
# ===================

class TestEvaluatePercentage:
    """Tests for percentage-gated kinds."""

    def test_at_limit_is_allowed(self, guard):
        """5 of 100 with a 5% limit proceeds."""
        assert guard.evaluate(5, 100, JobKind.INVENTORY_SYNC, inventory_action(5)) is True
        assert guard.triggered is False

    def test_above_limit_halts(self, guard):
        """6 of 100 with a 5% limit halts and keeps the batch."""
        action = inventory_action(6)

        assert guard.evaluate(6, 100, JobKind.INVENTORY_SYNC, action) is False

        status = guard.get_status()
        assert status.triggered is True
        assert status.kind == JobKind.INVENTORY_SYNC
        assert status.pending_count == 6
        assert status.triggered_at is not None
        assert "6" in status.reason
        assert "6.0%" in status.reason
        assert guard.pending_action == action

    def test_discontinue_uses_its_own_limit(self, guard):
        """30% limit: 3 of 10 passes, 4 of 10 halts."""
        records = DestinationRecordFactory.create_batch(4)

        assert guard.evaluate(3, 10, JobKind.DISCONTINUE, DiscontinueAction(records=records[:3]))
        assert not guard.evaluate(4, 10, JobKind.DISCONTINUE, DiscontinueAction(records=records))

    def test_discontinue_absolute_cap(self, guard):
        """100 of 1000 (10%) passes; 101 of 1000 is under 30% but over the count cap."""
        assert guard.evaluate(100, 1000, JobKind.DISCONTINUE, DiscontinueAction(records=[])) is True

        assert guard.evaluate(101, 1000, JobKind.DISCONTINUE, DiscontinueAction(records=[])) is False
        assert "101 records exceed the limit of 100" in guard.get_status().reason

    def test_count_cap_does_not_apply_to_inventory(self, guard):
        """150 of 10000 is 1.5%, under the 5% inventory limit."""
        assert guard.evaluate(150, 10000, JobKind.INVENTORY_SYNC, inventory_action(0)) is True

    def test_empty_total_with_changes_halts(self, guard):
        assert guard.evaluate(1, 0, JobKind.DISCONTINUE, DiscontinueAction(records=[])) is False

    def test_nothing_to_do_passes(self, guard):
        assert guard.evaluate(0, 0, JobKind.INVENTORY_SYNC, inventory_action(0)) is True


class TestEvaluateAbsolute:
    """Tests for create-new's absolute cap."""

    def test_at_cap_is_allowed(self, guard):
        items = [SourceItemFactory.create() for _ in range(3)]
        assert guard.evaluate(100, None, JobKind.CREATE_NEW, CreateAction(items=items)) is True

    def test_above_cap_halts(self, guard):
        items = [SourceItemFactory.create() for _ in range(3)]

        assert guard.evaluate(101, None, JobKind.CREATE_NEW, CreateAction(items=items)) is False
        assert "101" in guard.get_status().reason

    def test_ungated_kind_raises(self, guard):
        with pytest.raises(ValueError):
            guard.limit_for(JobKind.DEDUPLICATE)


class TestAlerting:
    """Tests for halt notifications."""

    def test_halt_notifies(self, guard, notifier):
        guard.evaluate(6, 100, JobKind.INVENTORY_SYNC, inventory_action(6))

        notifier.send.assert_called_once()
        assert "FAILSAFE" in notifier.send.call_args[0][0]

    def test_notifier_failure_does_not_prevent_halt(self, guard, notifier):
        notifier.send.side_effect = RuntimeError("telegram down")

        assert guard.evaluate(6, 100, JobKind.INVENTORY_SYNC, inventory_action(6)) is False
        assert guard.triggered is True

    def test_works_without_notifier(self, activity, test_settings):
        guard = FailsafeGuard(notifier=None, activity=activity, settings=test_settings)

        assert guard.evaluate(6, 100, JobKind.INVENTORY_SYNC, inventory_action(6)) is False

    def test_halt_is_written_to_activity_log(self, guard, activity):
        guard.evaluate(6, 100, JobKind.INVENTORY_SYNC, inventory_action(6))

        latest = activity.get_logs()[0]
        assert latest.level == "error"
        assert latest.message.startswith("FAILSAFE TRIGGERED")


# ===================
# SNAPSHOT CHECK
# ===================

class TestCheckSnapshot:
    """Tests for check_snapshot()"""

    def test_disabled_by_default(self, guard):
        assert guard.check_snapshot(0, 0, JobKind.DISCONTINUE) is True

    def test_small_feed_halts_without_pending_action(self, notifier, activity, test_settings):
        test_settings.min_source_items = 10
        guard = FailsafeGuard(notifier=notifier, activity=activity, settings=test_settings)

        assert guard.check_snapshot(3, 500, JobKind.DISCONTINUE) is False
        assert guard.triggered is True
        assert guard.pending_action is None
        assert "source feed has 3 items" in guard.get_status().reason


class TestTrip:
    """Tests for trip()"""

    def test_trip_halts_without_pending_action(self, guard, notifier):
        guard.trip(JobKind.SKU_REMAP, "5 of 10 writes failed")

        status = guard.get_status()
        assert status.triggered is True
        assert status.kind == JobKind.SKU_REMAP
        assert status.reason == "sku-remap: 5 of 10 writes failed"
        assert guard.pending_action is None
        notifier.send.assert_called_once()

    def test_confirm_after_trip_is_noop(self, guard):
        guard.trip(JobKind.INVENTORY_SYNC, "too many failures")

        assert guard.confirm(lambda action: True) is False
        assert guard.triggered is True


# ===================
# OPERATOR RESOLUTION
# ===================

class TestResolution:
    """Tests for confirm(), abort() and clear()"""

    def test_confirm_dispatches_exact_batch_and_clears(self, guard):
        action = inventory_action(6)
        guard.evaluate(6, 100, JobKind.INVENTORY_SYNC, action)
        dispatched = []

        def dispatch(pending):
            # State is already clear when the batch is handed over
            assert guard.triggered is False
            dispatched.append(pending)
            return True

        assert guard.confirm(dispatch) is True
        assert dispatched == [action]
        assert guard.triggered is False
        assert guard.pending_action is None

    def test_confirm_without_pending_action_is_noop(self, guard):
        calls = []

        assert guard.confirm(lambda pending: calls.append(pending) or True) is False
        assert calls == []

    def test_confirm_restores_halt_when_dispatch_fails(self, guard):
        action = inventory_action(6)
        guard.evaluate(6, 100, JobKind.INVENTORY_SYNC, action)

        assert guard.confirm(lambda pending: False) is False
        assert guard.triggered is True
        assert guard.pending_action == action

    def test_abort_discards_and_advances_epoch(self, guard, orchestrator):
        guard.evaluate(6, 100, JobKind.INVENTORY_SYNC, inventory_action(6))
        epoch = orchestrator.epoch

        assert guard.abort() is True
        assert guard.triggered is False
        assert guard.pending_action is None
        assert orchestrator.epoch == epoch + 1

    def test_abort_when_not_triggered(self, guard):
        assert guard.abort() is False

    def test_clear_keeps_nothing_and_runs_nothing(self, guard, notifier):
        guard.evaluate(6, 100, JobKind.INVENTORY_SYNC, inventory_action(6))
        notifier.send.reset_mock()

        assert guard.clear() is True
        assert guard.triggered is False
        assert guard.pending_action is None
        notifier.send.assert_not_called()

    def test_halt_makes_tokens_abort(self, guard, token_for):
        token = token_for(JobKind.DISCONTINUE)
        assert token.should_abort() is False

        guard.evaluate(6, 100, JobKind.INVENTORY_SYNC, inventory_action(6))

        assert token.should_abort() is True
