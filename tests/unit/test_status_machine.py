"""Tests for App status transitions."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from appsync_operator.models import App, AppCondition, ConditionType, StageResult
from appsync_operator.reconciler.status import AppStatusMachine


@pytest.fixture
def count_metrics():
    return MagicMock()


@pytest.fixture
def machine(count_metrics):
    app = App(name="app", namespace="ns", generation=5)
    return AppStatusMachine(app, count_metrics)


class TestAppStatusMachine:
    """Test cases for AppStatusMachine."""

    def test_mark_observed_latest(self, machine):
        """Test that the observed generation follows the App generation."""
        machine.mark_observed_latest()

        assert machine.app.status.observed_generation == 5

    def test_set_reconciling(self, machine, count_metrics):
        """Test entering Reconciling."""
        machine.app.status.condition = AppCondition(ConditionType.RECONCILE_FAILED, "old")

        machine.set_reconciling()

        assert machine.app.status.conditions == [AppCondition(ConditionType.RECONCILING)]
        assert machine.app.status.friendly_description == "Reconciling"
        count_metrics.register_reconcile_attempt.assert_called_once_with("App", "app", "ns")

    def test_reconcile_succeeded(self, machine, count_metrics):
        """Test recording a successful reconcile."""
        status = machine.app.status
        status.consecutive_reconcile_failures = 3
        status.useful_error_message = "old error"

        machine.set_reconcile_completed(StageResult())

        assert status.has_condition(ConditionType.RECONCILE_SUCCEEDED)
        assert status.consecutive_reconcile_successes == 1
        assert status.consecutive_reconcile_failures == 0
        assert status.useful_error_message == ""
        assert status.friendly_description == "Reconcile succeeded"
        count_metrics.register_reconcile_success.assert_called_once_with("App", "app", "ns")

    def test_reconcile_failed(self, machine, count_metrics):
        """Test recording a failed reconcile."""
        status = machine.app.status
        status.consecutive_reconcile_successes = 4

        machine.set_reconcile_completed(StageResult(stderr="denied", error=RuntimeError("Deploying: exit 1")))

        assert status.conditions == [AppCondition(ConditionType.RECONCILE_FAILED, "Deploying: exit 1")]
        assert status.consecutive_reconcile_failures == 1
        assert status.consecutive_reconcile_successes == 0
        assert status.friendly_description == "Reconcile failed: Deploying: exit 1"
        assert status.useful_error_message == "denied"
        count_metrics.register_reconcile_failure.assert_called_once_with("App", "app", "ns")

    def test_set_deleting(self, machine, count_metrics):
        """Test entering Deleting."""
        machine.set_deleting()

        assert machine.app.status.has_condition(ConditionType.DELETING)
        assert machine.app.status.friendly_description == "Deleting"
        count_metrics.register_reconcile_delete_attempt.assert_called_once_with("App", "app", "ns")

    def test_delete_succeeded(self, machine, count_metrics):
        """Test that a successful delete leaves no condition and drops metrics."""
        machine.set_deleting()

        machine.set_delete_completed(StageResult())

        assert machine.app.status.condition is None
        count_metrics.delete_metrics.assert_called_once_with("App", "app", "ns")

    def test_delete_failed(self, machine, count_metrics):
        """Test recording a failed delete."""
        machine.set_deleting()

        machine.set_delete_completed(StageResult(error=RuntimeError("Deleting: timed out")))

        status = machine.app.status
        assert status.conditions == [AppCondition(ConditionType.DELETE_FAILED, "Deleting: timed out")]
        assert status.consecutive_reconcile_failures == 1
        assert status.friendly_description == "Delete failed: Deleting: timed out"
        assert status.useful_error_message == "Deleting: timed out"
        count_metrics.register_reconcile_delete_failed.assert_called_once_with("App", "app", "ns")
        count_metrics.delete_metrics.assert_not_called()

    def test_at_most_one_condition_through_lifecycle(self, machine):
        """Test that every transition leaves at most one condition."""
        steps = [
            machine.set_reconciling,
            lambda: machine.set_reconcile_completed(StageResult(error=RuntimeError("x"))),
            machine.set_reconciling,
            lambda: machine.set_reconcile_completed(StageResult()),
            machine.set_deleting,
            lambda: machine.set_delete_completed(StageResult(error=RuntimeError("y"))),
        ]
        for step in steps:
            step()
            assert len(machine.app.status.conditions) <= 1
