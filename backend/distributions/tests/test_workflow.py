import logging
from datetime import timedelta

import pytest
from django.db import DatabaseError
from django.forms.models import model_to_dict

from core.config import FARMER_CONFIRMATION_WINDOW_DAYS
from core.models import SystemSetting
from core.results import ErrorKind
from distributions.models import DistributionStatus, MaterialDistribution
from distributions.services.workflow import DistributionWorkflow
from farms.models import Plot, PlotCultivation
from tests.factories import FARMER_ID, NOW, SUPERVISOR_ID

pytestmark = pytest.mark.django_db

SUPERVISOR_FIELDS = {
    "supervisor_confirmed_by", "supervisor_confirmed_at", "actual_distribution_date",
    "supervisor_notes", "image_urls", "farmer_confirmation_deadline", "status", "version",
}


@pytest.fixture
def workflow(clock):
    return DistributionWorkflow(clock=clock)


def _snapshot(record):
    record.refresh_from_db()
    return model_to_dict(record)


def test_supervisor_confirmation_changes_only_its_fields(workflow, make_distribution):
    record = make_distribution()
    before = _snapshot(record)

    result = workflow.confirm_by_supervisor(
        record.id, SUPERVISOR_ID, NOW, notes="Handed out at the depot", image_urls=["https://img/1.jpg"]
    )
    assert result.ok, result.message
    after = _snapshot(result.value)

    assert after["status"] == DistributionStatus.PARTIALLY_CONFIRMED
    assert after["supervisor_confirmed_by"] == SUPERVISOR_ID
    assert after["supervisor_confirmed_at"] == NOW
    assert after["actual_distribution_date"] == NOW
    assert after["farmer_confirmation_deadline"] == NOW + timedelta(days=3)
    assert after["image_urls"] == ["https://img/1.jpg"]
    assert result.value.version == 1

    untouched = {k for k in before if k not in SUPERVISOR_FIELDS}
    assert {k: after[k] for k in untouched} == {k: before[k] for k in untouched}


def test_full_happy_path(workflow, make_distribution, clock):
    record = make_distribution()
    assert workflow.confirm_by_supervisor(record.id, SUPERVISOR_ID, NOW).ok
    clock.advance(days=1)

    result = workflow.confirm_by_farmer(record.id, FARMER_ID, notes="Received 2 bags")
    assert result.ok
    record = result.value
    assert record.status == DistributionStatus.COMPLETED
    assert record.farmer_confirmed_at == NOW + timedelta(days=1)
    assert record.farmer_notes == "Received 2 bags"
    assert record.version == 2
    assert record.rejection_reason is None


def test_terminal_records_are_immutable(workflow, make_distribution):
    completed = make_distribution(status=DistributionStatus.COMPLETED)
    rejected = make_distribution(status=DistributionStatus.REJECTED, rejection_reason="wrong product")

    for record in (completed, rejected):
        before = _snapshot(record)
        assert workflow.confirm_by_supervisor(record.id, SUPERVISOR_ID, NOW).error == ErrorKind.ALREADY_FINALIZED
        assert workflow.confirm_by_farmer(record.id, FARMER_ID).error == ErrorKind.ALREADY_FINALIZED
        assert workflow.reject(record.id, SUPERVISOR_ID, "late").error == ErrorKind.ALREADY_FINALIZED
        assert _snapshot(record) == before


def test_missing_record(workflow):
    assert workflow.confirm_by_supervisor(123456, SUPERVISOR_ID, NOW).error == ErrorKind.NOT_FOUND
    assert workflow.confirm_by_farmer(123456, FARMER_ID).error == ErrorKind.NOT_FOUND
    assert workflow.reject(123456, FARMER_ID, "no").error == ErrorKind.NOT_FOUND


def test_other_supervisor_is_unauthorized(workflow, make_distribution):
    record = make_distribution()
    before = _snapshot(record)
    result = workflow.confirm_by_supervisor(record.id, SUPERVISOR_ID + 1, NOW)
    assert result.error == ErrorKind.UNAUTHORIZED
    assert _snapshot(record) == before


def test_record_without_group_is_not_actionable(workflow, make_distribution):
    plot = Plot.objects.create(farmer_id=FARMER_ID, group=None, area_ha=1)
    orphan = PlotCultivation.objects.create(plot=plot, season="Summer-Autumn 2025")
    record = make_distribution(plot_cultivation=orphan)
    assert workflow.confirm_by_supervisor(record.id, SUPERVISOR_ID, NOW).error == ErrorKind.UNAUTHORIZED


def test_farmer_checks(workflow, make_distribution):
    record = make_distribution()
    assert workflow.confirm_by_farmer(record.id, FARMER_ID + 1).error == ErrorKind.UNAUTHORIZED
    assert workflow.confirm_by_farmer(record.id, FARMER_ID).error == ErrorKind.INVALID_STATE

    workflow.confirm_by_supervisor(record.id, SUPERVISOR_ID, NOW)
    assert workflow.confirm_by_farmer(record.id, FARMER_ID + 1).error == ErrorKind.UNAUTHORIZED


def test_input_validation(workflow, make_distribution):
    record = make_distribution()
    naive = NOW.replace(tzinfo=None)
    assert workflow.confirm_by_supervisor(record.id, SUPERVISOR_ID, naive).error == ErrorKind.INVALID_INPUT
    assert workflow.confirm_by_supervisor(
        record.id, SUPERVISOR_ID, NOW, notes="x" * 501
    ).error == ErrorKind.INVALID_INPUT
    assert workflow.confirm_by_supervisor(record.id, SUPERVISOR_ID, NOW, notes="x" * 500).ok


def test_late_confirmation_is_accepted_and_logged(workflow, make_distribution, clock, caplog):
    record = make_distribution()
    clock.advance(days=6)
    caplog.set_level(logging.WARNING, logger="distributions.services.workflow")

    result = workflow.confirm_by_supervisor(record.id, SUPERVISOR_ID, clock.now())
    assert result.ok
    assert "after deadline" in caplog.text

    flags = result.value.overdue_flags(clock.now() + timedelta(days=1))
    assert not flags.supervisor
    assert not flags.distribution
    assert not flags.farmer


def test_farmer_window_from_settings_and_override(workflow, make_distribution):
    SystemSetting.objects.create(setting_key=FARMER_CONFIRMATION_WINDOW_DAYS, setting_value="5")
    first = make_distribution()
    second = make_distribution()

    assert workflow.confirm_by_supervisor(first.id, SUPERVISOR_ID, NOW).value.farmer_confirmation_deadline == (
        NOW + timedelta(days=5)
    )
    result = workflow.confirm_by_supervisor(second.id, SUPERVISOR_ID, NOW, farmer_window_days=1)
    assert result.value.farmer_confirmation_deadline == NOW + timedelta(days=1)


def test_supervisor_may_reconfirm_partial_record(workflow, make_distribution, clock):
    record = make_distribution()
    workflow.confirm_by_supervisor(record.id, SUPERVISOR_ID, NOW, notes="first")
    clock.advance(hours=2)
    result = workflow.confirm_by_supervisor(record.id, SUPERVISOR_ID, NOW, notes="corrected")
    assert result.ok
    assert result.value.supervisor_notes == "corrected"
    assert result.value.version == 2
    assert result.value.status == DistributionStatus.PARTIALLY_CONFIRMED


def test_reject(workflow, make_distribution):
    record = make_distribution()
    assert workflow.reject(record.id, FARMER_ID, "  ").error == ErrorKind.INVALID_INPUT
    assert workflow.reject(record.id, FARMER_ID, "r" * 501).error == ErrorKind.INVALID_INPUT
    assert workflow.reject(record.id, 42, "not mine").error == ErrorKind.UNAUTHORIZED

    result = workflow.reject(record.id, FARMER_ID, "Bags were damaged")
    assert result.ok
    assert result.value.status == DistributionStatus.REJECTED
    assert result.value.rejection_reason == "Bags were damaged"


def test_supervisor_can_reject_partial_record(workflow, make_distribution):
    record = make_distribution()
    workflow.confirm_by_supervisor(record.id, SUPERVISOR_ID, NOW)
    result = workflow.reject(record.id, SUPERVISOR_ID, "Wrong material delivered")
    assert result.ok
    assert result.value.status == DistributionStatus.REJECTED


def test_stale_version_is_a_conflict(workflow, make_distribution, monkeypatch):
    record = make_distribution()
    stale = workflow._load(record.id)
    MaterialDistribution.objects.filter(pk=record.pk).update(version=5)
    monkeypatch.setattr(workflow, "_load", lambda _id: stale)

    result = workflow.confirm_by_supervisor(record.id, SUPERVISOR_ID, NOW)
    assert result.error == ErrorKind.CONFLICT
    record.refresh_from_db()
    assert record.status == DistributionStatus.SCHEDULED
    assert record.supervisor_confirmed_at is None
    assert record.version == 5


class TestBulkConfirm:
    def test_confirms_all_scheduled_with_shared_deadline(self, workflow, make_distribution, cultivation):
        first = make_distribution()
        second = make_distribution()
        rejected = make_distribution(status=DistributionStatus.REJECTED, rejection_reason="dup")

        result = workflow.bulk_confirm_by_supervisor(
            cultivation.id, SUPERVISOR_ID, NOW,
            notes="Delivered together",
            image_urls=["shared.jpg"],
            images_by_distribution={first.id: ["own.jpg"]},
        )
        assert result.ok
        assert result.value.total_confirmed == 2
        assert set(result.value.confirmed_ids) == {first.id, second.id}

        first.refresh_from_db()
        second.refresh_from_db()
        rejected.refresh_from_db()
        assert first.image_urls == ["own.jpg"]
        assert second.image_urls == ["shared.jpg"]
        assert first.farmer_confirmation_deadline == second.farmer_confirmation_deadline == NOW + timedelta(days=3)
        assert {first.status, second.status} == {DistributionStatus.PARTIALLY_CONFIRMED}
        assert rejected.status == DistributionStatus.REJECTED

    def test_guards(self, workflow, make_distribution, cultivation):
        assert workflow.bulk_confirm_by_supervisor(999999, SUPERVISOR_ID, NOW).error == ErrorKind.NOT_FOUND
        assert workflow.bulk_confirm_by_supervisor(cultivation.id, SUPERVISOR_ID, NOW).error == ErrorKind.NOT_FOUND

        make_distribution()
        assert workflow.bulk_confirm_by_supervisor(
            cultivation.id, SUPERVISOR_ID + 1, NOW
        ).error == ErrorKind.UNAUTHORIZED

    def test_one_stale_record_rolls_back_batch(self, workflow, make_distribution, cultivation, monkeypatch):
        first = make_distribution()
        make_distribution()
        calls = []
        original = DistributionWorkflow._swap

        def flaky_swap(record, changes):
            calls.append(record.pk)
            if len(calls) == 2:
                return False
            return original(record, changes)

        monkeypatch.setattr(DistributionWorkflow, "_swap", staticmethod(flaky_swap))
        result = workflow.bulk_confirm_by_supervisor(cultivation.id, SUPERVISOR_ID, NOW)
        assert result.error == ErrorKind.CONFLICT
        first.refresh_from_db()
        assert first.status == DistributionStatus.SCHEDULED
        assert first.version == 0


def test_reject_requires_a_real_party_when_record_has_no_group(workflow, make_distribution):
    plot = Plot.objects.create(farmer_id=FARMER_ID, group=None, area_ha=1)
    orphan = PlotCultivation.objects.create(plot=plot, season="Summer-Autumn 2025")
    record = make_distribution(plot_cultivation=orphan)

    assert workflow.reject(record.id, None, "no group").error == ErrorKind.UNAUTHORIZED
    assert workflow.reject(record.id, SUPERVISOR_ID, "no group").error == ErrorKind.UNAUTHORIZED
    assert workflow.reject(record.id, FARMER_ID, "no group").ok


def test_storage_failure_leaves_record_unchanged(workflow, make_distribution, monkeypatch):
    record = make_distribution()
    before = _snapshot(record)

    def broken_swap(record, changes):
        raise DatabaseError("connection lost")

    monkeypatch.setattr(DistributionWorkflow, "_swap", staticmethod(broken_swap))
    result = workflow.confirm_by_supervisor(record.id, SUPERVISOR_ID, NOW)
    assert result.error == ErrorKind.STORAGE_ERROR
    assert _snapshot(record) == before


class TestBulkReceipt:
    def _confirmed(self, workflow, make_distribution, **overrides):
        record = make_distribution(**overrides)
        assert workflow.confirm_by_supervisor(record.id, SUPERVISOR_ID, NOW).ok
        return record

    def test_confirms_valid_and_reports_the_rest(self, workflow, make_distribution, clock):
        first = self._confirmed(workflow, make_distribution)
        second = self._confirmed(workflow, make_distribution)
        scheduled = make_distribution()
        completed = make_distribution(status=DistributionStatus.COMPLETED)
        rejected = make_distribution(status=DistributionStatus.REJECTED, rejection_reason="dup")
        clock.advance(hours=5)

        ids = [first.id, second.id, scheduled.id, completed.id, rejected.id, 999999]
        result = workflow.bulk_confirm_by_farmer(ids, FARMER_ID, notes="All received")
        assert result.ok
        assert result.value.confirmed_ids == [first.id, second.id]
        assert set(result.value.failures) == {scheduled.id, completed.id, rejected.id, 999999}
        assert "supervisor first" in result.value.failures[scheduled.id]
        assert result.message == "Confirmed 2 receipt(s), 4 failed."

        first.refresh_from_db()
        assert first.status == DistributionStatus.COMPLETED
        assert first.farmer_confirmed_at == NOW + timedelta(hours=5)
        assert first.farmer_notes == "All received"
        assert first.version == 2
        scheduled.refresh_from_db()
        assert scheduled.status == DistributionStatus.SCHEDULED

    def test_other_farmers_records_are_refused(self, workflow, make_distribution):
        record = self._confirmed(workflow, make_distribution)
        result = workflow.bulk_confirm_by_farmer([record.id], FARMER_ID + 1)
        assert result.error == ErrorKind.UNAUTHORIZED
        assert result.value.failures == {record.id: "Farmer does not own this plot."}
        record.refresh_from_db()
        assert record.status == DistributionStatus.PARTIALLY_CONFIRMED

    def test_input_guards(self, workflow, make_distribution):
        assert workflow.bulk_confirm_by_farmer([], FARMER_ID).error == ErrorKind.INVALID_INPUT
        assert workflow.bulk_confirm_by_farmer([999998, 999999], FARMER_ID).error == ErrorKind.NOT_FOUND
        record = self._confirmed(workflow, make_distribution)
        assert workflow.bulk_confirm_by_farmer(
            [record.id], FARMER_ID, notes="n" * 501
        ).error == ErrorKind.INVALID_INPUT

    def test_lost_swap_is_reported_per_record(self, workflow, make_distribution, monkeypatch):
        first = self._confirmed(workflow, make_distribution)
        second = self._confirmed(workflow, make_distribution)
        original = DistributionWorkflow._swap

        def flaky_swap(record, changes):
            if record.pk == second.pk:
                return False
            return original(record, changes)

        monkeypatch.setattr(DistributionWorkflow, "_swap", staticmethod(flaky_swap))
        result = workflow.bulk_confirm_by_farmer([first.id, second.id], FARMER_ID)
        assert result.ok
        assert result.value.confirmed_ids == [first.id]
        assert "concurrently" in result.value.failures[second.id]
