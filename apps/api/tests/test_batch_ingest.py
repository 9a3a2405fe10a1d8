"""
Batch ingestion against a real session.

Covers the single-owner preconditions, per-record isolation, duplicate
handling, report arithmetic and whole-batch rollback on storage failure.
"""
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

import services.batch_ingest as batch_ingest
from models import IngestWarning, ProfileMetric, Workout
from services.batch_ingest import (
    BatchRejectedError,
    IngestReport,
    IngestStorageError,
    Outcome,
    RecordOutcome,
    build_report,
    ingest_profile_metrics,
    ingest_workouts,
)
from services.pairing_codes import create_client


def _assert_report_adds_up(report):
    assert report.count_inserted + report.duplicates_skipped + report.errors_count == report.count_received


class TestReportFold:
    def test_fold_counts_each_outcome(self):
        report = build_report(
            4,
            [
                RecordOutcome(Outcome.INSERTED, warnings=2),
                RecordOutcome(Outcome.DUPLICATE),
                RecordOutcome(Outcome.ERROR, errors=("bad",)),
                RecordOutcome(Outcome.INSERTED),
            ],
        )
        assert report == IngestReport(
            count_received=4,
            count_inserted=2,
            duplicates_skipped=1,
            warnings_count=2,
            errors_count=1,
            errors=("bad",),
        )
        assert report.success

    def test_all_errors_is_failure(self):
        report = build_report(2, [RecordOutcome(Outcome.ERROR, errors=("a",))] * 2)
        assert not report.success

    def test_all_duplicates_is_success(self):
        report = build_report(1, [RecordOutcome(Outcome.DUPLICATE)])
        assert report.success

    def test_errors_key_only_when_present(self):
        assert "errors" not in IngestReport(count_received=1, count_inserted=1).to_dict()
        assert IngestReport(errors=("x",)).to_dict()["errors"] == ["x"]


class TestBatchPreconditions:
    def test_non_array_rejected(self, db_session):
        with pytest.raises(BatchRejectedError, match="must be an array"):
            ingest_workouts(db_session, {"client_id": "x"})

    def test_empty_array_is_zero_count_success(self, db_session):
        report = ingest_workouts(db_session, [])
        assert report == IngestReport()
        assert report.success

    def test_missing_owner_rejected(self, db_session, make_workout):
        payload = make_workout("ignored")
        del payload["client_id"]
        with pytest.raises(BatchRejectedError, match="client_id is required"):
            ingest_workouts(db_session, [payload])

    def test_mixed_owners_rejected_before_any_write(self, db_session, make_workout):
        a, _ = create_client(db_session, "A")
        b, _ = create_client(db_session, "B")

        with pytest.raises(BatchRejectedError, match="same client_id"):
            ingest_workouts(
                db_session,
                [
                    make_workout(a),
                    make_workout(b, start_time="2024-06-02T08:00:00Z", end_time="2024-06-02T08:30:00Z"),
                ],
            )
        assert db_session.query(Workout).count() == 0

    def test_unknown_owner_rejected(self, db_session, make_workout):
        owner = uuid4()
        with pytest.raises(BatchRejectedError, match=f"client_id does not exist: {owner}"):
            ingest_workouts(db_session, [make_workout(owner)])

    def test_malformed_owner_rejected(self, db_session, make_workout):
        with pytest.raises(BatchRejectedError, match="does not exist"):
            ingest_workouts(db_session, [make_workout("not-a-uuid")])


class TestWorkoutIngest:
    def test_inserts_and_reports(self, db_session, paired_client, make_workout):
        owner, _ = paired_client
        report = ingest_workouts(db_session, [make_workout(owner)])

        assert report.to_dict() == {
            "success": True,
            "count_received": 1,
            "count_inserted": 1,
            "duplicates_skipped": 0,
            "warnings_count": 0,
            "errors_count": 0,
        }
        stored = db_session.query(Workout).one()
        assert stored.client_id == owner
        assert stored.source == "apple_health"

    def test_near_duplicate_in_later_batch_is_skipped(self, db_session, paired_client, make_workout):
        owner, _ = paired_client
        ingest_workouts(db_session, [make_workout(owner)])

        # Same run seen 30s later by another source with 1850s duration
        report = ingest_workouts(
            db_session,
            [
                make_workout(
                    owner,
                    start_time="2024-06-01T08:00:30Z",
                    end_time="2024-06-01T08:31:20Z",
                    duration_seconds=1850,
                )
            ],
        )

        assert report.count_inserted == 0
        assert report.duplicates_skipped == 1
        assert report.success
        assert db_session.query(Workout).count() == 1
        warning = db_session.query(IngestWarning).one()
        assert warning.warning_type == "duplicate"
        assert warning.record_id is None

    def test_duplicate_within_one_batch_is_skipped(self, db_session, paired_client, make_workout):
        owner, _ = paired_client
        report = ingest_workouts(db_session, [make_workout(owner), make_workout(owner)])

        assert report.count_inserted == 1
        assert report.duplicates_skipped == 1
        _assert_report_adds_up(report)

    def test_resend_is_idempotent(self, db_session, paired_client, make_workout):
        owner, _ = paired_client
        batch = [
            make_workout(owner),
            make_workout(owner, start_time="2024-06-02T08:00:00Z", end_time="2024-06-02T09:00:00Z", duration_seconds=3600),
        ]
        ingest_workouts(db_session, batch)
        report = ingest_workouts(db_session, batch)

        assert report.count_inserted == 0
        assert report.duplicates_skipped == 2
        assert db_session.query(Workout).count() == 2

    def test_duplicates_are_scoped_to_owner(self, db_session, make_workout):
        a, _ = create_client(db_session, "A")
        b, _ = create_client(db_session, "B")
        ingest_workouts(db_session, [make_workout(a)])

        report = ingest_workouts(db_session, [make_workout(b)])

        assert report.count_inserted == 1
        assert report.duplicates_skipped == 0

    def test_bad_record_does_not_sink_siblings(self, db_session, paired_client, make_workout):
        owner, _ = paired_client
        report = ingest_workouts(
            db_session,
            [
                make_workout(owner),
                make_workout(owner, start_time="2024-06-03T09:00:00Z", end_time="2024-06-03T08:00:00Z"),
                make_workout(owner, start_time="2024-06-04T08:00:00Z", end_time="2024-06-04T08:30:00Z"),
            ],
        )

        assert report.count_inserted == 2
        assert report.errors_count == 1
        assert report.errors == ("start_time must be before end_time",)
        assert report.success
        _assert_report_adds_up(report)

    @pytest.mark.parametrize("duration", [float("inf"), float("nan"), 1e30])
    def test_unstorable_duration_is_a_record_error(self, db_session, paired_client, make_workout, duration):
        owner, _ = paired_client
        report = ingest_workouts(
            db_session,
            [
                make_workout(owner),
                make_workout(owner, start_time="2024-06-02T08:00:00Z", end_time="2024-06-02T08:30:00Z", duration_seconds=duration),
            ],
        )

        assert report.count_inserted == 1
        assert report.errors_count == 1
        assert report.errors == ("duration_seconds must be a non-negative number",)
        assert db_session.query(Workout).count() == 1

    def test_owner_lookup_failure_is_storage_error(self, db_session, paired_client, make_workout, monkeypatch):
        owner, _ = paired_client

        def broken_exists(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("server closed the connection"))

        monkeypatch.setattr(batch_ingest, "client_exists", broken_exists)

        with pytest.raises(IngestStorageError) as exc_info:
            ingest_workouts(db_session, [make_workout(owner)])

        assert exc_info.value.report == IngestReport.storage_failure(1, "Storage failure: OperationalError")

    def test_every_record_invalid_is_failure(self, db_session, paired_client, make_workout):
        owner, _ = paired_client
        report = ingest_workouts(
            db_session,
            [make_workout(owner, start_time="garbage"), make_workout(owner, duration_seconds=-5)],
        )

        assert not report.success
        assert report.errors_count == 2
        assert db_session.query(Workout).count() == 0

    def test_warnings_are_persisted_with_record(self, db_session, paired_client, make_workout):
        owner, _ = paired_client
        report = ingest_workouts(db_session, [make_workout(owner, workout_type="yoga", duration_seconds=500)])

        assert report.count_inserted == 1
        assert report.warnings_count == 2
        workout = db_session.query(Workout).one()
        assert workout.workout_type == "other"
        warnings = db_session.query(IngestWarning).all()
        assert {w.record_id for w in warnings} == {workout.id}
        assert {w.warning_type for w in warnings} == {"validation"}

    def test_storage_failure_rolls_back_whole_batch(self, db_session, paired_client, make_workout, monkeypatch):
        owner, _ = paired_client
        real_lookup = batch_ingest.workouts_starting_near
        calls = []

        def flaky_lookup(*args, **kwargs):
            calls.append(1)
            if len(calls) == 2:
                raise OperationalError("SELECT", {}, Exception("disk I/O error"))
            return real_lookup(*args, **kwargs)

        monkeypatch.setattr(batch_ingest, "workouts_starting_near", flaky_lookup)

        with pytest.raises(IngestStorageError) as exc_info:
            ingest_workouts(
                db_session,
                [
                    make_workout(owner),
                    make_workout(owner, start_time="2024-06-02T08:00:00Z", end_time="2024-06-02T08:30:00Z"),
                ],
            )

        report = exc_info.value.report
        assert report.count_inserted == 0
        assert report.errors_count == 2
        assert not report.success
        assert db_session.query(Workout).count() == 0
        assert db_session.query(IngestWarning).count() == 0


class TestProfileMetricIngest:
    def test_height_inserts_without_warnings(self, db_session, paired_client, make_profile_metric):
        owner, _ = paired_client
        report = ingest_profile_metrics(db_session, [make_profile_metric(owner)])

        assert report.count_inserted == 1
        assert report.warnings_count == 0
        metric = db_session.query(ProfileMetric).one()
        assert metric.unit == "cm"

    def test_out_of_range_inserted_with_warning(self, db_session, paired_client, make_profile_metric):
        owner, _ = paired_client
        report = ingest_profile_metrics(db_session, [make_profile_metric(owner, value=999)])

        assert report.count_inserted == 1
        assert report.warnings_count == 1
        warning = db_session.query(IngestWarning).one()
        assert warning.record_type == "profile_metric"
        assert warning.message == "height value seems unusual (expected cm)"

    def test_non_numeric_value_is_error(self, db_session, paired_client, make_profile_metric):
        owner, _ = paired_client
        report = ingest_profile_metrics(
            db_session,
            [make_profile_metric(owner, value="tall"), make_profile_metric(owner, metric="weight", value=80)],
        )

        assert report.count_inserted == 1
        assert report.errors_count == 1
        assert report.errors == ("value must be a number",)

    def test_profile_metrics_are_never_deduplicated(self, db_session, paired_client, make_profile_metric):
        owner, _ = paired_client
        ingest_profile_metrics(db_session, [make_profile_metric(owner)])
        report = ingest_profile_metrics(db_session, [make_profile_metric(owner)])

        assert report.count_inserted == 1
        assert report.duplicates_skipped == 0

    def test_non_array_message_names_kind(self, db_session):
        with pytest.raises(BatchRejectedError, match="array of profile metric objects"):
            ingest_profile_metrics(db_session, "nope")
