import os
import tempfile
from datetime import date, datetime
from unittest import TestCase

from sqlalchemy.orm import sessionmaker

from checkin.database import build_engine, init_db
from checkin.models.correction import AttendanceCorrection
from checkin.models.session import DailySession
from checkin.models.student import Student
from checkin.services import correction_service
from checkin.utils.error_utils import NotFoundError, ValidationError

NOW = datetime(2025, 1, 15, 14, 0, 0)


class CorrectionServiceTestCase(TestCase):
    def setUp(self):
        self.engine = build_engine("sqlite://")
        init_db(self.engine)
        self.db = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)()

        self.student = Student(full_name="Ada Lovelace", subteam="Programming", is_active=True)
        self.db.add(self.student)
        self.db.commit()

    def tearDown(self):
        self.db.close()
        self.engine.dispose()

    def file(self, clock_in="15:30", clock_out="18:00", reason="forgot to clock in", now=NOW):
        return correction_service.request_correction(
            self.db, self.student.id, "2025-01-14", clock_in, clock_out, reason, now=now
        )


class TestRequestCorrection(CorrectionServiceTestCase):
    def test_request_is_pending_with_utc_times(self):
        correction = self.file()

        self.assertEqual(correction["status"], "pending")
        self.assertEqual(correction["full_name"], "Ada Lovelace")
        self.assertEqual(correction["meeting_date"], "2025-01-14")
        # EST is UTC-5 in January
        self.assertEqual(correction["requested_clock_in"], "2025-01-14T20:30:00+00:00")
        self.assertEqual(correction["requested_clock_out"], "2025-01-14T23:00:00+00:00")
        self.assertIsNone(correction["decided_at"])

    def test_clock_out_is_optional(self):
        correction = self.file(clock_out=None)
        self.assertIsNone(correction["requested_clock_out"])

    def test_invalid_requests(self):
        with self.assertRaises(ValidationError):
            self.file(reason="  ")
        with self.assertRaises(ValidationError):
            self.file(clock_in="")
        with self.assertRaises(ValidationError):
            self.file(clock_in="3pm")
        with self.assertRaises(ValidationError):
            self.file(clock_in="18:00", clock_out="15:00")
        with self.assertRaises(ValidationError):
            correction_service.request_correction(self.db, self.student.id, "14/01/2025", "15:30", None, "x")
        with self.assertRaises(NotFoundError):
            correction_service.request_correction(self.db, 999, "2025-01-14", "15:30", None, "x")

    def test_list_filters_by_status(self):
        first = self.file(now=NOW)
        second = self.file(now=datetime(2025, 1, 15, 15, 0))
        correction_service.decide_correction(self.db, first["id"], "denied", now=NOW)

        everything = correction_service.list_corrections(self.db)
        self.assertEqual([c["id"] for c in everything], [second["id"], first["id"]])

        pending = correction_service.list_corrections(self.db, "pending")
        self.assertEqual([c["id"] for c in pending], [second["id"]])
        self.assertEqual(pending[0]["full_name"], "Ada Lovelace")

        with self.assertRaises(ValidationError):
            correction_service.list_corrections(self.db, "maybe")


class TestDecideCorrection(CorrectionServiceTestCase):
    def session_for_day(self):
        return self.db.query(DailySession).filter(
            DailySession.student_id == self.student.id,
            DailySession.meeting_date == date(2025, 1, 14)
        ).first()

    def test_decision_is_final(self):
        correction = self.file()
        decided = correction_service.decide_correction(self.db, correction["id"], "approved", now=NOW)

        self.assertEqual(decided["status"], "approved")
        self.assertEqual(decided["decided_at"], "2025-01-15T14:00:00+00:00")

        with self.assertRaises(ValidationError):
            correction_service.decide_correction(self.db, correction["id"], "denied", now=NOW)

    def test_bad_status_and_unknown_id(self):
        correction = self.file()
        with self.assertRaises(ValidationError):
            correction_service.decide_correction(self.db, correction["id"], "pending", now=NOW)
        with self.assertRaises(NotFoundError):
            correction_service.decide_correction(self.db, 404, "approved", now=NOW)

    def test_approval_without_write_back_leaves_sessions(self):
        correction = self.file()
        correction_service.decide_correction(
            self.db, correction["id"], "approved", apply_to_session=False, now=NOW
        )
        self.assertIsNone(self.session_for_day())

    def test_approval_with_write_back_rewrites_session(self):
        correction = self.file()
        correction_service.decide_correction(
            self.db, correction["id"], "approved", apply_to_session=True, now=NOW
        )

        session = self.session_for_day()
        self.assertEqual(session.clock_in_at, datetime(2025, 1, 14, 20, 30))
        self.assertEqual(session.clock_out_at, datetime(2025, 1, 14, 23, 0))

    def test_denial_never_writes_back(self):
        correction = self.file()
        correction_service.decide_correction(
            self.db, correction["id"], "denied", apply_to_session=True, now=NOW
        )
        self.assertIsNone(self.session_for_day())


class TestConcurrentDecisions(TestCase):
    """Two mentors deciding the same correction from separate connections."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.engine = build_engine(f"sqlite:///{os.path.join(self.tmp.name, 'checkin.db')}")
        init_db(self.engine)
        self.Session = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

        db = self.Session()
        student = Student(full_name="Ada Lovelace", subteam="Programming", is_active=True)
        db.add(student)
        db.commit()
        self.correction_id = correction_service.request_correction(
            db, student.id, "2025-01-14", "15:30", "18:00", "forgot to clock in", now=NOW
        )["id"]
        db.close()

    def tearDown(self):
        self.engine.dispose()
        self.tmp.cleanup()

    def stored_status(self):
        db = self.Session()
        try:
            return db.query(AttendanceCorrection).filter(AttendanceCorrection.id == self.correction_id).one().status
        finally:
            db.close()

    def test_decision_made_after_load_cannot_overwrite(self):
        late, early = self.Session(), self.Session()
        try:
            seen = late.query(AttendanceCorrection).filter(AttendanceCorrection.id == self.correction_id).one()
            self.assertEqual(seen.status, "pending")

            correction_service.decide_correction(early, self.correction_id, "approved", apply_to_session=False, now=NOW)

            with self.assertRaises(ValidationError) as ctx:
                correction_service.decide_correction(late, self.correction_id, "denied", apply_to_session=False, now=NOW)
            self.assertEqual(ctx.exception.message, "Correction already approved")
        finally:
            late.close()
            early.close()

        self.assertEqual(self.stored_status(), "approved")

    def test_losing_approval_does_not_write_back(self):
        first, second = self.Session(), self.Session()
        try:
            correction_service.decide_correction(first, self.correction_id, "denied", apply_to_session=True, now=NOW)
            with self.assertRaises(ValidationError):
                correction_service.decide_correction(second, self.correction_id, "approved", apply_to_session=True, now=NOW)
            self.assertEqual(second.query(DailySession).count(), 0)
        finally:
            first.close()
            second.close()

        self.assertEqual(self.stored_status(), "denied")
