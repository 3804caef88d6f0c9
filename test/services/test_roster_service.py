from unittest import TestCase

from sqlalchemy.orm import sessionmaker

from checkin.database import build_engine, init_db
from checkin.services import roster_service
from checkin.utils.error_utils import NotFoundError, ValidationError


class TestRosterService(TestCase):
    def setUp(self):
        self.engine = build_engine("sqlite://")
        init_db(self.engine)
        self.db = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)()

    def tearDown(self):
        self.db.close()
        self.engine.dispose()

    def test_upsert_creates_then_reactivates(self):
        created = roster_service.upsert_student(self.db, "  Ada Lovelace ", "Programming")
        self.assertEqual(created["full_name"], "Ada Lovelace")
        self.assertTrue(created["is_active"])

        roster_service.update_student(self.db, created["id"], is_active=False)
        self.assertEqual(roster_service.list_active_students(self.db), [])

        again = roster_service.upsert_student(self.db, "Ada Lovelace", "Build")
        self.assertEqual(again["id"], created["id"])
        self.assertEqual(again["subteam"], "Build")
        self.assertTrue(again["is_active"])
        self.assertEqual(len(roster_service.list_all_students(self.db)), 1)

    def test_upsert_requires_name(self):
        with self.assertRaises(ValidationError):
            roster_service.upsert_student(self.db, "   ")

    def test_lists_are_name_sorted(self):
        roster_service.upsert_student(self.db, "Grace Hopper")
        zed = roster_service.upsert_student(self.db, "Zed Former")
        roster_service.upsert_student(self.db, "Ada Lovelace")
        roster_service.update_student(self.db, zed["id"], is_active=False)

        active = [s["full_name"] for s in roster_service.list_active_students(self.db)]
        everyone = [s["full_name"] for s in roster_service.list_all_students(self.db)]
        self.assertEqual(active, ["Ada Lovelace", "Grace Hopper"])
        self.assertEqual(everyone, ["Ada Lovelace", "Grace Hopper", "Zed Former"])

    def test_update_blank_semantics(self):
        student = roster_service.upsert_student(self.db, "Ada Lovelace", "Programming")

        kept = roster_service.update_student(self.db, student["id"], full_name="  ")
        self.assertEqual(kept["full_name"], "Ada Lovelace")
        self.assertEqual(kept["subteam"], "Programming")

        cleared = roster_service.update_student(self.db, student["id"], subteam="")
        self.assertIsNone(cleared["subteam"])

        renamed = roster_service.update_student(self.db, student["id"], full_name="Ada King")
        self.assertEqual(renamed["full_name"], "Ada King")

    def test_rename_to_existing_name_is_rejected(self):
        roster_service.upsert_student(self.db, "Ada Lovelace")
        grace = roster_service.upsert_student(self.db, "Grace Hopper")

        with self.assertRaises(ValidationError):
            roster_service.update_student(self.db, grace["id"], full_name="Ada Lovelace")
        self.assertEqual(roster_service.get_student(self.db, grace["id"]).full_name, "Grace Hopper")

    def test_inactive_student_cannot_act(self):
        student = roster_service.upsert_student(self.db, "Ada Lovelace")
        roster_service.update_student(self.db, student["id"], is_active=False)

        with self.assertRaises(NotFoundError):
            roster_service.get_active_student(self.db, student["id"])
        with self.assertRaises(ValidationError):
            roster_service.get_active_student(self.db, None)
