import unittest

from app.activity_routes import clear_activity, get_activity, get_planner_activity, get_user_activity, log_activity
from app.errors import ForbiddenError, NotFoundError, ValidationError
from app.models import PlannerCreate, PlannerShare
from app.planner_routes import create_planner
from tests.fakes import StoreTestCase


class ActivityCase(StoreTestCase):

    def setUp(self):
        super().setUp()
        self.owner = self.add_user("owner@example.com", "Owner")
        self.viewer = self.add_user("viewer@example.com", "Viewer")
        self.planner = create_planner(self.owner["id"], PlannerCreate(title="Log"))
        share = PlannerShare(
            plannerId=self.planner["id"],
            ownerId=self.owner["id"],
            sharedWithUserId=self.viewer["id"],
            sharedWithEmail=self.viewer["email"],
            permission="view",
            isAccepted=True,
        )
        self.planners.create(share.model_dump(mode="json"))

    def stamp_entries(self, count):
        """Adds `count` entries with distinct, increasing timestamps."""
        for index in range(count):
            entry = log_activity(self.planner["id"], self.owner["id"], "section_updated", f"Edit {index}")
            doc = self.planners.get(entry["id"], self.planner["id"])
            doc["timestamp"] = f"2024-05-01T10:{index:02d}:00+00:00"
            self.planners.replace(doc)


class TestLogActivity(ActivityCase):

    def test_unknown_type(self):
        with self.assertRaises(ValueError):
            log_activity(self.planner["id"], self.owner["id"], "planner_exploded", "Boom")

    def test_entry_fields(self):
        entry = log_activity(self.planner["id"], self.owner["id"], "section_created", "Added notes",
                             {"sectionId": "s1"})
        self.assertEqual(entry["metadata"], {"sectionId": "s1"})
        self.assertEqual(entry["userId"], self.owner["id"])
        self.assertTrue(entry["timestamp"])


class TestPlannerActivity(ActivityCase):

    def setUp(self):
        super().setUp()
        # drop the planner_created entry so only stamped entries remain
        clear_activity(self.planner["id"], self.owner["id"])
        self.stamp_entries(5)

    def test_newest_first_with_cursor(self):
        first = get_planner_activity(self.planner["id"], self.viewer["id"], limit=2)
        self.assertEqual([a["description"] for a in first["activities"]], ["Edit 4", "Edit 3"])
        self.assertTrue(first["hasMore"])
        self.assertEqual(first["nextCursor"], first["activities"][-1]["id"])

        second = get_planner_activity(self.planner["id"], self.viewer["id"], limit=2,
                                      start_after=first["nextCursor"])
        self.assertEqual([a["description"] for a in second["activities"]], ["Edit 2", "Edit 1"])

        last = get_planner_activity(self.planner["id"], self.viewer["id"], limit=2,
                                    start_after=second["nextCursor"])
        self.assertEqual([a["description"] for a in last["activities"]], ["Edit 0"])
        self.assertFalse(last["hasMore"])
        self.assertIsNone(last["nextCursor"])

    def same_instant(self):
        for doc in self.planners.of_type("activity"):
            stored = self.planners.get(doc["id"], doc["plannerId"])
            stored["timestamp"] = "2024-05-01T10:00:00+00:00"
            self.planners.replace(stored)

    def page_through(self, fetch):
        seen, cursor = [], None
        while True:
            page = fetch(cursor)
            seen.extend(a["id"] for a in page["activities"])
            if not page["hasMore"]:
                return seen
            cursor = page["nextCursor"]

    def test_entries_logged_in_the_same_instant_are_all_paged(self):
        self.same_instant()
        seen = self.page_through(lambda cursor: get_planner_activity(
            self.planner["id"], self.viewer["id"], limit=2, start_after=cursor))
        self.assertEqual(len(seen), 5)
        self.assertEqual(seen, sorted(set(seen), reverse=True))

    def test_user_feed_pages_through_the_same_instant(self):
        self.same_instant()
        seen = self.page_through(lambda cursor: get_user_activity(self.owner["id"], limit=2, start_after=cursor))
        self.assertEqual(len(set(seen)), 5)

    def test_invalid_cursor(self):
        with self.assertRaises(ValidationError):
            get_planner_activity(self.planner["id"], self.owner["id"], start_after="missing")

    def test_limit_is_clamped(self):
        page = get_planner_activity(self.planner["id"], self.owner["id"], limit="1000")
        self.assertEqual(len(page["activities"]), 5)

    def test_stranger_gets_not_found(self):
        stranger = self.add_user("stranger@example.com", "Stranger")
        with self.assertRaises(NotFoundError):
            get_planner_activity(self.planner["id"], stranger["id"])

    def test_get_single_entry(self):
        entry = get_planner_activity(self.planner["id"], self.owner["id"], limit=1)["activities"][0]
        self.assertEqual(get_activity(entry["id"], self.viewer["id"])["description"], "Edit 4")

    def test_user_activity(self):
        log_activity(self.planner["id"], self.viewer["id"], "invitation_accepted", "Joined")
        page = get_user_activity(self.owner["id"], limit=10)
        self.assertEqual(len(page["activities"]), 5)
        self.assertTrue(all(a["userId"] == self.owner["id"] for a in page["activities"]))


class TestClearActivity(ActivityCase):

    def test_owner_clears(self):
        self.stamp_entries(3)
        removed = clear_activity(self.planner["id"], self.owner["id"])
        self.assertEqual(removed, 4)
        self.assertEqual(get_planner_activity(self.planner["id"], self.owner["id"])["activities"], [])

    def test_viewer_cannot_clear(self):
        with self.assertRaises(ForbiddenError):
            clear_activity(self.planner["id"], self.viewer["id"])

    def test_large_log_cleared_in_batches(self):
        self.stamp_entries(60)
        for _ in range(60):
            log_activity(self.planner["id"], self.owner["id"], "section_created", "Added")
        self.assertEqual(clear_activity(self.planner["id"], self.owner["id"]), 121)
        self.assertEqual(len(self.planners.batches), 2)


if __name__ == '__main__':
    unittest.main()
