import unittest

from app.errors import ForbiddenError, NotFoundError
from app.models import PlannerCreate, PlannerShare
from app.permissions import check_permission, require_edit, require_owner, require_view, resolve_section
from app.planner_routes import create_planner
from tests.fakes import StoreTestCase


class PlannerAccessCase(StoreTestCase):

    def setUp(self):
        super().setUp()
        self.owner = self.add_user("owner@example.com", "Owner")
        self.guest = self.add_user("guest@example.com", "Guest")
        self.planner = create_planner(self.owner["id"], PlannerCreate(title="Work"))

    def share(self, permission, accepted=True):
        share = PlannerShare(
            plannerId=self.planner["id"],
            ownerId=self.owner["id"],
            sharedWithUserId=self.guest["id"],
            sharedWithEmail=self.guest["email"],
            permission=permission,
            isAccepted=accepted,
        )
        return self.planners.create(share.model_dump(mode="json"))


class TestCheckPermission(PlannerAccessCase):

    def test_owner_can_view_and_edit(self):
        self.assertTrue(check_permission(self.planner["id"], self.owner["id"], "view"))
        self.assertTrue(check_permission(self.planner["id"], self.owner["id"], "edit"))

    def test_stranger_has_no_access(self):
        self.assertFalse(check_permission(self.planner["id"], self.guest["id"], "view"))
        self.assertFalse(check_permission(self.planner["id"], self.guest["id"], "edit"))

    def test_missing_planner_denies(self):
        self.assertFalse(check_permission("no-such-planner", self.owner["id"], "view"))

    def test_pending_share_grants_nothing(self):
        self.share("edit", accepted=False)
        self.assertFalse(check_permission(self.planner["id"], self.guest["id"], "view"))

    def test_accepted_view_share_is_read_only(self):
        self.share("view")
        self.assertTrue(check_permission(self.planner["id"], self.guest["id"], "view"))
        self.assertFalse(check_permission(self.planner["id"], self.guest["id"], "edit"))

    def test_accepted_edit_share_can_edit(self):
        self.share("edit")
        self.assertTrue(check_permission(self.planner["id"], self.guest["id"], "edit"))

    def test_revoked_share_takes_effect_immediately(self):
        share = self.share("edit")
        self.assertTrue(check_permission(self.planner["id"], self.guest["id"], "view"))
        self.planners.delete(share["id"], self.planner["id"])
        self.assertFalse(check_permission(self.planner["id"], self.guest["id"], "view"))


class TestGuards(PlannerAccessCase):

    def test_require_view_hides_existence(self):
        with self.assertRaises(NotFoundError):
            require_view(self.planner["id"], self.guest["id"])

    def test_require_edit_forbidden_for_viewer(self):
        self.share("view")
        with self.assertRaises(ForbiddenError):
            require_edit(self.planner["id"], self.guest["id"])

    def test_require_edit_not_found_for_stranger(self):
        with self.assertRaises(NotFoundError):
            require_edit(self.planner["id"], self.guest["id"])

    def test_require_owner_forbidden_for_editor(self):
        self.share("edit")
        with self.assertRaises(ForbiddenError):
            require_owner(self.planner["id"], self.guest["id"])

    def test_require_owner_not_found_for_stranger(self):
        with self.assertRaises(NotFoundError):
            require_owner(self.planner["id"], self.guest["id"])

    def test_require_owner_returns_planner(self):
        planner = require_owner(self.planner["id"], self.owner["id"])
        self.assertEqual(planner["title"], "Work")

    def test_resolve_unknown_section(self):
        with self.assertRaises(NotFoundError):
            resolve_section("missing")


if __name__ == '__main__':
    unittest.main()
