import unittest
from unittest.mock import patch

import requests

from app import main
from tests.fakes import StoreTestCase, make_request, read_json


class HttpCase(StoreTestCase):

    def setUp(self):
        super().setUp()
        self.owner = self.add_user("owner@example.com", "Owner")
        self.user2 = self.add_user("user2@example.com", "User Two")
        self.owner_token = self.token_for(self.owner)
        self.user2_token = self.token_for(self.user2)

    def call(self, handler, method="GET", url="/api", body=None, token=None, **kwargs):
        response = handler(make_request(method, url, body=body, token=token, **kwargs))
        return response.status_code, read_json(response)


class TestEnvelope(HttpCase):

    def test_health(self):
        status, body = self.call(main.health_handler)
        self.assertEqual(status, 200)
        self.assertEqual(body, {"success": True, "data": {"status": "ok"}})

    def test_missing_token(self):
        status, body = self.call(main.list_planners_handler)
        self.assertEqual(status, 401)
        self.assertEqual(body, {"status": "error", "message": "No token provided"})

    def test_login_unknown_user(self):
        status, body = self.call(main.login_handler, "POST", body={"email": "x@example.com", "password": "pw"})
        self.assertEqual(status, 401)
        self.assertEqual(body["message"], "Invalid email or password")

    def test_invalid_json(self):
        status, body = self.call(main.create_planner_handler, "POST", token=self.owner_token, raw_body=b"{oops")
        self.assertEqual(status, 400)
        self.assertEqual(body["message"], "Request body must be valid JSON")

    def test_validation_details(self):
        status, body = self.call(main.register_handler, "POST",
                                 body={"email": "not-an-email", "password": "123", "displayName": "A"})
        self.assertEqual(status, 400)
        self.assertEqual(body["message"], "Validation error")
        fields = {detail["field"] for detail in body["details"]}
        self.assertEqual(fields, {"email", "password", "displayName"})

    def test_not_found(self):
        status, body = self.call(main.get_planner_handler, token=self.owner_token,
                                 route_params={"plannerId": "missing"})
        self.assertEqual(status, 404)
        self.assertEqual(body, {"status": "error", "message": "Planner not found"})

    def test_unexpected_error_is_hidden(self):
        with patch("app.main.planner_routes.list_planners", side_effect=RuntimeError("disk on fire")):
            status, body = self.call(main.list_planners_handler, token=self.owner_token)
        self.assertEqual(status, 500)
        self.assertEqual(body, {"status": "error", "message": "Internal server error"})


class TestAuthEndpoints(HttpCase):

    def test_register_then_me(self):
        status, body = self.call(main.register_handler, "POST",
                                 body={"email": "new@example.com", "password": "secret1", "displayName": "Newbie"})
        self.assertEqual(status, 201)
        self.assertTrue(body["success"])
        self.assertEqual(body["message"], "User registered successfully")

        status, me = self.call(main.me_handler, token=body["data"]["accessToken"])
        self.assertEqual(status, 200)
        self.assertEqual(me["data"]["user"]["email"], "new@example.com")

    def test_logout_revokes_token(self):
        status, _ = self.call(main.logout_handler, "POST", token=self.owner_token)
        self.assertEqual(status, 200)
        status, body = self.call(main.me_handler, token=self.owner_token)
        self.assertEqual(status, 401)
        self.assertEqual(body["message"], "Token has been revoked")


class TestPlannerFlow(HttpCase):

    def create_planner(self, title="Work"):
        status, body = self.call(main.create_planner_handler, "POST", body={"title": title}, token=self.owner_token)
        self.assertEqual(status, 201)
        return body["data"]["planner"]

    def test_view_share_then_upgrade_to_edit(self):
        planner = self.create_planner()

        status, body = self.call(main.create_section_handler, "POST", token=self.owner_token,
                                 route_params={"plannerId": planner["id"]},
                                 body={"date": "2024-01-10", "type": "todo_list", "order": 0})
        self.assertEqual(status, 201)
        section = body["data"]["section"]

        status, body = self.call(main.share_planner_handler, "POST", token=self.owner_token,
                                 route_params={"plannerId": planner["id"]},
                                 body={"email": "user2@example.com", "permission": "view"})
        self.assertEqual(status, 201)
        share = body["data"]["share"]

        status, _ = self.call(main.accept_invitation_handler, "POST", token=self.user2_token,
                              route_params={"shareId": share["id"]})
        self.assertEqual(status, 200)

        update = {"title": "Shared tasks"}
        status, body = self.call(main.update_section_handler, "PUT", token=self.user2_token,
                                 route_params={"sectionId": section["id"]}, body=update)
        self.assertEqual(status, 403)
        self.assertEqual(body["message"], "You do not have permission to edit this planner")

        status, _ = self.call(main.update_permission_handler, "PUT", token=self.owner_token,
                              route_params={"shareId": share["id"]}, body={"permission": "edit"})
        self.assertEqual(status, 200)

        status, body = self.call(main.update_section_handler, "PUT", token=self.user2_token,
                                 route_params={"sectionId": section["id"]}, body=update)
        self.assertEqual(status, 200)
        self.assertEqual(body["data"]["section"]["title"], "Shared tasks")

    def test_list_and_archive(self):
        planner = self.create_planner()
        status, _ = self.call(main.archive_planner_handler, "POST", token=self.owner_token,
                              route_params={"plannerId": planner["id"]})
        self.assertEqual(status, 200)

        _, body = self.call(main.list_planners_handler, token=self.owner_token)
        self.assertEqual(body["data"]["planners"], [])
        _, body = self.call(main.list_planners_handler, token=self.owner_token, params={"includeArchived": "true"})
        self.assertEqual(len(body["data"]["planners"]), 1)

    def test_duplicate_without_body(self):
        planner = self.create_planner()
        status, body = self.call(main.duplicate_planner_handler, "POST", token=self.owner_token,
                                 route_params={"plannerId": planner["id"]})
        self.assertEqual(status, 201)
        self.assertEqual(body["data"]["planner"]["title"], "Work (Copy)")

    def test_reorder_validation(self):
        planner = self.create_planner()
        status, body = self.call(main.reorder_sections_handler, "PUT", token=self.owner_token,
                                 body={"plannerId": planner["id"], "sectionOrders": [{"id": "s1", "order": -1}]})
        self.assertEqual(status, 400)
        self.assertEqual(body["details"][0]["field"], "sectionOrders.0.order")

    def test_range_requires_both_bounds(self):
        planner = self.create_planner()
        status, body = self.call(main.sections_in_range_handler, token=self.owner_token,
                                 route_params={"plannerId": planner["id"]}, params={"start": "2024-01-01"})
        self.assertEqual(status, 400)
        self.assertEqual(body["details"], [{"field": "end", "message": "Required"}])

    def test_activity_page(self):
        planner = self.create_planner()
        status, body = self.call(main.planner_activity_handler, token=self.owner_token,
                                 route_params={"plannerId": planner["id"]}, params={"limit": "10"})
        self.assertEqual(status, 200)
        self.assertEqual([a["activityType"] for a in body["data"]["activities"]], ["planner_created"])
        self.assertFalse(body["data"]["hasMore"])

    def test_share_conflict(self):
        planner = self.create_planner()
        share = {"email": "user2@example.com", "permission": "view"}
        self.call(main.share_planner_handler, "POST", token=self.owner_token,
                  route_params={"plannerId": planner["id"]}, body=share)
        status, body = self.call(main.share_planner_handler, "POST", token=self.owner_token,
                                 route_params={"plannerId": planner["id"]}, body=share)
        self.assertEqual(status, 400)
        self.assertEqual(body["message"], "Planner already shared with this user")

    def test_workflow_outage(self):
        planner = self.create_planner()
        self.webhook.side_effect = requests.ConnectionError("down")
        status, body = self.call(main.chat_handler, "POST", token=self.owner_token,
                                 body={"plannerId": planner["id"], "message": "Hello"})
        self.assertEqual(status, 500)
        self.assertEqual(body["message"], "AI chat service temporarily unavailable")


if __name__ == '__main__':
    unittest.main()
