import base64
import json
import smtplib
import unittest
from unittest.mock import MagicMock, patch

import requests
from azure.core.exceptions import AzureError, ResourceNotFoundError

from app import ai_routes, export_routes, handwriting_routes, notifications, storage, workflows
from app.calendar_export import convert_to_calendar_events, generate_ics
from app.errors import ForbiddenError, NotFoundError, ServiceUnavailableError, ValidationError
from app.models import PlannerCreate, PlannerShare, SectionCreate
from app.planner_routes import create_planner
from app.section_routes import create_section
from tests.fakes import StoreTestCase

PNG_DATA_URL = "data:image/png;base64," + base64.b64encode(b"\x89PNG fake").decode("ascii")


def webhook_reply(payload):
    response = MagicMock(status_code=200)
    response.content = json.dumps(payload).encode("utf-8")
    response.json.return_value = payload
    return response


class IntegrationCase(StoreTestCase):

    def setUp(self):
        super().setUp()
        self.owner = self.add_user("owner@example.com", "Owner")
        self.viewer = self.add_user("viewer@example.com", "Viewer")
        self.stranger = self.add_user("stranger@example.com", "Stranger")
        self.planner = create_planner(self.owner["id"], PlannerCreate(title="My Week"))
        share = PlannerShare(
            plannerId=self.planner["id"],
            ownerId=self.owner["id"],
            sharedWithUserId=self.viewer["id"],
            sharedWithEmail=self.viewer["email"],
            permission="view",
            isAccepted=True,
        )
        self.planners.create(share.model_dump(mode="json"))

    def add_schedule(self, date, events):
        return create_section(self.planner["id"], self.owner["id"],
                              SectionCreate(date=date, type="daily_schedule", content={"events": events}))

    def last_payload(self):
        return self.webhook.call_args.kwargs["json"]


class TestWorkflows(StoreTestCase):

    def test_empty_reply(self):
        self.assertEqual(workflows.call_webhook("feedback", {}, "down"), {})

    def test_sends_timeout_and_payload(self):
        self.webhook.return_value = webhook_reply({"ok": True})
        self.assertEqual(workflows.generate_goals("u1", "weekly"), {"ok": True})
        kwargs = self.webhook.call_args.kwargs
        self.assertEqual(kwargs["timeout"], 15)
        self.assertEqual(kwargs["json"], {"userId": "u1", "timeframe": "weekly", "category": None})
        self.assertTrue(self.webhook.call_args.args[0].endswith("/webhook/generate-goals"))

    def test_failure_becomes_service_unavailable(self):
        self.webhook.side_effect = requests.Timeout("slow")
        with self.assertRaises(ServiceUnavailableError) as ctx:
            workflows.suggest_tasks("u1", {})
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(ctx.exception.message, "Task suggestion service temporarily unavailable")

    def test_http_error_status(self):
        response = webhook_reply({})
        response.raise_for_status.side_effect = requests.HTTPError("502")
        self.webhook.return_value = response
        with self.assertRaises(ServiceUnavailableError):
            workflows.analyze_habits("u1", [])


class TestAssistant(IntegrationCase):

    def test_chat_stores_exchange(self):
        self.add_schedule("2024-04-02", [{"time": "09:00", "title": "Standup"}])
        self.webhook.return_value = webhook_reply({"message": "Looks busy", "suggestions": ["Take a break"]})

        reply = ai_routes.send_chat_message(self.planner["id"], self.viewer["id"], "How is my day?", "2024-04-02")

        self.assertEqual(reply, {"message": "Looks busy", "suggestions": ["Take a break"]})
        context = self.last_payload()["plannerContext"]
        self.assertEqual(context["title"], "My Week")
        self.assertEqual(context["sections"][0]["type"], "daily_schedule")

        history = ai_routes.get_chat_history(self.planner["id"], self.viewer["id"])
        self.assertEqual([(h["message"], h["response"]) for h in history], [("How is my day?", "Looks busy")])

    def test_chat_failure_stores_nothing(self):
        self.webhook.side_effect = requests.ConnectionError("down")
        with self.assertRaises(ServiceUnavailableError):
            ai_routes.send_chat_message(self.planner["id"], self.owner["id"], "Hi")
        self.assertEqual(self.planners.of_type("chat"), [])

    def test_chat_requires_access(self):
        with self.assertRaises(NotFoundError):
            ai_routes.send_chat_message(self.planner["id"], self.stranger["id"], "Hi")

    def test_clear_history_owner_only(self):
        self.webhook.return_value = webhook_reply({"message": "Hello"})
        ai_routes.send_chat_message(self.planner["id"], self.owner["id"], "Hi")
        with self.assertRaises(ForbiddenError):
            ai_routes.clear_chat_history(self.planner["id"], self.viewer["id"])
        self.assertEqual(ai_routes.clear_chat_history(self.planner["id"], self.owner["id"]), 1)

    def test_generators_need_edit(self):
        with self.assertRaises(ForbiddenError):
            ai_routes.suggest_meals(self.planner["id"], self.viewer["id"], "2024-04-02")
        with self.assertRaises(ForbiddenError):
            ai_routes.generate_goals(self.planner["id"], self.viewer["id"], "weekly")

    def test_schedule_logged(self):
        self.webhook.return_value = webhook_reply({"events": []})
        result = ai_routes.generate_schedule(self.planner["id"], self.owner["id"], "2024-04-02", ["Gym"])
        self.assertEqual(result, {"events": []})
        logged = self.planners.query("activity", where=[("activityType", "=", "ai_schedule_generated")],
                                     partition_key=self.planner["id"])
        self.assertEqual(len(logged), 1)

    def test_habit_analysis_sends_habits_in_range(self):
        create_section(self.planner["id"], self.owner["id"], SectionCreate(
            date="2024-04-01", type="habit_tracker", content={"habits": [{"name": "Read", "completed": True}]}))
        create_section(self.planner["id"], self.owner["id"], SectionCreate(
            date="2024-05-01", type="habit_tracker", content={"habits": [{"name": "Run"}]}))

        ai_routes.analyze_habits(self.planner["id"], self.viewer["id"], "2024-04-01", "2024-04-30")

        habit_data = self.last_payload()["habitData"]
        self.assertEqual([entry["date"] for entry in habit_data], ["2024-04-01"])
        self.assertEqual(habit_data[0]["habits"][0]["name"], "Read")

    def test_habit_analysis_bad_range(self):
        with self.assertRaises(ValidationError):
            ai_routes.analyze_habits(self.planner["id"], self.owner["id"], "2024-05-01", "2024-04-01")


class TestCalendarExport(unittest.TestCase):

    sections = [{
        "date": "2024-04-02",
        "content": {"events": [
            {"time": "09:30", "title": "Standup, daily", "description": "Room 4; bring notes"},
            {"title": "No time"},
        ]},
    }]

    def test_events_last_an_hour(self):
        events = convert_to_calendar_events(self.sections)
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0]["start"]["dateTime"], "2024-04-02T09:30:00+00:00")
        self.assertEqual(events[0]["end"]["dateTime"], "2024-04-02T10:30:00+00:00")
        self.assertEqual(events[0]["start"]["timeZone"], "UTC")

    def test_ics_document(self):
        ics = generate_ics(convert_to_calendar_events(self.sections))
        lines = ics["icsContent"].strip().split("\r\n")
        self.assertEqual(lines[0], "BEGIN:VCALENDAR")
        self.assertEqual(lines[-1], "END:VCALENDAR")
        self.assertIn("DTSTART:20240402T093000Z", lines)
        self.assertIn("DTEND:20240402T103000Z", lines)
        self.assertIn("SUMMARY:Standup\\, daily", lines)
        self.assertIn("DESCRIPTION:Room 4\\; bring notes", lines)
        self.assertTrue(ics["filename"].endswith(".ics"))


class TestExports(IntegrationCase):

    def test_pdf_export_recorded_under_job_id(self):
        self.webhook.return_value = webhook_reply({"id": "job-7", "status": "processing"})
        result = export_routes.export_planner_pdf(self.planner["id"], self.viewer["id"], "2024-04-02", "daily")

        self.assertEqual(result, {"exportId": "job-7", "status": "processing"})
        record = self.records.get("job-7", self.viewer["id"])
        self.assertEqual(record["filePath"], f"exports/{self.viewer['id']}/job-7.pdf")
        self.assertEqual(record["filename"], "my-week-2024-04-02.pdf")
        self.assertEqual(export_routes.get_export_status("job-7", self.viewer["id"]), {"status": "pending"})

    def test_include_sections_filter(self):
        self.add_schedule("2024-04-02", [])
        create_section(self.planner["id"], self.owner["id"], SectionCreate(date="2024-04-02", type="notes"))
        export_routes.export_planner_pdf(self.planner["id"], self.owner["id"], "2024-04-02", "daily", ["notes"])
        self.assertEqual([s["type"] for s in self.last_payload()["sections"]], ["notes"])

    def test_download_before_completion(self):
        self.webhook.return_value = webhook_reply({"id": "job-8"})
        export_routes.export_planner_pdf(self.planner["id"], self.owner["id"], "2024-04-02", "daily")
        with self.assertRaises(ValidationError) as ctx:
            export_routes.get_export_download("job-8", self.owner["id"])
        self.assertEqual(ctx.exception.message, "Export not ready yet")

    def test_download_completed(self):
        self.webhook.return_value = webhook_reply({"id": "job-9"})
        export_routes.export_planner_pdf(self.planner["id"], self.owner["id"], "2024-04-02", "daily")
        record = self.records.get("job-9", self.owner["id"])
        record["status"] = "completed"
        self.records.replace(record)

        with patch("app.export_routes.storage.download_url", return_value="https://blob/x.pdf?sig") as signer:
            result = export_routes.get_export_download("job-9", self.owner["id"])
        signer.assert_called_once_with(record["filePath"])
        self.assertEqual(result, {"downloadUrl": "https://blob/x.pdf?sig", "filename": "my-week-2024-04-02.pdf"})

    def test_someone_elses_export(self):
        self.webhook.return_value = webhook_reply({"id": "job-10"})
        export_routes.export_planner_pdf(self.planner["id"], self.owner["id"], "2024-04-02", "daily")
        with self.assertRaises(NotFoundError):
            export_routes.get_export_status("job-10", self.viewer["id"])

    def test_range_export(self):
        self.add_schedule("2024-04-02", [])
        result = export_routes.export_date_range_pdf(self.planner["id"], self.owner["id"],
                                                     "2024-04-01", "2024-04-07", "weekly")
        payload = self.last_payload()
        self.assertEqual((payload["startDate"], payload["endDate"]), ("2024-04-01", "2024-04-07"))
        self.assertEqual(len(payload["sections"]), 1)
        self.assertEqual(result["status"], "processing")

    def test_range_export_bad_range(self):
        with self.assertRaises(ValidationError):
            export_routes.export_date_range_pdf(self.planner["id"], self.owner["id"],
                                                "2024-04-07", "2024-04-01", "weekly")

    def test_calendar_ics(self):
        self.add_schedule("2024-04-02", [{"time": "08:00", "title": "Run"}])
        result = export_routes.export_to_calendar(self.planner["id"], self.viewer["id"], "2024-04-01", "2024-04-30")
        self.assertIn("SUMMARY:Run", result["icsContent"])
        self.webhook.assert_not_called()

    def test_calendar_google(self):
        self.add_schedule("2024-04-02", [{"time": "08:00", "title": "Run"}])
        self.webhook.return_value = webhook_reply({"synced": 1})
        result = export_routes.export_to_calendar(self.planner["id"], self.owner["id"],
                                                  "2024-04-01", "2024-04-30", "google")
        self.assertEqual(result, {"synced": 1})
        self.assertEqual(self.last_payload()["events"][0]["summary"], "Run")


class TestHandwriting(IntegrationCase):

    def test_decode_formats(self):
        self.assertEqual(handwriting_routes.decode_drawing(PNG_DATA_URL).data, b"\x89PNG fake")
        self.assertEqual(handwriting_routes.decode_drawing("<svg></svg>").format, "svg")
        strokes = handwriting_routes.decode_drawing(json.dumps({"paths": [{"points": [{"x": 1, "y": 2}]}]}))
        self.assertEqual(strokes.extension, "json")

    def test_decode_rejects_garbage(self):
        for drawing in ("hello", '{"lines": []}', "data:image/png;base64,***", "data:image/tiff;base64,AAAA"):
            with self.assertRaises(ValidationError):
                handwriting_routes.decode_drawing(drawing)

    def test_convert(self):
        self.webhook.return_value = webhook_reply({"text": "buy milk", "confidence": 0.9})
        result = handwriting_routes.convert_handwriting(self.owner["id"], PNG_DATA_URL, self.planner["id"])

        self.assertEqual(result["text"], "buy milk")
        self.assertEqual(result["confidence"], 0.9)
        self.assertEqual(self.last_payload()["format"], "png")
        self.assertEqual(self.records.get(result["id"], self.owner["id"])["recognizedText"], "buy milk")

    def test_convert_into_read_only_planner(self):
        with self.assertRaises(ForbiddenError):
            handwriting_routes.convert_handwriting(self.viewer["id"], PNG_DATA_URL, self.planner["id"])

    def test_save_and_share(self):
        with patch("app.handwriting_routes.storage.upload_file", return_value="https://blob/h.png?sig") as upload:
            saved = handwriting_routes.save_handwriting(self.owner["id"], PNG_DATA_URL, self.planner["id"])

        path, data, content_type = upload.call_args.args
        self.assertTrue(path.startswith(f"handwriting/{self.owner['id']}/"))
        self.assertTrue(path.endswith(".png"))
        self.assertEqual((data, content_type), (b"\x89PNG fake", "image/png"))
        self.assertEqual(saved["imageUrl"], "https://blob/h.png?sig")

        self.assertEqual(handwriting_routes.get_handwriting(saved["id"], self.viewer["id"])["imageUrl"],
                         "https://blob/h.png?sig")
        with self.assertRaises(NotFoundError):
            handwriting_routes.get_handwriting(saved["id"], self.stranger["id"])

    def test_delete(self):
        with patch("app.handwriting_routes.storage.upload_file", return_value="https://blob/h.png?sig"):
            saved = handwriting_routes.save_handwriting(self.owner["id"], PNG_DATA_URL, self.planner["id"])

        with self.assertRaises(ForbiddenError):
            handwriting_routes.delete_handwriting(saved["id"], self.viewer["id"])
        with self.assertRaises(NotFoundError):
            handwriting_routes.delete_handwriting(saved["id"], self.stranger["id"])

        with patch("app.handwriting_routes.storage.delete_file") as delete_file:
            handwriting_routes.delete_handwriting(saved["id"], self.owner["id"])
        delete_file.assert_called_once()
        self.assertEqual(self.records.of_type("handwriting"), [])


class TestStorage(unittest.TestCase):

    def setUp(self):
        client = patch("app.storage._get_service_client")
        self.client = client.start()
        self.addCleanup(client.stop)
        self.blob = self.client.return_value.get_blob_client.return_value

    def test_delete_missing_blob_is_fine(self):
        self.blob.delete_blob.side_effect = ResourceNotFoundError("gone")
        storage.delete_file("handwriting/u/1.png")

    def test_upload_failure(self):
        self.blob.upload_blob.side_effect = AzureError("boom")
        with self.assertRaises(ServiceUnavailableError):
            storage.upload_file("handwriting/u/1.png", b"x", "image/png")

    def test_upload_returns_signed_url(self):
        with patch("app.storage.signed_url", return_value="https://blob/u/1.png?sig") as sign:
            self.assertEqual(storage.upload_file("u/1.png", b"x", "image/png"), "https://blob/u/1.png?sig")
        self.assertEqual(sign.call_args.args[1].days, 365)


class TestEmail(unittest.TestCase):

    def setUp(self):
        for name, value in (("MAIL_USERNAME", "planner@example.com"), ("MAIL_FROM", "no-reply@example.com")):
            setting = patch(f"app.notifications.{name}", value)
            setting.start()
            self.addCleanup(setting.stop)
        smtp = patch("app.notifications.smtplib.SMTP")
        self.smtp = smtp.start()
        self.addCleanup(smtp.stop)
        self.server = self.smtp.return_value.__enter__.return_value

    def test_sends_text_and_html_parts(self):
        self.assertTrue(notifications.send_email("guest@example.com", "Invite", "plain body", "<p>html body</p>"))
        message = self.server.send_message.call_args.args[0]
        self.assertEqual(message["To"], "guest@example.com")
        self.assertEqual([part.get_content_type() for part in message.get_payload()], ["text/plain", "text/html"])
        self.server.starttls.assert_called_once()

    def test_text_only(self):
        notifications.send_email("guest@example.com", "Invite", "plain body")
        message = self.server.send_message.call_args.args[0]
        self.assertEqual([part.get_content_type() for part in message.get_payload()], ["text/plain"])

    def test_no_recipient(self):
        self.assertFalse(notifications.send_email("", "Invite", "plain body"))
        self.smtp.assert_not_called()

    def test_server_refusal_is_reported(self):
        self.server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
        self.assertFalse(notifications.send_email("guest@example.com", "Invite", "plain body"))


if __name__ == '__main__':
    unittest.main()
