from datetime import timedelta

from edurenfort.models import utcnow

from tests.helpers import ApiTestCase


class TestScheduleLive(ApiTestCase):
    def test_scheduled_with_room(self):
        client, teacher_id = self.approved_teacher()
        response = self.schedule_live(client)
        self.assertEqual(response.status_code, 201, response.text)
        live = response.json()
        self.assertEqual(live["state"], "scheduled")
        self.assertFalse(live["isActive"])
        self.assertFalse(live["isEnded"])
        self.assertEqual(live["teacherId"], teacher_id)
        self.assertEqual(live["maxParticipants"], 100)
        self.assertTrue(live["jitsiRoomId"].startswith("edurenfort_"))
        self.assertEqual(live["jitsiUrl"], "https://meet.jit.si/" + live["jitsiRoomId"])

    def test_duration_out_of_range(self):
        client, _ = self.approved_teacher()
        response = self.schedule_live(client, duration=200)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "La durée doit être comprise entre 15 et 180 minutes")
        self.assertEqual(self.new_client().get("/api/live-courses").json(), [])

    def test_duration_defaults_to_an_hour(self):
        client, _ = self.approved_teacher()
        response = self.schedule_live(client, duration=0)
        self.assertEqual(response.json()["duration"], 60)

    def test_missing_date(self):
        client, _ = self.approved_teacher()
        response = self.schedule_live(client, scheduledAt=None)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "La date est requise")

    def test_invalid_date(self):
        client, _ = self.approved_teacher()
        response = self.schedule_live(client, scheduledAt="demain matin")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Date invalide")

    def test_utc_suffix_is_accepted(self):
        client, _ = self.approved_teacher()
        response = self.schedule_live(client, scheduledAt="2031-03-01T09:30:00Z")
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.json()["scheduledAt"].startswith("2031-03-01T09:30:00"))

    def test_pending_teacher_is_forbidden(self):
        client, _ = self.register("teacher")
        self.assertEqual(self.schedule_live(client).status_code, 403)


class TestLifecycle(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.client, _ = self.approved_teacher()
        self.live_id = self.schedule_live(self.client).json()["id"]

    def test_start_then_end(self):
        started = self.client.post(f"/api/live-courses/{self.live_id}/start")
        self.assertEqual(started.status_code, 200)
        self.assertEqual(started.json()["state"], "live")
        self.assertTrue(started.json()["isActive"])

        ended = self.client.post(f"/api/live-courses/{self.live_id}/end")
        self.assertEqual(ended.status_code, 200)
        self.assertEqual(ended.json()["state"], "ended")
        self.assertFalse(ended.json()["isActive"])
        self.assertTrue(ended.json()["isEnded"])

    def test_end_twice(self):
        self.client.post(f"/api/live-courses/{self.live_id}/end")
        again = self.client.post(f"/api/live-courses/{self.live_id}/end")
        self.assertEqual(again.status_code, 200)
        self.assertEqual(again.json()["state"], "ended")

    def test_cannot_restart_after_end(self):
        self.client.post(f"/api/live-courses/{self.live_id}/start")
        self.client.post(f"/api/live-courses/{self.live_id}/end")
        response = self.client.post(f"/api/live-courses/{self.live_id}/start")
        self.assertEqual(response.status_code, 409)
        live = self.new_client().get(f"/api/live-courses/{self.live_id}").json()
        self.assertEqual((live["isActive"], live["isEnded"]), (False, True))

    def test_update_before_and_after_end(self):
        response = self.client.patch(f"/api/live-courses/{self.live_id}", json={"duration": 90})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["duration"], 90)

        self.client.post(f"/api/live-courses/{self.live_id}/end")
        response = self.client.patch(f"/api/live-courses/{self.live_id}", json={"duration": 45})
        self.assertEqual(response.status_code, 409)

    def test_other_teacher_cannot_control(self):
        other, _ = self.approved_teacher()
        self.assertEqual(other.post(f"/api/live-courses/{self.live_id}/start").status_code, 403)
        self.assertEqual(other.delete(f"/api/live-courses/{self.live_id}").status_code, 403)

    def test_admin_can_end(self):
        response = self.admin_client().post(f"/api/live-courses/{self.live_id}/end")
        self.assertEqual(response.json()["state"], "ended")

    def test_delete_while_live(self):
        self.client.post(f"/api/live-courses/{self.live_id}/start")
        self.assertEqual(self.client.delete(f"/api/live-courses/{self.live_id}").status_code, 200)
        self.assertEqual(self.new_client().get(f"/api/live-courses/{self.live_id}").status_code, 404)

    def test_unknown_live(self):
        self.assertEqual(self.client.post("/api/live-courses/999/start").status_code, 404)


class TestListLives(ApiTestCase):
    def test_status_filters(self):
        client, teacher_id = self.approved_teacher()
        now = utcnow()
        future = self.schedule_live(client, when=now + timedelta(days=2), title="Futur").json()
        self.schedule_live(client, when=now - timedelta(days=1), title="Oublié")
        running = self.schedule_live(client, when=now + timedelta(days=1), title="En direct").json()
        finished = self.schedule_live(client, when=now + timedelta(days=3), title="Terminé").json()
        client.post(f"/api/live-courses/{running['id']}/start")
        client.post(f"/api/live-courses/{finished['id']}/end")

        public = self.new_client()

        def titles(**params):
            return [live["title"] for live in public.get("/api/live-courses", params=params).json()]

        self.assertEqual(titles(), ["Terminé", "Futur", "En direct", "Oublié"])
        self.assertEqual(titles(status="upcoming"), ["Futur"])
        self.assertEqual(titles(upcoming="true"), ["Futur"])
        self.assertEqual(titles(status="live"), ["En direct"])
        self.assertEqual(titles(status="past"), ["Terminé"])
        self.assertEqual(titles(teacherId=teacher_id, limit=2), ["Terminé", "Futur"])
        self.assertEqual(public.get(f"/api/live-courses/{future['id']}").json()["teacher"]["id"], teacher_id)

    def test_unknown_status(self):
        response = self.new_client().get("/api/live-courses", params={"status": "bientot"})
        self.assertEqual(response.status_code, 400)

    def test_limit_must_be_positive(self):
        for limit in (0, -1):
            response = self.new_client().get("/api/live-courses", params={"limit": limit})
            self.assertEqual(response.status_code, 400)

    def test_teacher_sees_own_lives(self):
        client, _ = self.approved_teacher()
        other, _ = self.approved_teacher()
        self.schedule_live(client)
        self.schedule_live(other)
        self.assertEqual(len(client.get("/api/teacher/live-courses").json()), 1)
        self.assertEqual(len(self.admin_client().get("/api/admin/live-courses").json()), 2)
