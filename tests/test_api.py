import io
import unittest
from datetime import date, timedelta

from medalarm import create_app
from medalarm.config import TestingConfig
from medalarm.extensions import db
from medalarm.models import Medicine, MedicineTime, Notification


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self.app = create_app(TestingConfig)
        self.client = self.app.test_client()
        self.ctx = self.app.app_context()
        self.ctx.push()

    def tearDown(self):
        db.session.remove()
        db.drop_all()
        self.ctx.pop()

    def post(self, path, **payload):
        return self.client.post(f"/api{path}", json=payload)

    def create_user(self, name, role):
        resp = self.post("/create-user", name=name, role=role)
        self.assertEqual(resp.status_code, 200)
        return resp.get_json()["user"]

    def add_medicine(self, patient, **extra):
        payload = {"name": "Paracetamol", "time": "08:00", "patientId": patient["id"],
                   "createdBy": patient["id"]}
        payload.update(extra)
        return self.post("/add-medicine", **payload)

    def medicines(self, patient):
        resp = self.client.get(f"/api/medicines?patientId={patient['id']}")
        self.assertEqual(resp.status_code, 200)
        return resp.get_json()["medicines"]


class TestUsers(ApiTestCase):
    def test_create_user_gets_link_code(self):
        user = self.create_user("Anku", "patient")
        self.assertEqual(len(user["linkCode"]), 6)
        self.assertEqual(user["linkedUsers"], [])

    def test_create_user_validation(self):
        self.assertEqual(self.post("/create-user", name="", role="patient").status_code, 400)
        self.assertEqual(self.post("/create-user", name="X", role="admin").status_code, 400)

    def test_link_both_ways(self):
        patient = self.create_user("Anku", "patient")
        caregiver = self.create_user("Amit", "caregiver")

        resp = self.post("/link-user", requesterId=caregiver["id"], linkCode=patient["linkCode"].lower())
        body = resp.get_json()
        self.assertTrue(body["success"])
        self.assertEqual(body["requester"]["linkedUsers"][0]["id"], patient["id"])

        again = self.post("/link-user", requesterId=caregiver["id"], linkCode=patient["linkCode"])
        self.assertEqual(again.status_code, 400)

        from medalarm.models import User
        p = db.session.get(User, patient["id"])
        self.assertEqual([u.id for u in p.caregivers()], [caregiver["id"]])

    def test_link_unknown_code(self):
        caregiver = self.create_user("Amit", "caregiver")
        resp = self.post("/link-user", requesterId=caregiver["id"], linkCode="NOPE00")
        self.assertEqual(resp.status_code, 404)
        self.assertFalse(resp.get_json()["success"])


class TestMedicines(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.patient = self.create_user("Anku", "patient")

    def test_add_legacy_single_time(self):
        resp = self.add_medicine(self.patient, totalQuantity=30)
        med = resp.get_json()["medicine"]
        self.assertEqual(med["time"], "08:00")
        self.assertEqual(med["status"], "pending")
        self.assertEqual(med["times"], [{"time": "08:00", "scheduledTime": "08:00", "status": "pending"}])
        self.assertEqual(med["totalQuantity"], 30)

    def test_add_rejects_bad_input(self):
        self.assertEqual(self.add_medicine(self.patient, name="  ").status_code, 400)
        self.assertEqual(self.add_medicine(self.patient, times=["08:00", "8:00"]).status_code, 400)
        self.assertEqual(self.add_medicine(self.patient, time="25:00").status_code, 400)
        self.assertEqual(self.add_medicine(self.patient, totalQuantity=-1).status_code, 400)
        self.assertEqual(self.add_medicine({"id": "ghost"}).status_code, 404)
        self.assertEqual(Medicine.query.count(), 0)

    def test_list_requires_patient(self):
        self.assertEqual(self.client.get("/api/medicines").status_code, 400)

    def test_update_keeps_surviving_slots(self):
        med = self.add_medicine(self.patient, times=["08:00", "20:00"]).get_json()["medicine"]
        self.post("/mark-taken", medicineId=med["id"], patientId=self.patient["id"], time="08:00")

        resp = self.client.put(f"/api/medicines/{med['id']}",
                               json={"name": "Paracetamol 650", "times": ["08:00", "14:00"]})
        updated = resp.get_json()["medicine"]

        self.assertEqual(updated["name"], "Paracetamol 650")
        self.assertEqual([(t["time"], t["status"]) for t in updated["times"]],
                         [("08:00", "taken"), ("14:00", "pending")])

    def test_update_and_delete_unknown(self):
        self.assertEqual(self.client.put("/api/medicines/nope", json={"name": "x"}).status_code, 404)
        self.assertEqual(self.client.delete("/api/medicines/nope").status_code, 404)

    def test_delete(self):
        med = self.add_medicine(self.patient).get_json()["medicine"]
        resp = self.client.delete(f"/api/medicines/{med['id']}")
        self.assertTrue(resp.get_json()["success"])
        self.assertEqual(self.medicines(self.patient), [])
        self.assertEqual(MedicineTime.query.count(), 0)


class TestDoseStatus(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.patient = self.create_user("Anku", "patient")
        self.med = self.add_medicine(self.patient, totalQuantity=2).get_json()["medicine"]

    def dose_call(self, path, **extra):
        return self.post(path, medicineId=self.med["id"], patientId=self.patient["id"],
                         time="08:00", **extra)

    def test_mark_taken_decrements_stock(self):
        self.assertTrue(self.dose_call("/mark-taken").get_json()["success"])
        med = self.medicines(self.patient)[0]
        self.assertEqual(med["times"][0]["status"], "taken")
        self.assertEqual(med["totalQuantity"], 1)

    def test_mark_taken_twice_counts_one_pill(self):
        self.dose_call("/mark-taken")
        again = self.dose_call("/mark-taken")

        self.assertEqual(again.status_code, 200)
        self.assertTrue(again.get_json()["success"])
        self.assertEqual(self.medicines(self.patient)[0]["totalQuantity"], 1)

    def test_stock_never_below_zero(self):
        self.add_medicine(self.patient, name="Zinc", times=["08:00", "14:00", "20:00"], totalQuantity=1)
        zinc = Medicine.query.filter_by(name="Zinc").first()
        for hm in ("08:00", "14:00", "20:00"):
            self.post("/mark-taken", medicineId=zinc.id, patientId=self.patient["id"], time=hm)

        self.assertEqual(db.session.get(Medicine, zinc.id).total_quantity, 0)

    def test_late_mark_missed_keeps_taken_dose(self):
        caregiver = self.create_user("Amit", "caregiver")
        self.post("/link-user", requesterId=caregiver["id"], linkCode=self.patient["linkCode"])
        self.dose_call("/mark-taken")

        resp = self.dose_call("/mark-missed")

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(self.medicines(self.patient)[0]["times"][0]["status"], "taken")
        self.assertEqual(Notification.query.count(), 0)

    def test_mark_missed_once(self):
        caregiver = self.create_user("Amit", "caregiver")
        self.post("/link-user", requesterId=caregiver["id"], linkCode=self.patient["linkCode"])
        self.dose_call("/mark-missed")

        self.assertEqual(self.dose_call("/mark-missed").status_code, 400)
        self.assertEqual(Notification.query.count(), 1)

    def test_mark_taken_unknown_medicine(self):
        resp = self.post("/mark-taken", medicineId="nope", patientId=self.patient["id"], time="08:00")
        self.assertEqual(resp.status_code, 404)

    def test_mark_missed_notifies_caregivers_only(self):
        caregiver = self.create_user("Amit", "caregiver")
        other_patient = self.create_user("Ravi", "patient")
        self.post("/link-user", requesterId=caregiver["id"], linkCode=self.patient["linkCode"])
        self.post("/link-user", requesterId=other_patient["id"], linkCode=self.patient["linkCode"])

        self.assertTrue(self.dose_call("/mark-missed").get_json()["success"])

        self.assertEqual(self.medicines(self.patient)[0]["times"][0]["status"], "missed")
        self.assertEqual(Notification.query.count(), 1)

        notes = self.client.get(f"/api/notifications?userId={caregiver['id']}").get_json()["notifications"]
        self.assertEqual(notes[0]["message"], "Anku missed the 08:00 dose of Paracetamol")

    def test_snooze_then_take(self):
        resp = self.dose_call("/snooze-dose", snoozedTime="08:10")
        self.assertEqual(resp.get_json()["time"],
                         {"time": "08:10", "scheduledTime": "08:00", "status": "snoozed"})

        self.dose_call("/mark-taken")
        entry = self.medicines(self.patient)[0]["times"][0]
        self.assertEqual(entry["status"], "taken")

        again = self.dose_call("/snooze-dose", snoozedTime="08:20")
        self.assertEqual(again.status_code, 400)

    def test_snooze_bad_time(self):
        self.assertEqual(self.dose_call("/snooze-dose", snoozedTime="soon").status_code, 400)

    def test_statuses_roll_over_to_next_day(self):
        self.dose_call("/snooze-dose", snoozedTime="08:10")
        entry = MedicineTime.query.first()
        entry.status_date = date.today() - timedelta(days=1)
        db.session.commit()

        t = self.medicines(self.patient)[0]["times"][0]
        self.assertEqual((t["time"], t["status"]), ("08:00", "pending"))


class TestImagesAndStubs(ApiTestCase):
    def test_upload_image(self):
        patient = self.create_user("Anku", "patient")
        med = self.add_medicine(patient).get_json()["medicine"]

        resp = self.client.post("/api/upload-medicine-image", data={
            "medicineId": med["id"],
            "image": (io.BytesIO(b"\x89PNG fake"), "pill.png"),
        }, content_type="multipart/form-data")
        url = resp.get_json()["imageUrl"]
        self.assertEqual(url, f"/api/uploads/{med['id']}.png")

        served = self.client.get(url)
        self.assertEqual(served.data, b"\x89PNG fake")
        served.close()

    def test_upload_rejects_other_files(self):
        patient = self.create_user("Anku", "patient")
        med = self.add_medicine(patient).get_json()["medicine"]
        resp = self.client.post("/api/upload-medicine-image", data={
            "medicineId": med["id"],
            "image": (io.BytesIO(b"#!/bin/sh"), "run.sh"),
        }, content_type="multipart/form-data")
        self.assertEqual(resp.status_code, 400)

    def test_scan_prescription_is_canned(self):
        first = self.client.post("/api/scan-prescription").get_json()
        second = self.client.post("/api/scan-prescription").get_json()
        self.assertEqual(first, second)
        self.assertEqual(first["medicines"][0]["times"], ["08:00", "20:00"])

    def test_health(self):
        self.assertEqual(self.client.get("/health").get_json(), {"status": "healthy"})


if __name__ == "__main__":
    unittest.main(verbosity=2)
