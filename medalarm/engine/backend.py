# medalarm/engine/backend.py

import logging
import os

import requests

from .errors import BackendError, NotFoundError
from .schemas import parse_medicine_list

logger = logging.getLogger(__name__)


class ApiBackend:
    """Thin client for the medalarm REST API."""

    def __init__(self, base_url, session=None, timeout=None):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    # ------------------------------------------------------
    # Transport
    # ------------------------------------------------------
    def _request(self, method, path, **kwargs):
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise BackendError(f"{method} {path} failed: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            body = {}

        if resp.status_code == 404:
            raise NotFoundError(body.get("error") or f"{path} not found", status_code=404)
        if not resp.ok or body.get("success") is False:
            raise BackendError(
                body.get("error") or f"{method} {path} returned {resp.status_code}",
                status_code=resp.status_code,
            )
        return body

    # ------------------------------------------------------
    # Medicines
    # ------------------------------------------------------
    def fetch_medicines(self, patient_id):
        body = self._request("GET", "/medicines", params={"patientId": patient_id})
        return parse_medicine_list(body)

    def add_medicine(self, name, times, patient_id, created_by, total_quantity=None):
        payload = {
            "name": name,
            "time": times[0],
            "times": list(times),
            "patientId": patient_id,
            "createdBy": created_by,
        }
        if total_quantity is not None:
            payload["totalQuantity"] = total_quantity
        return self._request("POST", "/add-medicine", json=payload)["medicine"]

    def update_medicine(self, medicine_id, name=None, total_quantity=None,
                        image_url=None, times=None):
        payload = {}
        if name is not None:
            payload["name"] = name
        if total_quantity is not None:
            payload["totalQuantity"] = total_quantity
        if image_url is not None:
            payload["imageUrl"] = image_url
        if times is not None:
            payload["times"] = list(times)
        return self._request("PUT", f"/medicines/{medicine_id}", json=payload)["medicine"]

    def delete_medicine(self, medicine_id):
        self._request("DELETE", f"/medicines/{medicine_id}")

    def upload_medicine_image(self, medicine_id, image_path):
        with open(image_path, "rb") as fh:
            files = {"image": (os.path.basename(image_path), fh)}
            body = self._request("POST", "/upload-medicine-image",
                                 data={"medicineId": medicine_id}, files=files)
        return body.get("imageUrl")

    # ------------------------------------------------------
    # Dose status
    # ------------------------------------------------------
    def _dose_payload(self, medicine_id, patient_id, time):
        return {"medicineId": medicine_id, "patientId": patient_id, "time": time}

    def mark_taken(self, medicine_id, patient_id, time):
        self._request("POST", "/mark-taken", json=self._dose_payload(medicine_id, patient_id, time))

    def mark_missed(self, medicine_id, patient_id, time):
        self._request("POST", "/mark-missed", json=self._dose_payload(medicine_id, patient_id, time))

    def snooze_dose(self, medicine_id, patient_id, time, snoozed_time):
        payload = self._dose_payload(medicine_id, patient_id, time)
        payload["snoozedTime"] = snoozed_time
        self._request("POST", "/snooze-dose", json=payload)

    # ------------------------------------------------------
    # Users / caregiver inbox
    # ------------------------------------------------------
    def create_user(self, name, role):
        return self._request("POST", "/create-user", json={"name": name, "role": role})["user"]

    def link_user(self, requester_id, link_code):
        body = self._request("POST", "/link-user", json={
            "requesterId": requester_id,
            "linkCode": link_code.upper(),
        })
        return body["requester"]

    def fetch_notifications(self, user_id):
        return self._request("GET", "/notifications", params={"userId": user_id})["notifications"]
