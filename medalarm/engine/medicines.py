# medalarm/engine/medicines.py

import logging

from .dose import format_hm, parse_hm
from .errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def validate_name(name):
    name = (name or "").strip()
    if not name:
        raise ValidationError("Please enter a medicine name")
    return name


def validate_times(times):
    """Normalize to HH:MM and reject duplicates."""
    if isinstance(times, str):
        times = [times]
    if not times:
        raise ValidationError("At least one dose time is required")

    clean = []
    for t in times:
        hm = format_hm(*parse_hm(t))
        if hm in clean:
            raise ValidationError(f"Dose time {hm} is listed twice")
        clean.append(hm)
    return clean


def validate_medicine(name, times):
    """Check a caregiver's input before anything is submitted."""
    return validate_name(name), validate_times(times)


class MedicineEditor:
    """
    Caregiver-side create / edit / delete. A stale id (deleted elsewhere)
    refreshes the local list before the error is passed on to the caller.
    """

    def __init__(self, backend, poller=None):
        self.backend = backend
        self.poller = poller

    def _refresh(self):
        if self.poller is not None:
            self.poller.refresh()

    def add(self, name, times, patient_id, created_by, total_quantity=None):
        name, times = validate_medicine(name, times)
        if total_quantity is not None and total_quantity < 0:
            raise ValidationError("Total quantity cannot be negative")

        medicine = self.backend.add_medicine(name, times, patient_id, created_by, total_quantity)
        self._refresh()
        return medicine

    def update(self, medicine_id, name=None, total_quantity=None, image_url=None, times=None):
        if name is not None:
            name = validate_name(name)
        if times is not None:
            times = validate_times(times)

        try:
            medicine = self.backend.update_medicine(
                medicine_id, name=name, total_quantity=total_quantity,
                image_url=image_url, times=times,
            )
        except NotFoundError:
            logger.info("[API] Medicine %s is gone, refreshing list", medicine_id)
            self._refresh()
            raise

        self._refresh()
        return medicine

    def delete(self, medicine_id):
        try:
            self.backend.delete_medicine(medicine_id)
        except NotFoundError:
            logger.info("[API] Medicine %s already deleted, refreshing list", medicine_id)
            self._refresh()
            raise
        self._refresh()
