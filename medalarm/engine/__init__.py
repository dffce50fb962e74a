"""
Client-side dose alarm engine: evaluates dose times against the clock,
drives one alarm at a time and keeps local state in step with the backend.
"""

from .alarm import AlarmController, ActiveAlarm
from .dose import DoseStatus, DoseTime, Medicine
from .errors import BackendError, MedAlarmError, NotFoundError, ValidationError
from .evaluator import Evaluation, evaluate
from .inventory import InventoryProjection, project
from .poller import ReconciliationPoller

__all__ = [
    "ActiveAlarm",
    "AlarmController",
    "BackendError",
    "DoseStatus",
    "DoseTime",
    "Evaluation",
    "InventoryProjection",
    "MedAlarmError",
    "Medicine",
    "NotFoundError",
    "ReconciliationPoller",
    "ValidationError",
    "evaluate",
    "project",
]
