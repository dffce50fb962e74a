# medalarm/engine/schemas.py
"""
Wire schemas for medicine records returned by the backend.

Older backends send one `time` + `status` pair per medicine, newer ones a
`times` array. Both are validated here once and normalized into
:class:`~medalarm.engine.dose.Medicine` objects.
"""

from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .dose import DoseStatus, DoseTime, Medicine, parse_hm
from .errors import ResponseFormatError, ValidationError


def _check_hm(value):
    try:
        parse_hm(value)
    except ValidationError as e:
        raise ValueError(str(e))
    return value


class TimeEntry(BaseModel):
    time: str
    status: DoseStatus = DoseStatus.PENDING
    scheduled_time: Optional[str] = Field(default=None, alias="scheduledTime")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("time", "scheduled_time")
    @classmethod
    def check_time(cls, v):
        return _check_hm(v) if v is not None else v


class MedicineRecord(BaseModel):
    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    name: str
    patient_id: Optional[str] = Field(default=None, alias="patientId")
    total_quantity: Optional[int] = Field(default=None, alias="totalQuantity", ge=0)
    image_url: Optional[str] = Field(default=None, alias="imageUrl")

    # legacy single-time form
    time: Optional[str] = None
    status: DoseStatus = DoseStatus.PENDING

    times: Optional[List[TimeEntry]] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("time")
    @classmethod
    def check_time(cls, v):
        return _check_hm(v) if v is not None else v

    def entries(self):
        if self.times:
            return self.times
        if self.time:
            return [TimeEntry(time=self.time, status=self.status)]
        return []

    def to_medicine(self):
        med = Medicine(
            id=self.id,
            name=self.name,
            total_quantity=self.total_quantity,
            image_url=self.image_url,
            patient_id=self.patient_id,
        )
        med.times = [
            DoseTime(
                medicine_id=self.id,
                time=e.time,
                status=e.status,
                scheduled_time=e.scheduled_time,
            )
            for e in self.entries()
        ]
        return med


class MedicineListResponse(BaseModel):
    success: bool
    medicines: List[MedicineRecord] = Field(default_factory=list)


def parse_medicine_list(payload) -> List[Medicine]:
    try:
        parsed = MedicineListResponse.model_validate(payload)
    except PydanticValidationError as e:
        raise ResponseFormatError(f"Malformed medicine list: {e.error_count()} error(s)") from e

    if not parsed.success:
        raise ResponseFormatError("Backend reported failure fetching medicines")

    return [record.to_medicine() for record in parsed.medicines]
