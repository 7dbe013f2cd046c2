from datetime import date, datetime

from backend.schemas.appointment import CamelModel


class DoctorSummary(CamelModel):
    id: int
    name: str
    specialty: str | None = None


class DoctorListItem(DoctorSummary):
    email: str


class SlotResponse(CamelModel):
    start: datetime
    end: datetime
    available: bool
    time: str


class DoctorAvailabilityResponse(CamelModel):
    doctor: DoctorSummary
    date: date
    timezone: str
    slots: list[SlotResponse]


class WeeklyAvailabilityResponse(CamelModel):
    doctor_id: int
    availability: dict[str, list[str]]
