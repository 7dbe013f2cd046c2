from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from backend.scheduling.clock import ensure_utc


class CamelModel(BaseModel):
    """Base for API bodies exchanged with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AppointmentResponse(CamelModel):
    id: int
    patient_id: int
    doctor_id: int
    start_date_time: datetime
    end_date_time: datetime
    reason: str | None = None
    status: str
    created_at: datetime | None = None
    no_show_marked_at: datetime | None = None

    @classmethod
    def from_appointment(cls, appointment, **extra):
        return cls(
            id=appointment.id,
            patient_id=appointment.patient_id,
            doctor_id=appointment.doctor_id,
            start_date_time=ensure_utc(appointment.start_time),
            end_date_time=ensure_utc(appointment.end_time),
            reason=appointment.reason,
            status=appointment.status,
            created_at=ensure_utc(appointment.created_at) if appointment.created_at else None,
            no_show_marked_at=(
                ensure_utc(appointment.no_show_marked_at) if appointment.no_show_marked_at else None
            ),
            **extra,
        )


class PatientAppointmentResponse(AppointmentResponse):
    """Appointment as listed to the patient, with the doctor's name."""
    doctor_name: str
    doctor_specialty: str | None = None


class DoctorAppointmentResponse(AppointmentResponse):
    """Appointment as listed to the doctor, with the patient's name."""
    patient_name: str


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    pages: int


class PatientAppointmentListResponse(CamelModel):
    appointments: list[PatientAppointmentResponse]
    pagination: Pagination


class DoctorAppointmentListResponse(CamelModel):
    appointments: list[DoctorAppointmentResponse]


class MessageResponse(CamelModel):
    message: str
