from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Appointment:
    person_id: str  # cedula, digits only
    full_name: str
    phone: str
    date: str  # DD-MM-YYYY, office-local
    time_slot: str  # HH:MM, one of the configured slots
    id: int | None = None  # assigned by the store on insert

    @property
    def slot_key(self) -> tuple[str, str]:
        return (self.date, self.time_slot)

    def with_id(self, appointment_id: int) -> "Appointment":
        return Appointment(
            person_id=self.person_id,
            full_name=self.full_name,
            phone=self.phone,
            date=self.date,
            time_slot=self.time_slot,
            id=appointment_id,
        )
