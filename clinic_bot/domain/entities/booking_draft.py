from __future__ import annotations

from dataclasses import dataclass

from clinic_bot.domain.entities.appointment import Appointment


@dataclass(frozen=True)
class BookingDraft:
    person_id: str | None = None
    full_name: str | None = None
    phone: str | None = None
    date: str | None = None  # DD-MM-YYYY
    time_slot: str | None = None

    def missing_fields(self, *names: str) -> list[str]:
        return [name for name in names if not getattr(self, name)]

    def to_appointment(self) -> Appointment:
        missing = self.missing_fields("person_id", "full_name", "phone", "date", "time_slot")
        if missing:
            raise ValueError(f"Booking draft is incomplete: {', '.join(missing)}")
        return Appointment(
            person_id=self.person_id,
            full_name=self.full_name,
            phone=self.phone,
            date=self.date,
            time_slot=self.time_slot,
        )
