from __future__ import annotations

import threading

from clinic_bot.application.exceptions import SlotConflictError
from clinic_bot.application.ports.appointment_store import AppointmentStorePort, InsertGuard
from clinic_bot.application.utils.availability import parse_date
from clinic_bot.domain.entities.appointment import Appointment


class MemoryAppointmentStore(AppointmentStorePort):
    def __init__(self, appointments: list[Appointment] | None = None) -> None:
        self._rows: dict[int, Appointment] = {}
        self._next_id = 1
        self._lock = threading.Lock()
        for appointment in appointments or []:
            self.insert(appointment)

    def list_all(self) -> list[Appointment]:
        with self._lock:
            return _ordered(self._rows.values())

    def list_by_person(self, person_id: str) -> list[Appointment]:
        with self._lock:
            return _ordered(a for a in self._rows.values() if a.person_id == person_id)

    def insert(self, candidate: Appointment, guard: InsertGuard | None = None) -> Appointment:
        with self._lock:
            existing = _ordered(self._rows.values())
            if guard is not None:
                guard(candidate, existing)
            if any(a.slot_key == candidate.slot_key for a in existing):
                raise SlotConflictError(
                    f"Slot {candidate.time_slot} on {candidate.date} is taken",
                    candidate.date,
                    candidate.time_slot,
                )
            stored = candidate.with_id(self._next_id)
            self._rows[stored.id] = stored
            self._next_id += 1
            return stored

    def delete_by_identity(self, person_id: str, date: str, time_slot: str) -> bool:
        with self._lock:
            for appointment_id, a in list(self._rows.items()):
                if a.person_id == person_id and a.date == date and a.time_slot == time_slot:
                    del self._rows[appointment_id]
                    return True
            return False


def _ordered(appointments) -> list[Appointment]:
    def key(a: Appointment):
        parsed = parse_date(a.date)
        return (parsed is None, parsed or a.date, a.time_slot, a.id or 0)

    return sorted(appointments, key=key)
