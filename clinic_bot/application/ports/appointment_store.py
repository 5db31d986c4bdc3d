from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from clinic_bot.domain.entities.appointment import Appointment

InsertGuard = Callable[[Appointment, list[Appointment]], None]


class AppointmentStorePort(ABC):
    @abstractmethod
    def list_all(self) -> list[Appointment]:
        """All appointments ordered by date, then time slot."""
        raise NotImplementedError

    @abstractmethod
    def list_by_person(self, person_id: str) -> list[Appointment]:
        """Appointments of one person, same ordering as list_all()."""
        raise NotImplementedError

    @abstractmethod
    def insert(self, candidate: Appointment, guard: InsertGuard | None = None) -> Appointment:
        """
        Insert a new appointment and return it with its generated id.

        When `guard` is given it is called with the candidate and a fresh
        snapshot of all appointments inside the same write transaction, so a
        rule check and the insert are atomic. The guard raises to reject.

        Raises:
            SlotConflictError: the (date, time slot) pair is already stored
            PersistenceError: any other storage failure
        """
        raise NotImplementedError

    @abstractmethod
    def delete_by_identity(self, person_id: str, date: str, time_slot: str) -> bool:
        """Delete the matching appointment. Returns True if a row was removed."""
        raise NotImplementedError
