from __future__ import annotations

import logging

from clinic_bot.application.exceptions import DailyLimitExceededError, SlotTakenError
from clinic_bot.domain.entities.appointment import Appointment


class BookingRules:
    """Booking invariants checked against a fresh snapshot of the store."""

    def __init__(self, max_per_day: int = 2) -> None:
        self._max_per_day = max_per_day
        self._logger = logging.getLogger(__name__)

    def validate(self, candidate: Appointment, existing: list[Appointment]) -> None:
        """
        Raise if `candidate` cannot be booked given `existing` appointments.

        Raises:
            SlotTakenError: another appointment holds the same (date, time slot)
            DailyLimitExceededError: the person already has `max_per_day` on that date
        """
        for appointment in existing:
            if appointment.slot_key == candidate.slot_key:
                self._logger.info(
                    "Slot already taken",
                    extra={"date": candidate.date, "time_slot": candidate.time_slot},
                )
                raise SlotTakenError(
                    f"Slot {candidate.time_slot} on {candidate.date} is taken",
                    candidate.date,
                    candidate.time_slot,
                )

        same_day = [
            a for a in existing if a.person_id == candidate.person_id and a.date == candidate.date
        ]
        if len(same_day) >= self._max_per_day:
            self._logger.info(
                "Daily limit reached",
                extra={"date": candidate.date, "reason": f"{len(same_day)} existing"},
            )
            raise DailyLimitExceededError(
                f"Person already has {len(same_day)} appointments on {candidate.date}",
                candidate.date,
                candidate.time_slot,
                self._max_per_day,
            )
