"""
Shared fixtures.

The engine runs against an in-memory appointment store with "today" pinned to
Friday 16-10-2026, so the offered business days are:

    1. 19-10-2026  2. 20-10-2026  3. 21-10-2026  4. 22-10-2026
    5. 23-10-2026  6. 26-10-2026  7. 27-10-2026
"""

from __future__ import annotations

from datetime import date

import pytest

from clinic_bot.application.use_cases.booking_rules import BookingRules
from clinic_bot.application.use_cases.conversation_engine import ConversationEngine
from clinic_bot.domain.entities.office import OfficeInfo
from clinic_bot.infrastructure.store.memory_appointment_store import MemoryAppointmentStore

TODAY = date(2026, 10, 16)
OFFICE = OfficeInfo(
    name="Consultorio de prueba",
    address="Calle 1 #2-3",
    hours="Lunes a viernes, 15:00 – 18:00.",
    phone="3000000000",
)


def build_engine(store) -> ConversationEngine:
    return ConversationEngine(
        store=store,
        rules=BookingRules(max_per_day=2),
        office=OFFICE,
        menu_keywords=["hola", "menu", "cita"],
        today=lambda: TODAY,
        clock=lambda: 1_000.0,
    )


def run_dialogue(engine: ConversationEngine, sender_id: str, texts: list[str], state=None):
    """Feed texts one by one; return the list of StepResults."""
    results = []
    for text in texts:
        result = engine.step(sender_id, text, state)
        state = result.state
        results.append(result)
    return results


def book(engine: ConversationEngine, person_id: str, date_choice: str, time_choice: str, name: str = "Ana"):
    """Run a whole booking dialogue and return the last StepResult."""
    return run_dialogue(
        engine,
        f"sender-{person_id}",
        ["1", person_id, name, "3000000000", date_choice, time_choice],
    )[-1]


@pytest.fixture
def store() -> MemoryAppointmentStore:
    return MemoryAppointmentStore()


@pytest.fixture
def engine(store) -> ConversationEngine:
    return build_engine(store)
