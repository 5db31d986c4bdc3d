"""
Tests for the per-sender conversation state machine.
"""

from __future__ import annotations

from datetime import date

import pytest

from conftest import OFFICE, book, build_engine, run_dialogue

from clinic_bot.application.exceptions import PersistenceError
from clinic_bot.application.use_cases.booking_rules import BookingRules
from clinic_bot.application.use_cases.conversation_engine import TRANSITIONS, ConversationEngine, Event
from clinic_bot.application.utils import templates
from clinic_bot.domain.entities.appointment import Appointment
from clinic_bot.domain.entities.booking_draft import BookingDraft
from clinic_bot.domain.entities.conversation_state import ConversationState, Flow, Step
from clinic_bot.domain.entities.step_result import BookingCommitted, StoreChanged
from clinic_bot.infrastructure.store.memory_appointment_store import MemoryAppointmentStore

OFFERED_DATES = (
    "19-10-2026",
    "20-10-2026",
    "21-10-2026",
    "22-10-2026",
    "23-10-2026",
    "26-10-2026",
    "27-10-2026",
)
MENU = templates.menu(OFFICE.name)


class FailingStore(MemoryAppointmentStore):
    def insert(self, candidate, guard=None):
        raise PersistenceError("disk full")

    def list_by_person(self, person_id):
        raise PersistenceError("disk full")


# Transition table


def test_every_step_has_transitions():
    assert set(TRANSITIONS) == set(Step)


def test_only_commit_and_cancel_carry_effects():
    with_effects = {
        (step, event)
        for step, table in TRANSITIONS.items()
        for event, transition in table.items()
        if transition.effect is not None
    }
    assert with_effects == {
        (Step.BOOKING_TIME, Event.COMMITTED),
        (Step.CANCEL_CONFIRMATION, Event.CONFIRMED),
    }


# Root menu


def test_keyword_shows_menu(engine):
    result = engine.step("s1", "Hola doctor")

    assert result.messages == [MENU]
    assert result.state.step is Step.MENU
    assert result.state.is_idle


def test_unknown_text_gets_fallback_with_options(engine):
    result = engine.step("s1", "qué tal")

    assert result.messages == [templates.not_understood()]
    for option in templates.MENU_OPTIONS:
        assert option in result.messages[0]
    assert result.state.step is Step.MENU


def test_office_info_option(engine):
    result = engine.step("s1", "3")

    assert OFFICE.address in result.messages[0]
    assert OFFICE.phone in result.messages[0]
    assert result.messages[1] == templates.BACK_TO_MENU_HINT
    assert result.state.step is Step.MENU


def test_zero_at_menu_shows_menu(engine):
    assert engine.step("s1", "0").messages == [MENU]


# Booking flow


def test_booking_happy_path(engine, store):
    results = run_dialogue(engine, "s1", ["1", "1001", "Ana", "3000000000", "3", "3"])

    assert results[0].messages == [templates.ASK_PERSON_ID]
    assert results[0].state.flow is Flow.BOOKING
    assert results[1].messages == [templates.PERSON_ID_OK, templates.ASK_FULL_NAME]
    assert results[2].messages == [templates.FULL_NAME_OK, templates.ASK_PHONE]
    assert results[3].messages[:2] == [templates.PHONE_OK, templates.WEEKDAYS_ONLY]
    assert "1. 19-10-2026" in results[3].messages[2]
    assert "7. 27-10-2026" in results[3].messages[2]
    assert results[3].state.candidate_dates == OFFERED_DATES
    assert results[4].messages[0] == templates.date_selected("21-10-2026")
    assert "3. 16:00" in results[4].messages[1]

    final = results[5]
    [stored] = store.list_all()
    assert (stored.person_id, stored.full_name, stored.phone, stored.date, stored.time_slot) == (
        "1001",
        "Ana",
        "3000000000",
        "21-10-2026",
        "16:00",
    )
    assert final.messages == [templates.booking_confirmed(stored), MENU]
    assert final.effects == [BookingCommitted(appointment=stored)]
    assert final.state.is_idle


def test_invalid_person_id_self_loops(engine):
    state = engine.step("s1", "1").state
    result = engine.step("s1", "10a01", state)

    assert result.messages == [templates.INVALID_PERSON_ID, templates.ASK_PERSON_ID]
    assert result.state.step is Step.BOOKING_PERSON_ID
    assert result.state.draft.person_id is None


def test_blank_name_self_loops(engine):
    state = run_dialogue(engine, "s1", ["1", "1001"])[-1].state
    result = engine.step("s1", "   ", state)

    assert result.messages == [templates.INVALID_FULL_NAME, templates.ASK_FULL_NAME]
    assert result.state.step is Step.BOOKING_FULL_NAME
    assert result.state.draft.person_id == "1001"


def test_name_is_trimmed(engine):
    state = run_dialogue(engine, "s1", ["1", "1001", "  Ana María  "])[-1].state
    assert state.draft.full_name == "Ana María"


def test_non_digit_phone_self_loops(engine):
    state = run_dialogue(engine, "s1", ["1", "1001", "Ana"])[-1].state
    result = engine.step("s1", "+57 300", state)

    assert result.messages == [templates.INVALID_PHONE, templates.ASK_PHONE]
    assert result.state.step is Step.BOOKING_PHONE


def test_out_of_range_date_rerenders_same_list(engine):
    before = run_dialogue(engine, "s1", ["1", "1001", "Ana", "3000000000"])[-1]
    result = engine.step("s1", "9", before.state)

    assert result.messages[0] == templates.INVALID_OPTION
    assert result.messages[1] == before.messages[2]
    assert result.state.step is Step.BOOKING_DATE
    assert result.state.candidate_dates == before.state.candidate_dates
    assert result.state.draft.date is None


def test_cached_dates_are_used_even_if_today_moves(store):
    engine = build_engine(store)
    state = run_dialogue(engine, "s1", ["1", "1001", "Ana", "3000000000"])[-1].state

    later = ConversationEngine(
        store=store,
        rules=BookingRules(max_per_day=2),
        office=OFFICE,
        today=lambda: date(2026, 12, 1),
    )
    result = later.step("s1", "1", state)

    assert result.state.draft.date == "19-10-2026"


def test_zero_at_date_aborts_to_menu(engine, store):
    state = run_dialogue(engine, "s1", ["1", "1001", "Ana", "3000000000"])[-1].state
    result = engine.step("s1", "0", state)

    assert result.messages == [templates.BACK_TO_MENU, MENU]
    assert result.state.is_idle
    assert store.list_all() == []


def test_zero_at_time_aborts_to_menu(engine, store):
    state = run_dialogue(engine, "s1", ["1", "1001", "Ana", "3000000000", "1"])[-1].state
    result = engine.step("s1", "0", state)

    assert result.messages == [templates.BACK_TO_MENU, MENU]
    assert result.state.is_idle
    assert store.list_all() == []


def test_invalid_time_choice_self_loops(engine):
    state = run_dialogue(engine, "s1", ["1", "1001", "Ana", "3000000000", "1"])[-1].state
    result = engine.step("s1", "7", state)

    assert result.messages[0] == templates.INVALID_OPTION
    assert "6. 17:30" in result.messages[1]
    assert result.state.step is Step.BOOKING_TIME
    assert result.state.draft.date == "19-10-2026"


def test_slot_taken_scenario(engine, store):
    """Second booking for the same date/time by another person is rejected."""
    first = book(engine, "1001", "3", "3")
    assert len(first.effects) == 1

    second = book(engine, "2002", "3", "3", name="Luis")

    assert second.messages == [templates.slot_taken("21-10-2026", "16:00"), MENU]
    assert second.effects == []
    assert second.state.is_idle
    assert len(store.list_all()) == 1


def test_daily_limit_scenario(engine, store):
    """Two bookings on D succeed, a third on D is rejected, D+1 succeeds."""
    assert book(engine, "1001", "1", "1").effects
    assert book(engine, "1001", "1", "2").effects

    third = book(engine, "1001", "1", "3")
    assert third.messages[0] == templates.daily_limit_reached("19-10-2026", 2)
    assert third.effects == []

    next_day = book(engine, "1001", "2", "3")
    assert next_day.effects

    assert [(a.date, a.time_slot) for a in store.list_by_person("1001")] == [
        ("19-10-2026", "15:00"),
        ("19-10-2026", "15:30"),
        ("20-10-2026", "16:00"),
    ]


def test_store_error_restarts_booking():
    engine = build_engine(FailingStore())
    result = run_dialogue(engine, "s1", ["1", "1001", "Ana", "3000000000", "1", "1"])[-1]

    assert result.messages == [templates.BOOKING_STORE_ERROR, templates.ASK_PERSON_ID]
    assert result.state.step is Step.BOOKING_PERSON_ID
    assert result.state.draft == BookingDraft()
    assert result.effects == []


def test_missing_date_at_time_step_restarts_flow(engine, store):
    state = ConversationState(
        step=Step.BOOKING_TIME,
        draft=BookingDraft(person_id="1001", full_name="Ana", phone="3000000000"),
    )
    result = engine.step("s1", "2", state)

    assert result.messages == [templates.GENERIC_ERROR, templates.ASK_PERSON_ID]
    assert result.state.step is Step.BOOKING_PERSON_ID
    assert result.state.draft == BookingDraft()
    assert store.list_all() == []


def test_missing_candidate_dates_restarts_flow(engine):
    state = ConversationState(
        step=Step.BOOKING_DATE,
        draft=BookingDraft(person_id="1001", full_name="Ana", phone="3000000000"),
    )
    result = engine.step("s1", "1", state)

    assert result.messages == [templates.GENERIC_ERROR, templates.ASK_PERSON_ID]
    assert result.state.step is Step.BOOKING_PERSON_ID


def test_missing_person_id_at_name_step_restarts_flow(engine):
    result = engine.step("s1", "Ana", ConversationState(step=Step.BOOKING_FULL_NAME))

    assert result.messages == [templates.GENERIC_ERROR, templates.ASK_PERSON_ID]
    assert result.state.step is Step.BOOKING_PERSON_ID


# Listing flow


def test_booking_then_listing_round_trip(engine, store):
    book(engine, "1001", "3", "3")
    [stored] = store.list_all()

    results = run_dialogue(engine, "s9", ["2", "1001"])

    assert results[0].messages == [templates.ASK_PERSON_ID_LISTING]
    assert results[0].state.flow is Flow.LISTING
    assert results[1].messages == [templates.appointments_for("1001", [stored]), MENU]
    assert "- 21-10-2026: 16:00" in results[1].messages[0]
    assert results[1].state.is_idle


def test_listing_with_no_matches(engine):
    result = run_dialogue(engine, "s9", ["2", "abc"])[-1]

    assert result.messages == [templates.NO_APPOINTMENTS, MENU]
    assert result.state.is_idle


def test_listing_store_error_reprompts():
    engine = build_engine(FailingStore())
    result = run_dialogue(engine, "s9", ["2", "1001"])[-1]

    assert result.messages == [templates.LOOKUP_ERROR, templates.ASK_PERSON_ID_LISTING]
    assert result.state.step is Step.LISTING_PERSON_ID


# Cancelling flow


@pytest.fixture
def booked_store() -> MemoryAppointmentStore:
    return MemoryAppointmentStore(
        [
            Appointment(person_id="1001", full_name="Ana", phone="300", date="20-10-2026", time_slot="15:00"),
            Appointment(person_id="1001", full_name="Ana", phone="300", date="21-10-2026", time_slot="16:00"),
            Appointment(person_id="2002", full_name="Luis", phone="301", date="21-10-2026", time_slot="16:30"),
        ]
    )


def test_cancel_happy_path(booked_store):
    engine = build_engine(booked_store)
    results = run_dialogue(engine, "s1", ["4", "1001", "2", "SI"])

    assert results[0].messages == [templates.ASK_PERSON_ID_CANCEL]
    assert results[1].state.step is Step.CANCEL_SELECTION
    assert results[1].messages[0] == templates.PERSON_ID_VERIFIED
    assert "1. Fecha: 20-10-2026, Hora: 15:00" in results[1].messages[1]
    assert "2. Fecha: 21-10-2026, Hora: 16:00" in results[1].messages[1]
    assert results[2].state.step is Step.CANCEL_CONFIRMATION
    assert "21-10-2026" in results[2].messages[0]

    final = results[3]
    assert final.messages[0] == templates.cancellation_done(results[2].state.selected_appointment)
    assert final.messages[-1] == MENU
    assert final.effects == [StoreChanged(reason="cancelled")]
    assert final.state.is_idle
    assert [(a.date, a.time_slot) for a in booked_store.list_by_person("1001")] == [("20-10-2026", "15:00")]
    assert len(booked_store.list_all()) == 2


def test_cancel_accepts_accented_si(booked_store):
    engine = build_engine(booked_store)
    final = run_dialogue(engine, "s1", ["4", "1001", "1", "Sí"])[-1]

    assert final.effects == [StoreChanged(reason="cancelled")]


def test_cancel_unknown_person(booked_store):
    engine = build_engine(booked_store)
    result = run_dialogue(engine, "s1", ["4", "9999"])[-1]

    assert result.messages == [templates.NO_APPOINTMENTS_TO_CANCEL, MENU]
    assert result.state.is_idle


def test_cancel_invalid_selection_rerenders(booked_store):
    engine = build_engine(booked_store)
    before = run_dialogue(engine, "s1", ["4", "1001"])[-1]
    result = engine.step("s1", "3", before.state)

    assert result.messages == [templates.INVALID_OPTION, before.messages[1]]
    assert result.state.step is Step.CANCEL_SELECTION


def test_cancel_zero_at_selection_aborts(booked_store):
    engine = build_engine(booked_store)
    result = run_dialogue(engine, "s1", ["4", "1001", "0"])[-1]

    assert result.messages == [templates.BACK_TO_MENU, MENU]
    assert result.state.is_idle
    assert len(booked_store.list_all()) == 3


def test_cancel_declined(booked_store):
    engine = build_engine(booked_store)
    result = run_dialogue(engine, "s1", ["4", "1001", "1", "no"])[-1]

    assert result.messages == [templates.CANCEL_DECLINED, templates.BACK_TO_MENU, MENU]
    assert result.effects == []
    assert len(booked_store.list_all()) == 3


def test_cancel_misunderstood_answer_returns_to_menu(booked_store):
    engine = build_engine(booked_store)
    result = run_dialogue(engine, "s1", ["4", "1001", "1", "tal vez"])[-1]

    assert result.messages == [templates.CANCEL_NOT_UNDERSTOOD, MENU]
    assert result.state.is_idle
    assert len(booked_store.list_all()) == 3


def test_cancel_already_removed_reports_not_found(booked_store):
    engine = build_engine(booked_store)
    state = run_dialogue(engine, "s1", ["4", "1001", "1"])[-1].state
    booked_store.delete_by_identity("1001", "20-10-2026", "15:00")

    result = engine.step("s1", "si", state)

    assert result.messages == [templates.CANCEL_NOT_FOUND, MENU]
    assert result.effects == []
    assert len(booked_store.list_all()) == 2


def test_cancel_confirmation_without_selection_restarts(engine):
    result = engine.step("s1", "si", ConversationState(step=Step.CANCEL_CONFIRMATION))

    assert result.messages == [templates.GENERIC_ERROR, templates.ASK_PERSON_ID_CANCEL]
    assert result.state.step is Step.CANCEL_PERSON_ID


def test_cancel_only_matches_exact_person_id(booked_store):
    """The lookup key is free-form; no normalization of the typed cédula."""
    engine = build_engine(booked_store)
    result = run_dialogue(engine, "s1", ["4", "01001"])[-1]

    assert result.messages[0] == templates.NO_APPOINTMENTS_TO_CANCEL


# Independence of senders


def test_senders_have_independent_states(engine):
    a = engine.step("a", "1")
    b = engine.step("b", "2")

    assert a.state.step is Step.BOOKING_PERSON_ID
    assert b.state.step is Step.LISTING_PERSON_ID


def test_updated_at_is_stamped(engine):
    assert engine.step("s1", "1").state.updated_at == 1_000.0
