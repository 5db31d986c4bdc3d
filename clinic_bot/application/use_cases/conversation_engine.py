"""
Per-sender conversation state machine.

Each inbound text is handled by the handler of the sender's current step.
The handler classifies the input into an Event; the next step and any side
effect come from TRANSITIONS, never from the handler. Entering a new step
runs that step's entry action, which renders its prompt.

Flows:
    menu       -> "1" booking, "2" listing, "3" office info, "4" cancelling
    booking    person id -> full name -> phone -> date -> time -> commit
    listing    person id -> matches
    cancelling person id -> selection -> confirmation
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Callable

from clinic_bot.application.exceptions import (
    DailyLimitExceededError,
    PersistenceError,
    SlotTakenError,
)
from clinic_bot.application.ports.appointment_store import AppointmentStorePort
from clinic_bot.application.use_cases.booking_rules import BookingRules
from clinic_bot.application.utils import templates
from clinic_bot.application.utils.availability import (
    DEFAULT_TIME_SLOTS,
    format_date,
    next_business_days,
    pick_option,
    today_in,
)
from clinic_bot.application.utils.state_helpers import reset_flow, restart_cancelling, restart_booking
from clinic_bot.domain.entities.appointment import Appointment
from clinic_bot.domain.entities.conversation_state import ConversationState, Step
from clinic_bot.domain.entities.office import OfficeInfo
from clinic_bot.domain.entities.step_result import BookingCommitted, SideEffect, StepResult, StoreChanged

_DIGITS = re.compile(r"^[0-9]+$")
_WORDS = re.compile(r"\w+")

ABORT_INPUT = "0"
CONFIRM_ANSWERS = frozenset({"si", "sí"})
DECLINE_ANSWERS = frozenset({"no"})


class Event(str, Enum):
    START_BOOKING = "start_booking"
    START_LISTING = "start_listing"
    START_CANCELLING = "start_cancelling"
    SHOW_INFO = "show_info"
    SHOW_MENU = "show_menu"
    NOT_UNDERSTOOD = "not_understood"
    ACCEPTED = "accepted"
    INVALID = "invalid"
    ABORT = "abort"
    COMMITTED = "committed"
    REJECTED = "rejected"
    LISTED = "listed"
    NO_MATCHES = "no_matches"
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    NOT_FOUND = "not_found"
    STORE_ERROR = "store_error"
    MISSING_FIELD = "missing_field"


class Effect(str, Enum):
    BOOKING_COMMITTED = "booking_committed"
    STORE_CHANGED = "store_changed"


@dataclass(frozen=True)
class Transition:
    target: Step
    effect: Effect | None = None


@dataclass(frozen=True)
class Outcome:
    event: Event
    state: ConversationState
    messages: list[str] = field(default_factory=list)
    appointment: Appointment | None = None


# Events that re-run the target's entry action even on a self-loop.
_RESTART_EVENTS = frozenset({Event.STORE_ERROR, Event.MISSING_FIELD})

TRANSITIONS: dict[Step, dict[Event, Transition]] = {
    Step.MENU: {
        Event.START_BOOKING: Transition(Step.BOOKING_PERSON_ID),
        Event.START_LISTING: Transition(Step.LISTING_PERSON_ID),
        Event.START_CANCELLING: Transition(Step.CANCEL_PERSON_ID),
        Event.SHOW_INFO: Transition(Step.MENU),
        Event.SHOW_MENU: Transition(Step.MENU),
        Event.NOT_UNDERSTOOD: Transition(Step.MENU),
    },
    Step.BOOKING_PERSON_ID: {
        Event.ACCEPTED: Transition(Step.BOOKING_FULL_NAME),
        Event.INVALID: Transition(Step.BOOKING_PERSON_ID),
    },
    Step.BOOKING_FULL_NAME: {
        Event.ACCEPTED: Transition(Step.BOOKING_PHONE),
        Event.INVALID: Transition(Step.BOOKING_FULL_NAME),
        Event.MISSING_FIELD: Transition(Step.BOOKING_PERSON_ID),
    },
    Step.BOOKING_PHONE: {
        Event.ACCEPTED: Transition(Step.BOOKING_DATE),
        Event.INVALID: Transition(Step.BOOKING_PHONE),
        Event.MISSING_FIELD: Transition(Step.BOOKING_PERSON_ID),
    },
    Step.BOOKING_DATE: {
        Event.ACCEPTED: Transition(Step.BOOKING_TIME),
        Event.INVALID: Transition(Step.BOOKING_DATE),
        Event.ABORT: Transition(Step.MENU),
        Event.MISSING_FIELD: Transition(Step.BOOKING_PERSON_ID),
    },
    Step.BOOKING_TIME: {
        Event.COMMITTED: Transition(Step.MENU, Effect.BOOKING_COMMITTED),
        Event.REJECTED: Transition(Step.MENU),
        Event.INVALID: Transition(Step.BOOKING_TIME),
        Event.ABORT: Transition(Step.MENU),
        Event.STORE_ERROR: Transition(Step.BOOKING_PERSON_ID),
        Event.MISSING_FIELD: Transition(Step.BOOKING_PERSON_ID),
    },
    Step.LISTING_PERSON_ID: {
        Event.LISTED: Transition(Step.MENU),
        Event.NO_MATCHES: Transition(Step.MENU),
        Event.STORE_ERROR: Transition(Step.LISTING_PERSON_ID),
    },
    Step.CANCEL_PERSON_ID: {
        Event.ACCEPTED: Transition(Step.CANCEL_SELECTION),
        Event.NO_MATCHES: Transition(Step.MENU),
        Event.STORE_ERROR: Transition(Step.CANCEL_PERSON_ID),
    },
    Step.CANCEL_SELECTION: {
        Event.ACCEPTED: Transition(Step.CANCEL_CONFIRMATION),
        Event.INVALID: Transition(Step.CANCEL_SELECTION),
        Event.ABORT: Transition(Step.MENU),
        Event.MISSING_FIELD: Transition(Step.CANCEL_PERSON_ID),
    },
    Step.CANCEL_CONFIRMATION: {
        Event.CONFIRMED: Transition(Step.MENU, Effect.STORE_CHANGED),
        Event.NOT_FOUND: Transition(Step.MENU),
        Event.DECLINED: Transition(Step.MENU),
        Event.NOT_UNDERSTOOD: Transition(Step.MENU),
        Event.STORE_ERROR: Transition(Step.CANCEL_PERSON_ID),
        Event.MISSING_FIELD: Transition(Step.CANCEL_PERSON_ID),
    },
}


class ConversationEngine:
    def __init__(
        self,
        store: AppointmentStorePort,
        rules: BookingRules,
        office: OfficeInfo,
        menu_keywords: list[str] | tuple[str, ...] = (),
        time_slots: list[str] | tuple[str, ...] = DEFAULT_TIME_SLOTS,
        candidate_days: int = 7,
        timezone: str = "UTC",
        today: Callable[[], date] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._rules = rules
        self._office = office
        self._menu_keywords = frozenset(k.lower() for k in menu_keywords)
        self._time_slots = tuple(time_slots)
        self._candidate_days = candidate_days
        self._today = today or (lambda: today_in(timezone))
        self._clock = clock
        self._logger = logging.getLogger(__name__)
        self._handlers: dict[Step, Callable[[str, ConversationState], Outcome]] = {
            Step.MENU: self._on_menu,
            Step.BOOKING_PERSON_ID: self._on_booking_person_id,
            Step.BOOKING_FULL_NAME: self._on_booking_full_name,
            Step.BOOKING_PHONE: self._on_booking_phone,
            Step.BOOKING_DATE: self._on_booking_date,
            Step.BOOKING_TIME: self._on_booking_time,
            Step.LISTING_PERSON_ID: self._on_listing_person_id,
            Step.CANCEL_PERSON_ID: self._on_cancel_person_id,
            Step.CANCEL_SELECTION: self._on_cancel_selection,
            Step.CANCEL_CONFIRMATION: self._on_cancel_confirmation,
        }

    def step(self, sender_id: str, text: str, state: ConversationState | None = None) -> StepResult:
        """Advance the sender's dialogue by one inbound text."""
        current = state or ConversationState()
        outcome = self._handlers[current.step]((text or "").strip(), current)

        transition = TRANSITIONS[current.step].get(outcome.event)
        if transition is None:
            self._logger.error(
                "No transition defined; returning to menu",
                extra={"sender_id": sender_id, "step": current.step.value, "event": outcome.event.value},
            )
            transition = Transition(Step.MENU)

        messages = list(outcome.messages)
        next_state = replace(outcome.state, step=transition.target)
        if transition.target is not current.step or outcome.event in _RESTART_EVENTS:
            next_state, entry_messages = self._enter(transition.target, next_state, outcome.event)
            messages.extend(entry_messages)

        effects = self._effects_for(transition.effect, outcome)
        next_state = replace(next_state, updated_at=self._clock())

        self._logger.debug(
            "Conversation step",
            extra={
                "sender_id": sender_id,
                "step": current.step.value,
                "event": outcome.event.value,
                "next_step": transition.target.value,
            },
        )
        return StepResult(messages=messages, state=next_state, effects=effects)

    # Entry actions

    def _enter(self, target: Step, state: ConversationState, event: Event) -> tuple[ConversationState, list[str]]:
        if target is Step.MENU:
            messages = [templates.menu(self._office.name)]
            if event in (Event.ABORT, Event.DECLINED):
                messages.insert(0, templates.BACK_TO_MENU)
            return reset_flow(), messages

        if target is Step.BOOKING_PERSON_ID:
            return restart_booking(state), [templates.ASK_PERSON_ID]

        if target is Step.BOOKING_FULL_NAME:
            return state, [templates.ASK_FULL_NAME]

        if target is Step.BOOKING_PHONE:
            return state, [templates.ASK_PHONE]

        if target is Step.BOOKING_DATE:
            dates = tuple(
                format_date(d) for d in next_business_days(self._today(), self._candidate_days)
            )
            state = replace(state, candidate_dates=dates)
            return state, [templates.WEEKDAYS_ONLY, self._date_prompt(dates)]

        if target is Step.BOOKING_TIME:
            return state, [self._time_prompt()]

        if target is Step.LISTING_PERSON_ID:
            return reset_flow(step=Step.LISTING_PERSON_ID), [templates.ASK_PERSON_ID_LISTING]

        if target is Step.CANCEL_PERSON_ID:
            return restart_cancelling(), [templates.ASK_PERSON_ID_CANCEL]

        if target is Step.CANCEL_SELECTION:
            return state, [self._cancel_selection_prompt(state.candidate_appointments)]

        if target is Step.CANCEL_CONFIRMATION:
            return state, [templates.confirm_cancellation(state.selected_appointment)]

        return state, []

    def _effects_for(self, effect: Effect | None, outcome: Outcome) -> list[SideEffect]:
        if effect is Effect.BOOKING_COMMITTED and outcome.appointment is not None:
            return [BookingCommitted(appointment=outcome.appointment)]
        if effect is Effect.STORE_CHANGED:
            return [StoreChanged(reason="cancelled")]
        return []

    # Menu

    def _on_menu(self, text: str, state: ConversationState) -> Outcome:
        choice = text.lower()
        if choice == "1":
            return Outcome(Event.START_BOOKING, state)
        if choice == "2":
            return Outcome(Event.START_LISTING, state)
        if choice == "3":
            info = templates.office_info(self._office.address, self._office.hours, self._office.phone)
            return Outcome(Event.SHOW_INFO, state, [info, templates.BACK_TO_MENU_HINT])
        if choice == "4":
            return Outcome(Event.START_CANCELLING, state)
        if choice == ABORT_INPUT or self._is_menu_trigger(choice):
            return Outcome(Event.SHOW_MENU, state, [templates.menu(self._office.name)])
        return Outcome(Event.NOT_UNDERSTOOD, state, [templates.not_understood()])

    def _is_menu_trigger(self, text: str) -> bool:
        return any(word in self._menu_keywords for word in _WORDS.findall(text))

    # Booking flow

    def _on_booking_person_id(self, text: str, state: ConversationState) -> Outcome:
        if not _DIGITS.match(text):
            return Outcome(Event.INVALID, state, [templates.INVALID_PERSON_ID, templates.ASK_PERSON_ID])
        draft = replace(state.draft, person_id=text)
        return Outcome(Event.ACCEPTED, replace(state, draft=draft), [templates.PERSON_ID_OK])

    def _on_booking_full_name(self, text: str, state: ConversationState) -> Outcome:
        if state.draft.missing_fields("person_id"):
            return self._missing_field(state, "person_id")
        if not text:
            return Outcome(Event.INVALID, state, [templates.INVALID_FULL_NAME, templates.ASK_FULL_NAME])
        draft = replace(state.draft, full_name=text)
        return Outcome(Event.ACCEPTED, replace(state, draft=draft), [templates.FULL_NAME_OK])

    def _on_booking_phone(self, text: str, state: ConversationState) -> Outcome:
        missing = state.draft.missing_fields("person_id", "full_name")
        if missing:
            return self._missing_field(state, *missing)
        if not _DIGITS.match(text):
            return Outcome(Event.INVALID, state, [templates.INVALID_PHONE, templates.ASK_PHONE])
        draft = replace(state.draft, phone=text)
        return Outcome(Event.ACCEPTED, replace(state, draft=draft), [templates.PHONE_OK])

    def _on_booking_date(self, text: str, state: ConversationState) -> Outcome:
        if text == ABORT_INPUT:
            return Outcome(Event.ABORT, state)
        missing = state.draft.missing_fields("person_id", "full_name", "phone")
        if not state.candidate_dates:
            missing.append("candidate_dates")
        if missing:
            return self._missing_field(state, *missing)

        index = pick_option(text, state.candidate_dates)
        if index is None:
            return Outcome(
                Event.INVALID,
                state,
                [templates.INVALID_OPTION, self._date_prompt(state.candidate_dates)],
            )
        chosen = state.candidate_dates[index]
        draft = replace(state.draft, date=chosen)
        return Outcome(Event.ACCEPTED, replace(state, draft=draft), [templates.date_selected(chosen)])

    def _on_booking_time(self, text: str, state: ConversationState) -> Outcome:
        if text == ABORT_INPUT:
            return Outcome(Event.ABORT, state)
        missing = state.draft.missing_fields("person_id", "full_name", "phone", "date")
        if missing:
            return self._missing_field(state, *missing)

        index = pick_option(text, self._time_slots)
        if index is None:
            return Outcome(Event.INVALID, state, [templates.INVALID_OPTION, self._time_prompt()])

        candidate = replace(state.draft, time_slot=self._time_slots[index]).to_appointment()
        try:
            stored = self._store.insert(candidate, guard=self._rules.validate)
        except SlotTakenError as e:
            return Outcome(Event.REJECTED, state, [templates.slot_taken(e.date, e.time_slot)])
        except DailyLimitExceededError as e:
            return Outcome(Event.REJECTED, state, [templates.daily_limit_reached(e.date, e.limit)])
        except PersistenceError:
            self._logger.error("Booking not saved", extra={"reason": "store_error"})
            return Outcome(Event.STORE_ERROR, state, [templates.BOOKING_STORE_ERROR])

        self._logger.info(
            "Appointment booked",
            extra={"appointment_id": stored.id, "date": stored.date, "time_slot": stored.time_slot},
        )
        return Outcome(Event.COMMITTED, state, [templates.booking_confirmed(stored)], appointment=stored)

    # Listing flow

    def _on_listing_person_id(self, text: str, state: ConversationState) -> Outcome:
        try:
            appointments = self._store.list_by_person(text)
        except PersistenceError:
            return Outcome(Event.STORE_ERROR, state, [templates.LOOKUP_ERROR])
        if not appointments:
            return Outcome(Event.NO_MATCHES, state, [templates.NO_APPOINTMENTS])
        return Outcome(Event.LISTED, state, [templates.appointments_for(text, appointments)])

    # Cancelling flow

    def _on_cancel_person_id(self, text: str, state: ConversationState) -> Outcome:
        try:
            appointments = self._store.list_by_person(text)
        except PersistenceError:
            return Outcome(Event.STORE_ERROR, state, [templates.LOOKUP_ERROR])
        if not appointments:
            return Outcome(Event.NO_MATCHES, state, [templates.NO_APPOINTMENTS_TO_CANCEL])
        updated = replace(
            state,
            draft=replace(state.draft, person_id=text),
            candidate_appointments=tuple(appointments),
        )
        return Outcome(Event.ACCEPTED, updated, [templates.PERSON_ID_VERIFIED])

    def _on_cancel_selection(self, text: str, state: ConversationState) -> Outcome:
        if text == ABORT_INPUT:
            return Outcome(Event.ABORT, state)
        if not state.candidate_appointments:
            return self._missing_field(state, "candidate_appointments")
        index = pick_option(text, state.candidate_appointments)
        if index is None:
            return Outcome(
                Event.INVALID,
                state,
                [templates.INVALID_OPTION, self._cancel_selection_prompt(state.candidate_appointments)],
            )
        selected = state.candidate_appointments[index]
        return Outcome(Event.ACCEPTED, replace(state, selected_appointment=selected))

    def _on_cancel_confirmation(self, text: str, state: ConversationState) -> Outcome:
        selected = state.selected_appointment
        if selected is None:
            return self._missing_field(state, "selected_appointment")

        answer = text.lower()
        if answer in DECLINE_ANSWERS:
            return Outcome(Event.DECLINED, state, [templates.CANCEL_DECLINED])
        if answer not in CONFIRM_ANSWERS:
            return Outcome(Event.NOT_UNDERSTOOD, state, [templates.CANCEL_NOT_UNDERSTOOD])

        try:
            removed = self._store.delete_by_identity(selected.person_id, selected.date, selected.time_slot)
        except PersistenceError:
            return Outcome(Event.STORE_ERROR, state, [templates.CANCEL_STORE_ERROR])
        if not removed:
            return Outcome(Event.NOT_FOUND, state, [templates.CANCEL_NOT_FOUND])

        self._logger.info(
            "Appointment cancelled",
            extra={"appointment_id": selected.id, "date": selected.date, "time_slot": selected.time_slot},
        )
        return Outcome(Event.CONFIRMED, state, [templates.cancellation_done(selected)], appointment=selected)

    # Helpers

    def _missing_field(self, state: ConversationState, *fields: str) -> Outcome:
        self._logger.warning(
            "Required field missing mid-flow; restarting flow",
            extra={"step": state.step.value, "reason": ",".join(fields)},
        )
        return Outcome(Event.MISSING_FIELD, state, [templates.GENERIC_ERROR])

    def _date_prompt(self, dates: tuple[str, ...]) -> str:
        return f"{templates.ASK_DATE}\n{templates.date_options(dates)}"

    def _time_prompt(self) -> str:
        return f"{templates.ASK_TIME}\n{templates.time_options(self._time_slots)}"

    def _cancel_selection_prompt(self, appointments: tuple[Appointment, ...]) -> str:
        return f"{templates.cancellation_candidates(appointments)}\n{templates.ASK_CANCEL_SELECTION}"
