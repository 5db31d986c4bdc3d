from __future__ import annotations

import json
import logging
import re
import threading
from pathlib import Path
from typing import Any

from clinic_bot.application.ports.session_store import SessionStorePort
from clinic_bot.domain.entities.appointment import Appointment
from clinic_bot.domain.entities.booking_draft import BookingDraft
from clinic_bot.domain.entities.conversation_state import ConversationState, Step

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.@+-]")


class JsonSessionStore(SessionStorePort):
    def __init__(self, data_dir: str = "./data/sessions") -> None:
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._locks: dict[str, threading.Lock] = {}
        self._lock_lock = threading.Lock()  # Lock for managing locks dict
        self._logger = logging.getLogger(__name__)

    def _get_lock(self, sender_id: str) -> threading.Lock:
        """Get or create a lock for a sender_id."""
        with self._lock_lock:
            if sender_id not in self._locks:
                self._locks[sender_id] = threading.Lock()
            return self._locks[sender_id]

    def _get_file_path(self, sender_id: str) -> Path:
        return self._data_dir / f"{_UNSAFE_CHARS.sub('_', sender_id)}.json"

    def get(self, sender_id: str) -> ConversationState | None:
        file_path = self._get_file_path(sender_id)
        with self._get_lock(sender_id):
            if not file_path.exists():
                return None
            try:
                with open(file_path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                return self._deserialize_state(data.get("state") or {})
            except (json.JSONDecodeError, OSError, KeyError, ValueError) as e:
                # Treated as no session
                self._logger.warning(
                    "Discarding unreadable session", extra={"sender_id": sender_id, "error": str(e)}
                )
                return None

    def put(self, sender_id: str, state: ConversationState) -> None:
        file_path = self._get_file_path(sender_id)
        temp_path = file_path.with_suffix(".json.tmp")
        data = {"sender_id": sender_id, "state": self._serialize_state(state), "version": 1}
        with self._get_lock(sender_id):
            try:
                with open(temp_path, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                # Atomic rename
                temp_path.replace(file_path)
            except Exception:
                if temp_path.exists():
                    temp_path.unlink(missing_ok=True)
                raise

    def delete(self, sender_id: str) -> None:
        with self._get_lock(sender_id):
            self._get_file_path(sender_id).unlink(missing_ok=True)

    def _serialize_state(self, state: ConversationState) -> dict[str, Any]:
        draft = state.draft
        return {
            "step": state.step.value,
            "draft": {
                "person_id": draft.person_id,
                "full_name": draft.full_name,
                "phone": draft.phone,
                "date": draft.date,
                "time_slot": draft.time_slot,
            },
            "candidate_dates": list(state.candidate_dates),
            "candidate_appointments": [
                _serialize_appointment(a) for a in state.candidate_appointments
            ],
            "selected_appointment": (
                _serialize_appointment(state.selected_appointment)
                if state.selected_appointment
                else None
            ),
            "updated_at": state.updated_at,
        }

    def _deserialize_state(self, data: dict[str, Any]) -> ConversationState:
        draft = data.get("draft") or {}
        selected = data.get("selected_appointment")
        return ConversationState(
            step=Step(data.get("step", Step.MENU.value)),
            draft=BookingDraft(
                person_id=draft.get("person_id"),
                full_name=draft.get("full_name"),
                phone=draft.get("phone"),
                date=draft.get("date"),
                time_slot=draft.get("time_slot"),
            ),
            candidate_dates=tuple(data.get("candidate_dates") or ()),
            candidate_appointments=tuple(
                _deserialize_appointment(a) for a in data.get("candidate_appointments") or ()
            ),
            selected_appointment=_deserialize_appointment(selected) if selected else None,
            updated_at=data.get("updated_at"),
        )


def _serialize_appointment(appointment: Appointment) -> dict[str, Any]:
    return {
        "id": appointment.id,
        "person_id": appointment.person_id,
        "full_name": appointment.full_name,
        "phone": appointment.phone,
        "date": appointment.date,
        "time_slot": appointment.time_slot,
    }


def _deserialize_appointment(data: dict[str, Any]) -> Appointment:
    return Appointment(
        id=data.get("id"),
        person_id=data["person_id"],
        full_name=data["full_name"],
        phone=data["phone"],
        date=data["date"],
        time_slot=data["time_slot"],
    )
