"""
Tests for the SQLite appointment store.
"""

from __future__ import annotations

import sqlite3
import threading

import pytest

from clinic_bot.application.exceptions import DailyLimitExceededError, SlotConflictError, SlotTakenError
from clinic_bot.application.use_cases.booking_rules import BookingRules
from clinic_bot.domain.entities.appointment import Appointment
from clinic_bot.infrastructure.store.memory_appointment_store import MemoryAppointmentStore
from clinic_bot.infrastructure.store.sql_appointment_store import SqlAppointmentStore


def _appt(person_id: str, date: str, time_slot: str, name: str = "Ana") -> Appointment:
    return Appointment(person_id=person_id, full_name=name, phone="3000000000", date=date, time_slot=time_slot)


@pytest.fixture
def sql_store(tmp_path) -> SqlAppointmentStore:
    store = SqlAppointmentStore(database_path=str(tmp_path / "citas.db"))
    store.create_schema()
    yield store
    store.dispose()


def test_insert_assigns_id_and_keeps_values(sql_store):
    stored = sql_store.insert(_appt("1001", "21-10-2026", "16:00"))

    assert stored.id is not None
    assert sql_store.list_all() == [stored]
    assert stored.person_id == "1001"
    assert stored.full_name == "Ana"
    assert stored.phone == "3000000000"
    assert stored.date == "21-10-2026"
    assert stored.time_slot == "16:00"


def test_table_layout_matches_legacy_schema(sql_store):
    """Backups restored from the old bot must keep working: table citas with text columns."""
    sql_store.insert(_appt("1001", "21-10-2026", "16:00"))

    with sqlite3.connect(sql_store.path) as conn:
        columns = [row[1] for row in conn.execute("PRAGMA table_info(citas)")]
        row = conn.execute("SELECT cedula, nombre, celular, fecha, hora FROM citas").fetchone()

    assert columns == ["id", "cedula", "nombre", "celular", "fecha", "hora"]
    assert row == ("1001", "Ana", "3000000000", "21-10-2026", "16:00")


def test_unique_constraint_rejects_same_slot(sql_store):
    sql_store.insert(_appt("1001", "21-10-2026", "16:00"))

    with pytest.raises(SlotConflictError):
        sql_store.insert(_appt("2002", "21-10-2026", "16:00"))

    assert len(sql_store.list_all()) == 1


def test_list_all_orders_chronologically_not_lexically(sql_store):
    sql_store.insert(_appt("1", "02-11-2026", "15:00"))
    sql_store.insert(_appt("2", "30-10-2026", "16:00"))
    sql_store.insert(_appt("3", "30-10-2026", "15:30"))
    sql_store.insert(_appt("4", "05-01-2027", "15:00"))

    ordered = [(a.date, a.time_slot) for a in sql_store.list_all()]

    assert ordered == [
        ("30-10-2026", "15:30"),
        ("30-10-2026", "16:00"),
        ("02-11-2026", "15:00"),
        ("05-01-2027", "15:00"),
    ]


def test_list_by_person_filters(sql_store):
    sql_store.insert(_appt("1001", "21-10-2026", "16:00"))
    sql_store.insert(_appt("2002", "21-10-2026", "16:30"))
    sql_store.insert(_appt("1001", "20-10-2026", "15:00"))

    mine = sql_store.list_by_person("1001")

    assert [(a.date, a.time_slot) for a in mine] == [("20-10-2026", "15:00"), ("21-10-2026", "16:00")]
    assert sql_store.list_by_person("9999") == []


def test_delete_by_identity(sql_store):
    sql_store.insert(_appt("1001", "21-10-2026", "16:00"))

    assert sql_store.delete_by_identity("2002", "21-10-2026", "16:00") is False
    assert len(sql_store.list_all()) == 1

    assert sql_store.delete_by_identity("1001", "21-10-2026", "16:00") is True
    assert sql_store.list_all() == []

    # Retrying is safe
    assert sql_store.delete_by_identity("1001", "21-10-2026", "16:00") is False


def test_guard_runs_against_current_rows_and_blocks_insert(sql_store):
    rules = BookingRules(max_per_day=2)
    sql_store.insert(_appt("1001", "21-10-2026", "15:00"), guard=rules.validate)
    sql_store.insert(_appt("1001", "21-10-2026", "15:30"), guard=rules.validate)

    with pytest.raises(DailyLimitExceededError):
        sql_store.insert(_appt("1001", "21-10-2026", "16:00"), guard=rules.validate)

    assert len(sql_store.list_all()) == 2


def test_concurrent_bookings_for_same_slot_only_one_wins(sql_store):
    """Check-and-insert is atomic: of many racing bookings for one slot exactly one succeeds."""
    rules = BookingRules(max_per_day=2)
    contenders = 8
    barrier = threading.Barrier(contenders)
    outcomes: list[str] = []
    outcomes_lock = threading.Lock()

    def attempt(person_id: str) -> None:
        barrier.wait(timeout=5)
        try:
            sql_store.insert(_appt(person_id, "21-10-2026", "16:00"), guard=rules.validate)
            result = "ok"
        except SlotTakenError:
            result = "taken"
        with outcomes_lock:
            outcomes.append(result)

    threads = [threading.Thread(target=attempt, args=(str(1000 + i),)) for i in range(contenders)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert outcomes.count("ok") == 1
    assert outcomes.count("taken") == contenders - 1
    assert len(sql_store.list_all()) == 1


def test_store_survives_reopen(tmp_path):
    path = str(tmp_path / "citas.db")
    first = SqlAppointmentStore(database_path=path)
    first.create_schema()
    first.insert(_appt("1001", "21-10-2026", "16:00"))
    first.dispose()

    second = SqlAppointmentStore(database_path=path)
    second.create_schema()

    assert [a.person_id for a in second.list_all()] == ["1001"]
    second.dispose()


def test_memory_store_behaves_like_sql_store():
    store = MemoryAppointmentStore()
    first = store.insert(_appt("1001", "21-10-2026", "16:00"))
    store.insert(_appt("1001", "20-10-2026", "15:00"))

    with pytest.raises(SlotConflictError):
        store.insert(_appt("2002", "21-10-2026", "16:00"))

    assert first.id == 1
    assert [a.date for a in store.list_by_person("1001")] == ["20-10-2026", "21-10-2026"]
    assert store.delete_by_identity("1001", "21-10-2026", "16:00") is True
    assert store.delete_by_identity("1001", "21-10-2026", "16:00") is False


def _legacy_table(path, rows=()) -> None:
    conn = sqlite3.connect(path)
    try:
        conn.execute(
            "CREATE TABLE citas (id INTEGER PRIMARY KEY AUTOINCREMENT, "
            "cedula TEXT, nombre TEXT, celular TEXT, fecha TEXT, hora TEXT)"
        )
        conn.executemany(
            "INSERT INTO citas (cedula, nombre, celular, fecha, hora) VALUES (?, ?, ?, ?, ?)", rows
        )
        conn.commit()
    finally:
        conn.close()


def test_restored_table_without_constraint_gets_unique_slots(tmp_path):
    """A citas table from an old backup has no UNIQUE(fecha, hora); it is added on startup."""
    path = tmp_path / "citas.db"
    _legacy_table(path, [("1001", "Ana", "3000000000", "21-10-2026", "16:00")])
    store = SqlAppointmentStore(database_path=str(path))
    try:
        store.create_schema()

        with pytest.raises(SlotConflictError):
            store.insert(_appt("2002", "21-10-2026", "16:00"))

        assert [a.person_id for a in store.list_all()] == ["1001"]
    finally:
        store.dispose()


def test_create_schema_is_idempotent_on_restored_table(tmp_path):
    path = tmp_path / "citas.db"
    _legacy_table(path)
    store = SqlAppointmentStore(database_path=str(path))
    try:
        store.create_schema()
        store.create_schema()
        store.insert(_appt("1001", "21-10-2026", "16:00"))

        with pytest.raises(SlotConflictError):
            store.insert(_appt("2002", "21-10-2026", "16:00"))
    finally:
        store.dispose()


def test_restored_table_with_duplicates_is_kept_and_logged(tmp_path, caplog):
    path = tmp_path / "citas.db"
    _legacy_table(
        path,
        [
            ("1001", "Ana", "3000000000", "21-10-2026", "16:00"),
            ("2002", "Luis", "3000000001", "21-10-2026", "16:00"),
        ],
    )
    store = SqlAppointmentStore(database_path=str(path))
    try:
        with caplog.at_level("ERROR"):
            store.create_schema()

        assert any("Duplicate bookings" in r.getMessage() for r in caplog.records)
        assert len(store.list_all()) == 2
    finally:
        store.dispose()


def test_snapshot_writes_consistent_copy(sql_store, tmp_path):
    sql_store.insert(_appt("1001", "21-10-2026", "16:00"))
    sql_store.insert(_appt("2002", "22-10-2026", "15:00"))
    target = tmp_path / "copy.db"

    sql_store.snapshot(target)

    conn = sqlite3.connect(target)
    try:
        assert conn.execute("PRAGMA integrity_check").fetchone() == ("ok",)
        rows = conn.execute("SELECT cedula, fecha, hora FROM citas ORDER BY id").fetchall()
    finally:
        conn.close()
    assert rows == [("1001", "21-10-2026", "16:00"), ("2002", "22-10-2026", "15:00")]


def test_snapshot_during_concurrent_inserts_is_never_torn(sql_store, tmp_path):
    slots = ["15:00", "15:30", "16:00", "16:30", "17:00", "17:30"]
    dates = ["19-10-2026", "20-10-2026", "21-10-2026", "22-10-2026"]

    def writer():
        for i, (date, slot) in enumerate((d, s) for d in dates for s in slots):
            sql_store.insert(_appt(str(i), date, slot))

    thread = threading.Thread(target=writer)
    thread.start()
    counts = []
    for i in range(5):
        target = tmp_path / f"copy-{i}.db"
        sql_store.snapshot(target)
        conn = sqlite3.connect(target)
        try:
            assert conn.execute("PRAGMA integrity_check").fetchone() == ("ok",)
            counts.append(conn.execute("SELECT COUNT(*) FROM citas").fetchone()[0])
        finally:
            conn.close()
    thread.join()

    assert counts == sorted(counts)
    assert len(sql_store.list_all()) == len(dates) * len(slots)
