"""
SQLite-backed appointment store.

Table layout mirrors the office's historical database so existing backups
restore as-is:

    citas(id INTEGER PRIMARY KEY AUTOINCREMENT,
          cedula TEXT, nombre TEXT, celular TEXT, fecha TEXT, hora TEXT,
          UNIQUE(fecha, hora))

`fecha` is stored as DD-MM-YYYY text, so chronological ordering is done on
the year/month/day substrings rather than on the raw column.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path

from sqlalchemy import Integer, Text, UniqueConstraint, create_engine, delete, func, inspect, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from clinic_bot.application.exceptions import PersistenceError, SlotConflictError
from clinic_bot.application.ports.appointment_store import AppointmentStorePort, InsertGuard
from clinic_bot.domain.entities.appointment import Appointment

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class CitaRecord(Base):
    __tablename__ = "citas"
    __table_args__ = (UniqueConstraint("fecha", "hora", name="uq_citas_fecha_hora"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cedula: Mapped[str] = mapped_column(Text, nullable=False)
    nombre: Mapped[str] = mapped_column(Text, nullable=False)
    celular: Mapped[str] = mapped_column(Text, nullable=False)
    fecha: Mapped[str] = mapped_column(Text, nullable=False)
    hora: Mapped[str] = mapped_column(Text, nullable=False)

    def to_entity(self) -> Appointment:
        return Appointment(
            id=self.id,
            person_id=self.cedula,
            full_name=self.nombre,
            phone=self.celular,
            date=self.fecha,
            time_slot=self.hora,
        )


# Added to legacy tables that predate the UNIQUE(fecha, hora) constraint.
_SLOT_INDEX_DDL = text("CREATE UNIQUE INDEX IF NOT EXISTS ux_citas_fecha_hora ON citas (fecha, hora)")

_CHRONOLOGICAL = (
    func.substr(CitaRecord.fecha, 7, 4),
    func.substr(CitaRecord.fecha, 4, 2),
    func.substr(CitaRecord.fecha, 1, 2),
    CitaRecord.hora,
    CitaRecord.id,
)


class SqlAppointmentStore(AppointmentStorePort):
    def __init__(self, database_path: str = "./data/citas.db") -> None:
        self._path = Path(database_path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._engine = create_engine(
            f"sqlite:///{self._path}",
            connect_args={"check_same_thread": False},
        )
        self._sessions = sessionmaker(bind=self._engine, expire_on_commit=False)
        # Serializes check-and-insert within this process; UNIQUE(fecha, hora) covers the rest.
        self._write_lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def create_schema(self) -> None:
        """
        Create `citas` if missing and make sure (fecha, hora) is unique.

        Databases restored from the old bot have the table without the
        constraint; a unique index is added to them unless duplicates exist.
        """
        Base.metadata.create_all(self._engine)
        if not self._has_slot_uniqueness():
            duplicates = self._duplicate_slots()
            if duplicates:
                logger.error(
                    "Duplicate bookings found; UNIQUE(fecha, hora) not enforced",
                    extra={"path": str(self._path), "reason": ", ".join(f"{d} {h}" for d, h in duplicates)},
                )
            else:
                with self._engine.begin() as conn:
                    conn.execute(_SLOT_INDEX_DDL)
                logger.info("Added unique slot index to existing table", extra={"path": str(self._path)})
        logger.info("Appointments table ready", extra={"path": str(self._path)})

    def snapshot(self, target_path: str | Path) -> None:
        """Write a consistent copy of the database to `target_path` using SQLite's backup API."""
        with self._write_lock:
            raw = self._engine.raw_connection()
            try:
                target = sqlite3.connect(str(target_path))
                try:
                    raw.driver_connection.backup(target)
                finally:
                    target.close()
            except sqlite3.Error as e:
                logger.exception("Error taking database snapshot", extra={"error": str(e)})
                raise PersistenceError("Could not snapshot appointments database") from e
            finally:
                raw.close()

    def dispose(self) -> None:
        """Close pooled connections, e.g. before the database file is replaced."""
        self._engine.dispose()

    def list_all(self) -> list[Appointment]:
        return self._select(select(CitaRecord).order_by(*_CHRONOLOGICAL))

    def list_by_person(self, person_id: str) -> list[Appointment]:
        return self._select(
            select(CitaRecord).where(CitaRecord.cedula == person_id).order_by(*_CHRONOLOGICAL)
        )

    def insert(self, candidate: Appointment, guard: InsertGuard | None = None) -> Appointment:
        with self._write_lock:
            session: Session = self._sessions()
            try:
                with session.begin():
                    if guard is not None:
                        existing = [
                            r.to_entity()
                            for r in session.scalars(select(CitaRecord).order_by(*_CHRONOLOGICAL))
                        ]
                        guard(candidate, existing)
                    record = CitaRecord(
                        cedula=candidate.person_id,
                        nombre=candidate.full_name,
                        celular=candidate.phone,
                        fecha=candidate.date,
                        hora=candidate.time_slot,
                    )
                    session.add(record)
                    session.flush()
                    stored = record.to_entity()
            except IntegrityError as e:
                logger.info(
                    "Unique constraint rejected appointment",
                    extra={"date": candidate.date, "time_slot": candidate.time_slot},
                )
                raise SlotConflictError(
                    f"Slot {candidate.time_slot} on {candidate.date} is taken",
                    candidate.date,
                    candidate.time_slot,
                ) from e
            except SQLAlchemyError as e:
                logger.exception("Error saving appointment", extra={"error": str(e)})
                raise PersistenceError("Could not save appointment") from e
            finally:
                session.close()

        logger.info("Appointment saved", extra={"appointment_id": stored.id})
        return stored

    def delete_by_identity(self, person_id: str, date: str, time_slot: str) -> bool:
        with self._write_lock:
            try:
                with self._sessions.begin() as session:
                    result = session.execute(
                        delete(CitaRecord).where(
                            CitaRecord.cedula == person_id,
                            CitaRecord.fecha == date,
                            CitaRecord.hora == time_slot,
                        )
                    )
                    removed = result.rowcount or 0
            except SQLAlchemyError as e:
                logger.exception("Error deleting appointment", extra={"error": str(e)})
                raise PersistenceError("Could not delete appointment") from e

        logger.info(
            "Appointment delete",
            extra={"date": date, "time_slot": time_slot, "reason": "removed" if removed else "not_found"},
        )
        return removed > 0

    def _select(self, statement) -> list[Appointment]:
        try:
            with self._sessions() as session:
                return [record.to_entity() for record in session.scalars(statement)]
        except SQLAlchemyError as e:
            logger.exception("Error reading appointments", extra={"error": str(e)})
            raise PersistenceError("Could not read appointments") from e

    def _has_slot_uniqueness(self) -> bool:
        inspector = inspect(self._engine)
        slot = ["fecha", "hora"]
        if any(sorted(c["column_names"]) == slot for c in inspector.get_unique_constraints("citas")):
            return True
        return any(
            ix.get("unique") and sorted(ix["column_names"]) == slot for ix in inspector.get_indexes("citas")
        )

    def _duplicate_slots(self) -> list[tuple[str, str]]:
        statement = (
            select(CitaRecord.fecha, CitaRecord.hora)
            .group_by(CitaRecord.fecha, CitaRecord.hora)
            .having(func.count() > 1)
        )
        with self._sessions() as session:
            return [(fecha, hora) for fecha, hora in session.execute(statement)]
