"""Outbound chat texts. *bold* and line breaks are the channel's only formatting."""

from __future__ import annotations

from clinic_bot.application.utils.availability import render_options
from clinic_bot.domain.entities.appointment import Appointment

MENU_OPTIONS = (
    "*1* - Agendar una cita.",
    "*2* - Consultar mis citas.",
    "*3* - Información del consultorio.",
    "*4* - Cancelar una cita.",
)

BACK_TO_MENU = "Volviendo al menú principal..."
BACK_TO_MENU_HINT = "Si quiere volver al menú principal digite 0"
GENERIC_ERROR = "⚠️ Algo salió mal. Por favor, vuelve a intentarlo desde el principio."
INVALID_OPTION = "⚠️ Opción inválida. Por favor, selecciona un número válido."

ASK_PERSON_ID = "Por favor, escribe tu número de cédula (solo números):"
INVALID_PERSON_ID = "⚠️ La cédula debe contener solo números. Intenta nuevamente."
PERSON_ID_OK = "✅ Cédula registrada correctamente."
ASK_FULL_NAME = "Por favor, escribe tu nombre completo:"
INVALID_FULL_NAME = "⚠️ El nombre no puede estar vacío. Intenta nuevamente."
FULL_NAME_OK = "✅ Nombre registrado correctamente."
ASK_PHONE = "Por favor, escribe tu número de celular (solo números):"
INVALID_PHONE = "⚠️ El celular debe contener solo números. Intenta nuevamente."
PHONE_OK = "✅ Celular registrado correctamente."
WEEKDAYS_ONLY = "Recuerda que la atención está disponible únicamente de lunes a viernes."
ASK_DATE = (
    "¿En qué fecha deseas agendar tu cita? Responde con el número correspondiente "
    "(o *0* para volver al menú):"
)
ASK_TIME = (
    "Elige un horario para tu cita respondiendo con el número correspondiente "
    "(o *0* para volver al menú):"
)
BOOKING_STORE_ERROR = "⚠️ Hubo un error al agendar la cita. Intenta nuevamente."

ASK_PERSON_ID_LISTING = "Por favor, escribe tu número de cédula para consultar tus citas:"
NO_APPOINTMENTS = "No tienes citas agendadas."
LOOKUP_ERROR = "⚠️ Hubo un error al procesar tu solicitud. Intenta nuevamente."

ASK_PERSON_ID_CANCEL = "Por favor, escribe tu número de cédula para cancelar tu cita:"
NO_APPOINTMENTS_TO_CANCEL = "⚠️ No tienes citas agendadas con esa cédula."
PERSON_ID_VERIFIED = "✅ Cédula verificada correctamente. Estas son tus citas agendadas:"
ASK_CANCEL_SELECTION = (
    "Por favor, selecciona la cita que deseas cancelar respondiendo con el número "
    "correspondiente (o *0* para volver al menú):"
)
CANCEL_DECLINED = "Entendido, no se canceló ninguna cita."
CANCEL_NOT_UNDERSTOOD = "⚠️ Respuesta inválida. No se canceló ninguna cita."
CANCEL_NOT_FOUND = "⚠️ No se encontró la cita a cancelar. Es posible que ya haya sido cancelada."
CANCEL_STORE_ERROR = "⚠️ Hubo un error al cancelar la cita. Intenta nuevamente."


def menu(office_name: str) -> str:
    return "\n".join(
        [
            office_name,
            "🙌 ¡Bienvenido al sistema de citas! Estas son las opciones disponibles:",
            "(Seleccione el numero correspondientes de la opción a elegir)",
            *MENU_OPTIONS,
        ]
    )


def not_understood() -> str:
    return "\n".join(
        ["🤔 No entendí tu mensaje. Estas son las opciones disponibles:", *MENU_OPTIONS]
    )


def office_info(address: str, hours: str, phone: str) -> str:
    return "\n".join(
        [
            f"📍 Dirección: {address}",
            f"🕒 Horarios: {hours}",
            f"📞 Teléfono: {phone}",
        ]
    )


def date_options(dates: tuple[str, ...] | list[str]) -> str:
    return render_options(dates)


def date_selected(date: str) -> str:
    return f"✅ Fecha seleccionada: {date}"


def time_options(slots: tuple[str, ...] | list[str]) -> str:
    return render_options(slots)


def booking_confirmed(appointment: Appointment) -> str:
    return f"✅ Cita agendada para la fecha {appointment.date} a las {appointment.time_slot}."


def slot_taken(date: str, time_slot: str) -> str:
    return f"⚠️ La hora {time_slot} del {date} ya está ocupada."


def daily_limit_reached(date: str, limit: int) -> str:
    count = "dos" if limit == 2 else str(limit)
    return f"⚠️ Ya tienes {count} citas agendadas para la fecha {date}."


def appointments_for(person_id: str, appointments: list[Appointment]) -> str:
    lines = [f"Citas agendadas para la cédula {person_id}:"]
    lines.extend(f"- {a.date}: {a.time_slot}" for a in appointments)
    return "\n".join(lines)


def cancellation_candidates(appointments: tuple[Appointment, ...] | list[Appointment]) -> str:
    return render_options(f"Fecha: {a.date}, Hora: {a.time_slot}" for a in appointments)


def confirm_cancellation(appointment: Appointment) -> str:
    return (
        f"¿Estás seguro de que deseas cancelar la cita del {appointment.date} a las "
        f"{appointment.time_slot}? Responde *SI* para confirmar o *NO* para volver al menú."
    )


def cancellation_done(appointment: Appointment) -> str:
    return f"✅ La cita del {appointment.date} a las {appointment.time_slot} ha sido cancelada."
