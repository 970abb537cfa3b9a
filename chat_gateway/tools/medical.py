"""面向医疗助手人设的工具集。

- startup: 用户初次进入或发送 /start 时的欢迎语。
- book_appointment / cancel_appointment / list_appointments: 预约管理。
- medicamentos_get: 可申请的药品列表。

预约簿在进程内共享（不区分 chat），进程重启即清空。
"""

import threading
from typing import Any, Dict, List

from chat_gateway.gateway.commands import WELCOME_TEXT
from .definitions import ToolDef, ToolParam
from .executor import ToolFunc


MEDICINES = "Ibuprofeno, parecetamol, amoxicilina"


class AppointmentBook:
    def __init__(self):
        self._items: List[str] = []
        self._lock = threading.Lock()

    def add(self, details: str) -> None:
        with self._lock:
            self._items.append(details)

    def remove(self, details: str) -> bool:
        with self._lock:
            try:
                self._items.remove(details)
            except ValueError:
                return False
            return True

    def items(self) -> List[str]:
        with self._lock:
            return list(self._items)


def _details(args: Dict[str, Any]) -> str:
    return str(args.get("appointment_details") or "").strip()


def medical_tools(book: AppointmentBook) -> Dict[str, ToolFunc]:
    def startup(_: Dict[str, Any]) -> str:
        return WELCOME_TEXT

    def book_appointment(args: Dict[str, Any]) -> str:
        details = _details(args)
        if not details:
            return "Error: Appointment details cannot be empty."
        book.add(details)
        return f"Appointment booked successfully: {details}"

    def cancel_appointment(args: Dict[str, Any]) -> str:
        details = _details(args)
        if book.remove(details):
            return f"Appointment canceled successfully: {details}"
        return f"Error: No appointment found for details: {details}"

    def list_appointments(_: Dict[str, Any]) -> str:
        items = book.items()
        if not items:
            return "No appointments found."
        return "Appointments:\n" + "\n".join(items)

    def medicamentos_get(_: Dict[str, Any]) -> str:
        return MEDICINES

    return {
        "startup": startup,
        "book_appointment": book_appointment,
        "cancel_appointment": cancel_appointment,
        "list_appointments": list_appointments,
        "medicamentos_get": medicamentos_get,
    }


def medical_tool_defs() -> List[ToolDef]:
    details = ToolParam(
        name="appointment_details",
        description="Appointment details (e.g., doctor name, date, time)",
    )
    return [
        ToolDef(name="startup", description="When user comes to the system or the message is /start"),
        ToolDef(
            name="book_appointment",
            description="Books a new medical appointment for the user.",
            params={"appointment_details": details},
        ),
        ToolDef(
            name="cancel_appointment",
            description="Cancels an existing medical appointment.",
            params={
                "appointment_details": ToolParam(
                    name="appointment_details",
                    description="Appointment details to cancel (e.g., doctor name, date, time)",
                )
            },
        ),
        ToolDef(name="list_appointments", description="Lists all medical appointments."),
        ToolDef(name="medicamentos_get", description="Medicine the user can request"),
    ]
