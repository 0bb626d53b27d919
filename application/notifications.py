"""Staff notifications - message composition and fire-and-forget delivery"""
import logging
from typing import List

from domain.entities import Booking, CashShift
from domain.gateways import MessagingGateway
from domain.value_objects import DailyForecast

logger = logging.getLogger(__name__)


class StaffNotifier:
    """Sends messages to the staff channel; delivery failures never propagate"""

    def __init__(self, messenger: MessagingGateway, channel: str = "staff"):
        self.messenger = messenger
        self.channel = channel

    async def notify(self, text: str) -> bool:
        try:
            await self.messenger.send(self.channel, text)
            return True
        except Exception as exc:  # noqa: BLE001
            logger.warning("staff_message_failed", extra={"reason": type(exc).__name__})
            return False


def shift_reminder_text(main_open: bool, quads_open: bool) -> str:
    missing = [name for name, is_open in (("main", main_open), ("quads", quads_open)) if not is_open]
    if not missing:
        return "Good morning! Both cash shifts are open."
    return "Good morning! Please open the cash shift: " + ", ".join(missing) + "."


def bookings_summary_text(bookings: List[Booking]) -> str:
    if not bookings:
        return "No bookings today."
    lines = [f"Bookings today: {len(bookings)}"]
    for b in bookings:
        lines.append(
            f"{b.window.start.strftime('%H:%M')}-{b.window.end.strftime('%H:%M')} "
            f"{b.resource_code} {b.booking_type.value} x{b.guest_count} "
            f"{b.customer.full_name} ({b.status.value})"
        )
    return "\n".join(lines)


def climate_text(turn_on: bool) -> str:
    if turn_on:
        return "Turn the climate control ON in the occupied units."
    return "Turn the climate control OFF in the vacated units."


def laundry_text() -> str:
    return "Laundry check-in: count the returned linen and towels."


def frost_alert_text(cold_days: List[DailyForecast], threshold: float) -> str:
    days = ", ".join(f"{f.day.strftime('%d.%m')} ({f.min_temp:.1f}°C)" for f in cold_days)
    return f"Frost warning: minimum below {threshold:g}°C on {days}. Protect the pipes and the hot tubs."


def shifts_closed_text(shifts: List[CashShift]) -> str:
    boxes = ", ".join(s.cash_box.value for s in shifts)
    return f"Cash shifts closed automatically: {boxes}."
