"""Venue Catalogue - resources, standing tariffs and recurring tasks seeded at startup"""
from datetime import time
from typing import List

from domain.entities import Resource, Tariff, ScheduledTaskDefinition
from domain.enums import ResourceKind, BookingType, TaskType, Cadence


# ==================== OPERATING GRID ====================
BATH_SPA_FIRST_START = time(10, 0)
BATH_SPA_WINDOW_MINUTES = 180
BATH_SPA_STEP_MINUTES = 60
QUAD_FIRST_START = time(9, 0)
QUAD_LAST_START = time(18, 30)
QUAD_STEP_MINUTES = 30
QUAD_CLOSE = time(19, 0)


def default_resources(quad_fleet_size: int = 4) -> List[Resource]:
    return [
        Resource(code="B1", kind=ResourceKind.BATH, name="Bath house 1"),
        Resource(code="B2", kind=ResourceKind.BATH, name="Bath house 2"),
        Resource(code="SPA1", kind=ResourceKind.SPA, name="Spa 1"),
        Resource(code="SPA2", kind=ResourceKind.SPA, name="Spa 2"),
        Resource(code="QUADS", kind=ResourceKind.QUAD, name="Quad fleet", capacity=quad_fleet_size),
    ]


def default_tariffs() -> List[Tariff]:
    """Standing prices in BYN"""
    return [
        Tariff(booking_type=BookingType.BATH, price=150, included_hours=3, extra_hour_price=30),
        Tariff(booking_type=BookingType.SPA_BATH_ONLY, price=150),
        Tariff(booking_type=BookingType.SPA_TERRACE_ONLY, price=90),
        Tariff(booking_type=BookingType.SPA_TUB_ONLY, price=150, guest_threshold=4, upper_price=180),
        Tariff(booking_type=BookingType.SPA_BATH_WITH_TUB, price=330, guest_threshold=4, upper_price=300),
        Tariff(booking_type=BookingType.QUAD_SHORT, price=50, per_unit=True),
        Tariff(booking_type=BookingType.QUAD_LONG, price=80, per_unit=True),
    ]


def default_task_catalogue() -> List[ScheduledTaskDefinition]:
    daily = [
        ScheduledTaskDefinition(
            title="Morning territory walk",
            cadence=Cadence.DAILY,
            checklist=["Check the entrance", "Inspect the parking", "Check the lighting"],
        ),
        ScheduledTaskDefinition(title="Prepare firewood", cadence=Cadence.DAILY),
        ScheduledTaskDefinition(title="Take out the trash", type=TaskType.TRASH_PREP, cadence=Cadence.DAILY),
    ]
    weekly = [
        ScheduledTaskDefinition(
            title=f"Deep cleaning of cottage {n}",
            type=TaskType.CLEANING,
            cadence=Cadence.WEEKLY,
            unit_code=f"C{n}",
        )
        for n in range(1, 5)
    ]
    weekly += [
        ScheduledTaskDefinition(
            title="Bath inventory check",
            cadence=Cadence.WEEKLY,
            checklist=["Brooms", "Towels", "Hats", "Aromas"],
        ),
        ScheduledTaskDefinition(
            title="Quad inspection",
            cadence=Cadence.WEEKLY,
            checklist=["Oil level", "Tire pressure", "Brakes"],
        ),
    ]
    monthly = [
        ScheduledTaskDefinition(
            title="Meter readings",
            type=TaskType.METERS,
            cadence=Cadence.MONTHLY,
            checklist=["Electricity", "Water", "Gas"],
        ),
        ScheduledTaskDefinition(title="Consumables inventory", cadence=Cadence.MONTHLY),
        ScheduledTaskDefinition(
            title="Equipment maintenance",
            cadence=Cadence.MONTHLY,
            checklist=["Pumps", "Filters", "Boilers"],
        ),
    ]
    return daily + weekly + monthly
