"""
Shared fixtures: a small barber shop and a fixed clock.
"""

from typing import Any, Dict

import pendulum
import pytest

from slotkeeper.adapters.memory_store import InMemoryBookingStore
from slotkeeper.adapters.notifier import LoggingNotifier
from slotkeeper.config import AppConfig
from slotkeeper.engine import BookingEngine

TZ = "Europe/Berlin"
MONDAY = "2024-11-25"


def fixed_clock(moment: str = "2024-11-22 08:00"):
    """Clock frozen at ``moment`` (a Friday) in the business timezone."""
    now = pendulum.parse(moment, tz=TZ)
    return lambda: now


def shop_config(**business_overrides: Any) -> AppConfig:
    """
    Business "shop":
    - ana: haircut (30) + beard (15), Monday 09:00-12:00
    - ben: haircut, Monday 10:00-12:00
    - carl: haircut, Monday 09:00-12:00, inactive
    - dora: beard only, Monday 09:00-12:00
    """
    business: Dict[str, Any] = {
        "id": "shop",
        "name": "The Shop",
        "booking_buffer_minutes": 10,
        "max_advance_booking_days": 30,
        "slot_granularity_minutes": 15,
        "cancellation_window_hours": 2,
        "services": [
            {"id": "haircut", "name": "Haircut", "duration_minutes": 30},
            {"id": "beard", "name": "Beard trim", "duration_minutes": 15},
        ],
        "staff": [
            {
                "id": "ana",
                "name": "Ana",
                "services": ["haircut", "beard"],
                "schedule": [{"weekday": 0, "start": "09:00", "end": "12:00"}],
            },
            {
                "id": "ben",
                "name": "Ben",
                "services": ["haircut"],
                "schedule": [{"weekday": 0, "start": "10:00", "end": "12:00"}],
            },
            {
                "id": "carl",
                "name": "Carl",
                "active": False,
                "services": ["haircut"],
                "schedule": [{"weekday": 0, "start": "09:00", "end": "12:00"}],
            },
            {
                "id": "dora",
                "name": "Dora",
                "services": ["beard"],
                "schedule": [{"weekday": 0, "start": "09:00", "end": "12:00"}],
            },
        ],
    }
    business.update(business_overrides)
    return AppConfig(timezone=TZ, businesses=[business])


def build_engine(
    config: AppConfig = None,
    *,
    clock=None,
    io_delay: float = 0.0,
    store=None,
    notifier=None,
):
    store = store or InMemoryBookingStore(config or shop_config(), io_delay=io_delay)
    return BookingEngine.from_store(
        store,
        clock=clock or fixed_clock(),
        notifier=notifier or LoggingNotifier(),
    )


@pytest.fixture
def engine() -> BookingEngine:
    return build_engine()


@pytest.fixture
def customer() -> Dict[str, str]:
    return {"name": "Max Mustermann", "email": "max@example.com", "phone": "+49 170 1234567"}
