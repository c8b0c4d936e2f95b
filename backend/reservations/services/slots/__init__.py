# backend/reservations/services/slots/__init__.py
"""
Slots module.

Generator: slots derived from the window on every query (never stored)
Ledger: per-slot occupancy counters (memory or Redis)
Availability: advisory remaining-capacity view
"""

from .config import BookingConfig, get_booking_config
from .calculator import Slot, WindowSpec, generate_slots, is_valid_slot, validate_window
from .ledger import CapacityLedger, MemoryCapacityLedger, SlotKey
from .redis_store import RedisCapacityLedger
from .availability import calculate_window_availability

__all__ = [
    "BookingConfig",
    "get_booking_config",
    "Slot",
    "WindowSpec",
    "generate_slots",
    "is_valid_slot",
    "validate_window",
    "CapacityLedger",
    "MemoryCapacityLedger",
    "SlotKey",
    "RedisCapacityLedger",
    "calculate_window_availability",
]
