# backend/reservations/services/slots/availability.py
"""
Availability view of a window.

For each date, the list of slot times with the remaining count.
Advisory only: clients use it to grey out full slots before submitting,
the authoritative check happens inside BookingCoordinator.book.
"""

from datetime import date

from .calculator import WindowSpec, day_times, window_dates
from .config import minutes_to_time_str
from .ledger import CapacityLedger, SlotKey


def calculate_window_availability(
    window,
    ledger: CapacityLedger,
    start_date: date | None = None,
    end_date: date | None = None,
) -> dict:
    """
    Calculate remaining capacity for every slot of a window.

    Args:
        window: Window row (needs id plus the window fields)
        ledger: Occupancy source
        start_date, end_date: Optional clip of the window's date range

    Returns:
        Dict for WindowAvailabilityResponse. `available` is None for
        windows without max_limit.
    """
    spec = WindowSpec.from_window(window)
    counts = ledger.window_counts(window.id)
    times = day_times(spec)

    dates = []
    for dt in window_dates(spec):
        if start_date and dt < start_date:
            continue
        if end_date and dt > end_date:
            continue

        slots = []
        for time_str in times:
            occupied = counts.get(SlotKey(window.id, dt, time_str), 0)
            if spec.max_limit is None:
                available = None
            else:
                available = max(spec.max_limit - occupied, 0)
            slots.append({
                "time": time_str,
                "occupied": occupied,
                "available": available,
            })

        dates.append({
            "date": dt,
            "times": slots,
        })

    return {
        "window_id": window.id,
        "date_begin": spec.date_begin,
        "date_end": spec.date_end,
        "time_first": minutes_to_time_str(spec.first_min),
        "time_last": minutes_to_time_str(spec.last_min),
        "time_unit": spec.time_unit,
        "max_limit": spec.max_limit,
        "dates": dates,
    }
