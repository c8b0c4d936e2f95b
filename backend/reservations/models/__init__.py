from .generated import Base, Bookings, ReservationWindows, Units, metadata

__all__ = ["Base", "Bookings", "ReservationWindows", "Units", "metadata"]
