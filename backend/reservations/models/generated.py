from sqlalchemy import Column, Enum, ForeignKey, Index, Integer, Text, UniqueConstraint, text

from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata


class ReservationWindows(Base):
    __tablename__ = 'reservation_windows'

    kind = Column(Enum('previsit', 'move', 'visit'), nullable=False, server_default=text("'previsit'"))
    name = Column(Text, nullable=False)
    date_begin = Column(Text, nullable=False)
    date_end = Column(Text, nullable=False)
    time_first = Column(Text, nullable=False)
    time_last = Column(Text, nullable=False)
    time_unit = Column(Integer, nullable=False)
    id = Column(Integer, primary_key=True)
    max_limit = Column(Integer)
    created_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))

    bookings = relationship(
        'Bookings',
        back_populates='window',
        cascade='all, delete-orphan',
        passive_deletes=True,
    )


class Units(Base):
    __tablename__ = 'units'
    __table_args__ = (
        UniqueConstraint('dong', 'ho'),
    )

    dong = Column(Text, nullable=False)
    ho = Column(Text, nullable=False)
    id = Column(Integer, primary_key=True)
    unit_type = Column(Text)
    contractor_name = Column(Text)
    contractor_phone = Column(Text)


class Bookings(Base):
    __tablename__ = 'bookings'
    __table_args__ = (
        # one active booking per subject and slot; cancelled rows are kept as history
        Index(
            'ux_bookings_active_subject_slot',
            'window_id', 'subject_id', 'slot_date', 'slot_time',
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
        Index('ix_bookings_window_slot', 'window_id', 'slot_date', 'slot_time'),
    )

    window_id = Column(ForeignKey('reservation_windows.id', ondelete='CASCADE'), nullable=False)
    slot_date = Column(Text, nullable=False)
    slot_time = Column(Text, nullable=False)
    subject_id = Column(Integer, nullable=False)
    contact_name = Column(Text, nullable=False)
    contact_phone = Column(Text, nullable=False)
    status = Column(Text, nullable=False, server_default=text("'active'"))
    created_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    id = Column(Integer, primary_key=True)
    memo = Column(Text)
    category = Column(Text)
    cancel_reason = Column(Text)
    cancelled_at = Column(Text)

    window = relationship('ReservationWindows', back_populates='bookings')
