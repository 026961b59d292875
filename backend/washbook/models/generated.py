from sqlalchemy import Column, ForeignKey, Float, Index, Integer, Text, text

from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata


class BusinessHours(Base):
    __tablename__ = 'business_hours'

    weekday = Column(Integer, primary_key=True)  # 0 = Monday, 6 = Sunday
    is_open = Column(Integer, nullable=False, server_default=text('1'))
    open_time = Column(Text, nullable=False)  # "HH:MM"
    close_time = Column(Text, nullable=False)
    break_start = Column(Text)
    break_end = Column(Text)


class CalendarOverrides(Base):
    __tablename__ = 'calendar_overrides'
    __table_args__ = (
        Index('ix_calendar_overrides_dates', 'date_start', 'date_end'),
    )

    date_start = Column(Text, nullable=False)  # "YYYY-MM-DD"
    date_end = Column(Text, nullable=False)
    override_kind = Column(Text, nullable=False)  # holiday | maintenance
    id = Column(Integer, primary_key=True)
    start_time = Column(Text)
    end_time = Column(Text)
    reason = Column(Text)


class Services(Base):
    __tablename__ = 'services'

    name = Column(Text, nullable=False)
    duration_min = Column(Integer, nullable=False)
    price = Column(Float, nullable=False, server_default=text('0'))
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)
    description = Column(Text)
    capacity = Column(Integer)  # dedicated bays; NULL = shared wash bays

    bookings = relationship('Bookings', back_populates='service')


class WashBays(Base):
    __tablename__ = 'wash_bays'

    name = Column(Text, nullable=False)
    is_enabled = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)


class Bookings(Base):
    __tablename__ = 'bookings'
    __table_args__ = (
        Index('ix_bookings_date_status', 'date', 'status'),
        Index('ux_bookings_hold_id', 'hold_id', unique=True),
    )

    service_id = Column(ForeignKey('services.id'), nullable=False)
    date = Column(Text, nullable=False)  # "YYYY-MM-DD"
    start_time = Column(Text, nullable=False)  # "HH:MM"
    end_time = Column(Text, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    status = Column(Text, nullable=False, server_default=text("'pending'"))
    customer_name = Column(Text, nullable=False)
    customer_email = Column(Text, nullable=False)
    customer_phone = Column(Text, nullable=False)
    confirmation_code = Column(Text, nullable=False, unique=True)
    created_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    id = Column(Integer, primary_key=True)
    vehicle_type = Column(Text)
    license_plate = Column(Text)
    notes = Column(Text)
    hold_id = Column(Text)
    cancel_reason = Column(Text)

    service = relationship('Services', back_populates='bookings')
    status_history = relationship('BookingStatusHistory', back_populates='booking')


class BookingStatusHistory(Base):
    __tablename__ = 'booking_status_history'

    booking_id = Column(ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False)
    to_status = Column(Text, nullable=False)
    changed_by = Column(Text, nullable=False)
    changed_by_type = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    id = Column(Integer, primary_key=True)
    from_status = Column(Text)
    reason = Column(Text)

    booking = relationship('Bookings', back_populates='status_history')


class BookingDays(Base):
    __tablename__ = 'booking_days'

    day = Column(Text, primary_key=True)  # "YYYY-MM-DD"
    version = Column(Integer, nullable=False, server_default=text('0'))
