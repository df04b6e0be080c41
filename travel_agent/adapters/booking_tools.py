"""Built-in booking tools backed by the travel database.

Every tool returns human-readable text, since its output is handed straight
to the model for summarization.
"""

import asyncio
import logging
import re
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, Callable, List, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

SEARCH_RESULT_LIMIT = 10

# Words that carry no routing information in free-text searches
_SEARCH_STOPWORDS = {"to", "from", "bus", "buses", "trip", "trips", "the", "a", "for", "and", "on", "in"}


def _fmt_time(value: Any) -> str:
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    if value is None:
        return "N/A"
    # SQLite hands timestamps back as text
    return str(value)[:16]


def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


def _search_terms(query: str) -> List[str]:
    words = [w.lower() for w in re.findall(r"[\w-]+", query or "")]
    terms = [w for w in words if w not in _SEARCH_STOPWORDS]
    return terms or ([query.strip().lower()] if query and query.strip() else [])


class BookingTools:
    """SQL-backed implementations of the built-in booking tools."""

    def __init__(self, session_factory: Optional[Callable[[], AbstractContextManager]] = None):
        self._session_factory = session_factory

    def _session(self) -> AbstractContextManager:
        if self._session_factory is None:
            from travel_agent.infra.database import get_db_session
            self._session_factory = get_db_session
        return self._session_factory()

    async def search_trips(self, query: str) -> str:
        return await asyncio.to_thread(self._search_trips, query)

    async def get_booking_details(self, booking_id: int, user_id: int) -> str:
        return await asyncio.to_thread(self._get_booking_details, booking_id, user_id)

    async def cancel_booking(self, booking_id: int, user_id: int) -> str:
        return await asyncio.to_thread(self._cancel_booking, booking_id, user_id)

    async def book_ticket(self, trip_id: int, user_id: int, pickup_id: int, drop_id: int, amount: float) -> str:
        return await asyncio.to_thread(self._book_ticket, trip_id, user_id, pickup_id, drop_id, amount)

    def _search_trips(self, query: str) -> str:
        terms = _search_terms(query)
        if not terms:
            return "Please tell me a city name or bus type to search for."

        params = {"now": datetime.now(), "limit": SEARCH_RESULT_LIMIT}
        clauses = []
        for i, term in enumerate(terms):
            params[f"term{i}"] = f"%{term}%"
            clauses.append(f"(LOWER(r.route_name) LIKE :term{i} OR LOWER(b.bus_type) LIKE :term{i})")

        with self._session() as session:
            rows = session.execute(
                text(f"""
                    SELECT t.trip_id, r.route_name, b.bus_type, t.departure_time, t.arrival_time
                    FROM trips t
                    JOIN routes r ON t.route_id = r.route_id
                    JOIN buses b ON t.bus_id = b.bus_id
                    WHERE t.status = 'Scheduled'
                      AND t.departure_time >= :now
                      AND {' AND '.join(clauses)}
                    ORDER BY t.departure_time
                    LIMIT :limit
                """),
                params,
            ).fetchall()

        if not rows:
            return f"No upcoming trips found for '{query}'."

        lines = [f"Found {len(rows)} upcoming trip(s) for '{query}':"]
        for row in rows:
            lines.append(
                f"- Trip #{row.trip_id}: {row.route_name} ({row.bus_type}), "
                f"departs {_fmt_time(row.departure_time)}, arrives {_fmt_time(row.arrival_time)}"
            )
        return "\n".join(lines)

    def _get_booking_details(self, booking_id: int, user_id: int) -> str:
        with self._session() as session:
            booking = session.execute(
                text("""
                    SELECT b.booking_id, b.booking_status, b.amount_paid, b.booking_date,
                           t.departure_time, t.arrival_time, t.status AS trip_status
                    FROM bookings b
                    JOIN trips t ON b.trip_id = t.trip_id
                    WHERE b.booking_id = :booking_id AND b.passenger_id = :user_id
                """),
                {"booking_id": booking_id, "user_id": user_id},
            ).fetchone()

            if not booking:
                return f"Ticket #{booking_id} not found under your account."

            seats = self._seat_numbers(session, booking_id)

        return "\n".join([
            "Ticket Details:",
            f"- Booking ID: {booking.booking_id}",
            f"- Status: {booking.booking_status}",
            f"- Seats: {', '.join(seats) if seats else 'N/A'}",
            f"- Amount Paid: ₹{booking.amount_paid}",
            f"- Booked On: {_fmt_time(booking.booking_date)}",
            f"- Departure: {_fmt_time(booking.departure_time)}",
            f"- Arrival: {_fmt_time(booking.arrival_time)}",
            f"- Trip Status: {booking.trip_status}",
        ])

    def _cancel_booking(self, booking_id: int, user_id: int) -> str:
        with self._session() as session:
            booking = session.execute(
                text("""
                    SELECT b.booking_id, b.booking_status, b.amount_paid, t.departure_time
                    FROM bookings b
                    JOIN trips t ON b.trip_id = t.trip_id
                    WHERE b.booking_id = :booking_id AND b.passenger_id = :user_id
                """),
                {"booking_id": booking_id, "user_id": user_id},
            ).fetchone()

            if not booking:
                return f"Ticket #{booking_id} not found under your account."
            if booking.booking_status == "Cancelled":
                return f"Booking #{booking_id} is already cancelled."

            departure = _as_datetime(booking.departure_time)
            if departure is not None and departure < datetime.now():
                return f"Booking #{booking_id} cannot be cancelled because the trip has already departed."

            session.execute(
                text("UPDATE bookings SET booking_status = 'Cancelled' WHERE booking_id = :booking_id"),
                {"booking_id": booking_id},
            )
            # Release the seats for other passengers
            session.execute(
                text("DELETE FROM booked_seats WHERE booking_id = :booking_id"),
                {"booking_id": booking_id},
            )

        logger.info(f"Booking {booking_id} cancelled by user {user_id}")
        return (
            f"Booking #{booking_id} has been cancelled. A refund of ₹{booking.amount_paid} "
            f"will be processed to your original payment method."
        )

    def _book_ticket(self, trip_id: int, user_id: int, pickup_id: int, drop_id: int, amount: float) -> str:
        with self._session() as session:
            trip = session.execute(
                text("SELECT trip_id, route_id, status, departure_time FROM trips WHERE trip_id = :trip_id"),
                {"trip_id": trip_id},
            ).fetchone()

            if not trip:
                return f"Trip #{trip_id} does not exist."
            if trip.status != "Scheduled":
                return f"Trip #{trip_id} is not open for booking (status: {trip.status})."

            stops = {
                row.stop_id: row.order_id
                for row in session.execute(
                    text("""
                        SELECT stop_id, order_id FROM route_stops
                        WHERE route_id = :route_id AND stop_id IN (:pickup_id, :drop_id)
                    """),
                    {"route_id": trip.route_id, "pickup_id": pickup_id, "drop_id": drop_id},
                ).fetchall()
            }
            if pickup_id not in stops or drop_id not in stops:
                return f"The pickup or drop stop is not on the route of trip #{trip_id}."
            if stops[pickup_id] >= stops[drop_id]:
                return "The pickup stop must come before the drop stop on this route."

            booking_id = session.execute(
                text("""
                    INSERT INTO bookings
                        (trip_id, passenger_id, pickup_stop_id, drop_stop_id, amount_paid, booking_status, booking_date)
                    VALUES
                        (:trip_id, :user_id, :pickup_id, :drop_id, :amount, 'Confirmed', :booked_at)
                    RETURNING booking_id
                """),
                {
                    "trip_id": trip_id,
                    "user_id": user_id,
                    "pickup_id": pickup_id,
                    "drop_id": drop_id,
                    "amount": amount,
                    "booked_at": datetime.now(),
                },
            ).scalar_one()

        logger.info(f"Booking {booking_id} created for user {user_id} on trip {trip_id}")
        return (
            f"Ticket booked successfully. Booking ID: #{booking_id}, trip #{trip_id}, "
            f"departing {_fmt_time(trip.departure_time)}, amount paid ₹{amount}. Status: Confirmed."
        )

    @staticmethod
    def _seat_numbers(session: Session, booking_id: int) -> List[str]:
        rows = session.execute(
            text("SELECT seat_number FROM booked_seats WHERE booking_id = :booking_id ORDER BY seat_number"),
            {"booking_id": booking_id},
        ).fetchall()
        return [str(row.seat_number) for row in rows]


booking_tools = BookingTools()
