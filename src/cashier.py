"""Cashier stations and the customer lines in front of them."""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, List, Optional

from customers import Account
from errors import NotFound
from metrics import CASHIER_LINE_LENGTH

logger = logging.getLogger(__name__)


class CashierStation:
    def __init__(self, station_id: int, is_open: bool = True) -> None:
        self.id = station_id
        self.is_open = is_open
        self.line: Deque[Account] = deque()

    def line_count(self) -> int:
        return len(self.line)

    def add_customer(self, customer: Account) -> None:
        self.line.append(customer)
        CASHIER_LINE_LENGTH.set(len(self.line), station=str(self.id))

    def process_next(self) -> Optional[Account]:
        if not self.line:
            return None
        customer = self.line.popleft()
        CASHIER_LINE_LENGTH.set(len(self.line), station=str(self.id))
        return customer


class CashierLines:
    """Assigns arriving customers to the shortest open line."""

    def __init__(self, station_count: int = 3, minutes_per_customer: int = 3) -> None:
        self.stations: List[CashierStation] = [CashierStation(i) for i in range(1, station_count + 1)]
        self.minutes_per_customer = minutes_per_customer

    def _station(self, station_id: int) -> CashierStation:
        for station in self.stations:
            if station.id == station_id:
                return station
        raise NotFound(f"Cashier station {station_id} not found")

    def open_count(self) -> int:
        return sum(1 for s in self.stations if s.is_open)

    def open_station(self, station_id: int) -> None:
        self._station(station_id).is_open = True

    def close_station(self, station_id: int) -> None:
        # customers already queued there stay until processed
        self._station(station_id).is_open = False

    def add_customer_to_line(self, customer: Account) -> Optional[CashierStation]:
        """Queue ``customer`` at the open station with the fewest people.

        Ties go to the lowest station id.  Returns None when every
        station is closed.
        """
        open_stations = [s for s in self.stations if s.is_open]
        if not open_stations:
            logger.warning("No open cashier station", extra={"customer_id": customer.id})
            return None
        station = min(open_stations, key=lambda s: s.line_count())
        station.add_customer(customer)
        return station

    def process_next(self, station_id: int) -> Optional[Account]:
        return self._station(station_id).process_next()

    def estimated_wait_minutes(self) -> int:
        open_count = self.open_count()
        if open_count == 0:
            return 0
        waiting = sum(s.line_count() for s in self.stations)
        return (waiting // open_count) * self.minutes_per_customer
