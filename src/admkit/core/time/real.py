"""Real time implementation using the system clock."""

import time
from datetime import datetime

from admkit.core.time.abc import Time


class RealTime(Time):
    def now(self) -> datetime:
        return datetime.now()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)
