from admkit.core.time.abc import Time
from admkit.core.time.real import RealTime

__all__ = ["RealTime", "Time"]
