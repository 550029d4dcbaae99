from admkit.core.host.abc import Host
from admkit.core.host.real import RealHost

__all__ = ["Host", "RealHost"]
