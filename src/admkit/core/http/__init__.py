from admkit.core.http.abc import Http
from admkit.core.http.dry_run import DryRunHttp
from admkit.core.http.real import RealHttp

__all__ = ["DryRunHttp", "Http", "RealHttp"]
