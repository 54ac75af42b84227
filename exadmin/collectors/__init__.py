"""Data collectors - ldifde exports and PowerShell calendar diagnostics."""

from .base import BaseCollector, CollectorError
from .ldifde import LdifdeCollector, exchange_container_dn
from .calendar import CalendarDiagnosticsCollector, ps_quote

__all__ = [
    "BaseCollector",
    "CollectorError",
    "LdifdeCollector",
    "exchange_container_dn",
    "CalendarDiagnosticsCollector",
    "ps_quote",
]
