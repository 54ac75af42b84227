"""Base collector interface for external command sources."""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional


class BaseCollector(ABC):
    """Abstract base class for data collectors.

    All collectors wrap an external command (ldifde, PowerShell cmdlets) and
    expose a consistent way to check for it and to run it.
    """

    # Command line program this collector runs (set by subclasses)
    executable: str = ""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this collector.

        Returns:
            A short, lowercase identifier (e.g., 'ldifde', 'calendar')
        """
        pass

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable name for console output.

        Returns:
            A user-friendly name (e.g., 'Directory Export', 'Calendar Diagnostics')
        """
        pass

    @abstractmethod
    def collect(self) -> Dict[str, Any]:
        """Run the external command and return its records.

        Returns:
            Dictionary containing the collected data. Structure varies by collector.

        Raises:
            CollectorError: If data collection fails.
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this collector can run (external command present).

        Returns:
            True if the collector can operate, False otherwise.
        """
        pass

    def get_status(self) -> Dict[str, Any]:
        """Get collector status information.

        Returns:
            Dictionary with the executable and whether it can be found.
        """
        return {
            "name": self.name,
            "display_name": self.display_name,
            "executable": self.executable,
            "available": self.is_available(),
        }


class CollectorError(Exception):
    """Exception raised when an external command fails."""

    def __init__(self, collector_name: str, message: str, cause: Optional[Exception] = None):
        self.collector_name = collector_name
        self.cause = cause
        super().__init__(f"[{collector_name}] {message}")
