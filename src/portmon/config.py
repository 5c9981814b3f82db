"""Runtime settings for portmon."""

from dataclasses import dataclass

from portmon.models import Classification
from portmon.session import ViewParameters


@dataclass(slots=True, frozen=True)
class Settings:
    """Immutable settings passed into the app at construction."""

    refresh_interval: float = 3.0  # Seconds between scans
    message_duration: float = 3.0  # Seconds a notification stays visible
    drain_interval: float = 0.1  # Seconds between event queue checks
    ports_only: bool = True
    show_system: bool = False

    def initial_view(self) -> ViewParameters:
        """Build the starting view parameters."""
        group = (
            Classification.SYSTEM_OWNED
            if self.show_system
            else Classification.OWNED_BY_CURRENT_USER
        )
        return ViewParameters(active_group=group, ports_only=self.ports_only)
