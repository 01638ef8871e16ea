"""Domain models for backdrops and frames."""

from dataclasses import dataclass

BACKGROUND_CATEGORIES = {"background", "frame"}


@dataclass(frozen=True)
class Background:
    """A reusable backdrop or frame overlay."""

    id: str
    name: str
    description: str
    category: str
    storage_key: str
    origin: str
    event_id: str | None
    enabled: bool = True

    @property
    def is_default(self) -> bool:
        """Shared backgrounds are seeded for every event."""
        return self.origin == "default"
