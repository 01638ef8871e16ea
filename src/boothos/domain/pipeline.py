"""Pipeline stages and per-item results."""

from dataclasses import dataclass, field
from enum import StrEnum

from boothos.domain.imaging import Transform
from boothos.domain.productions import ProductionSet


class PipelineStage(StrEnum):
    """Stages a guest photo batch moves through."""

    INTAKE = "INTAKE"
    REMOVING_BACKGROUND = "REMOVING_BACKGROUND"
    AI_BACKGROUND = "AI_BACKGROUND_OPTIONAL"
    COMPOSING = "COMPOSING"
    BRANDING = "BRANDING"
    PERSISTING = "PERSISTING"
    PACKAGING = "PACKAGING"
    LINK_ISSUED = "LINK_ISSUED"
    EMAILED = "EMAILED"
    CLEANED_UP = "CLEANED_UP"
    FAILED = "FAILED"


@dataclass
class ItemResult:
    """Outcome of processing one uploaded file."""

    filename: str
    success: bool
    stage: PipelineStage
    photo_id: str | None = None
    error: str | None = None

    def as_dict(self) -> dict[str, object]:
        """Serialize for API responses."""
        return {
            "id": self.photo_id,
            "originalName": self.filename,
            "success": self.success,
            "stage": self.stage.value,
            "error": self.error,
        }


@dataclass
class BatchResult:
    """Outcome of a whole upload batch, in input order."""

    results: list[ItemResult]
    usage: dict[str, object] = field(default_factory=dict)
    ai_background_id: str | None = None
    ai_background_error: str | None = None

    @property
    def uploaded(self) -> int:
        """Number of items that succeeded."""
        return sum(1 for item in self.results if item.success)

    @property
    def failed(self) -> int:
        """Number of items that failed."""
        return len(self.results) - self.uploaded


@dataclass(frozen=True)
class Selection:
    """A guest's chosen photo with optional backdrop and placement."""

    photo_id: str
    background_id: str | None = None
    transform: Transform | None = None
    match_background: bool = False


@dataclass
class DeliveryResult:
    """Outcome of delivering a set of selections."""

    production: ProductionSet
    stage: PipelineStage
    email_delivered: bool
    delivery_mode: str
    download_url: str
    cleaned_up: int = 0
