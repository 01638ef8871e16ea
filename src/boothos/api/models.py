"""Pydantic request bodies for the HTTP API."""

from pydantic import BaseModel, Field

from boothos.domain.imaging import Transform
from boothos.domain.pipeline import Selection


class TransformPayload(BaseModel):
    """Placement of a cutout on the backdrop."""

    scale: float = 1.0
    offset_x: float = Field(default=0.0, alias="offsetX")
    offset_y: float = Field(default=0.0, alias="offsetY")


class SelectionPayload(BaseModel):
    """One chosen photo with optional backdrop and transform."""

    photo_id: str = Field(alias="photoId")
    background_id: str | None = Field(default=None, alias="backgroundId")
    transform: TransformPayload | None = None
    match_background: bool = Field(default=False, alias="matchBackground")

    def to_selection(self) -> Selection:
        """Convert to the domain selection."""
        transform = None
        if self.transform is not None:
            transform = Transform(
                scale=self.transform.scale,
                offset_x=self.transform.offset_x,
                offset_y=self.transform.offset_y,
            )
        return Selection(
            photo_id=self.photo_id,
            background_id=self.background_id,
            transform=transform,
            match_background=self.match_background,
        )


class DeliverRequest(BaseModel):
    """Staff-initiated delivery."""

    email: str
    selections: list[SelectionPayload]
    channel: str | None = None


class SelectionSubmitRequest(BaseModel):
    """Guest picks submitted through a selection link."""

    selections: list[SelectionPayload] = Field(default_factory=list)


class SelectionStartRequest(BaseModel):
    """Issue a selection link for a guest."""

    email: str


class ResendRequest(BaseModel):
    """Resend a production's download link."""

    email: str | None = None


class GenerateBackgroundRequest(BaseModel):
    """Prompt for an AI background."""

    prompt: str
    category: str = "background"


class CheckinRequest(BaseModel):
    """Front-desk check-in."""

    name: str = ""
    email: str
