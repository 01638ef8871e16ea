"""Value objects for image composition."""

import math
from dataclasses import dataclass

DEFAULT_CANVAS_SIZE = (1920, 1080)
MIN_SCALE = 0.05
MAX_SCALE = 6.0


@dataclass(frozen=True)
class Transform:
    """Placement of a foreground cutout on the canvas."""

    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    def clamped_scale(self) -> float:
        """Return the scale bounded to a usable range."""
        if not math.isfinite(self.scale):
            return 1.0
        return min(max(self.scale, MIN_SCALE), MAX_SCALE)

    def offsets(self) -> tuple[float, float]:
        """Return offsets with non-finite values treated as zero."""
        x = self.offset_x if math.isfinite(self.offset_x) else 0.0
        y = self.offset_y if math.isfinite(self.offset_y) else 0.0
        return x, y
