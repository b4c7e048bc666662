from typing import Optional
from dataclasses import dataclass, replace
from datetime import datetime

@dataclass(frozen=True)
class DetectionEvent:
    plate: str
    timestamp: str  # as sent by the camera, e.g. 2024-05-01T12:00:00.000+02:00
    source: str = ""  # hostname of the capturing device
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    def with_id(self, event_id: int, created_at: datetime) -> "DetectionEvent":
        return replace(self, id=event_id, created_at=created_at)
