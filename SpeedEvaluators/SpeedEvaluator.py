import logging
from enum import Enum
from typing import Optional
from dataclasses import dataclass
from DatabaseManagers.DataClasses import DetectionEvent
from DatabaseManagers.DetectionStore import DetectionStore
from SpeedEvaluators.Timestamps import parse_timestamp, InvalidTimestampError

CAMERA_DISTANCE_METERS = 25
SPEED_LIMIT_KMH = 30
FRESHNESS_WINDOW_SECONDS = 300


class Outcome(Enum):
    DUPLICATE_REJECTED = "duplicate-rejected"
    STORED_FIRST_SIGHTING = "stored-first-sighting"
    MALFORMED_TIMESTAMP = "malformed-timestamp-error"
    STALE_REPLACED = "stale-replaced"
    SPEEDING = "speeding"
    NOT_SPEEDING = "not-speeding"


@dataclass
class EvaluationResult:
    outcome: Outcome
    event: DetectionEvent  # stored copy when the candidate was inserted
    existing: Optional[DetectionEvent] = None
    diff_seconds: Optional[float] = None
    speed_kmh: Optional[float] = None


class SpeedEvaluator:
    """Pairs a new sighting with the stored sighting of the same plate.

    The first camera's sighting is kept in the store. When the second camera
    reports the same plate, the time between both timestamps gives the average
    speed over the fixed distance between the cameras. Sightings older than
    the freshness window are replaced instead of paired.

    Every outcome has exactly one store action:

    - duplicate-rejected: the identical stored sighting is deleted
    - stored-first-sighting: the candidate is inserted
    - malformed-timestamp-error: nothing
    - stale-replaced: the old sighting is deleted, the candidate inserted
    - speeding / not-speeding: nothing, the first sighting stays
    """

    def __init__(self, store: DetectionStore, notifier, logger: logging.Logger = None,
                 camera_distance_meters: float = CAMERA_DISTANCE_METERS,
                 speed_limit_kmh: float = SPEED_LIMIT_KMH,
                 freshness_window_seconds: float = FRESHNESS_WINDOW_SECONDS):
        self.store = store
        self.notifier = notifier
        self.logger = logger or logging.getLogger(__name__)
        self.camera_distance_meters = camera_distance_meters
        self.speed_limit_kmh = speed_limit_kmh
        self.freshness_window_seconds = freshness_window_seconds

    def speed_for(self, diff_seconds: float) -> float:
        """Average speed in km/h over the camera distance"""
        return (diff_seconds / self.camera_distance_meters) * 3600

    def evaluate(self, candidate: DetectionEvent) -> EvaluationResult:
        self.logger.info("received license plate plate=%s timestamp=%s hostname=%s",
                         candidate.plate, candidate.timestamp, candidate.source)

        duplicate = self.store.find_exact_duplicate(candidate.plate, candidate.timestamp)
        if duplicate is not None:
            self.store.delete(duplicate)
            self.logger.info("similar license plate already exists plate=%s timestamp=%s hostname=%s",
                             candidate.plate, candidate.timestamp, candidate.source)
            return EvaluationResult(Outcome.DUPLICATE_REJECTED, candidate, existing=duplicate)

        existing = self.store.find_any_by_plate(candidate.plate)
        if existing is None:
            return self._store_first_sighting(candidate)

        try:
            existing_time = parse_timestamp(existing.timestamp)
            current_time = parse_timestamp(candidate.timestamp)
        except InvalidTimestampError:
            self.logger.error("invalid timestamp format existing=%s current=%s",
                              existing.timestamp, candidate.timestamp)
            return EvaluationResult(Outcome.MALFORMED_TIMESTAMP, candidate, existing=existing)

        diff = (current_time - existing_time).total_seconds()
        self.logger.info("timestamp difference seconds=%s plate=%s", diff, candidate.plate)

        if diff > self.freshness_window_seconds:
            self.store.delete(existing)
            self.logger.info("deleted old license plate plate=%s timestamp=%s",
                             existing.plate, existing.timestamp)
            result = self._store_first_sighting(candidate)
            result.outcome = Outcome.STALE_REPLACED
            result.existing = existing
            result.diff_seconds = diff
            return result

        if diff < 0:
            self.logger.warning("license plate arrived out of order plate=%s existing=%s current=%s",
                                candidate.plate, existing.timestamp, candidate.timestamp)

        kmh = self.speed_for(diff)
        if kmh > self.speed_limit_kmh:
            self._notify(candidate.plate, kmh)
            self.logger.info("license plate is speeding plate=%s kmh=%s", candidate.plate, kmh)
            outcome = Outcome.SPEEDING
        else:
            self.logger.info("license plate is not speeding plate=%s kmh=%s", candidate.plate, kmh)
            outcome = Outcome.NOT_SPEEDING

        return EvaluationResult(outcome, candidate, existing=existing,
                                diff_seconds=diff, speed_kmh=kmh)

    def _store_first_sighting(self, candidate: DetectionEvent) -> EvaluationResult:
        stored = self.store.insert(candidate)
        self.logger.info("saved license plate to database plate=%s timestamp=%s hostname=%s",
                         stored.plate, stored.timestamp, stored.source)
        return EvaluationResult(Outcome.STORED_FIRST_SIGHTING, stored)

    def _notify(self, plate: str, kmh: float):
        try:
            delivered = self.notifier.notify(plate, kmh)
        except Exception as e:
            self.logger.error("couldn't send notification plate=%s error=%s", plate, e)
            return
        if not delivered:
            self.logger.error("notification was not delivered plate=%s kmh=%s", plate, kmh)
