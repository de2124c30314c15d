#!/usr/bin/env python3
import threading
from collections import Counter
from typing import Any, Dict, List, Optional

from secret_detector import DetectionStatus, SecretDetection

RECENT_DETECTIONS = 10


class StorageError(Exception):
    pass


class DetectionNotFoundError(StorageError):
    def __init__(self, detection_id: str):
        self.detection_id = detection_id
        super().__init__(f"Detection not found: {detection_id}")


class MemoryStore:
    """Process-lifetime detection store keyed by detection id."""

    def __init__(self):
        self._detections: Dict[str, SecretDetection] = {}
        self._lock = threading.Lock()

    def save_detection(self, detection: SecretDetection) -> None:
        if not detection.id:
            raise StorageError("Detection has no id")
        with self._lock:
            self._detections[detection.id] = detection

    def get_detections(self, limit: int = 0) -> List[SecretDetection]:
        with self._lock:
            detections = _newest_first(self._detections.values())
        return detections[:limit] if limit > 0 else detections

    def get_detections_by_channel(self, channel_id: str) -> List[SecretDetection]:
        with self._lock:
            return _newest_first(d for d in self._detections.values() if d.channel_id == channel_id)

    def get_detections_by_type(self, secret_type: str) -> List[SecretDetection]:
        with self._lock:
            return _newest_first(d for d in self._detections.values() if d.secret_type == secret_type)

    def get_detections_by_status(self, status: str) -> List[SecretDetection]:
        with self._lock:
            return _newest_first(d for d in self._detections.values() if d.status.value == status)

    def get_detection_by_id(self, detection_id: str) -> SecretDetection:
        with self._lock:
            detection = self._detections.get(detection_id)
        if detection is None:
            raise DetectionNotFoundError(detection_id)
        return detection

    def update_detection_status(self, detection_id: str, status: str) -> SecretDetection:
        if not DetectionStatus.is_valid(status):
            raise StorageError(f"Invalid status: {status}")

        with self._lock:
            detection = self._detections.get(detection_id)
            if detection is None:
                raise DetectionNotFoundError(detection_id)
            detection.status = DetectionStatus(status)
            return detection

    def clear_all_detections(self) -> None:
        with self._lock:
            self._detections = {}

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            detections = list(self._detections.values())

        return {
            "totalDetections": len(detections),
            "detectionsByType": dict(Counter(d.secret_type for d in detections)),
            "detectionsBySeverity": dict(Counter(d.severity.value for d in detections)),
            "channelStats": dict(Counter(d.channel_id for d in detections)),
            "recentDetections": [d.to_dict() for d in _newest_first(detections)[:RECENT_DETECTIONS]],
        }

    def count(self, status: Optional[str] = None) -> int:
        with self._lock:
            if status is None:
                return len(self._detections)
            return sum(1 for d in self._detections.values() if d.status.value == status)


def _newest_first(detections) -> List[SecretDetection]:
    return sorted(detections, key=lambda d: d.detected_at, reverse=True)
