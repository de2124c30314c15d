#!/usr/bin/env python3
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from alerting import AlertService
from secret_detector import SecretDetection, SecretDetector, TeamsMessage, get_detector
from storage import MemoryStore, StorageError
from teams_api import TeamsAPIError

logger = logging.getLogger(__name__)


@dataclass
class ProcessingResult:
    detections: List[SecretDetection] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "processed": True,
            "detectionsFound": len(self.detections),
            "detections": [d.to_dict() for d in self.detections],
        }
        if self.errors:
            data["errors"] = list(self.errors)
        return data


class TeamsService:
    def __init__(self, store: MemoryStore, alert_service: Optional[AlertService] = None,
                 detector: Optional[SecretDetector] = None):
        self.store = store
        self.alert_service = alert_service
        self.detector = detector or get_detector()

    def process_message(self, message: TeamsMessage) -> ProcessingResult:
        result = ProcessingResult(detections=self.detector.scan_message(message))
        if not result.detections:
            return result

        # Only the top detection is stored; every detection is alerted and returned.
        top = result.detections[0]
        try:
            self.store.save_detection(top)
            logger.info("Secret detected: %s in channel %s by user %s (confidence: %.2f)",
                        top.secret_type, top.channel_id, top.user_name, top.confidence)
        except StorageError as e:
            logger.error("Error saving detection %s: %s", top.id, e)
            result.errors.append(f"storage: {e}")

        if self.alert_service is not None:
            for detection in result.detections:
                try:
                    self.alert_service.send_alert(detection)
                except TeamsAPIError as e:
                    logger.error("Error sending alert for %s: %s", detection.id, e)
                    result.errors.append(f"alert: {e}")

        return result

    def get_detections(self, limit: int) -> List[SecretDetection]:
        return self.store.get_detections(limit)

    def get_detections_by_channel(self, channel_id: str) -> List[SecretDetection]:
        return self.store.get_detections_by_channel(channel_id)

    def get_detections_by_status(self, status: str) -> List[SecretDetection]:
        return self.store.get_detections_by_status(status)

    def get_stats(self) -> Dict[str, Any]:
        return self.store.get_stats()

    def update_detection_status(self, detection_id: str, status: str) -> SecretDetection:
        return self.store.update_detection_status(detection_id, status)

    def clear_all_detections(self) -> None:
        self.store.clear_all_detections()
