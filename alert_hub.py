#!/usr/bin/env python3
"""
Fan-out of detections and alert texts to live subscribers.

Each subscriber owns a bounded queue. Publishing never blocks: when a
subscriber's queue is full the broadcast is dropped for that subscriber
only, so one slow consumer cannot hold up the others.
"""
import json
import queue
import logging
import threading
from typing import Dict, Set

from secret_detector import SecretDetection

logger = logging.getLogger(__name__)

DETECTIONS_CHANNEL = "detections"
ALERTS_CHANNEL = "alerts"
CHANNELS = (DETECTIONS_CHANNEL, ALERTS_CHANNEL)


class AlertHub:
    def __init__(self, queue_size: int = 256):
        if queue_size <= 0:
            raise ValueError("queue_size must be positive")
        self.queue_size = queue_size
        self._subscribers: Dict[str, Set[queue.Queue]] = {channel: set() for channel in CHANNELS}
        self._lock = threading.Lock()
        self.dropped = 0

    def subscribe(self, channel: str) -> queue.Queue:
        subscription: queue.Queue = queue.Queue(maxsize=self.queue_size)
        with self._lock:
            self._subscribers[self._check_channel(channel)].add(subscription)
            total = len(self._subscribers[channel])
        logger.info("%s subscriber connected. Total subscribers: %d", channel, total)
        return subscription

    def unsubscribe(self, channel: str, subscription: queue.Queue) -> None:
        with self._lock:
            self._subscribers[self._check_channel(channel)].discard(subscription)
            total = len(self._subscribers[channel])
        logger.info("%s subscriber disconnected. Total subscribers: %d", channel, total)

    def client_count(self, channel: str) -> int:
        with self._lock:
            return len(self._subscribers[self._check_channel(channel)])

    def broadcast_detection(self, detection: SecretDetection) -> int:
        return self._publish(DETECTIONS_CHANNEL, json.dumps(detection.to_dict()))

    def broadcast_alert(self, alert_message: str) -> int:
        return self._publish(ALERTS_CHANNEL, json.dumps({"type": "alert", "message": alert_message}))

    def _publish(self, channel: str, payload: str) -> int:
        """Returns the number of subscribers the payload was queued for."""
        with self._lock:
            subscribers = list(self._subscribers[channel])

        delivered = 0
        for subscription in subscribers:
            try:
                subscription.put_nowait(payload)
                delivered += 1
            except queue.Full:
                with self._lock:
                    self.dropped += 1
                logger.warning("%s subscriber queue full, dropping message", channel)
        return delivered

    @staticmethod
    def _check_channel(channel: str) -> str:
        if channel not in CHANNELS:
            raise ValueError(f"Unknown channel: {channel}")
        return channel
