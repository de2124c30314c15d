#!/usr/bin/env python3
import logging
from typing import Optional

from alert_hub import AlertHub
from config import Config
from secret_detector import SecretDetection, Severity
from teams_api import TeamsAPI

logger = logging.getLogger(__name__)

ALERT_MESSAGE_TEMPLATE = """{emoji} **SECURITY ALERT** {emoji}

**Secret Type:** {secret_type}
**Severity:** {severity}
**Confidence:** {confidence:.0f}%
**Channel:** {channel}
**User:** {user}
**Detected:** {detected_at}

**Masked Value:** {masked_value}

**Context:**
{context}

**Action Required:** Please review and revoke this credential immediately if it's legitimate.
*Detection ID: {detection_id}*"""

SEVERITY_EMOJIS = {
    Severity.CRITICAL: "🚨",
    Severity.HIGH: "⚠️",
    Severity.MEDIUM: "⚡",
    Severity.LOW: "ℹ️",
}
DEFAULT_EMOJI = "🔍"

ALERT_TYPE_SECRET_DETECTED = "SECRET_DETECTED"
ALERT_TYPE_HIGH_RISK = "HIGH_RISK_SECRET"
ALERT_TYPE_CRITICAL_RISK = "CRITICAL_RISK_SECRET"


class AlertService:
    def __init__(self, config: Config, hub: Optional[AlertHub] = None, teams_api: Optional[TeamsAPI] = None):
        self.config = config
        self.hub = hub
        self.teams_api = teams_api

    def send_alert(self, detection: SecretDetection) -> None:
        alert_message = self.format_alert_message(detection)

        if self.hub is not None:
            self.hub.broadcast_detection(detection)
            self.hub.broadcast_alert(alert_message)

        if self.config.mock_mode or self.teams_api is None:
            logger.info("MOCK ALERT: %s", alert_message)
            return

        self.teams_api.post_channel_message(
            self.config.security_team_id, self.config.security_channel_id, alert_message
        )
        logger.info("Alert %s for detection %s posted to %s",
                    self.get_alert_type(detection), detection.id, self.config.security_channel_id)

    @staticmethod
    def format_alert_message(detection: SecretDetection) -> str:
        emoji = SEVERITY_EMOJIS.get(detection.severity, DEFAULT_EMOJI)
        return ALERT_MESSAGE_TEMPLATE.format(
            emoji=emoji,
            secret_type=detection.secret_type,
            severity=detection.severity.value,
            confidence=detection.confidence * 100,
            channel=detection.channel_id,
            user=detection.user_name,
            detected_at=detection.detected_at.strftime("%Y-%m-%d %H:%M:%S"),
            masked_value=detection.masked_value,
            context=detection.context,
            detection_id=detection.id,
        )

    @staticmethod
    def get_alert_type(detection: SecretDetection) -> str:
        if detection.severity == Severity.CRITICAL or (
                detection.severity == Severity.HIGH and detection.confidence > 0.9):
            return ALERT_TYPE_CRITICAL_RISK
        if detection.severity == Severity.HIGH or detection.confidence > 0.8:
            return ALERT_TYPE_HIGH_RISK
        return ALERT_TYPE_SECRET_DETECTED
