#!/usr/bin/env python3
import re
import html
import hashlib
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple

from confidence import ConfidenceCalculator
from masker import mask_secret

logger = logging.getLogger(__name__)


class Severity(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class DetectionStatus(Enum):
    NEW = "new"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    FALSE_POSITIVE = "false_positive"

    @classmethod
    def is_valid(cls, value: str) -> bool:
        return any(status.value == value for status in cls)


@dataclass(frozen=True)
class PatternRule:
    name: str
    matcher: re.Pattern
    severity: Severity
    description: str


@dataclass
class TeamsMessage:
    id: str
    content: str
    channel_id: str = ""
    team_id: str = ""
    user_id: str = ""
    user_name: str = ""
    created_at: Optional[datetime] = None

    @classmethod
    def from_graph(cls, payload: Dict[str, Any], channel_id: str = "", team_id: str = "") -> "TeamsMessage":
        """Builds a message from a Microsoft Graph chatMessage resource."""
        user = (payload.get("from") or {}).get("user") or {}
        body = payload.get("body") or {}

        return cls(
            id=payload.get("id") or str(uuid.uuid4()),
            content=body.get("content") or "",
            channel_id=payload.get("channelId") or channel_id,
            team_id=payload.get("teamId") or team_id,
            user_id=user.get("id", ""),
            user_name=user.get("displayName", ""),
            created_at=_parse_timestamp(payload.get("createdDateTime")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "channelId": self.channel_id,
            "teamId": self.team_id,
            "userId": self.user_id,
            "userName": self.user_name,
            "createdDateTime": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class SecretDetection:
    id: str
    message_id: str
    channel_id: str
    team_id: str
    user_id: str
    user_name: str
    secret_type: str
    masked_value: str
    confidence: float
    context: str
    severity: Severity
    raw_value: str = field(repr=False, default="")
    detected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: DetectionStatus = DetectionStatus.NEW
    # Position of raw_value in the normalized content.
    span: Tuple[int, int] = field(default=(0, 0), repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        # raw_value is intentionally absent.
        return {
            "id": self.id,
            "messageId": self.message_id,
            "channelId": self.channel_id,
            "teamId": self.team_id,
            "userId": self.user_id,
            "userName": self.user_name,
            "secretType": self.secret_type,
            "maskedValue": self.masked_value,
            "confidence": self.confidence,
            "context": self.context,
            "detectedAt": self.detected_at.isoformat(),
            "severity": self.severity.value,
            "status": self.status.value,
        }


PATTERNS: Tuple[PatternRule, ...] = (
    PatternRule(
        name="AWS Access Key",
        matcher=re.compile(r'AKIA[0-9A-Z]{16}'),
        severity=Severity.HIGH,
        description="AWS Access Key ID detected",
    ),
    PatternRule(
        name="AWS Secret Key",
        matcher=re.compile(r'[A-Za-z0-9/+=]{40}'),
        severity=Severity.HIGH,
        description="Potential AWS Secret Access Key",
    ),
    PatternRule(
        name="GitHub Token",
        matcher=re.compile(r'ghp_[A-Za-z0-9]{36}'),
        severity=Severity.HIGH,
        description="GitHub Personal Access Token",
    ),
    PatternRule(
        name="JWT Token",
        matcher=re.compile(r'eyJ[A-Za-z0-9_-]*\.eyJ[A-Za-z0-9_-]*\.[A-Za-z0-9_-]*'),
        severity=Severity.MEDIUM,
        description="JSON Web Token detected",
    ),
    PatternRule(
        name="API Key Generic",
        matcher=re.compile(r'(?i)(?:api[_-]?key|apikey|secret[_-]?key)["\s]*[:=]["\s]*([A-Za-z0-9]{20,})'),
        severity=Severity.MEDIUM,
        description="Generic API key pattern",
    ),
    PatternRule(
        name="Database URL",
        matcher=re.compile(
            r'(?i)(?:mongodb(?:\+srv)?|mysql|postgres(?:ql)?|rediss?|mssql)://[^\s:@/]*:[^\s@/]+@[^\s]+'
        ),
        severity=Severity.HIGH,
        description="Database connection string",
    ),
    PatternRule(
        name="Private Key",
        matcher=re.compile(r'-----BEGIN [A-Z ]+PRIVATE KEY-----[\s\S]*?-----END [A-Z ]+PRIVATE KEY-----'),
        severity=Severity.CRITICAL,
        description="Private key detected",
    ),
    PatternRule(
        name="Slack Token",
        matcher=re.compile(r'xox[baprs]-[A-Za-z0-9-]+'),
        severity=Severity.HIGH,
        description="Slack API token",
    ),
    PatternRule(
        name="Google API Key",
        matcher=re.compile(r'AIza[0-9A-Za-z_-]{35}'),
        severity=Severity.HIGH,
        description="Google API key",
    ),
)


class SecretDetector:
    CHUNK_SIZE = 4096
    CHUNK_OVERLAP = 512
    MAX_SCAN_WINDOW = 5000

    # How far a match starting inside a window may run past its end.
    MAX_MATCH_EXTENSION = 8192

    CONTEXT_CHARS = 50
    MIN_CONFIDENCE = 0.3
    OVERLAP_RATIO = 0.8
    MIN_OVERLAP_LENGTH = 10

    FALSE_POSITIVE_MARKERS = (
        'test', 'example', 'demo', 'sample', 'placeholder',
        'fake', 'mock', 'dummy', 'template', 'documentation',
        'akiaxxxxxxxxtest', 'akiaiosfodnn7example', 'your-api-key',
        'replace-with', 'insert-your', 'add-your',
    )

    # Formats distinctive enough that nearby prose cannot overrule them.
    HIGHLY_SPECIFIC_TYPES = frozenset({
        "Private Key", "GitHub Token", "AWS Access Key", "Google API Key",
    })

    def __init__(self, patterns: Tuple[PatternRule, ...] = PATTERNS,
                 chunk_size: int = CHUNK_SIZE, overlap: int = CHUNK_OVERLAP,
                 max_scan_window: int = MAX_SCAN_WINDOW):
        if chunk_size <= 0 or overlap < 0 or max_scan_window <= 0:
            raise ValueError("chunk size, overlap and scan window must be positive")
        if chunk_size - overlap <= 0:
            raise ValueError(
                f"chunk overlap ({overlap}) must be smaller than chunk size ({chunk_size})"
            )

        self.patterns = tuple(patterns)
        self.chunk_size = chunk_size
        self.overlap = overlap
        self.max_scan_window = max_scan_window
        self.confidence_calculator = ConfidenceCalculator()

    @staticmethod
    def normalize_content(content: str) -> str:
        """Decodes entities and JSON escapes, then collapses all whitespace to single spaces."""
        if not content:
            return ""
        content = html.unescape(content)
        content = content.replace('\\n', '\n').replace('\\r', '\r').replace('\\t', '\t')
        return re.sub(r'\s+', ' ', content)

    def iter_chunks(self, content: str):
        """Yields (offset, window) pairs covering the whole content."""
        if len(content) <= self.max_scan_window:
            yield 0, content
            return

        step = self.chunk_size - self.overlap
        start = 0
        while start < len(content):
            end = min(start + self.chunk_size, len(content))
            yield start, content[start:end]
            if end == len(content):
                break
            start += step

    def is_false_positive(self, match: str, context: str, secret_type: str) -> bool:
        lower_match = match.lower()
        lower_context = context.lower()
        highly_specific = secret_type in self.HIGHLY_SPECIFIC_TYPES

        for marker in self.FALSE_POSITIVE_MARKERS:
            if marker in lower_match:
                return True
            if marker in lower_context and not highly_specific:
                return True

        return False

    def extract_context(self, content: str, start: int, end: int,
                        secret_spans: List[Tuple[int, int]]) -> str:
        """
        Returns the text around content[start:end] with every secret span in
        view masked. A span cut by the window edge is starred out entirely.
        """
        before = max(0, start - self.CONTEXT_CHARS)
        after = min(len(content), end + self.CONTEXT_CHARS)

        parts = []
        cursor = before
        for span_start, span_end in sorted(secret_spans):
            if span_end <= cursor or span_start >= after:
                continue
            visible_start = max(cursor, span_start)
            visible_end = min(after, span_end)
            parts.append(content[cursor:visible_start])
            if (visible_start, visible_end) == (span_start, span_end):
                parts.append(mask_secret(content[span_start:span_end]))
            else:
                parts.append('*' * (visible_end - visible_start))
            cursor = visible_end
        parts.append(content[cursor:after])

        return ''.join(parts).strip()

    def redact_contexts(self, content: str, detections: List[SecretDetection]) -> None:
        """Rebuilds each context with every reported secret masked, not only its own."""
        secret_spans = sorted({
            (occurrence.start(), occurrence.end())
            for secret in {d.raw_value for d in detections}
            for occurrence in re.finditer(re.escape(secret), content)
        })
        for detection in detections:
            start, end = detection.span
            detection.context = self.extract_context(content, start, end, secret_spans)

    def iter_matches(self, rule: PatternRule, content: str, start: int, end: int):
        """
        Yields the matches of rule that begin inside content[start:end].

        A match may run past end so that a secret cut by the window edge (a
        PEM block longer than the overlap, say) is still read whole.
        """
        limit = len(content) if end >= len(content) else min(len(content), end + self.MAX_MATCH_EXTENSION)
        for match in rule.matcher.finditer(content, start, limit):
            if match.start() >= end:
                break
            yield match

    @staticmethod
    def generate_detection_id(message_id: str, secret: str) -> str:
        digest = hashlib.md5((message_id + secret).encode('utf-8')).hexdigest()
        return f"det_{digest}"[:16]

    def scan_chunk(self, message: TeamsMessage, content: str, window_start: int,
                   window_end: int) -> List[SecretDetection]:
        detections: List[SecretDetection] = []

        for pattern in self.patterns:
            for match in self.iter_matches(pattern, content, window_start, window_end):
                group = 1 if match.lastindex else 0
                secret = match.group(group)
                if not secret:
                    continue

                start, end = match.span(group)
                context = self.extract_context(content, start, end, [(start, end)])

                if self.is_false_positive(secret, context, pattern.name):
                    continue

                confidence = self.confidence_calculator.calculate_confidence(secret, context, pattern.name)
                if confidence < self.MIN_CONFIDENCE:
                    continue

                detections.append(SecretDetection(
                    id=self.generate_detection_id(message.id, secret),
                    message_id=message.id,
                    channel_id=message.channel_id,
                    team_id=message.team_id,
                    user_id=message.user_id,
                    user_name=message.user_name,
                    secret_type=pattern.name,
                    masked_value=mask_secret(secret),
                    raw_value=secret,
                    confidence=confidence,
                    context=context,
                    severity=pattern.severity,
                    span=(start, end),
                ))

        return detections

    def scan_message(self, message: TeamsMessage) -> List[SecretDetection]:
        """Returns the deduplicated detections of a message, highest confidence first."""
        content = self.normalize_content(message.content)

        detections: List[SecretDetection] = []
        for offset, chunk in self.iter_chunks(content):
            detections.extend(self.scan_chunk(message, content, offset, offset + len(chunk)))

        detections.sort(key=lambda d: d.confidence, reverse=True)
        detections = self.deduplicate(detections)
        self.redact_contexts(content, detections)

        if detections:
            logger.debug("Message %s: %d detection(s), top %s (%.2f)",
                         message.id, len(detections), detections[0].secret_type, detections[0].confidence)
        return detections

    def deduplicate(self, detections: List[SecretDetection]) -> List[SecretDetection]:
        """Keeps the first of every group of overlapping detections; input must be sorted."""
        kept: List[SecretDetection] = []
        consumed = set()

        for i, detection in enumerate(detections):
            if i in consumed:
                continue
            if any(self.detections_overlap(detection, other) for other in kept):
                continue

            kept.append(detection)
            for j in range(i + 1, len(detections)):
                if j not in consumed and self.detections_overlap(detection, detections[j]):
                    consumed.add(j)

        return kept

    @classmethod
    def detections_overlap(cls, first: SecretDetection, second: SecretDetection) -> bool:
        return cls.values_overlap(first.raw_value, second.raw_value)

    @classmethod
    def values_overlap(cls, first: str, second: str) -> bool:
        if first in second or second in first:
            return True

        shorter, longer = sorted((first, second), key=len)
        if len(shorter) > cls.MIN_OVERLAP_LENGTH:
            return shorter[:int(len(shorter) * cls.OVERLAP_RATIO)] in longer

        return False


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        logger.debug("Unparseable message timestamp: %s", value)
        return None


@lru_cache(maxsize=None)
def get_detector() -> SecretDetector:
    """Shared detector; the pattern catalog is compiled once per process."""
    return SecretDetector()
