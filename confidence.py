#!/usr/bin/env python3
import math
from typing import Dict, Tuple


class ConfidenceCalculator:
    """
    Scores a candidate secret between 0.0 and 1.0.

    Five independent factors are combined as a weighted average, then
    multiplicative penalties are applied for values that look like
    placeholders or generated filler.
    """

    WEIGHTS = (0.30, 0.25, 0.20, 0.15, 0.10)

    MAX_ENTROPY = 6.0
    DEFAULT_SPECIFICITY = 0.5
    DEFAULT_LENGTH_SCORE = 0.7
    UNIFORMITY_LIMIT = 0.8

    PATTERN_SPECIFICITY: Dict[str, float] = {
        "AWS Access Key": 0.95,
        "GitHub Token": 0.98,
        "Private Key": 0.99,
        "Google API Key": 0.90,
        "Slack Token": 0.92,
        "Database URL": 0.85,
        "JWT Token": 0.75,
        "API Key Generic": 0.50,
        "AWS Secret Key": 0.60,
    }

    LENGTH_RANGES: Dict[str, Tuple[int, int]] = {
        "AWS Access Key": (20, 20),
        "AWS Secret Key": (40, 40),
        "GitHub Token": (40, 40),
        "Google API Key": (39, 39),
        "JWT Token": (50, 500),
        "API Key Generic": (16, 64),
        "Slack Token": (24, 56),
        "Database URL": (20, 200),
        "Private Key": (100, 5000),
    }

    POSITIVE_KEYWORDS = (
        'key', 'secret', 'token', 'password', 'credential', 'auth',
        'api', 'private', 'access', 'bearer', 'jwt', 'oauth',
    )

    NEGATIVE_KEYWORDS = (
        'test', 'example', 'demo', 'sample', 'placeholder', 'fake',
        'mock', 'dummy', 'template', 'documentation', 'readme',
        'tutorial', 'guide', 'comment', 'todo', 'fixme',
    )

    # Compared against the lowercased secret and context.
    PLACEHOLDER_VALUES = (
        'example', 'test', 'demo', 'sample', 'placeholder',
        'your-api-key', 'insert-key-here', 'replace-with',
        'akiaxxxxxxxxtest', 'akiaiosfodnn7example',
        'wjalrxutnfemi/k7mdeng/bpxrficyexamplekey',
        'aaaaaaaaaaaaaaaaaaaa', 'xxxxxxxxxxxxxxxxxxxx', '1111111111111111111',
    )

    # Hand-typed runs, compared case-sensitively.
    PLACEHOLDER_SEQUENCES = (
        'abcdefghijklmnopqrstuvwxyz',
        '1234567890',
    )

    PLACEHOLDER_PENALTY = 0.1
    PERIODIC_PENALTY = 0.3
    SAME_CHARACTER_PENALTY = 0.1

    def calculate_confidence(self, secret: str, context: str, secret_type: str) -> float:
        factors = (
            self.pattern_specificity(secret_type),
            self.entropy_score(secret),
            self.context_score(context),
            self.length_score(secret, secret_type),
            self.composition_score(secret, secret_type),
        )

        weighted = sum(f * w for f, w in zip(factors, self.WEIGHTS)) / sum(self.WEIGHTS)
        confidence = self.apply_false_positive_penalties(secret, context, _clamp(weighted))

        return _clamp(confidence)

    def pattern_specificity(self, secret_type: str) -> float:
        return self.PATTERN_SPECIFICITY.get(secret_type, self.DEFAULT_SPECIFICITY)

    @staticmethod
    def calculate_shannon_entropy(data: str) -> float:
        if not data:
            return 0.0

        entropy = 0.0
        length = len(data)
        char_count: Dict[str, int] = {}

        for char in data:
            char_count[char] = char_count.get(char, 0) + 1

        for count in char_count.values():
            probability = count / length
            entropy -= probability * math.log2(probability)

        return entropy

    def entropy_score(self, secret: str) -> float:
        return min(1.0, self.calculate_shannon_entropy(secret) / self.MAX_ENTROPY)

    def context_score(self, context: str) -> float:
        if not context:
            return 0.5

        lower_context = context.lower()
        positive = sum(0.2 for keyword in self.POSITIVE_KEYWORDS if keyword in lower_context)
        negative = sum(0.3 for keyword in self.NEGATIVE_KEYWORDS if keyword in lower_context)

        return _clamp(0.5 + positive - negative)

    def length_score(self, secret: str, secret_type: str) -> float:
        expected = self.LENGTH_RANGES.get(secret_type)
        if expected is None:
            return self.DEFAULT_LENGTH_SCORE

        min_len, max_len = expected
        length = len(secret)

        if min_len <= length <= max_len:
            return 1.0
        if length < min_len:
            return (length / min_len) * 0.5
        # Overshoot is penalised less than truncation.
        return 0.5 + (max_len / length) * 0.5

    def composition_score(self, secret: str, secret_type: str) -> float:
        upper = lower = digit = special = 0
        for char in secret:
            if 'A' <= char <= 'Z':
                upper += 1
            elif 'a' <= char <= 'z':
                lower += 1
            elif '0' <= char <= '9':
                digit += 1
            else:
                special += 1

        score = 0.5 + 0.1 * sum(1 for count in (upper, lower, digit, special) if count)

        if secret_type == "AWS Access Key":
            if upper and digit and not lower and not special:
                score += 0.3
        elif secret_type == "JWT Token":
            if upper and lower and digit and special <= 2:
                score += 0.2
        elif secret_type == "Private Key":
            if upper and lower and special:
                score += 0.3

        if secret and max(upper, lower, digit, special) / len(secret) > self.UNIFORMITY_LIMIT:
            score -= 0.2

        return _clamp(score)

    def apply_false_positive_penalties(self, secret: str, context: str, confidence: float) -> float:
        lower_secret = secret.lower()
        lower_context = context.lower()

        if (any(p in lower_secret or p in lower_context for p in self.PLACEHOLDER_VALUES)
                or any(p in secret or p in context for p in self.PLACEHOLDER_SEQUENCES)):
            confidence *= self.PLACEHOLDER_PENALTY

        if self.is_periodic(secret):
            confidence *= self.PERIODIC_PENALTY

        if self.is_all_same_character(secret):
            confidence *= self.SAME_CHARACTER_PENALTY

        return confidence

    @staticmethod
    def is_periodic(value: str) -> bool:
        """True when some prefix of at most half the length, repeated, rebuilds the value."""
        length = len(value)
        for period in range(1, length // 2 + 1):
            if length % period == 0 and value[:period] * (length // period) == value:
                return True
        return False

    @staticmethod
    def is_all_same_character(value: str) -> bool:
        return len(value) > 1 and len(set(value)) == 1


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))
