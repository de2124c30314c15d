#!/usr/bin/env python3
"""
Partial rendering of secrets for display.

Every value that leaves the detector (API responses, alerts, extracted
context) goes through mask_secret(); the raw value is never shown.
"""
import re

PEM_ARMOR = re.compile(r'(-----BEGIN [A-Z ]+-----)\s*(.*?)\s*(-----END [A-Z ]+-----)', re.DOTALL)

REDACTED_LINE = "***[REDACTED]***"
JWT_PAYLOAD_MARKER = "***.***[PAYLOAD]***.***[SIGNATURE]***"
URL_CREDENTIALS_MARKER = "***:***"

FULL_MASK_LENGTH = 8
MIN_MASKED_CHARS = 2


def mask_secret(secret: str) -> str:
    if len(secret) <= FULL_MASK_LENGTH:
        return '*' * len(secret)

    if '\n' in secret:
        return mask_multiline_secret(secret)

    if secret.startswith('-----BEGIN'):
        return mask_armored_secret(secret)

    if '://' in secret:
        return mask_url_secret(secret)

    if secret.count('.') == 2 and len(secret) > 50:
        return mask_jwt_secret(secret)

    return mask_single_line_secret(secret)


def mask_multiline_secret(secret: str) -> str:
    """Keeps PEM armour lines, hides every content line but a short hint on the second."""
    masked_lines = []

    for i, line in enumerate(secret.split('\n')):
        line = line.strip()

        if not line or line.startswith('-----') or line.startswith('Comment:'):
            masked_lines.append(line)
        elif i == 1 and len(line) > FULL_MASK_LENGTH:
            visible = min(8, len(line) // 3)
            masked_lines.append(line[:visible] + REDACTED_LINE)
        else:
            masked_lines.append(REDACTED_LINE)

    return '\n'.join(masked_lines)


def mask_armored_secret(secret: str) -> str:
    """PEM block whose line breaks were collapsed into spaces."""
    match = PEM_ARMOR.fullmatch(secret)
    if not match:
        return mask_single_line_secret(secret)

    header, body, footer = match.groups()
    lines = [header] + body.split() + [footer]
    return ' '.join(mask_multiline_secret('\n'.join(lines)).split('\n'))


def mask_url_secret(secret: str) -> str:
    """Hides the userinfo of a URL; the host and path are not secret."""
    protocol, rest = secret.split('://', 1)

    at_index = rest.rfind('@')
    if at_index == -1:
        return f"{protocol}://{mask_single_line_secret(rest)}"

    credentials, host_part = rest[:at_index], rest[at_index:]
    if ':' in credentials:
        username = credentials.split(':', 1)[0]
        visible = min(3, len(username) // 2)
        return f"{protocol}://{username[:visible]}{URL_CREDENTIALS_MARKER}{host_part}"

    return f"{protocol}://{URL_CREDENTIALS_MARKER}{host_part}"


def mask_jwt_secret(secret: str) -> str:
    parts = secret.split('.')
    if len(parts) != 3:
        return mask_single_line_secret(secret)

    header = parts[0]
    visible = min(8, len(header) // 2, _max_visible(len(secret)))
    return header[:visible] + JWT_PAYLOAD_MARKER


def mask_single_line_secret(secret: str) -> str:
    length = len(secret)
    if length <= FULL_MASK_LENGTH:
        return '*' * length

    if length <= 20:
        prefix_len = max(2, length // 4)
        suffix_len = max(1, length // 7)
    elif length <= 50:
        prefix_len = max(4, length // 6)
        suffix_len = max(2, length // 8)
    else:
        prefix_len = max(6, length // 8)
        suffix_len = max(3, length // 10)

    # Scale the reveal down to the 20% ceiling, keeping the prefix/suffix ratio.
    max_visible = _max_visible(length)
    if prefix_len + suffix_len > max_visible:
        ratio = max_visible / (prefix_len + suffix_len)
        prefix_len = int(prefix_len * ratio)
        suffix_len = int(suffix_len * ratio)
        if prefix_len + suffix_len == 0:
            prefix_len = 1

    if prefix_len + suffix_len > length - MIN_MASKED_CHARS:
        prefix_len = min(prefix_len, length // 3)
        suffix_len = min(suffix_len, length // 4)

    masked_len = length - prefix_len - suffix_len
    suffix = secret[length - suffix_len:] if suffix_len else ''
    return secret[:prefix_len] + '*' * masked_len + suffix


def _max_visible(length: int) -> int:
    return max(1, length // 5)
