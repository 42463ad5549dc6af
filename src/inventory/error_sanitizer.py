"""
Error message sanitization for API responses.

Database and configuration errors can carry connection strings, passwords
or file paths. Messages sent to HTTP clients go through
``get_sanitizer().sanitize()`` first; the original error is logged server-side.

Example:
    >>> get_sanitizer().sanitize("Connection to postgresql://u:p@db/inv failed").sanitized_message
    'Connection to [DATABASE_URL] failed'
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional


@dataclass
class SanitizationResult:
    """Result of error message sanitization.

    Attributes:
        sanitized_message: Sanitized error message (safe to return to client)
        redaction_count: Number of redactions made
    """

    sanitized_message: str
    redaction_count: int

    @property
    def was_sanitized(self) -> bool:
        """Check if any redactions were made."""
        return self.redaction_count > 0


class ErrorSanitizer:
    """Removes credentials, connection strings and file paths from messages."""

    # Order matters - more specific patterns come first
    DEFAULT_PATTERNS: list[tuple[str, str]] = [
        # Database connection strings (must come before generic passwords)
        (r'postgres(ql)?://[^\s\n]+', '[DATABASE_URL]'),
        (r'sqlite:///[^\s\n]+', '[DATABASE_URL]'),

        # Passwords and secrets
        (r'password[=:\s]+[^\s\n,;]+', 'password=[REDACTED]'),
        (r'secret[=:\s]+[^\s\n,;]+', 'secret=[REDACTED]'),

        # Environment variable carrying the connection string
        (r'DATABASE_URL[=:\s]', '[ENV_VAR]='),

        # File paths (Unix and Windows)
        (r'/(?:home|root|usr|var|etc|opt|mnt|tmp)/[^\s\n,;]+', '[FILE_PATH]'),
        (r'[A-Z]:\\[^\s\n,;]+', '[FILE_PATH]'),

        # Stack traces (Python)
        (r'Traceback \(most recent call last\):[\s\S]*?(?=\n\n|\n[A-Z]|\Z)', '[STACK_TRACE]'),

        # IP addresses (v4)
        (r'\b(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\b', '[IP_ADDRESS]'),
    ]

    def __init__(
        self,
        patterns: Optional[list[tuple[str, str]]] = None,
        max_message_length: int = 500,
    ):
        self.patterns = list(patterns or self.DEFAULT_PATTERNS)
        self.max_message_length = max_message_length
        self._compiled_patterns = [
            (re.compile(pattern, re.IGNORECASE), replacement)
            for pattern, replacement in self.patterns
        ]

    def sanitize(self, message: str, error_type: Optional[str] = None) -> SanitizationResult:
        """Sanitize an error message for client exposure.

        Args:
            message: Raw error message
            error_type: Optional prefix such as "Database error"
        """
        if not message:
            return SanitizationResult(sanitized_message="An error occurred", redaction_count=0)

        sanitized = message
        redaction_count = 0

        for pattern, replacement in self._compiled_patterns:
            sanitized, count = pattern.subn(replacement, sanitized)
            redaction_count += count

        if len(sanitized) > self.max_message_length:
            sanitized = sanitized[: self.max_message_length] + "... [TRUNCATED]"

        if not sanitized.strip():
            sanitized = "An error occurred"

        if error_type and not sanitized.startswith(error_type):
            sanitized = f"{error_type}: {sanitized}"

        return SanitizationResult(
            sanitized_message=sanitized,
            redaction_count=redaction_count,
        )


_default_sanitizer: Optional[ErrorSanitizer] = None


def get_sanitizer() -> ErrorSanitizer:
    """Get the default error sanitizer instance."""
    global _default_sanitizer
    if _default_sanitizer is None:
        _default_sanitizer = ErrorSanitizer()
    return _default_sanitizer
