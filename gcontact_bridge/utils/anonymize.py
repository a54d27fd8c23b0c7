"""Helpers for keeping secrets out of log output."""

# Number of trailing characters of an API key that may be logged
ANONYMIZED_KEY_LENGTH = 10


def anonymize_key(key: str) -> str:
    """
    Shorten an API key for log output.

    Args:
        key: API key or other secret

    Returns:
        "..." followed by the last ANONYMIZED_KEY_LENGTH characters
    """
    return f"...{(key or '')[-ANONYMIZED_KEY_LENGTH:]}"
