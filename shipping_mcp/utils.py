import functools
import inspect
import re
import time
from typing import Any

from loguru import logger

REDACTED = "[REDACTED]"

SENSITIVE_FIELDS = (
    "password",
    "passwd",
    "secret",
    "token",
    "key",
    "authorization",
    "auth",
    "signature",
    "payload",
    "session_id",
    "cookie",
)

# Street-level address lines; city/country stay readable
ADDRESS_FIELDS = frozenset({"street1", "street2", "address1", "address2", "address_line_1"})

EMAIL_PATTERN = re.compile(r"[^@\s\"'<>(),;:]+@[^@\s\"'<>(),;:]+\.[A-Za-z]{2,}")
PHONE_PATTERN = re.compile(r"(?<![\w-])\+?\(?\d[\d\s().-]{6,}\d(?![\w-])")
DATE_PREFIX = re.compile(r"\d{4}-\d{2}-\d{2}")


def mask_email(value: str) -> str:
    """j.doe@example.com -> j***@example.com"""
    local, _, domain = value.partition("@")
    if not domain:
        return "***"
    return f"{local[:1]}***@{domain}"


def mask_phone(value: str) -> str:
    """Keep the last four digits only."""
    digits = [c for c in value if c.isdigit()]
    if len(digits) <= 4:
        return "***"
    return "***" + "".join(digits[-4:])


def _mask_phone_match(match: re.Match) -> str:
    text = match.group(0)
    digits = sum(c.isdigit() for c in text)
    # Dates and long identifiers (tracking codes, SKUs) are not phone numbers
    if not 10 <= digits <= 15 or DATE_PREFIX.match(text):
        return text
    return mask_phone(text)


def mask_contacts(text: str) -> str:
    """Mask email- and phone-shaped substrings of free text."""
    text = EMAIL_PATTERN.sub(lambda m: mask_email(m.group(0)), text)
    return PHONE_PATTERN.sub(_mask_phone_match, text)


def _sanitize(value: Any, key: str) -> Any:
    lowered = key.lower()
    if isinstance(value, dict):
        return {k: _sanitize(v, str(k)) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize(item, key) for item in value]
    if value is None or isinstance(value, bool):
        return value
    if any(field in lowered for field in SENSITIVE_FIELDS):
        return REDACTED
    if isinstance(value, str):
        if lowered in ADDRESS_FIELDS:
            return "***"
        if "email" in lowered and "@" in value:
            return mask_email(value)
        if "phone" in lowered and len(value) > 7:
            return mask_phone(value)
        return mask_contacts(value)
    return value


def sanitize_log_data(data: Any) -> Any:
    """
    Copy of `data` that is safe to log.

    Credential-named fields are redacted, email- and phone-named fields
    are masked, and email/phone-shaped text is masked under any key.
    Nested dicts and lists are walked.
    """
    if isinstance(data, dict):
        return {k: _sanitize(v, str(k)) for k, v in data.items()}
    if isinstance(data, (list, tuple)):
        return [sanitize_log_data(item) for item in data]
    if isinstance(data, str):
        return mask_contacts(data)
    return data


def log_tool_call(func):
    """
    A decorator that logs async tool entry, exit, and exceptions.

    Features:
    - Logs tool name and sanitized parameters before execution
    - Logs duration on success
    - Logs exceptions and re-raises them unchanged
    - Preserves function metadata and return values
    """
    sig = inspect.signature(func)

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        func_name = func.__name__

        bound_args = sig.bind(*args, **kwargs)
        bound_args.apply_defaults()
        params = {k: v for k, v in bound_args.arguments.items() if k != "self"}

        logger.info(f"Tool {func_name} called with params: {sanitize_log_data(params)}")
        start = time.perf_counter()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            logger.warning(
                f"Tool {func_name} raised {type(e).__name__} after "
                f"{(time.perf_counter() - start) * 1000:.0f}ms"
            )
            raise
        logger.info(f"Tool {func_name} finished in {(time.perf_counter() - start) * 1000:.0f}ms")
        return result

    return wrapper
