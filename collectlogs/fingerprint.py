"""
Fingerprinting of error classes.

Two occurrences belong to the same error class when their type, effective
source location and generic message are identical.
"""

import hashlib

_SEPARATOR = "\x00"


def effective_location(
    reported_file: str, reported_line: int, real_file: str, real_line: int
) -> tuple[str, int]:
    """
    Return the location used for fingerprinting: the real origin when both
    its file and line are known, otherwise the reported call site.
    """
    if real_file and real_line:
        return real_file, int(real_line)
    return reported_file or "", int(reported_line or 0)


def fingerprint(
    error_type: str,
    reported_file: str,
    reported_line: int,
    real_file: str,
    real_line: int,
    generic_message: str,
) -> str:
    file, line = effective_location(reported_file, reported_line, real_file, real_line)
    payload = _SEPARATOR.join([error_type or "", file, str(line), generic_message or ""])
    return hashlib.sha256(payload.encode("utf-8", "surrogatepass")).hexdigest()


__all__ = ["effective_location", "fingerprint"]
