"""
Robbing Request — Auto-Code Generator

Generates request identities:
  - Robbing requests:  CR-{year}-{seq}   (e.g. CR-2024-0001, CR-2024-0137)

The sequence is the creation order within the request store, so codes are
unique for the lifetime of the store. The store serializes creation, which
makes the sequence safe under concurrent callers.
"""

from datetime import datetime


def generate_request_code(created: datetime, sequence: int) -> str:
    """Format a request id: CR-{YEAR}-{SEQ:04d}."""
    if sequence < 1:
        raise ValueError(f"Sequence must start at 1, got {sequence}")
    return f"CR-{created.year}-{sequence:04d}"
