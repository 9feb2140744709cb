"""Resource id allocation."""

from __future__ import annotations

import uuid


class UuidResourceAllocator:
    """Allocates random hex ids, optionally prefixed."""

    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix

    def allocate_id(self) -> str:
        return f"{self.prefix}{uuid.uuid4().hex}"
