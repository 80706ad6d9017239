from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class AuthContext:
    """Caller identity used by scope resolution and scope checks."""

    user_id: uuid.UUID
    correlation_id: str | None = None
    is_super_admin: bool = False
    permissions: list[str] = field(default_factory=list)
    organization_ids: list[uuid.UUID] = field(default_factory=list)
    _cache: dict[str, Any] = field(default_factory=dict, repr=False)
