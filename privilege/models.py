"""
privilege/models.py -- Domain dataclass for roles.

A role's privileges live in a separate role_privilege row (one per role) as a
comma-joined list of codes. privilege_list is that list split back out.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Role:
    name: str
    id: int | None = None
    is_enable: bool = True
    privilege_list: list[str] = field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None
