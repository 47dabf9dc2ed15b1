"""Database models package.

Import all models here so ``Base.metadata`` knows every table before
``create_all`` runs.
"""

from __future__ import annotations

from .workspace import Channel, Workspace

__all__ = ["Channel", "Workspace"]
