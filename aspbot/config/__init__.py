# aspbot/config/__init__.py
from __future__ import annotations

from .settings import ProgramConfig, Settings

__all__ = ["ProgramConfig", "Settings"]
