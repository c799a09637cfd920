"""Backend API wrappers."""

from .Db import Db
from .RealtimeStore import RealtimeStore

__all__ = ["Db", "RealtimeStore"]
