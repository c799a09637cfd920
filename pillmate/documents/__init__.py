"""Documents package initialization."""

from .users import User

__all__ = ["User"]
