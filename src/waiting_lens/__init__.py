"""waiting-lens: who is waiting on you, and how long have they been waiting."""

from __future__ import annotations

__version__ = "0.1.0"
