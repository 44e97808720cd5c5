"""FastAPI dependencies for dependency injection."""

from __future__ import annotations

from collections.abc import Generator  # noqa: TC003
from typing import Annotated

from fastapi import Depends

from examcustody.config import CustodyConfig
from examcustody.engine import CustodyEngine

# Global CustodyEngine instance (initialized on app startup)
_engine: CustodyEngine | None = None


def init_engine(config: CustodyConfig) -> CustodyEngine:
    """Initialize the global CustodyEngine instance."""
    global _engine  # noqa: PLW0603
    if _engine is not None:
        _engine.close()
    _engine = CustodyEngine.from_config(config)
    return _engine


def close_engine() -> None:
    """Close the global CustodyEngine instance."""
    global _engine  # noqa: PLW0603
    if _engine is not None:
        _engine.close()
        _engine = None


def get_engine() -> Generator[CustodyEngine, None, None]:
    """Dependency that provides the CustodyEngine instance."""
    if _engine is None:
        raise RuntimeError("CustodyEngine not initialized. Call init_engine() first.")
    yield _engine


# Type alias for dependency injection
EngineDep = Annotated[CustodyEngine, Depends(get_engine)]
