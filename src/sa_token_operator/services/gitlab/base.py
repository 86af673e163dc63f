"""External variable store interface."""

from __future__ import annotations

from typing import Protocol


class VariableStore(Protocol):
    """Project-scoped CI variables."""

    def create_variable(self, project_id: int, key: str, value: str) -> None:
        """Create a masked, unprotected env_var variable."""
        ...

    def update_variable(self, project_id: int, key: str, value: str) -> None:
        """Update an existing variable with the same attributes."""
        ...

    def close(self) -> None:
        """Release connections held by the store."""
        ...
