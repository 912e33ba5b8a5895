"""Field value with provenance tracking."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class FieldSource(str, Enum):
    """Source of a field's value."""

    DEFAULT = "default"  # Form default or empty
    LOADED = "loaded"  # Seeded from a persisted record
    LOCAL = "local"  # Set by the user in this session
    DERIVED = "derived"  # Written by the engine (cascade clear, reconciler)


def is_unset(value: Any) -> bool:
    """None and the empty string both mean "no selection"."""
    return value is None or value == ""


@dataclass
class FieldValue:
    """A single field's value with provenance tracking.

    Attributes:
        name: The field name (e.g., "source_system", "load_type")
        value: Current value; a string, an integer, or None when unset
        source: Where this value came from
    """

    name: str
    value: Any = None
    source: FieldSource = FieldSource.DEFAULT

    def is_set(self) -> bool:
        return not is_unset(self.value)

    def is_local(self) -> bool:
        """Check if this value was set by the user in this session."""
        return self.source == FieldSource.LOCAL

    def is_loaded(self) -> bool:
        """Check if this value came from the persisted record being edited."""
        return self.source == FieldSource.LOADED

    def assign(self, value: Any, source: FieldSource) -> None:
        """Store a value, normalising "" to None."""
        self.value = None if is_unset(value) else value
        self.source = source

    def clear(self, source: FieldSource = FieldSource.DERIVED) -> None:
        """Clear the value."""
        self.value = None
        self.source = source

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "value": self.value,
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FieldValue":
        """Create from dictionary."""
        return cls(
            name=data["name"],
            value=data.get("value"),
            source=FieldSource(data.get("source", "default")),
        )

    def __str__(self) -> str:
        marker = {
            FieldSource.DEFAULT: "(default)",
            FieldSource.LOADED: "(loaded)",
            FieldSource.DERIVED: "(derived)",
            FieldSource.LOCAL: "",
        }.get(self.source, "")
        return f"{self.name}={self.value!r} {marker}".strip()
