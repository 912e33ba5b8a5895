"""Selection state container for one form editing session.

Holds the current value of every field on a form, remembers where each value
came from, and notifies subscribers when values change. The state has no
knowledge of dependencies; the resolver decides what to write and the state
applies it atomically.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

from metaconsole.forms.models.field_metadata import FormManifest
from metaconsole.forms.models.field_value import FieldSource, FieldValue, is_unset


@dataclass(frozen=True)
class FieldChange:
    """Emitted once per field whose value actually changed."""

    field: str
    old: Any
    new: Any
    source: FieldSource


Listener = Callable[[FieldChange], None]


class SelectionState:
    """Current value and provenance of every field on a form.

    Unset is represented as None; the empty string is normalised to None on
    write. Fields not declared in the manifest are rejected.
    """

    def __init__(self, manifest: FormManifest):
        self.manifest = manifest
        self._fields: dict[str, FieldValue] = {
            name: FieldValue(name=name) for name in manifest.fields
        }
        self._listeners: list[Listener] = []

    @classmethod
    def from_defaults(cls, manifest: FormManifest) -> "SelectionState":
        """Create a state with the form's defaults filled in."""
        state = cls(manifest)
        for name, value in manifest.defaults.items():
            state._fields[name].assign(value, FieldSource.DEFAULT)
        return state

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def get(self, name: str) -> Any:
        return self.field(name).value

    def field(self, name: str) -> FieldValue:
        self.manifest.check_field(name)
        return self._fields[name]

    def is_set(self, name: str) -> bool:
        return self.field(name).is_set()

    def values(self) -> dict[str, Any]:
        """Snapshot of every field's value."""
        return {name: fv.value for name, fv in self._fields.items()}

    def local_fields(self) -> list[str]:
        """Fields the user has set in this session."""
        return [name for name, fv in self._fields.items() if fv.is_local()]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set(self, name: str, value: Any, source: FieldSource = FieldSource.LOCAL) -> bool:
        """Write one field. Returns True if the value changed."""
        return bool(self.apply({name: value}, source))

    def apply(
        self,
        changes: Mapping[str, Any],
        source: FieldSource = FieldSource.LOCAL,
        *,
        derived: Iterable[str] = (),
    ) -> list[FieldChange]:
        """Write several fields as one step.

        Every write lands before any subscriber is notified, so a listener
        never observes a half-applied transition.

        Args:
            changes: Field name to new value
            source: Provenance recorded for the written fields
            derived: Names within ``changes`` recorded as DERIVED instead

        Returns:
            The changes that altered a value, in write order
        """
        for name in changes:
            self.manifest.check_field(name)

        derived_names = set(derived)
        events: list[FieldChange] = []
        for name, value in changes.items():
            current = self._fields[name]
            new_value = None if is_unset(value) else value
            if new_value == current.value:
                continue
            field_source = FieldSource.DERIVED if name in derived_names else source
            events.append(FieldChange(name, current.value, new_value, field_source))
            current.assign(new_value, field_source)

        for event in events:
            for listener in list(self._listeners):
                listener(event)
        return events

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "form": self.manifest.name,
            "fields": [fv.to_dict() for fv in self._fields.values()],
        }

    def __repr__(self) -> str:
        set_fields = ", ".join(str(fv) for fv in self._fields.values() if fv.is_set())
        return f"SelectionState({self.manifest.name}: {set_fields})"
