"""Form session: the boundary between the engine and the outside world.

A FormSession owns one SelectionState for one record being authored. It
runs every edit through the resolver, fetches the choice lists the enabled
fields need, drops responses that arrive for superseded selections, keeps
the change-detection column set reconciled, and hands the normalized
record to the persistence layer on submit.

Example:
    provider = YamlCatalogProvider.from_file("catalog.yaml")
    session = await FormSession.open("pipeline", provider)
    await session.edit("source_system", "MySQL")
    await session.edit("connection_id", 7)
    session.choices("source_schema_name").values  # ("sales", "staging")
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Hashable, Literal, Mapping, Protocol

from pydantic import BaseModel

from metaconsole.forms.constants import DEFAULT_ENUMS
from metaconsole.forms.engine.dictionary import build_dictionary_entries
from metaconsole.forms.engine.mode_policy import legal_load_types, relevant_fields
from metaconsole.forms.engine.normalizer import (
    SubmissionContext,
    denormalize,
    normalize,
    to_display,
)
from metaconsole.forms.engine.reconciler import join_columns, reconcile_column_set
from metaconsole.forms.engine.resolver import (
    COLUMNS,
    CONNECTIONS,
    DATE_COLUMNS,
    ENUM,
    SCHEMAS,
    TABLES,
    ChoiceRequest,
    Transition,
    choice_requests,
    eligible_connections,
    enabled_fields,
    reduce,
    table_key,
)
from metaconsole.forms.models.field_metadata import FormManifest, get_manifest
from metaconsole.forms.models.field_value import FieldSource
from metaconsole.forms.models.records import DataDictionaryEntry, DataDictionaryHeader
from metaconsole.forms.models.selection_state import SelectionState
from metaconsole.forms.settings import ConsoleSettings
from metaconsole.forms.utils.metadata_cache import MetadataCache
from metaconsole.forms.utils.metadata_provider import (
    ColumnInfo,
    MetadataProvider,
    RetryingMetadataProvider,
)
from metaconsole.lib.errors import (
    ConfigurationError,
    MetadataUnavailable,
    SessionClosedError,
    StaleResponseDiscarded,
    ValidationError,
)
from metaconsole.lib.logging import get_console_logger

ChoiceStatus = Literal["idle", "pending", "loaded", "unavailable"]
Key = tuple[Hashable, ...]


@dataclass(frozen=True)
class FieldChoices:
    """Choice list of one field as the form should show it."""

    field: str
    values: tuple[Any, ...] = ()
    status: ChoiceStatus = "idle"
    error: MetadataUnavailable | None = None


@dataclass(frozen=True)
class Notice:
    """Human-readable message raised by the engine during editing."""

    level: Literal["info", "warning"]
    title: str
    message: str
    fields: tuple[str, ...] = ()


class PersistenceLayer(Protocol):
    """Stores normalized records. ``save`` may be sync or async."""

    def save(self, form: str, record: BaseModel) -> Any:
        ...


class FormSession:
    """One editing session of one configuration record."""

    def __init__(
        self,
        manifest: FormManifest | str,
        provider: MetadataProvider,
        *,
        settings: ConsoleSettings | None = None,
        persistence: PersistenceLayer | None = None,
    ):
        self.manifest = get_manifest(manifest) if isinstance(manifest, str) else manifest
        self.settings = settings or ConsoleSettings()
        retry = self.settings.retry_config()
        self.provider = RetryingMetadataProvider(provider, retry) if retry else provider
        self.persistence = persistence

        self.state = SelectionState.from_defaults(self.manifest)
        self.cache = MetadataCache()
        self.notices: list[Notice] = []
        self.discarded_responses = 0
        self.closed = False

        self._aliases = self.settings.alias_table()
        self._failures: dict[Key, MetadataUnavailable] = {}
        self._pending: set[Key] = set()
        self._seeded_key: Key | None = None

        self._log = get_console_logger(__name__)
        self._log.set_context(form=self.manifest.name)

    @classmethod
    async def open(
        cls,
        manifest: FormManifest | str,
        provider: MetadataProvider,
        *,
        record: BaseModel | Mapping[str, Any] | None = None,
        settings: ConsoleSettings | None = None,
        persistence: PersistenceLayer | None = None,
    ) -> "FormSession":
        """Create a session, seed it from ``record`` if given, and load choices."""
        session = cls(manifest, provider, settings=settings, persistence=persistence)
        if record is not None:
            session.load(record)
        await session.load_choices()
        return session

    # ------------------------------------------------------------------
    # Seeding and editing
    # ------------------------------------------------------------------

    def load(self, record: BaseModel | Mapping[str, Any]) -> None:
        """Seed the state from a persisted record.

        Fields the record leaves unset fall back to the form defaults.
        """
        self._ensure_open()
        values = denormalize(self.manifest, record, self._enum_catalogs())
        seeded = {
            name: value if value is not None else self.manifest.defaults.get(name)
            for name, value in values.items()
        }
        self.state.apply(seeded, FieldSource.LOADED)
        self._seeded_key = None
        key = record.get("config_key") if isinstance(record, Mapping) else getattr(record, "config_key", None)
        if key is not None:
            self._log.set_context(record_key=key)
        self._log.info("Loaded record into %s form", self.manifest.name)
        self._reconcile_column_set()

    def apply_edit(self, field: str, value: Any) -> Transition:
        """Apply one user edit synchronously.

        The edit and every cascade clear land in the state as one step.

        Returns:
            The resolver's Transition for the edit
        """
        self._ensure_open()
        before = self.state.values()
        transition = reduce(
            self.manifest,
            before,
            field,
            value,
            connections=self.cache.get((CONNECTIONS,)),
            aliases=self._aliases,
        )

        if transition.rejected:
            self.notices.append(
                Notice("warning", f"{field} not allowed", transition.rejected, (field,))
            )
            self._log.info("Rejected %s=%r: %s", field, value, transition.rejected)

        self._invalidate_lookups(before, transition)
        self.state.apply(transition.changes, FieldSource.LOCAL, derived=transition.clears)

        if transition.clears:
            self._log.info("%s changed; cleared %s", field, ", ".join(transition.clears))
        self._reconcile_column_set()
        return transition

    async def edit(self, field: str, value: Any) -> Transition:
        """Apply an edit, then fetch the choices it made necessary."""
        transition = self.apply_edit(field, value)
        await self.load_choices()
        return transition

    # ------------------------------------------------------------------
    # Choice lists
    # ------------------------------------------------------------------

    def requests(self) -> list[ChoiceRequest]:
        return choice_requests(self.manifest, self.state.values())

    def enabled(self) -> list[str]:
        return enabled_fields(self.manifest, self.state.values())

    async def load_choices(self) -> None:
        """Fetch every outstanding lookup concurrently.

        Lookups already cached, in flight, or failed are skipped; a failed
        lookup is retried after its ancestor is re-selected or refreshed.
        """
        self._ensure_open()
        outstanding: dict[Key, ChoiceRequest] = {}
        for request in self.requests():
            key = request.key
            if key in self.cache or key in self._pending or key in self._failures:
                continue
            outstanding.setdefault(key, request)

        if not outstanding:
            return

        self._pending.update(outstanding)
        await asyncio.gather(*(self._fetch(request) for request in outstanding.values()))

    async def refresh(self, field: str | None = None) -> None:
        """Drop cached lookups (all, or the one behind ``field``) and refetch."""
        self._ensure_open()
        if field is None:
            self.cache.clear()
            self._failures.clear()
            self._seeded_key = None
        else:
            self.manifest.check_field(field)
            for request in self.requests():
                if request.field == field:
                    self.cache.invalidate(request.key)
                    self._failures.pop(request.key, None)
        await self.load_choices()

    def choices(self, field: str) -> FieldChoices:
        """Current choice list of ``field``."""
        self.manifest.check_field(field)
        request = next((r for r in self.requests() if r.field == field), None)
        if request is None:
            return FieldChoices(field)

        key = request.key
        if key in self._failures:
            return FieldChoices(field, status="unavailable", error=self._failures[key])
        if key not in self.cache:
            status: ChoiceStatus = "pending" if key in self._pending else "idle"
            return FieldChoices(field, status=status)
        return FieldChoices(field, tuple(self._present(request, self.cache.get(key))), "loaded")

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self) -> BaseModel:
        """Normalize the state and hand it to the persistence layer.

        Raises:
            ValidationError: The record is incomplete; nothing is persisted
            Exception: Whatever the persistence layer raised, unchanged
        """
        self._ensure_open()
        try:
            record = normalize(self.manifest, self.state.values(), self._submission_context())
        except ValidationError as e:
            self._log.info("Submission blocked: %s", ", ".join(e.fields))
            raise

        if self.persistence is not None:
            result = self.persistence.save(self.manifest.name, record)
            if inspect.isawaitable(result):
                await result

        self._log.info("Submitted %s record", self.manifest.name)
        self.close()
        return record

    async def dictionary_entries(self, created_by: str = "User") -> list[DataDictionaryEntry]:
        """Build data-dictionary entries for the selected table.

        Uses the target table when resolved, otherwise the source table.
        """
        self._ensure_open()
        if self.manifest.record_model is not DataDictionaryHeader:
            raise ConfigurationError(
                "Dictionary entries are only built from the data-dictionary form",
                form=self.manifest.name,
            )
        header = normalize(self.manifest, self.state.values())
        values = self.state.values()
        key = None
        for chain in reversed(self.manifest.chains):
            key = table_key(chain, values)
            if key is not None:
                break
        if key is None:
            raise ValidationError(
                "Select a table before building dictionary entries",
                form=self.manifest.name,
                field_errors={"target_table_name": ["No table selected"]},
            )

        columns = self.cache.get(key)
        if columns is None:
            columns = await self.provider.list_columns_with_types(*key[1:])
            self.cache.put(key, columns)
        return build_dictionary_entries(header, columns, created_by=created_by)

    def cancel(self) -> None:
        """End the session without saving."""
        if not self.closed:
            self._log.info("Cancelled %s form", self.manifest.name)
        self.close()

    def close(self) -> None:
        self.closed = True
        self.cache.clear()
        self._failures.clear()
        self._log.clear_context()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self.closed:
            raise SessionClosedError("This form session has ended", form=self.manifest.name)

    def _enum_catalogs(self) -> dict[str, list[str]]:
        catalogs = {name: list(values) for name, values in DEFAULT_ENUMS.items()}
        for key in self.cache:
            if key[0] == ENUM:
                catalogs[str(key[1])] = list(self.cache.get(key))
        return catalogs

    async def _call_provider(self, request: ChoiceRequest) -> Any:
        kind, args = request.kind, request.args
        if kind == ENUM:
            return await self.provider.list_enum_values(*args)
        if kind == CONNECTIONS:
            return await self.provider.list_connections()
        if kind == SCHEMAS:
            return await self.provider.list_schemas(*args)
        if kind == TABLES:
            return await self.provider.list_tables(*args)
        if kind == COLUMNS:
            return await self.provider.list_columns_with_types(*args)
        if kind == DATE_COLUMNS:
            return await self.provider.list_columns_with_types(
                *args, type_filter=self.settings.date_types
            )
        raise ConfigurationError(f"Unknown lookup kind '{kind}'", value=kind)

    async def _fetch(self, request: ChoiceRequest) -> None:
        key = request.key
        result: Any = None
        error: MetadataUnavailable | None = None
        try:
            result = await self._call_provider(request)
        except MetadataUnavailable as e:
            error = e
        except Exception as e:
            error = MetadataUnavailable(
                f"Could not load choices for {request.field}",
                form=self.manifest.name,
                request=key,
                cause=e,
            )
        finally:
            self._pending.discard(key)

        try:
            self._deliver(request, result, error)
        except StaleResponseDiscarded as e:
            self.discarded_responses += 1
            self._log.debug("Discarded stale response: %s", e.details.get("key"))

    def _deliver(self, request: ChoiceRequest, result: Any, error: MetadataUnavailable | None) -> None:
        key = request.key
        if self.closed or key not in {r.key for r in self.requests()}:
            raise StaleResponseDiscarded(
                "Response arrived for a superseded selection",
                form=self.manifest.name,
                key=key,
            )
        if error is not None:
            self._failures[key] = error
            self._log.warning("Metadata lookup failed for %s: %s", request.field, error.message)
            return
        self.cache.put(key, result)
        self._reconcile_column_set()

    def _present(self, request: ChoiceRequest, result: Any) -> list[Any]:
        values = self.state.values()
        if request.kind == CONNECTIONS:
            chain = self.manifest.chain_for(request.field)
            if chain is None:
                return list(result)
            return eligible_connections(chain, result, values.get(chain.system_field), self._aliases)
        if request.kind in (COLUMNS, DATE_COLUMNS):
            return [c.name if isinstance(c, ColumnInfo) else str(c) for c in result]
        if request.kind == ENUM:
            kind = self.manifest.stored_case.get(request.field)
            options = [to_display(kind, v, result) if kind else v for v in result]
            if request.field == self.manifest.load_type_field and self.manifest.layer_field:
                legal = legal_load_types(values.get(self.manifest.layer_field))
                options = [v for v in options if v in legal]
            return options
        return list(result)

    def _invalidate_lookups(self, before: Mapping[str, Any], transition: Transition) -> None:
        """Forget lookups keyed by chain values this edit replaced.

        Failures recorded under the edited field's new value are forgotten
        too, so re-selecting an ancestor retries a lookup that failed.
        """
        replaced = [(name, before.get(name), True) for name in (transition.field, *transition.clears)]
        replaced.append((transition.field, transition.value, False))
        for chain in self.manifest.chains:
            for name, value, drop_cached in replaced:
                if value is None or name not in chain.levels[:3]:
                    continue
                position = chain.levels.index(name)
                context = [before.get(level) for level in chain.levels[:position]]
                for kind in (SCHEMAS, TABLES, COLUMNS, DATE_COLUMNS):
                    prefix = (kind, *context, value)
                    if drop_cached:
                        self.cache.invalidate(prefix)
                    for key in [k for k in self._failures if k[: len(prefix)] == prefix]:
                        del self._failures[key]

    def _reconcile_column_set(self) -> None:
        field = self.manifest.change_detection_field
        if not field:
            return
        values = self.state.values()
        if not relevant_fields(self.manifest, values)[field]:
            return
        key = table_key(self.manifest.change_detection_chain(), values)
        live = self.cache.get(key) if key else None
        if live is None:
            return

        dynamic_field = self.manifest.dynamic_schema_field
        result = reconcile_column_set(
            values.get(field),
            [c.name if isinstance(c, ColumnInfo) else str(c) for c in live],
            dynamic_schema=bool(dynamic_field) and values.get(dynamic_field) == "Y",
            first_resolution=key != self._seeded_key,
        )
        self._seeded_key = key
        if not result.changed:
            return

        self.state.apply({field: join_columns(result.columns)}, FieldSource.DERIVED)
        if result.notice:
            self.notices.append(Notice("info", "Change-detection columns adjusted", result.notice, (field,)))
            self._log.info("%s", result.notice)
        elif result.defaulted:
            self._log.info("Defaulted %s to all %d columns of %s", field, len(result.columns), key[-1])

    def _submission_context(self) -> SubmissionContext:
        values = self.state.values()
        chain = self.manifest.column_chain()
        key = table_key(chain, values)
        if key is None:
            return SubmissionContext()
        columns = self.cache.get(key)
        dates = self.cache.get(table_key(chain, values, DATE_COLUMNS))
        if dates is None and columns is not None:
            dates = [c for c in columns if isinstance(c, ColumnInfo) and c.is_date(self.settings.date_types)]
        return SubmissionContext(
            target_columns=tuple(c.name for c in columns) if columns is not None else None,
            target_date_columns=tuple(c.name for c in dates) if dates is not None else None,
        )
