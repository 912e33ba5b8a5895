"""Form engine: dependency resolver, mode policy, reconciler and normalizer.

Every function here is pure. The session module owns the state, the
metadata lookups and the cache, and calls into the engine on each edit.
"""

from metaconsole.forms.engine.dictionary import build_dictionary_entries
from metaconsole.forms.engine.mode_policy import (
    legal_load_types,
    relevant_fields,
    required_fields,
)
from metaconsole.forms.engine.normalizer import (
    SubmissionContext,
    denormalize,
    normalize,
    to_display,
    to_stored,
)
from metaconsole.forms.engine.reconciler import (
    ReconcileResult,
    join_columns,
    reconcile_column_set,
    split_columns,
)
from metaconsole.forms.engine.resolver import (
    ChoiceRequest,
    Transition,
    choice_requests,
    connection_is_eligible,
    eligible_connections,
    enabled_fields,
    reduce,
)

__all__ = [
    "ChoiceRequest",
    "ReconcileResult",
    "SubmissionContext",
    "Transition",
    "build_dictionary_entries",
    "choice_requests",
    "connection_is_eligible",
    "denormalize",
    "eligible_connections",
    "enabled_fields",
    "join_columns",
    "legal_load_types",
    "normalize",
    "reconcile_column_set",
    "reduce",
    "relevant_fields",
    "required_fields",
    "split_columns",
    "to_display",
    "to_stored",
]
