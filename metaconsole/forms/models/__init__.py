"""UI-agnostic state for the configuration forms.

The state layer tracks field values and their sources
(default/loaded/local/derived) and describes each form's chains and mode
gates so a single engine can drive every form.
"""

from metaconsole.forms.models.field_value import FieldSource, FieldValue, is_unset
from metaconsole.forms.models.field_metadata import (
    DATA_DICTIONARY_FORM,
    DATA_QUALITY_FORM,
    MANIFESTS,
    PIPELINE_FORM,
    RECONCILIATION_FORM,
    ChainSpec,
    FormManifest,
    GateRule,
    get_manifest,
)
from metaconsole.forms.models.records import (
    DataDictionaryEntry,
    DataDictionaryHeader,
    DataQualityConfigRecord,
    PipelineConfigRecord,
    ReconciliationConfigRecord,
)
from metaconsole.forms.models.selection_state import FieldChange, SelectionState

__all__ = [
    "ChainSpec",
    "DATA_DICTIONARY_FORM",
    "DATA_QUALITY_FORM",
    "DataDictionaryEntry",
    "DataDictionaryHeader",
    "DataQualityConfigRecord",
    "FieldChange",
    "FieldSource",
    "FieldValue",
    "FormManifest",
    "GateRule",
    "MANIFESTS",
    "PIPELINE_FORM",
    "PipelineConfigRecord",
    "RECONCILIATION_FORM",
    "ReconciliationConfigRecord",
    "SelectionState",
    "get_manifest",
    "is_unset",
]
