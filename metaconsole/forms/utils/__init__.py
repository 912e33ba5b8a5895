"""Metadata access for the forms: provider interface, catalog provider, cache."""

from metaconsole.forms.utils.metadata_cache import MetadataCache
from metaconsole.forms.utils.metadata_provider import (
    ColumnInfo,
    Connection,
    MetadataProvider,
    RetryingMetadataProvider,
    filter_by_type,
)
from metaconsole.forms.utils.yaml_catalog import YamlCatalogProvider

__all__ = [
    "ColumnInfo",
    "Connection",
    "MetadataCache",
    "MetadataProvider",
    "RetryingMetadataProvider",
    "YamlCatalogProvider",
    "filter_by_type",
]
