"""Exceptions raised by the catalog store."""


class CatalogError(Exception):
    """Base class for catalog failures."""


class LoadError(CatalogError):
    """The schema or data source is missing, malformed, or inconsistent."""


class StorageError(CatalogError):
    """The catalog could not be written back to its data source."""
