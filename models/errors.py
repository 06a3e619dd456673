"""Error types shared by the lifecycle engine, its adapters and the HTTP layer."""


class ValidationError(ValueError):
    """Request input rejected before any store is touched."""


class MetadataStoreError(RuntimeError):
    """The metadata store could not complete an operation."""


class ObjectStoreError(RuntimeError):
    """The object store could not complete an operation."""
