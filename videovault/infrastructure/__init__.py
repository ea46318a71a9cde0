"""
Infrastructure layer - external service integrations.

- storage: Blob store backends (local disk, S3/R2, in-memory mock)

These implement the protocols defined in the core.
"""
