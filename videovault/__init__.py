"""
videovault - video metadata registry with streamed binary storage.

This package contains the complete application:
- core: Framework-agnostic metadata index, blob contract and orchestration
- infrastructure: Blob store backends (filesystem, in-memory, S3/R2)
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
