"""
Core business logic for video registration and storage.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
or any infrastructure concerns. Blob backends plug in through the
BlobStore protocol.
"""
