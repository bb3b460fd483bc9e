"""
External service integrations for webcms.

- storage: asset store for images and files (local filesystem or S3-compatible)
"""
