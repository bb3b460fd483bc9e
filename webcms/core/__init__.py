"""
Core utilities for webcms: errors, logging, security and FastAPI dependencies.
"""
