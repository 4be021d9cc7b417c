"""
Background worker entrypoints.
"""
