"""
Core configuration, error types and shared helpers.
"""
