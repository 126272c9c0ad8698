"""
Core modules for AI Credit Watch.

This package contains the balance controller, cancellation tokens,
error taxonomy, display helpers, log sink and feature-flag helpers.
"""
