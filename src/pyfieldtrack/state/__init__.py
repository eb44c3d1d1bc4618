"""State/store layer.

This package is the single source of truth for how accepted location
submissions, broker pushes and explicit lifecycle calls are merged into
the per-tracker presence picture.
"""
