"""State/store layer.

This package is the single source of truth for how polled snapshots and
confirmed operator mutations are merged into the three location
collections.
"""
