"""
Rewinder: append-only version history for mutable records.

Records every change to a tracked record as a diff or full snapshot,
reconstructs any past version on demand, and prunes old history without
breaking reconstruction.
"""

__version__ = "0.3.0"
