# tests/property/__init__.py
"""Property-based tests for rewinder.

Property-based testing validates invariants that must hold for ALL inputs,
not just the specific examples we think of. Version history is only useful
if every surviving version can still be rebuilt exactly.

Test categories:
- core/: writer reconstruction, prune safety and canonical payload encoding
"""
