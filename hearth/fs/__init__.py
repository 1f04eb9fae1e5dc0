"""Filesystem primitives — path canonicalization, tree walking, tree sync.

- ``resolver``: symlink-aware canonical paths with cycle detection
- ``walker``: pre-order, symlink-non-following traversal
- ``sync``: one-way, additive, idempotent tree mirroring
"""
