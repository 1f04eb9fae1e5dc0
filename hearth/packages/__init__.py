"""Packages — bundles of modules and commands, and the host's own packages.

- ``installer``: validate a bundle, cache it, expose it through symlinks
- ``system``: install declared dependencies with the host package manager
"""
