"""hearth — bootstrap and maintain a home-directory environment.

Packages of modules and commands are mirrored into a per-package cache,
exposed through namespaced symlinks, and modules are loaded into the
running session once per content change.
"""

__version__ = "0.3.0"
