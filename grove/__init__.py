"""
Grove - hierarchical registry of source trees with acyclic dependency links.

Repositories and workspaces live under one root, addressed by dotted names.
Links between them are realized on disk and exported to commands run inside
a tree.
"""

__version__ = "0.3.0"

from grove.core import Grove
from grove.errors import GroveError

# Define what gets imported with "from grove import *"
__all__ = ["Grove", "GroveError", "__version__"]
