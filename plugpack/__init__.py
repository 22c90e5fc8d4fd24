"""plugpack: packaging for host application plugins.

Builds either an installable plugin bundle or a development link descriptor
from a resolved dependency graph, computing the same runtime library set
for both.
"""

from plugpack.__version__ import __version__

__all__ = ["__version__"]
