"""
Legajos Resilience Toolkit

Caching, retry, progress tracking and notifications for loading case
records ("legajos") and their sub-resources from a remote API.
"""

from .constants import APP_VERSION as __version__
from .toolkit import ResilienceToolkit, build_toolkit

__all__ = ["ResilienceToolkit", "build_toolkit", "__version__"]
