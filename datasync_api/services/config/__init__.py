"""Configuration package (Facade).

Re-exports the public config types so the rest of the codebase can import from a
single, stable path:

	from datasync_api.services.config import DatasyncConfig
"""

from datasync_api.services.config.datasync_config import DatasyncConfig

__all__ = ["DatasyncConfig"]
