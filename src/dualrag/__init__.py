"""dualrag: dual-embedding retrieval over code and prose."""

from dualrag.config import IndexConfig, Settings, load_config
from dualrag.engine import RagEngine

__all__ = ["IndexConfig", "RagEngine", "Settings", "load_config"]
