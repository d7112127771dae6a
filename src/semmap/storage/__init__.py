"""Storage collaborators for the mapping engine.

Re-exports key classes for convenient imports:
    from semmap.storage import InMemorySchemaStore, FrameDataset, SqliteMappingProjectStore
"""

from semmap.storage.base import Dataset, MappingProjectRepository, SchemaStore
from semmap.storage.memory import FrameDataset, InMemorySchemaStore
from semmap.storage.project_store import SqliteMappingProjectStore
from semmap.storage.workspace import load_workspace, save_workspace

__all__ = [
    "Dataset",
    "FrameDataset",
    "InMemorySchemaStore",
    "MappingProjectRepository",
    "SchemaStore",
    "SqliteMappingProjectStore",
    "load_workspace",
    "save_workspace",
]
