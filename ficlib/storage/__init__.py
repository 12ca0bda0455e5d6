# storage/__init__.py
from ficlib.storage.autosave import AutoBackup
from ficlib.storage.normalizer import SCHEMA_VERSION, project_to_dict, sanitize_project
from ficlib.storage.repository import Repository

__all__ = [
    "Repository",
    "AutoBackup",
    "SCHEMA_VERSION",
    "project_to_dict",
    "sanitize_project",
]
