"""
Model binding: repositories per store and the bind() composition step.
"""

from .binder import BoundRecord, DocumentBinding, ModelBinding, RelationalBinding, bind
from .capability import ModelCodec, RecordModel
from .repositories import MongoRepository, PostgresRepository

__all__ = [
    "BoundRecord",
    "DocumentBinding",
    "ModelBinding",
    "ModelCodec",
    "MongoRepository",
    "PostgresRepository",
    "RecordModel",
    "RelationalBinding",
    "bind",
]
