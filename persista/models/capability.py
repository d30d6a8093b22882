"""
The capability a model type needs to be persisted.

A model either implements ``RecordModel`` (``from_record`` / ``to_record``),
is a pydantic ``BaseModel``, or is any callable accepting a raw record.
"""

from collections.abc import Mapping
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel

M = TypeVar("M")


@runtime_checkable
class RecordModel(Protocol):
    """Explicit persistence capability."""

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "RecordModel": ...

    def to_record(self) -> dict[str, Any]: ...


class ModelCodec(Generic[M]):
    """
    Converts raw store records to model instances and back.

    Example:
        class User(BaseModel):
            id: int | None = None
            name: str

        codec = ModelCodec(User)
        user = codec.construct({"id": 1, "name": "Ada"})
        codec.dump(user)  # {"id": 1, "name": "Ada"}
    """

    def __init__(self, model: type[M] | None = None):
        self.model = model

    def construct(self, record: Mapping[str, Any]) -> M:
        model = self.model
        if model is None:
            return dict(record)
        if hasattr(model, "from_record"):
            return model.from_record(record)
        if isinstance(model, type) and issubclass(model, BaseModel):
            return model.model_validate(dict(record))
        return model(record)

    def dump(self, instance: Any) -> dict[str, Any]:
        if isinstance(instance, Mapping):
            return dict(instance)
        if isinstance(instance, RecordModel):
            return instance.to_record()
        if isinstance(instance, BaseModel):
            return instance.model_dump(by_alias=True)
        raise TypeError(
            f"{type(instance).__name__} is not persistable: implement to_record() "
            "or use a pydantic model"
        )
