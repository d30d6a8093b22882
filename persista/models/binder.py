"""
Model binding.

``bind()`` composes a model class with a repository. The model class itself
is never modified: finders on the binding return ``BoundRecord`` wrappers that
carry the instance-level operations (``save``, ``remove``, ``id``).

Usage:
    users = bind(User, MongoRepository(context, "users"), hooks={"before_save": stamp})
    ada = await users.find_one({"name": "Ada"})
    ada.instance.email = "ada@example.com"
    await ada.save()
"""

from __future__ import annotations

import copy
import inspect
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, Generic, TypeVar

from persista.core.callbacks import Callback, with_callback
from persista.core.logging.logger import get_logger

from .capability import ModelCodec
from .repositories import MongoRepository, PostgresRepository

M = TypeVar("M")

Hook = Callable[[Any], Any]
HOOK_NAMES = ("before_save",)


class BoundRecord(Generic[M]):
    """A model instance wired to its binding's repository."""

    def __init__(self, binding: ModelBinding[M], instance: M):
        self.binding = binding
        self.instance = instance

    @property
    def attributes(self) -> dict[str, Any]:
        return self.binding.codec.dump(self.instance)

    @property
    def id(self) -> str | None:
        """Primary key as a string (ObjectIds included), or None before insert."""
        key = self.attributes.get(self.binding.repository.primary_key)
        return str(key) if key is not None else None

    async def save(self, callback: Callback | None = None) -> BoundRecord[M]:
        """
        Run ``before_save`` hooks, then insert or update.

        Returns:
            A new BoundRecord after an insert, this record after an update
        """

        async def _save() -> BoundRecord[M]:
            await self.binding.run_hooks("before_save", self.instance)
            saved = await self.binding.repository.save(self.attributes)
            if saved is not None:
                return self.binding.wrap(saved)
            return self

        return await with_callback(_save(), callback)

    async def remove(self, callback: Callback | None = None) -> Any:
        key = self.attributes.get(self.binding.repository.primary_key)
        return await self.binding.repository.remove(key, callback=callback)

    def __repr__(self) -> str:
        return f"BoundRecord({self.instance!r})"


class ModelBinding(Generic[M]):
    """Statics shared by both stores plus hook management."""

    def __init__(
        self,
        model: type[M],
        repository: Any,
        hooks: Mapping[str, Hook | Sequence[Hook]] | None = None,
    ):
        self.model = model
        self.codec: ModelCodec[M] = ModelCodec(model)
        # A private copy, so the caller's repository and other bindings keep their model
        self.repository = copy.copy(repository)
        self.repository.codec = self.codec
        self._hooks: dict[str, list[Hook]] = {name: [] for name in HOOK_NAMES}
        for name, hook in (hooks or {}).items():
            for fn in hook if isinstance(hook, Sequence) else [hook]:
                self.add_hook(name, fn)

    def add_hook(self, name: str, hook: Hook) -> None:
        """
        Register a hook.

        Raises:
            ValueError: For hook names other than those in HOOK_NAMES
        """
        if name not in self._hooks:
            raise ValueError(f"Unknown hook '{name}'. Expected one of: {HOOK_NAMES}")
        self._hooks[name].append(hook)

    async def run_hooks(self, name: str, instance: M) -> None:
        for hook in self._hooks[name]:
            result = hook(instance)
            if inspect.isawaitable(result):
                await result
        if self._hooks[name]:
            get_logger(__name__).debug(
                f"Ran {len(self._hooks[name])} {name} hook(s) for {self.model.__name__}"
            )

    def new(self, record: Mapping[str, Any]) -> BoundRecord[M]:
        """Construct a model from a raw record and wrap it."""
        return self.wrap(self.codec.construct(record))

    def wrap(self, instance: M) -> BoundRecord[M]:
        return BoundRecord(self, instance)

    def _wrap_all(self, instances: Iterable[M]) -> list[BoundRecord[M]]:
        return [self.wrap(instance) for instance in instances]


class DocumentBinding(ModelBinding[M]):
    repository: MongoRepository[M]

    async def find_all(
        self,
        query: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
        callback: Callback | None = None,
    ) -> list[BoundRecord[M]]:
        async def _find_all() -> list[BoundRecord[M]]:
            return self._wrap_all(await self.repository.find_all(query, options))

        return await with_callback(_find_all(), callback)

    async def find_one(
        self,
        query: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
        callback: Callback | None = None,
    ) -> BoundRecord[M] | None:
        async def _find_one() -> BoundRecord[M] | None:
            instance = await self.repository.find_one(query, options)
            return self.wrap(instance) if instance is not None else None

        return await with_callback(_find_one(), callback)


class RelationalBinding(ModelBinding[M]):
    repository: PostgresRepository[M]

    async def query(self, statement: Any, params: Any = None, callback: Callback | None = None):
        return await self.repository.query(statement, params, callback)

    async def transaction(self, statements: Iterable[Any], callback: Callback | None = None):
        return await self.repository.transaction(statements, callback)

    async def step_transaction(self, steps: Iterable[Any], callback: Callback | None = None):
        return await self.repository.step_transaction(steps, callback)

    async def all(self, callback: Callback | None = None) -> list[BoundRecord[M]]:
        async def _all() -> list[BoundRecord[M]]:
            return self._wrap_all(await self.repository.all())

        return await with_callback(_all(), callback)

    async def find_by_id(
        self, key: Any, callback: Callback | None = None
    ) -> BoundRecord[M] | None:
        async def _find_by_id() -> BoundRecord[M] | None:
            instance = await self.repository.find_by_id(key)
            return self.wrap(instance) if instance is not None else None

        return await with_callback(_find_by_id(), callback)

    def namespace_fields(
        self, selector: str | None = None, added_fields: Sequence[str] | None = None
    ) -> list[str]:
        return self.repository.namespace_fields(selector, added_fields)

    def parse_row(self, row: Mapping[str, Any]) -> BoundRecord[M]:
        return self.wrap(self.repository.parse_row(row))


def bind(
    model: type[M],
    repository: MongoRepository | PostgresRepository,
    hooks: Mapping[str, Hook | Sequence[Hook]] | None = None,
) -> ModelBinding[M]:
    """
    Compose a model class with a repository.

    Args:
        model: Model class (RecordModel, pydantic model or record-accepting callable)
        repository: MongoRepository or PostgresRepository; the binding uses a copy
            whose codec builds ``model``, leaving the argument unchanged
        hooks: Optional ``{"before_save": fn or [fn, ...]}``

    Returns:
        DocumentBinding or RelationalBinding
    """
    if isinstance(repository, MongoRepository):
        return DocumentBinding(model, repository, hooks)
    if isinstance(repository, PostgresRepository):
        return RelationalBinding(model, repository, hooks)
    raise TypeError(f"Cannot bind to {type(repository).__name__}")
