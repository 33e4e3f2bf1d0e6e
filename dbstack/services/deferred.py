"""
Deferred values for dbstack.

A ``DeferredValue`` stands in for something that only becomes known after a
provisioning backend has done its work: a cluster identifier, an engine
version reported back by the cloud, a generated secret ARN. Components wire
deferred values into each other's inputs at definition time; the backend
settles them later and every value derived through ``map`` / ``merge_record``
follows automatically through callbacks. Nothing here ever blocks.

Failures are sticky: a failed value poisons everything derived from it.
"""

import asyncio
import functools
import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Dict, Generic, Iterable, List, Mapping, Optional, TypeVar

from dbstack.errors import DbstackError, TransformError, UnresolvedValueError

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")

__all__ = [
    "DeferredValue",
    "of",
    "pending",
    "output",
    "merge_record",
    "all_",
    "with_default",
]


class DeferredValue(Generic[T]):
    """
    A value that may not be known yet.

    Backed by a ``concurrent.futures.Future`` so that it can be settled from
    any thread and awaited from asyncio code via ``wait()``. Only the owner
    (a backend, or this module's combinators) settles a value; everybody else
    derives new values or reads it once it is resolved.
    """

    def __init__(self, future: Optional[Future] = None):
        self._future: Future = future if future is not None else Future()

    def __repr__(self) -> str:
        if not self._future.done():
            return "DeferredValue(<pending>)"
        error = self._future.exception()
        if error is not None:
            return f"DeferredValue(<failed: {error!r}>)"
        return f"DeferredValue({self._future.result()!r})"

    # -- settling (owner side) -------------------------------------------

    def _resolve(self, value: Any) -> None:
        """Settle with a concrete value, or follow another deferred value."""
        if isinstance(value, DeferredValue):
            value.add_callback(self._follow)
            return
        self._future.set_result(value)

    def _fail(self, error: BaseException) -> None:
        self._future.set_exception(error)

    def _follow(self, source: "DeferredValue") -> None:
        error = source.error()
        if error is not None:
            self._fail(error)
        else:
            self._resolve(source._future.result())

    # -- inspection --------------------------------------------------------

    def is_settled(self) -> bool:
        return self._future.done()

    def is_resolved(self) -> bool:
        return self._future.done() and self._future.exception() is None

    def failed(self) -> bool:
        return self._future.done() and self._future.exception() is not None

    def error(self) -> Optional[BaseException]:
        """Return the failure carried by this value, or None."""
        if not self._future.done():
            return None
        return self._future.exception()

    def get(self) -> T:
        """
        Read a settled value.

        Returns:
            The resolved value; repeated reads return the same object.

        Raises:
            UnresolvedValueError: If the value is still pending.
            DbstackError: The failure this value was settled with.
        """
        if not self._future.done():
            raise UnresolvedValueError("Deferred value has not been resolved yet")
        return self._future.result()

    async def wait(self) -> T:
        """Await resolution from asyncio code."""
        return await asyncio.wrap_future(self._future)

    def add_callback(self, callback: Callable[["DeferredValue[T]"], None]) -> None:
        """
        Invoke ``callback(self)`` once settled; immediately if already settled.
        """
        self._future.add_done_callback(lambda _future: callback(self))

    # -- composition ---------------------------------------------------------

    def map(self, func: Callable[[T], U]) -> "DeferredValue[U]":
        """
        Derive a value that resolves to ``func(value)``.

        ``func`` runs once, when this value resolves. If this value fails, the
        derived value fails with the same error and ``func`` never runs.
        ``DbstackError`` subclasses raised by ``func`` are carried unchanged,
        so a validator or lookup such as ``single_secret_arn`` surfaces its own
        ``ValidationError`` or ``ResolutionError``; any other exception is
        wrapped in ``TransformError``. A ``func``
        returning a ``DeferredValue`` is flattened.
        """
        derived: DeferredValue[U] = DeferredValue()

        def on_settled(source: DeferredValue[T]) -> None:
            error = source.error()
            if error is not None:
                derived._fail(error)
                return
            try:
                result = func(source._future.result())
            except DbstackError as e:
                derived._fail(e)
                return
            except Exception as e:
                name = getattr(func, "__name__", repr(func))
                logger.debug(f"Deferred transformation {name} raised {e!r}")
                derived._fail(
                    TransformError(f"Deferred transformation {name} failed: {e}", original_error=e)
                )
                return
            derived._resolve(result)

        self.add_callback(on_settled)
        return derived

    apply = map

    def __getitem__(self, key: Any) -> "DeferredValue[Any]":
        return self.map(lambda value: value[key])


def of(value: T) -> DeferredValue[T]:
    """Wrap a known value; it is resolved immediately."""
    deferred: DeferredValue[T] = DeferredValue()
    deferred._resolve(value)
    return deferred


def pending() -> DeferredValue[Any]:
    """Create an unresolved value to be settled later by its owner."""
    return DeferredValue()


def output(value: Any) -> DeferredValue[Any]:
    """
    Lift anything into a ``DeferredValue``.

    Deferred values pass through untouched (same object). Mappings and
    lists/tuples are lifted recursively, so nested structures that contain
    deferred values resolve once all of them do. ``None`` is lifted as-is and
    means "absent".
    """
    if isinstance(value, DeferredValue):
        return value
    if isinstance(value, Mapping):
        return merge_record(value)
    if isinstance(value, (list, tuple)):
        return all_(value)
    return of(value)


def merge_record(fields: Mapping[str, Any]) -> DeferredValue[Dict[str, Any]]:
    """
    Combine named values into one deferred ``dict``.

    The result resolves once every field has resolved, regardless of the order
    they resolve in. It fails as soon as any field fails.
    """
    lifted = {key: output(value) for key, value in fields.items()}
    merged: DeferredValue[Dict[str, Any]] = DeferredValue()
    if not lifted:
        merged._resolve({})
        return merged

    remaining = set(lifted)
    lock = threading.Lock()

    def on_field(key: str, source: DeferredValue) -> None:
        with lock:
            if merged.is_settled():
                return
            error = source.error()
            if error is not None:
                merged._fail(error)
                return
            remaining.discard(key)
            if remaining:
                return
            merged._resolve({name: field.get() for name, field in lifted.items()})

    for key, field in lifted.items():
        field.add_callback(functools.partial(on_field, key))
    return merged


def all_(values: Iterable[Any]) -> DeferredValue[List[Any]]:
    """List counterpart of ``merge_record``; preserves element order."""
    items = list(values)
    merged = merge_record({str(index): item for index, item in enumerate(items)})
    return merged.map(lambda record: [record[str(index)] for index in range(len(items))])


def with_default(value: Any, default: Any) -> DeferredValue[Any]:
    """
    Substitute ``default`` only when ``value`` is absent (``None``).

    Falsy values such as ``0`` or ``""`` are kept.
    """
    return output(value).map(lambda resolved: default if resolved is None else resolved)
