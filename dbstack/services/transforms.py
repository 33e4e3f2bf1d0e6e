"""
Transform hooks for resource definitions.

Components expose named extension points (``PostgresTransform.CLUSTER``, ...).
Callers may register one hook per point to rewrite the arguments of a
resource right before it is submitted. A hook is either:

- a callable ``hook(args, name)`` that returns replacement args, or mutates
  ``args`` in place and returns ``None``; or
- a mapping whose entries are shallow-merged over the default args.

Registering a second hook for the same point replaces the first.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Union

from dbstack.errors import TransformError

logger = logging.getLogger(__name__)

TransformHook = Union[
    Callable[[Dict[str, Any], str], Optional[Mapping[str, Any]]],
    Mapping[str, Any],
]
ExtensionPoint = Union[str, Enum]


def _point_key(point: ExtensionPoint) -> str:
    return point.value if isinstance(point, Enum) else str(point)


class TransformRegistry:
    """Per-component table of extension point name -> transform hook."""

    def __init__(self):
        self._hooks: Dict[str, TransformHook] = {}

    @classmethod
    def from_mapping(
        cls, hooks: Optional[Mapping[ExtensionPoint, Optional[TransformHook]]]
    ) -> "TransformRegistry":
        """Build a registry from ``{point: hook}``, ignoring ``None`` hooks."""
        registry = cls()
        for point, hook in (hooks or {}).items():
            if hook is not None:
                registry.register(point, hook)
        return registry

    def register(self, point: ExtensionPoint, hook: TransformHook) -> None:
        """
        Register ``hook`` for ``point``, replacing any earlier registration.

        Raises:
            TypeError: If ``hook`` is neither callable nor a mapping.
        """
        if not callable(hook) and not isinstance(hook, Mapping):
            raise TypeError(
                f"Transform for '{_point_key(point)}' must be a callable or a mapping, "
                f"got {type(hook).__name__}"
            )
        key = _point_key(point)
        if key in self._hooks:
            logger.debug(f"Replacing transform hook for '{key}'")
        self._hooks[key] = hook

    def __contains__(self, point: ExtensionPoint) -> bool:
        return _point_key(point) in self._hooks

    def apply(self, point: ExtensionPoint, args: Mapping[str, Any], name: str) -> Dict[str, Any]:
        """
        Run the hook registered for ``point`` over a copy of ``args``.

        Args:
            point: Extension point the args belong to.
            args: Default resource arguments.
            name: Logical name of the resource being defined.

        Returns:
            The (possibly rewritten) arguments as a new dict. ``args`` itself is
            never modified.

        Raises:
            TransformError: If the hook raises or returns something other
                than a mapping or ``None``.
        """
        key = _point_key(point)
        working = dict(args)
        hook = self._hooks.get(key)
        if hook is None:
            return working

        logger.debug(f"Applying '{key}' transform to {name}")
        if isinstance(hook, Mapping):
            working.update(hook)
            return working

        try:
            result = hook(working, name)
        except Exception as e:
            logger.error(f"Transform hook for '{key}' failed on {name}: {e}")
            raise TransformError(
                f"Transform hook for '{key}' failed on {name}: {e}",
                point=key,
                original_error=e,
            ) from e

        if result is None:
            return working
        if not isinstance(result, Mapping):
            raise TransformError(
                f"Transform hook for '{key}' returned {type(result).__name__}, expected a mapping",
                point=key,
            )
        return dict(result)
