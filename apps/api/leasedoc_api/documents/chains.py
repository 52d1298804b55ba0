"""Field precedence chains.

A chain is an ordered list of named sources. The first source producing a
usable value wins; ``None`` and blank strings never match. The name of the
winning source is kept so the assembled model can say where a value came from.
"""

from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Source:
    """One named candidate in a precedence chain."""

    name: str
    getter: Callable[[Any], Any]

    def read(self, context: Any) -> Any:
        return self.getter(context)


@dataclass(frozen=True)
class Resolution(Generic[T]):
    """Outcome of resolving a chain."""

    value: Optional[T]
    source_name: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.source_name is not None


def is_present(value: Any) -> bool:
    """True for values a chain may select."""
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


class FieldChain:
    """Ordered named sources for a single model field."""

    def __init__(self, field_name: str, *sources: Source, default: Any = None, default_name: str = "default"):
        if not sources:
            raise ValueError(f"Chain for {field_name} needs at least one source")
        self.field_name = field_name
        self.sources = sources
        self.default = default
        self.default_name = default_name

    def resolve(self, context: Any) -> Resolution:
        """Return the first present value, or the default when none match."""
        for source in self.sources:
            value = source.read(context)
            if is_present(value):
                return Resolution(value=value, source_name=source.name)
        if is_present(self.default):
            return Resolution(value=self.default, source_name=self.default_name)
        return Resolution(value=None, source_name=None)
