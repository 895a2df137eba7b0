"""
Ordered tag attribute collections.

Attribute names are compared case-insensitively, as HTML does. A name may
appear only once: when several contributors supply the same attribute, the
first occurrence keeps its value and its position.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple, Union


AttributeValue = Optional[str]


@dataclass(frozen=True)
class TagAttribute:
    name: str
    value: AttributeValue = None  # None renders as a minimized attribute


class TagAttributeSet:
    def __init__(self, attributes: Iterable[Union[TagAttribute, Tuple[str, AttributeValue]]] = ()):
        self._items: List[TagAttribute] = []
        for attr in attributes:
            if isinstance(attr, TagAttribute):
                self.add(attr.name, attr.value)
            else:
                self.add(attr[0], attr[1])

    def __iter__(self) -> Iterator[TagAttribute]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int) -> TagAttribute:
        return self._items[index]

    def __contains__(self, name: str) -> bool:
        return self.index_of(name) != -1

    def __eq__(self, other) -> bool:
        if not isinstance(other, TagAttributeSet):
            return NotImplemented
        return self._items == other._items

    def __repr__(self) -> str:
        pairs = ', '.join(f"{a.name}={a.value!r}" for a in self._items)
        return f"TagAttributeSet({pairs})"

    def names(self) -> List[str]:
        return [a.name for a in self._items]

    def index_of(self, name: str) -> int:
        lowered = name.lower()
        for i, attr in enumerate(self._items):
            if attr.name.lower() == lowered:
                return i
        return -1

    def get(self, name: str, default: AttributeValue = None) -> AttributeValue:
        index = self.index_of(name)
        if index == -1:
            return default
        return self._items[index].value

    def add(self, name: str, value: AttributeValue = None) -> bool:
        """Add an attribute unless one with the same name exists. Returns True if added."""
        if name in self:
            return False
        self._items.append(TagAttribute(name, value))
        return True

    def set(self, name: str, value: AttributeValue = None) -> None:
        """Replace the value in place, or append when the name is new."""
        index = self.index_of(name)
        if index == -1:
            self._items.append(TagAttribute(name, value))
        else:
            self._items[index] = TagAttribute(self._items[index].name, value)

    def insert(self, index: int, name: str, value: AttributeValue = None) -> bool:
        if name in self:
            return False
        self._items.insert(index, TagAttribute(name, value))
        return True

    def remove(self, name: str) -> bool:
        index = self.index_of(name)
        if index == -1:
            return False
        del self._items[index]
        return True

    def copy(self) -> "TagAttributeSet":
        return TagAttributeSet(self._items)

    def to_pairs(self) -> List[Tuple[str, AttributeValue]]:
        return [(a.name, a.value) for a in self._items]
