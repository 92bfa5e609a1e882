#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Registry of user-defined value types that may cross the wire.

Only dataclasses explicitly registered here are encoded by the codec. Each
registration carries a wire name and a version; a peer decoding a value with
an unknown name or a different version rejects the frame.
"""

import dataclasses
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class TransmittableType:
    """
    Registration record of a transmittable value type.
    """

    name: str
    version: int
    cls: type
    field_names: Tuple[str, ...]


class TransmittableRegistry:
    """
    Thread-safe two-way mapping between dataclasses and wire names.
    """

    def __init__(self) -> None:
        self._by_name: Dict[str, TransmittableType] = {}
        self._by_class: Dict[type, TransmittableType] = {}
        self._lock = threading.RLock()

    def register(
        self,
        cls: type,
        name: Optional[str] = None,
        version: int = 1,
    ) -> TransmittableType:
        if not (isinstance(cls, type) and dataclasses.is_dataclass(cls)):
            raise TypeError("transmittable types must be dataclasses, got {0!r}".format(cls))
        if isinstance(version, bool) or not isinstance(version, int) or version < 1:
            raise ValueError("transmittable version must be a positive int")

        wire_name = name or "{0}.{1}".format(cls.__module__, cls.__qualname__)
        field_names = tuple(item.name for item in dataclasses.fields(cls) if item.init)
        entry = TransmittableType(
            name=wire_name,
            version=version,
            cls=cls,
            field_names=field_names,
        )

        with self._lock:
            existing = self._by_name.get(wire_name)
            if existing is not None and existing.cls is not cls:
                raise ValueError(
                    "Wire name '{0}' is already registered for {1!r}".format(
                        wire_name, existing.cls
                    )
                )
            previous = self._by_class.get(cls)
            if previous is not None and previous.name != wire_name:
                self._by_name.pop(previous.name, None)
            self._by_name[wire_name] = entry
            self._by_class[cls] = entry
        return entry

    def unregister(self, cls: type) -> None:
        with self._lock:
            entry = self._by_class.pop(cls, None)
            if entry is not None:
                self._by_name.pop(entry.name, None)

    def by_class(self, cls: type) -> Optional[TransmittableType]:
        with self._lock:
            return self._by_class.get(cls)

    def by_name(self, name: str) -> Optional[TransmittableType]:
        with self._lock:
            return self._by_name.get(name)

    def __contains__(self, cls: object) -> bool:
        return self.by_class(cls) is not None  # type: ignore[arg-type]


default_registry = TransmittableRegistry()
