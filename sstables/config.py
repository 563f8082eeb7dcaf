"""Storage engine configuration loaded from YAML."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields

import yaml


@dataclass(frozen=True)
class Config:
    """Sizes that govern index layout and when the memtable is flushed."""

    index_key_string_size: int
    index_offset_size: int
    memtable_threshold: int

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> Config:
        """Read a configuration from a YAML file.

        Unknown keys are ignored; every field must be present and a
        non-negative integer.
        """
        with open(path, encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
        if not isinstance(data, dict):
            raise ValueError(f"{path}: configuration must be a mapping")

        values: dict[str, int] = {}
        for field in fields(cls):
            if field.name not in data:
                raise ValueError(f"{path}: missing field {field.name!r}")
            value = data[field.name]
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(
                    f"{path}: field {field.name!r} must be a non-negative integer"
                )
            values[field.name] = value
        return cls(**values)