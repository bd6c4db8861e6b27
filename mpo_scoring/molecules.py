from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class MoleculeRecord:
    """One molecule as handed over by a reader.

    ``valid=False`` marks an entry the reader failed to parse; such records
    carry no usable properties and are never scored.
    """

    identifier: str | None
    properties: dict[str, Any] = field(default_factory=dict)
    smiles: str | None = None
    valid: bool = True
    reason: str | None = None
    source_row: int | None = None

    def get_property(self, name: str) -> Any:
        return self.properties.get(name)

    def set_property(self, name: str, value: Any) -> None:
        self.properties[name] = value

    def has_property(self, name: str) -> bool:
        return self.properties.get(name) is not None


def parse_failure(reason: str, source_row: int | None = None, raw: str | None = None) -> MoleculeRecord:
    return MoleculeRecord(
        identifier=None,
        properties={},
        smiles=raw,
        valid=False,
        reason=reason,
        source_row=source_row,
    )
