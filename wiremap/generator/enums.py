"""Variant name mapping between native and wire enums."""

from dataclasses import dataclass

from dataclasses_json import DataClassJsonMixin

from wiremap.runtime.enums import candidate_names

from .metadata import EnumDescriptor
from .trace import DecisionTrace


@dataclass(frozen=True)
class EnumMapping(DataClassJsonMixin):
    """Ordered native variants with the wire names each may appear under."""

    name: str
    wire_name: str
    variants: tuple[tuple[str, tuple[str, ...]], ...]

    def from_wire_table(self) -> dict[str, str]:
        """Map every wire name to a native variant; earlier variants win shared names."""
        table: dict[str, str] = {}
        for variant, candidates in self.variants:
            for candidate in candidates:
                table.setdefault(candidate, variant)
        return table

    def resolve_wire(self, wire_name: str) -> str | None:
        """Return the native variant a wire name maps to, if any."""
        return self.from_wire_table().get(wire_name)

    def candidates(self, variant: str) -> tuple[str, ...]:
        """Return the wire names tried, in order, for a native variant."""
        for name, candidates in self.variants:
            if name == variant:
                return candidates
        raise KeyError(variant)


def map_enum(descriptor: EnumDescriptor, trace: DecisionTrace | None = None) -> EnumMapping:
    """Derive the candidate wire names of every variant of an enum."""
    variants = tuple(
        (variant, candidate_names(descriptor.name, variant)) for variant in descriptor.variants
    )
    if trace:
        for variant, candidates in variants:
            trace.decision(variant, "wire names", ", ".join(candidates))
    return EnumMapping(name=descriptor.name, wire_name=descriptor.wire_name, variants=variants)
