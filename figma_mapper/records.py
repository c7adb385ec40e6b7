"""
ComponentRecord — 單一元件的分析結果（分類 + 屬性 + slot 對應）

快取中存的是「正規形式」：節點 id 換成子節點位置（"#0"、"#2"），
所以結構相同的不同 instance 可以共用同一筆快取，取出時再 bind 回實際 id。
"""

from dataclasses import dataclass, field, replace
from typing import Callable

from .classifier import ComponentClassification
from .property_extractor import ExtractedProperties
from .scene_graph import Node
from .semantic_mapper import SchemaMapping
from .style_extractor import StyleSummary


def _positional(index: int) -> str:
    return f"#{index}"


@dataclass(frozen=True)
class ComponentRecord:
    node_id: str
    name: str
    fingerprint: str
    classification: ComponentClassification
    properties: ExtractedProperties
    mapping: SchemaMapping
    style: StyleSummary = field(default_factory=StyleSummary)

    @property
    def component_type(self) -> str:
        return self.classification.component_type.value

    def to_dict(self) -> dict:
        return {
            "nodeId": self.node_id,
            "name": self.name,
            "fingerprint": self.fingerprint,
            "classification": self.classification.to_dict(),
            "properties": self.properties.to_dict(),
            "mapping": self.mapping.to_dict(),
            "style": self.style.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ComponentRecord":
        return cls(
            node_id=data.get("nodeId", ""),
            name=data.get("name", ""),
            fingerprint=data["fingerprint"],
            classification=ComponentClassification.from_dict(data["classification"]),
            properties=ExtractedProperties.from_dict(data["properties"]),
            mapping=SchemaMapping.from_dict(data["mapping"]),
            style=StyleSummary.from_dict(data["style"]) if data.get("style") else StyleSummary(),
        )

    def canonical(self, node: Node) -> "ComponentRecord":
        """Replace child ids of ``node`` with positional references."""
        positions = {child.id: _positional(i) for i, child in enumerate(node.children)}
        return _rewrite_ids(self, lambda node_id: positions.get(node_id, node_id), node_id="")

    def bind(self, node: Node) -> "ComponentRecord":
        """Inverse of canonical(): positional references → this node's child ids."""
        ids = {_positional(i): child.id for i, child in enumerate(node.children)}
        return _rewrite_ids(self, lambda ref: ids.get(ref, ref), node_id=node.id, name=node.name)


def _rewrite_ids(record: ComponentRecord, convert: Callable[[str], str], **changes) -> ComponentRecord:
    properties = replace(
        record.properties,
        icons=tuple(replace(p, node_id=convert(p.node_id)) for p in record.properties.icons),
    )
    slots = {}
    for slot, value in record.mapping.slots.items():
        if isinstance(value, tuple):
            slots[slot] = tuple(convert(v) for v in value)
        else:
            slots[slot] = convert(value)
    mapping = replace(
        record.mapping,
        slots=slots,
        unmapped=tuple(convert(v) for v in record.mapping.unmapped),
    )
    return replace(record, properties=properties, mapping=mapping, **changes)
