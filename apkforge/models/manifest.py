"""
Manifest document model.

A generic ordered element tree. Attribute order is insertion order and an
attribute that is not set is simply absent, which is what makes the
serialized manifest reproducible byte for byte.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET

from pydantic import BaseModel, ConfigDict, Field

ANDROID_NS = "http://schemas.android.com/apk/res/android"
XML_HEADER = '<?xml version="1.0" encoding="utf-8"?>\n'


class ManifestNode(BaseModel):
    """One element of the manifest document."""

    model_config = ConfigDict(frozen=True)

    tag: str
    attributes: dict[str, str] = Field(default_factory=dict)
    children: list[ManifestNode] = Field(default_factory=list)

    def find_all(self, tag: str) -> list[ManifestNode]:
        """All descendants (depth first, document order) with the given tag."""
        found: list[ManifestNode] = []
        for child in self.children:
            if child.tag == tag:
                found.append(child)
            found.extend(child.find_all(tag))
        return found

    def to_element(self) -> ET.Element:
        element = ET.Element(self.tag, dict(self.attributes))
        for child in self.children:
            element.append(child.to_element())
        return element


def serialize(node: ManifestNode) -> str:
    """Canonical text form: fixed header, 4-space indent, trailing newline."""
    root = node.to_element()
    ET.indent(root, space="    ")
    return XML_HEADER + ET.tostring(root, encoding="unicode", short_empty_elements=True) + "\n"
