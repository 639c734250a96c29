"""Minimal host scene graph: transform nodes, skinned renderers, materials.

Engine integrations expose their transform hierarchy through these types.
The retargeting core only reads host bones and never moves them.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TypeVar

import numpy as np

from rigswap.mesh import SkinnedMesh
from rigswap.warning_policy import WarningPolicy, emit_warning


C = TypeVar("C", bound="Component")


class Node:
    """A named transform in the host hierarchy."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        self.parent: Node | None = None
        self.children: list[Node] = []
        self.components: list[Component] = []
        self.position = np.zeros(3, dtype=np.float32)
        self.rotation = np.array([0.0, 0.0, 0.0, 1.0], dtype=np.float32)  # (x, y, z, w)
        self.scale = np.ones(3, dtype=np.float32)
        self.destroyed = False

    def __repr__(self) -> str:
        return f"Node({self.name!r})"

    def add_child(self, child: Node) -> Node:
        """Attach ``child``, removing it from any previous parent."""
        if child.parent is not None:
            child.parent.remove_child(child)
        child.parent = self
        self.children.append(child)
        return child

    def remove_child(self, child: Node) -> None:
        if child in self.children:
            self.children.remove(child)
            child.parent = None

    def reset_local_transform(self) -> None:
        self.position = np.zeros(3, dtype=np.float32)
        self.rotation = np.array([0.0, 0.0, 0.0, 1.0], dtype=np.float32)
        self.scale = np.ones(3, dtype=np.float32)

    def add_component(self, component: C) -> C:
        component.node = self
        self.components.append(component)
        return component

    def get_component(self, kind: type[C]) -> C | None:
        for comp in self.components:
            if isinstance(comp, kind):
                return comp
        return None

    def walk(self) -> Iterator[Node]:
        """Yield this node and all descendants depth-first, pre-order."""
        stack: list[Node] = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def components_in_children(self, kind: type[C]) -> list[C]:
        """All components of ``kind`` on this node and its descendants."""
        return [c for node in self.walk() for c in node.components if isinstance(c, kind)]

    def find(self, path: str) -> Node | None:
        """Resolve a ``/``-separated path of child names relative to this node."""
        current: Node | None = self
        for part in path.split("/"):
            if current is None:
                return None
            current = next((c for c in current.children if c.name == part), None)
        return current

    def destroy(self) -> None:
        """Destroy this node, its components and its whole subtree."""
        if self.destroyed:
            return
        if self.parent is not None:
            self.parent.remove_child(self)
        for node in list(self.walk()):
            for comp in node.components:
                comp.destroy()
            node.destroyed = True


class Component:
    """Behaviour attached to a node."""

    def __init__(self) -> None:
        self.node: Node | None = None
        self.destroyed = False

    def destroy(self) -> None:
        self.destroyed = True


@dataclass
class Texture:
    """An image resource loaded from disk."""

    path: Path
    data: bytes
    released: bool = False

    @classmethod
    def from_file(cls, path: str | Path, *, policy: WarningPolicy | None = None) -> Texture | None:
        """Load a texture, returning ``None`` (with warning W05) on failure."""
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            emit_warning("W05", f"Failed to load texture {path}: {e}", policy=policy)
            return None
        if not data:
            emit_warning("W05", f"Texture file is empty: {path}", policy=policy)
            return None
        return cls(path=path, data=data)

    def release(self) -> None:
        self.released = True
        self.data = b""


@dataclass
class Material:
    """Surface description shared by renderers."""

    name: str = "Default-Material"
    main_texture: Texture | None = None
    properties: dict[str, object] = field(default_factory=dict)
    released: bool = False

    def clone(self) -> Material:
        return replace(self, name=f"{self.name} (Clone)", properties=dict(self.properties), released=False)

    def release(self) -> None:
        self.released = True


class SkinnedRenderer(Component):
    """Draws a skinned mesh deformed by an ordered bone array."""

    def __init__(
        self,
        mesh: SkinnedMesh | None = None,
        bones: list[Node | None] | None = None,
        root_bone: Node | None = None,
        material: Material | None = None,
    ) -> None:
        super().__init__()
        self.mesh = mesh
        self.bones: list[Node | None] = list(bones) if bones is not None else []
        self.root_bone = root_bone
        self.material = material
        self.enabled = True
        self.local_bounds: tuple[np.ndarray, np.ndarray] | None = None
