"""Host skeleton discovery: name lookup plus the authoritative bone order."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from rigswap.scene import Node, SkinnedRenderer
from rigswap.warning_policy import WarningPolicy, emit_warning

logger = logging.getLogger(__name__)


@dataclass
class ArmatureSnapshot:
    """Bone lookup for one host character, captured at substitution time.

    ``bone_order`` is copied verbatim from the host's existing skin binding
    and is the index space every remapped mesh targets. It is never sorted;
    an unbound (``None``) slot appears as an empty name.
    """

    root: Node
    bone_map: dict[str, Node] = field(default_factory=dict)
    bone_order: list[str] = field(default_factory=list)
    renderer: SkinnedRenderer | None = None

    @property
    def is_valid(self) -> bool:
        return self.renderer is not None and any(self.bone_order)

    def find_bone(self, name: str) -> Node | None:
        """Look up a host transform by name.

        Tries the exact key, the casefolded key, then a suffix match in either
        direction (``mixamorig:Hips`` finds ``hips``).
        """
        if name in self.bone_map:
            return self.bone_map[name]
        key = name.casefold()
        if key in self.bone_map:
            return self.bone_map[key]
        for candidate, node in self.bone_map.items():
            if candidate.endswith(key) or key.endswith(candidate):
                return node
        return None


def build_armature_snapshot(
    root: Node,
    *,
    skip: Node | None = None,
    policy: WarningPolicy | None = None,
) -> ArmatureSnapshot:
    """Map every transform under ``root`` and capture the host bone order.

    The bone order comes from the first skinned renderer found depth-first.
    When there is none, warning W02 is emitted and the snapshot is returned
    with ``is_valid`` false so callers can keep the default model.

    Args:
        root: Character root to walk.
        skip: Subtree left out of the walk (a substitution already installed
            under this character).
    """
    snapshot = ArmatureSnapshot(root=root)

    renderer: SkinnedRenderer | None = None
    stack: list[Node] = [root]
    while stack:
        node = stack.pop()
        if node is skip:
            continue
        snapshot.bone_map[node.name.casefold()] = node
        if renderer is None:
            renderer = node.get_component(SkinnedRenderer)
        stack.extend(reversed(node.children))

    if renderer is None:
        emit_warning(
            "W02", f"No skinned renderer under {root.name!r}; cannot capture bone order", policy=policy
        )
        return snapshot

    snapshot.renderer = renderer
    # Empty slots keep their index so bone_order lines up with renderer.bones
    snapshot.bone_order = [bone.name if bone is not None else "" for bone in renderer.bones]
    logger.info(
        "Captured %d bones from host skeleton %r",
        sum(1 for name in snapshot.bone_order if name),
        root.name,
    )
    return snapshot
