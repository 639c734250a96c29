"""Single-owner lifecycle of the substituted model on one host character.

Apply pipeline: prepare (import -> snapshot -> remap -> texture) without
touching the scene, then install (destroy previous -> build parts -> hide
originals). A failed prepare leaves the character exactly as it was.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from rigswap.armature import ArmatureSnapshot, build_armature_snapshot
from rigswap.errors import ImportFailureError, NoHostSkeletonError, RigswapError
from rigswap.importer import load_meshes
from rigswap.mesh import SkinnedMesh
from rigswap.models import ModelEntry
from rigswap.registry import ModelRegistry
from rigswap.remap import remap_mesh
from rigswap.scene import Material, Node, SkinnedRenderer, Texture
from rigswap.warning_policy import WarningPolicy, emit_warning

logger = logging.getLogger(__name__)

CHARACTER_PATH = "Character/Character"


class SwapState(Enum):
    DEFAULT = "default"
    CUSTOM_ACTIVE = "custom_active"


@dataclass
class SubstitutedModel:
    """The installed replacement: one root node, its parts and shared resources."""

    name: str
    root: Node
    parts: list[SkinnedRenderer] = field(default_factory=list)
    material: Material | None = None
    texture: Texture | None = None

    @property
    def alive(self) -> bool:
        return not self.root.destroyed

    def destroy(self) -> None:
        """Destroy the node tree and release the material and texture."""
        self.root.destroy()
        if self.material is not None:
            self.material.release()
        if self.texture is not None:
            self.texture.release()


@dataclass
class _Prepared:
    entry: ModelEntry
    snapshot: ArmatureSnapshot
    meshes: list[SkinnedMesh]
    texture: Texture | None


def find_character_root(host: Node) -> Node | None:
    """Locate the node that holds the character's skinned renderers."""
    found = host.find(CHARACTER_PATH)
    if found is not None:
        return found
    renderers = host.components_in_children(SkinnedRenderer)
    if renderers and renderers[0].node is not None:
        return renderers[0].node.parent
    return None


def attachment_point(renderer: SkinnedRenderer, character_root: Node) -> Node:
    """Parent for the substitution root: the root bone's parent, else the character root."""
    if renderer.root_bone is not None and renderer.root_bone.parent is not None:
        return renderer.root_bone.parent
    return character_root


class ModelSwapController:
    """Swaps between the host's own model and at most one custom model.

    Callers must serialize ``apply``/``revert`` for a given character.
    """

    def __init__(
        self,
        character_root: Node,
        registry: ModelRegistry,
        *,
        policy: WarningPolicy | None = None,
    ) -> None:
        self.character_root = character_root
        self.registry = registry
        self.policy = policy
        self._active: SubstitutedModel | None = None

    @property
    def active(self) -> SubstitutedModel | None:
        return self._active

    @property
    def state(self) -> SwapState:
        return SwapState.CUSTOM_ACTIVE if self._active is not None else SwapState.DEFAULT

    def original_renderers(self) -> list[SkinnedRenderer]:
        """Host renderers under the character, excluding installed parts."""
        ours = {id(part) for part in self._active.parts} if self._active else set()
        return [
            r
            for r in self.character_root.components_in_children(SkinnedRenderer)
            if id(r) not in ours
        ]

    def apply(self, name: str) -> bool:
        """Switch the character to the model registered as ``name``.

        Returns:
            True when the requested model is now showing. On False the
            previous state is kept (or, if installation itself broke, the
            default model is restored).
        """
        entry = self.registry.get_model(name)
        if entry is None:
            logger.error("Unknown model %r", name)
            return False
        if not entry.is_custom:
            self.revert()
            return True

        try:
            prepared = self._prepare(entry)
        except RigswapError as e:
            logger.error("Failed to load %r: %s", entry.name, e)
            return False

        try:
            self._install(prepared)
        except Exception:
            logger.exception("Failed to install %r, restoring default model", entry.name)
            self.revert()
            return False
        return True

    def revert(self) -> None:
        """Destroy any substitution and show the original renderers again."""
        if self._active is not None:
            logger.info("Removing custom model %r", self._active.name)
            self._active.destroy()
            self._active = None
        for renderer in self.character_root.components_in_children(SkinnedRenderer):
            renderer.enabled = True

    def teardown(self) -> None:
        """Release the substitution because the host character is going away."""
        if self._active is not None:
            self._active.destroy()
            self._active = None

    def _prepare(self, entry: ModelEntry) -> _Prepared:
        if not self.original_renderers():
            raise NoHostSkeletonError(
                f"No skinned renderer found under {self.character_root.name!r}"
            )

        raw_meshes = load_meshes(entry.source_path)

        skip = self._active.root if self._active is not None else None
        snapshot = build_armature_snapshot(self.character_root, skip=skip, policy=self.policy)
        if not snapshot.is_valid:
            raise NoHostSkeletonError(
                f"Cannot derive bone order under {self.character_root.name!r}"
            )

        meshes: list[SkinnedMesh] = []
        for index, raw in enumerate(raw_meshes):
            try:
                meshes.append(remap_mesh(raw, snapshot, policy=self.policy))
            except Exception as e:
                emit_warning(
                    "W03", f"Skipping mesh {index} ({raw.name!r}) of {entry.name!r}: {e}", policy=self.policy
                )
        if not meshes:
            raise ImportFailureError(f"No mesh of {entry.name!r} could be bound to the host skeleton")

        texture = None
        if entry.texture_path is not None:
            texture = Texture.from_file(entry.texture_path, policy=self.policy)
            if texture is not None:
                logger.info("Loaded texture: %s", entry.texture_path.name)

        return _Prepared(entry=entry, snapshot=snapshot, meshes=meshes, texture=texture)

    def _install(self, prepared: _Prepared) -> None:
        name = prepared.entry.name
        host = prepared.snapshot.renderer
        originals = self.original_renderers()

        if self._active is not None:
            self._active.destroy()
            self._active = None

        attach = attachment_point(host, self.character_root)
        logger.info("Using armature root: %s", attach.name)

        root = Node(f"{name}_CustomModel")
        material = host.material.clone() if host.material is not None else Material()
        if prepared.texture is not None:
            material.main_texture = prepared.texture
        model = SubstitutedModel(name=name, root=root, material=material, texture=prepared.texture)

        try:
            attach.add_child(root)
            root.reset_local_transform()
            for index, mesh in enumerate(prepared.meshes):
                part = root.add_child(Node(f"{name}_Part{index}"))
                part.reset_local_transform()
                renderer = part.add_component(
                    SkinnedRenderer(
                        mesh=mesh,
                        bones=host.bones,
                        root_bone=host.root_bone,
                        material=material,
                    )
                )
                renderer.local_bounds = mesh.bounds
                model.parts.append(renderer)
                logger.info(
                    "Part %d: %d verts, %d tris", index, mesh.vertex_count, mesh.triangle_count
                )
        except Exception:
            model.destroy()
            raise

        for renderer in originals:
            renderer.enabled = False
        self._active = model
        logger.info("Successfully loaded %r with %d parts", name, len(model.parts))
