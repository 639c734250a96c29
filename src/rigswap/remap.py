"""Rewrite source bone indices into the host skeleton's index space."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from rigswap.armature import ArmatureSnapshot
from rigswap.errors import NoHostSkeletonError, PartialMeshError
from rigswap.mesh import RawMesh, SkinnedMesh
from rigswap.warning_policy import WarningPolicy, emit_warning

logger = logging.getLogger(__name__)

FALLBACK_INDEX = 0
MAX_REPORTED_FALLBACKS = 5


@dataclass
class RemapTable:
    """Dense source-bone -> host-bone index table for one mesh."""

    indices: np.ndarray  # (B,) int32
    unmapped: list[str] = field(default_factory=list)

    @property
    def fallback_count(self) -> int:
        return len(self.unmapped)


def match_bone_index(source_name: str, host_names: list[str]) -> int | None:
    """Find the host bone for a source bone name, or ``None``.

    Passes, each over the whole host list, first hit wins:
    exact match, host name inside source name, source name inside host
    name. All comparisons are case-insensitive. Empty host names (unbound
    slots) never match.
    """
    key = source_name.casefold()
    folded = [name.casefold() for name in host_names]

    for j, host in enumerate(folded):
        if host and host == key:
            return j
    for j, host in enumerate(folded):
        if host and host in key:
            return j
    for j, host in enumerate(folded):
        if host and key and key in host:
            return j
    return None


def build_remap_table(
    source_names: list[str],
    host_names: list[str],
    *,
    mesh_name: str = "",
    policy: WarningPolicy | None = None,
) -> RemapTable:
    """Build the remap table, defaulting unmatched bones to the first host bone.

    The first host bone is index 0 unless that slot is unbound (empty name),
    in which case it is the first bound slot. Only the first few fallbacks
    are reported individually (W01); the total is reported once at the end.
    """
    if not any(host_names):
        raise NoHostSkeletonError("Host bone list is empty; nothing to remap onto")
    fallback = FALLBACK_INDEX if host_names[FALLBACK_INDEX] else next(
        j for j, host in enumerate(host_names) if host
    )

    indices = np.zeros(len(source_names), dtype=np.int32)
    unmapped: list[str] = []
    for i, name in enumerate(source_names):
        target = match_bone_index(name, host_names)
        if target is None:
            target = fallback
            unmapped.append(name)
            if len(unmapped) <= MAX_REPORTED_FALLBACKS:
                emit_warning(
                    "W01", f"Could not map bone {name!r} -> defaulting to root", policy=policy
                )
        indices[i] = target

    if unmapped:
        emit_warning(
            "W01",
            f"Mesh {mesh_name!r}: total unmapped bones {len(unmapped)}/{len(source_names)}",
            policy=policy,
        )
    return RemapTable(indices=indices, unmapped=unmapped)


def remap_mesh(
    raw: RawMesh, snapshot: ArmatureSnapshot, *, policy: WarningPolicy | None = None
) -> SkinnedMesh:
    """Bind a RawMesh to the host skeleton described by ``snapshot``.

    Vertex and triangle data are carried over unchanged. Weights are not
    renormalized; only the bone indices change. An unskinned mesh comes
    back static.

    Raises:
        NoHostSkeletonError: If the mesh is skinned but the snapshot has no bones.
        PartialMeshError: If a weight record points outside the mesh's own bones.
    """
    if not raw.is_skinned:
        logger.info("Mesh %r has no bone mapping, returning static mesh", raw.name)
        return SkinnedMesh(
            name=raw.name,
            positions=raw.positions,
            normals=raw.normals,
            uvs=raw.uvs,
            indices=raw.indices,
        )

    if not snapshot.is_valid:
        raise NoHostSkeletonError(
            f"Cannot remap {raw.name!r}: no host bone order under {snapshot.root.name!r}"
        )

    if len(raw.bone_indices) and int(raw.bone_indices.max()) >= len(raw.bone_names):
        raise PartialMeshError(
            f"Mesh {raw.name!r}: weight record references bone outside its {len(raw.bone_names)} bones"
        )

    table = build_remap_table(
        raw.bone_names, snapshot.bone_order, mesh_name=raw.name, policy=policy
    )
    bone_indices = table.indices[raw.bone_indices]
    mapped = len(raw.bone_names) - table.fallback_count
    logger.info(
        "Mapped %d/%d bones of %r (%d fallbacks)",
        mapped,
        len(raw.bone_names),
        raw.name,
        table.fallback_count,
    )

    return SkinnedMesh(
        name=raw.name,
        positions=raw.positions,
        normals=raw.normals,
        uvs=raw.uvs,
        indices=raw.indices,
        bone_indices=bone_indices.astype(np.int32),
        bone_weights=raw.bone_weights.copy(),
        remap_table=table.indices,
        fallback_count=table.fallback_count,
    )
