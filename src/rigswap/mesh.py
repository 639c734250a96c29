"""Intermediate and finalized mesh records passed between pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

MAX_INFLUENCES = 4


def _freeze(arr: np.ndarray | None) -> None:
    if arr is not None:
        arr.setflags(write=False)


@dataclass(frozen=True)
class RawMesh:
    """One mesh entry extracted from an asset file, still in source bone space.

    ``bone_indices``/``bone_weights`` hold up to four influences per vertex;
    a slot with weight 0 is unused. Indices point into ``bone_names``.
    Arrays are read-only once the record is built.
    """

    name: str
    positions: np.ndarray  # (N, 3) float32
    normals: np.ndarray  # (N, 3) float32 or (0, 3)
    uvs: np.ndarray  # (N, 2) float32 or (0, 2)
    indices: np.ndarray  # (M,) uint32, M % 3 == 0
    bone_names: list[str] = field(default_factory=list)
    bone_indices: np.ndarray | None = None  # (N, 4) int32
    bone_weights: np.ndarray | None = None  # (N, 4) float32
    bind_poses: np.ndarray | None = None  # (B, 4, 4) float32, row-major

    def __post_init__(self) -> None:
        n = len(self.positions)
        if len(self.indices) % 3 != 0:
            raise ValueError(f"Mesh {self.name!r}: index count {len(self.indices)} is not a multiple of 3")
        if len(self.indices) and int(self.indices.max()) >= n:
            raise ValueError(f"Mesh {self.name!r}: triangle index out of range for {n} vertices")
        if len(self.normals) not in (0, n):
            raise ValueError(f"Mesh {self.name!r}: {len(self.normals)} normals for {n} vertices")
        if len(self.uvs) not in (0, n):
            raise ValueError(f"Mesh {self.name!r}: {len(self.uvs)} UVs for {n} vertices")
        if self.bone_names:
            if self.bone_indices is None or self.bone_weights is None:
                raise ValueError(f"Mesh {self.name!r}: bones declared without weight data")
            if len(self.bone_indices) != n or len(self.bone_weights) != n:
                raise ValueError(f"Mesh {self.name!r}: weight record count does not match vertex count")

        for arr in (
            self.positions,
            self.normals,
            self.uvs,
            self.indices,
            self.bone_indices,
            self.bone_weights,
            self.bind_poses,
        ):
            _freeze(arr)

    @property
    def is_skinned(self) -> bool:
        return bool(self.bone_names)

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3


@dataclass
class SkinnedMesh:
    """A mesh ready to be bound to the host skeleton.

    ``bone_indices`` index the host bone list; ``bone_weights`` are the
    source weights unchanged. Both are ``None`` for a static mesh.
    """

    name: str
    positions: np.ndarray
    normals: np.ndarray
    uvs: np.ndarray
    indices: np.ndarray
    bone_indices: np.ndarray | None = None
    bone_weights: np.ndarray | None = None
    remap_table: np.ndarray | None = None
    fallback_count: int = 0

    @property
    def is_static(self) -> bool:
        return self.bone_indices is None

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3

    @property
    def bounds(self) -> tuple[np.ndarray, np.ndarray]:
        """Local-space AABB as ``(min, max)``."""
        if len(self.positions) == 0:
            zero = np.zeros(3, dtype=np.float32)
            return zero, zero.copy()
        return self.positions.min(axis=0), self.positions.max(axis=0)
