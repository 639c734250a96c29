"""glTF/GLB mesh import via pygltflib.

Pipeline: load document -> resolve skins -> read accessors -> pack
influences -> convert to the host's left-handed, Y-up frame.
"""

from __future__ import annotations

import base64
import logging
from pathlib import Path
from urllib.parse import unquote

import numpy as np
import pygltflib

from rigswap.errors import AssetNotFoundError, ImportFailureError
from rigswap.mesh import MAX_INFLUENCES, RawMesh

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES: frozenset[str] = frozenset({".glb", ".gltf"})

DEFAULT_MESH_NAME = "ImportedMesh"

_COMPONENT_DTYPES: dict[int, np.dtype] = {
    pygltflib.BYTE: np.dtype("<i1"),
    pygltflib.UNSIGNED_BYTE: np.dtype("<u1"),
    pygltflib.SHORT: np.dtype("<i2"),
    pygltflib.UNSIGNED_SHORT: np.dtype("<u2"),
    pygltflib.UNSIGNED_INT: np.dtype("<u4"),
    pygltflib.FLOAT: np.dtype("<f4"),
}

_TYPE_WIDTHS: dict[str, int] = {
    "SCALAR": 1,
    "VEC2": 2,
    "VEC3": 3,
    "VEC4": 4,
    "MAT2": 4,
    "MAT3": 9,
    "MAT4": 16,
}

# Mirror across Z: right-handed Y-up -> left-handed Y-up.
_HANDEDNESS = np.diag([1.0, 1.0, -1.0, 1.0]).astype(np.float32)


def clean_bone_name(name: str) -> str:
    """Strip a namespace prefix such as ``mixamorig:`` from a bone name."""
    if ":" in name:
        return name.split(":")[-1]
    return name


def load_meshes(path: str | Path, *, flip_winding: bool = True) -> list[RawMesh]:
    """Import every mesh entry of a glTF/GLB asset.

    Args:
        path: Path to a ``.glb`` or ``.gltf`` file.
        flip_winding: Reverse triangle winding after the handedness flip.

    Returns:
        Non-empty list of RawMesh, in source mesh/primitive order.

    Raises:
        AssetNotFoundError: If ``path`` is not an existing file.
        ImportFailureError: If parsing fails or the asset contains no meshes.
    """
    path = Path(path)
    if not path.is_file():
        raise AssetNotFoundError(f"Mesh asset not found: {path}")
    if path.suffix.lower() not in SUPPORTED_SUFFIXES:
        raise ImportFailureError(
            f"Unsupported mesh asset type {path.suffix!r} (expected one of {sorted(SUPPORTED_SUFFIXES)})"
        )

    logger.info("Loading mesh asset: %s", path)
    try:
        gltf = pygltflib.GLTF2().load(str(path))
        if gltf is None:
            raise ImportFailureError(f"Parser returned no document for {path}")
        reader = _GltfReader(gltf, path.parent)
        meshes = reader.read_meshes(flip_winding=flip_winding)
    except Exception as e:
        if isinstance(e, ImportFailureError):
            raise
        raise ImportFailureError(f"Failed to import {path.name}: {e}") from e

    if not meshes:
        raise ImportFailureError(f"Scene has no meshes: {path}")
    return meshes


class _GltfReader:
    """Reads mesh records out of a loaded glTF document."""

    def __init__(self, gltf: pygltflib.GLTF2, base_dir: Path) -> None:
        self.gltf = gltf
        self.base_dir = base_dir
        self._buffers: dict[int, bytes] = {}

    def read_meshes(self, *, flip_winding: bool) -> list[RawMesh]:
        mesh_skins = self._mesh_skins()
        result: list[RawMesh] = []
        for mesh_idx, mesh in enumerate(self.gltf.meshes or []):
            base_name = mesh.name or DEFAULT_MESH_NAME
            prims = mesh.primitives or []
            skin_idx = mesh_skins.get(mesh_idx)
            for prim_idx, prim in enumerate(prims):
                name = base_name if len(prims) == 1 else f"{base_name}_{prim_idx}"
                raw = self._read_primitive(name, prim, skin_idx, flip_winding=flip_winding)
                if raw.is_skinned:
                    logger.info("Mesh %r has %d bones", raw.name, len(raw.bone_names))
                else:
                    logger.info("Mesh %r has no bone data, will be static", raw.name)
                result.append(raw)
        return result

    def _mesh_skins(self) -> dict[int, int]:
        """Map mesh index -> skin index of the first node that uses the mesh."""
        skins: dict[int, int] = {}
        seen: set[int] = set()
        for node in self.gltf.nodes or []:
            if node.mesh is None or node.mesh in seen:
                continue
            seen.add(node.mesh)
            if node.skin is not None:
                skins[node.mesh] = node.skin
        return skins

    def _read_primitive(
        self,
        name: str,
        prim: pygltflib.Primitive,
        skin_idx: int | None,
        *,
        flip_winding: bool,
    ) -> RawMesh:
        attrs = prim.attributes
        if attrs.POSITION is None:
            positions = np.zeros((0, 3), dtype=np.float32)
        else:
            positions = self.read_accessor(attrs.POSITION).astype(np.float32)
        n = len(positions)

        normals = np.zeros((0, 3), dtype=np.float32)
        if attrs.NORMAL is not None:
            normals = self.read_accessor(attrs.NORMAL).astype(np.float32)

        uvs = np.zeros((0, 2), dtype=np.float32)
        if attrs.TEXCOORD_0 is not None:
            uvs = self.read_accessor(attrs.TEXCOORD_0).astype(np.float32)

        if prim.indices is not None:
            flat = self.read_accessor(prim.indices).reshape(-1).astype(np.int64)
        else:
            flat = np.arange(n, dtype=np.int64)
        mode = pygltflib.TRIANGLES if prim.mode is None else prim.mode
        triangles = _valid_triangles(_triangulate(flat, mode), n)

        bone_names: list[str] = []
        bone_indices = None
        bone_weights = None
        bind_poses = None
        if skin_idx is not None:
            skin = self.gltf.skins[skin_idx]
            joints = skin.joints or []
            if joints:
                bone_names = [clean_bone_name(self._joint_name(j, i)) for i, j in enumerate(joints)]
                bind_poses = self._bind_poses(skin, len(joints))
                bone_indices, bone_weights = pack_influences(
                    self._influence_sets(attrs), len(joints), n
                )

        # Handedness conversion
        positions[:, 2] *= -1.0
        if len(normals):
            normals[:, 2] *= -1.0
        if len(uvs):
            uvs[:, 1] = 1.0 - uvs[:, 1]
        if bind_poses is not None:
            bind_poses = _HANDEDNESS @ bind_poses @ _HANDEDNESS
        if flip_winding and len(triangles):
            triangles = triangles[:, [0, 2, 1]]

        return RawMesh(
            name=name,
            positions=positions,
            normals=normals,
            uvs=uvs,
            indices=np.ascontiguousarray(triangles.reshape(-1), dtype=np.uint32),
            bone_names=bone_names,
            bone_indices=bone_indices,
            bone_weights=bone_weights,
            bind_poses=bind_poses,
        )

    def _joint_name(self, node_idx: int, joint_pos: int) -> str:
        name = self.gltf.nodes[node_idx].name
        return name if name else f"joint_{joint_pos}"

    def _bind_poses(self, skin: pygltflib.Skin, joint_count: int) -> np.ndarray:
        if skin.inverseBindMatrices is None:
            return np.tile(np.eye(4, dtype=np.float32), (joint_count, 1, 1))
        data = self.read_accessor(skin.inverseBindMatrices).astype(np.float32)
        # glTF matrices are column-major; numpy is row-major
        mats = data.reshape(-1, 4, 4).transpose(0, 2, 1)
        if len(mats) < joint_count:
            raise ImportFailureError(
                f"Skin has {joint_count} joints but only {len(mats)} inverse bind matrices"
            )
        return np.ascontiguousarray(mats[:joint_count])

    def _influence_sets(self, attrs: pygltflib.Attributes) -> list[tuple[np.ndarray, np.ndarray]]:
        sets = []
        set_idx = 0
        while True:
            j_acc = getattr(attrs, f"JOINTS_{set_idx}", None)
            w_acc = getattr(attrs, f"WEIGHTS_{set_idx}", None)
            if j_acc is None or w_acc is None:
                break
            sets.append((self.read_accessor(j_acc).astype(np.int64), self.read_accessor(w_acc)))
            set_idx += 1
        return sets

    def read_accessor(self, index: int) -> np.ndarray:
        """Read an accessor into a new ``(count, width)`` array."""
        acc = self.gltf.accessors[index]
        if acc.sparse is not None:
            raise ImportFailureError(f"Accessor {index}: sparse accessors are not supported")
        dtype = _COMPONENT_DTYPES.get(acc.componentType)
        width = _TYPE_WIDTHS.get(acc.type)
        if dtype is None or width is None:
            raise ImportFailureError(
                f"Accessor {index}: unsupported layout {acc.componentType}/{acc.type}"
            )

        if acc.bufferView is None:
            data = np.zeros((acc.count, width), dtype=dtype)
        else:
            view = self.gltf.bufferViews[acc.bufferView]
            raw = self._buffer(view.buffer)
            start = (view.byteOffset or 0) + (acc.byteOffset or 0)
            elem_size = dtype.itemsize * width
            stride = view.byteStride or elem_size
            end = start + stride * (acc.count - 1) + elem_size if acc.count else start
            if end > len(raw):
                raise ImportFailureError(f"Accessor {index}: reads past end of buffer {view.buffer}")
            data = np.ndarray(
                shape=(acc.count, width),
                dtype=dtype,
                buffer=raw,
                offset=start,
                strides=(stride, dtype.itemsize),
            ).copy()

        if acc.normalized and dtype.kind in "iu":
            scale = float(np.iinfo(dtype).max)
            data = np.maximum(data.astype(np.float32) / scale, -1.0)
        return data

    def _buffer(self, index: int) -> bytes:
        if index in self._buffers:
            return self._buffers[index]
        buf = self.gltf.buffers[index]
        if buf.uri is None:
            data = self.gltf.binary_blob()
            if data is None:
                raise ImportFailureError(f"Buffer {index} has no URI and the file has no binary chunk")
        elif buf.uri.startswith("data:"):
            _header, _, payload = buf.uri.partition(",")
            data = base64.b64decode(payload)
        else:
            data = (self.base_dir / unquote(buf.uri)).read_bytes()
        self._buffers[index] = data
        return data


def pack_influences(
    influence_sets: list[tuple[np.ndarray, np.ndarray]],
    bone_count: int,
    vertex_count: int,
) -> tuple[np.ndarray, np.ndarray]:
    """Pack per-vertex joint/weight attribute sets into four slots per vertex.

    Contributions are visited bone by bone; each non-zero contribution goes
    into the first free slot of its vertex and is never re-sorted. A fifth or
    later contribution to a vertex is dropped, as is any joint index outside
    ``[0, bone_count)``.

    Returns:
        ``(bone_indices, bone_weights)`` arrays of shape ``(vertex_count, 4)``.
    """
    bone_indices = np.zeros((vertex_count, MAX_INFLUENCES), dtype=np.int32)
    bone_weights = np.zeros((vertex_count, MAX_INFLUENCES), dtype=np.float32)
    filled = np.zeros(vertex_count, dtype=np.int64)

    columns: list[tuple[np.ndarray, np.ndarray]] = []
    for joints, weights in influence_sets:
        rows = min(len(joints), len(weights), vertex_count)
        for c in range(min(joints.shape[1], weights.shape[1])):
            columns.append((joints[:rows, c], weights[:rows, c].astype(np.float32)))

    for bone in range(bone_count):
        for joint_col, weight_col in columns:
            vids = np.flatnonzero((joint_col == bone) & (weight_col != 0.0))
            if len(vids) == 0:
                continue
            slots = filled[vids]
            keep = slots < MAX_INFLUENCES
            vids = vids[keep]
            slots = slots[keep]
            bone_indices[vids, slots] = bone
            bone_weights[vids, slots] = weight_col[vids]
            filled[vids] += 1

    return bone_indices, bone_weights


def _triangulate(flat: np.ndarray, mode: int) -> np.ndarray:
    """Turn a primitive's index stream into ``(T, 3)`` triangles."""
    if mode == pygltflib.TRIANGLES:
        usable = len(flat) - len(flat) % 3
        return flat[:usable].reshape(-1, 3)
    if mode in (pygltflib.TRIANGLE_STRIP, pygltflib.TRIANGLE_FAN) and len(flat) >= 3:
        i = np.arange(len(flat) - 2)
        if mode == pygltflib.TRIANGLE_FAN:
            return np.stack([np.full_like(i, flat[0]), flat[i + 1], flat[i + 2]], axis=1)
        a = flat[i]
        b = flat[i + 1]
        odd = (i % 2) == 1
        # Odd strip triangles swap their first two corners to keep winding
        return np.stack([np.where(odd, b, a), np.where(odd, a, b), flat[i + 2]], axis=1)
    return np.zeros((0, 3), dtype=np.int64)


def _valid_triangles(triangles: np.ndarray, vertex_count: int) -> np.ndarray:
    """Drop triangles with out-of-range or repeated corners."""
    if len(triangles) == 0:
        return triangles.reshape(0, 3)
    in_range = np.all((triangles >= 0) & (triangles < vertex_count), axis=1)
    distinct = (
        (triangles[:, 0] != triangles[:, 1])
        & (triangles[:, 1] != triangles[:, 2])
        & (triangles[:, 0] != triangles[:, 2])
    )
    return triangles[in_range & distinct]
