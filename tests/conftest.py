"""Shared fixtures: synthetic glTF assets and a host character scene."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import pygltflib
import pytest

from rigswap.scene import Material, Node, SkinnedRenderer

HOST_BONES = ["Hips", "Spine", "Head"]


def _write_buffer_view_and_accessor(
    gltf: pygltflib.GLTF2,
    blob_data: bytearray,
    data_array: np.ndarray,
    component_type: int,
    accessor_type: str,
) -> int:
    """Append a buffer view + accessor for ``data_array``; return the accessor index."""
    offset = len(blob_data)
    data_bytes = np.ascontiguousarray(data_array).tobytes()
    blob_data.extend(data_bytes)
    # Keep every view 4-byte aligned
    blob_data.extend(b"\x00" * ((4 - len(blob_data) % 4) % 4))

    bv_idx = len(gltf.bufferViews)
    gltf.bufferViews.append(
        pygltflib.BufferView(buffer=0, byteOffset=offset, byteLength=len(data_bytes))
    )
    acc_idx = len(gltf.accessors)
    count = len(data_array)
    gltf.accessors.append(
        pygltflib.Accessor(
            bufferView=bv_idx,
            byteOffset=0,
            componentType=component_type,
            count=count,
            type=accessor_type,
        )
    )
    return acc_idx


def build_gltf(
    meshes: list[dict],
    bone_names: list[str] | None = None,
    *,
    inverse_bind_matrices: np.ndarray | None = None,
    data_uri: bool = False,
) -> pygltflib.GLTF2:
    """Build a glTF document from plain mesh dicts.

    Mesh keys: ``name``, ``positions``, optional ``indices``, ``normals``,
    ``uvs``, ``joints``/``weights``, ``mode``, ``skinned`` (default True when bones are given), and
    ``primitives`` (a list of such dicts for multi-primitive meshes).
    """
    gltf = pygltflib.GLTF2(
        scene=0,
        scenes=[pygltflib.Scene(nodes=[])],
        nodes=[],
        meshes=[],
        accessors=[],
        bufferViews=[],
        buffers=[],
        skins=[],
    )
    blob = bytearray()

    skin_idx = None
    if bone_names:
        joint_nodes = []
        for name in bone_names:
            joint_nodes.append(len(gltf.nodes))
            gltf.nodes.append(pygltflib.Node(name=name))
        for parent, child in zip(joint_nodes, joint_nodes[1:]):
            gltf.nodes[parent].children = [child]
        ibm_acc = None
        if inverse_bind_matrices is not None:
            col_major = np.ascontiguousarray(inverse_bind_matrices.transpose(0, 2, 1)).astype(np.float32)
            ibm_acc = _write_buffer_view_and_accessor(
                gltf, blob, col_major.reshape(len(bone_names), 16), pygltflib.FLOAT, pygltflib.MAT4
            )
        skin_idx = len(gltf.skins)
        gltf.skins.append(
            pygltflib.Skin(joints=joint_nodes, skeleton=joint_nodes[0], inverseBindMatrices=ibm_acc)
        )
        gltf.scenes[0].nodes.append(joint_nodes[0])

    for mesh in meshes:
        prim_defs = mesh.get("primitives", [mesh])
        prims = []
        for pd in prim_defs:
            attrs = pygltflib.Attributes()
            attrs.POSITION = _write_buffer_view_and_accessor(
                gltf, blob, np.asarray(pd["positions"], dtype=np.float32), pygltflib.FLOAT, pygltflib.VEC3
            )
            if "normals" in pd:
                attrs.NORMAL = _write_buffer_view_and_accessor(
                    gltf, blob, np.asarray(pd["normals"], dtype=np.float32), pygltflib.FLOAT, pygltflib.VEC3
                )
            if "uvs" in pd:
                attrs.TEXCOORD_0 = _write_buffer_view_and_accessor(
                    gltf, blob, np.asarray(pd["uvs"], dtype=np.float32), pygltflib.FLOAT, pygltflib.VEC2
                )
            if "joints" in pd:
                attrs.JOINTS_0 = _write_buffer_view_and_accessor(
                    gltf, blob, np.asarray(pd["joints"], dtype=np.uint16), pygltflib.UNSIGNED_SHORT, pygltflib.VEC4
                )
                attrs.WEIGHTS_0 = _write_buffer_view_and_accessor(
                    gltf, blob, np.asarray(pd["weights"], dtype=np.float32), pygltflib.FLOAT, pygltflib.VEC4
                )
            indices = None
            if "indices" in pd:
                indices = _write_buffer_view_and_accessor(
                    gltf, blob, np.asarray(pd["indices"], dtype=np.uint32), pygltflib.UNSIGNED_INT, pygltflib.SCALAR
                )
            prims.append(
                pygltflib.Primitive(attributes=attrs, indices=indices, mode=pd.get("mode", pygltflib.TRIANGLES))
            )

        mesh_idx = len(gltf.meshes)
        gltf.meshes.append(pygltflib.Mesh(name=mesh.get("name"), primitives=prims))
        node_idx = len(gltf.nodes)
        skinned = mesh.get("skinned", skin_idx is not None)
        gltf.nodes.append(
            pygltflib.Node(name=mesh.get("name"), mesh=mesh_idx, skin=skin_idx if skinned else None)
        )
        gltf.scenes[0].nodes.append(node_idx)

    if data_uri:
        encoded = base64.b64encode(bytes(blob)).decode("ascii")
        gltf.buffers = [
            pygltflib.Buffer(
                byteLength=len(blob), uri=f"data:application/octet-stream;base64,{encoded}"
            )
        ]
    else:
        gltf.buffers = [pygltflib.Buffer(byteLength=len(blob))]
        gltf.set_binary_blob(bytes(blob))
    return gltf


def write_glb(path: Path, meshes: list[dict], bone_names: list[str] | None = None, **kwargs) -> Path:
    gltf = build_gltf(meshes, bone_names, **kwargs)
    path.write_bytes(b"".join(gltf.save_to_bytes()))
    return path


def quad_mesh(name: str = "Body", *, joints=None, weights=None) -> dict:
    """Two-triangle quad in the XY plane at z = 0.5."""
    mesh = {
        "name": name,
        "positions": [[0, 0, 0.5], [1, 0, 0.5], [1, 1, 0.5], [0, 1, 0.5]],
        "normals": [[0, 0, 1]] * 4,
        "uvs": [[0, 0], [1, 0], [1, 1], [0, 0.25]],
        "indices": [0, 1, 2, 0, 2, 3],
    }
    if joints is not None:
        mesh["joints"] = joints
        mesh["weights"] = weights
    return mesh


@dataclass
class HostCharacter:
    host: Node
    root: Node
    armature: Node
    bones: list[Node]
    renderers: list[SkinnedRenderer] = field(default_factory=list)
    material: Material | None = None


def make_host_character(bone_names: list[str] | None = None) -> HostCharacter:
    """Host object -> Character/Character -> [Armature -> bone chain, Body, Face]."""
    bone_names = bone_names or HOST_BONES
    host = Node("Heroine")
    outer = host.add_child(Node("Character"))
    root = outer.add_child(Node("Character"))
    armature = root.add_child(Node("Armature"))

    bones: list[Node] = []
    parent = armature
    for name in bone_names:
        parent = parent.add_child(Node(name))
        bones.append(parent)

    material = Material(name="Toon")
    renderers = []
    for part in ("Body", "Face"):
        node = root.add_child(Node(part))
        renderers.append(
            node.add_component(
                SkinnedRenderer(bones=bones, root_bone=bones[0], material=material)
            )
        )
    return HostCharacter(
        host=host, root=root, armature=armature, bones=bones, renderers=renderers, material=material
    )


@pytest.fixture
def host_character() -> HostCharacter:
    return make_host_character()


@pytest.fixture
def mixamo_glb(tmp_path) -> Path:
    """Skinned quad bound to a vendor-prefixed three-bone rig."""
    mesh = quad_mesh(
        joints=[[0, 1, 0, 0], [1, 0, 0, 0], [2, 1, 0, 0], [2, 0, 0, 0]],
        weights=[[0.75, 0.25, 0, 0], [1, 0, 0, 0], [0.5, 0.5, 0, 0], [1, 0, 0, 0]],
    )
    return write_glb(
        tmp_path / "mixamo.glb",
        [mesh],
        ["mixamorig:Hips", "mixamorig:Spine", "mixamorig:Head"],
    )


@pytest.fixture
def models_dir(tmp_path) -> Path:
    """Models folder with two skinned models and one folder lacking an asset."""
    root = tmp_path / "Models"
    bones = ["mixamorig:Hips", "mixamorig:Spine", "mixamorig:Head"]
    mesh = quad_mesh(
        joints=[[0, 0, 0, 0], [1, 0, 0, 0], [2, 0, 0, 0], [1, 2, 0, 0]],
        weights=[[1, 0, 0, 0], [1, 0, 0, 0], [1, 0, 0, 0], [0.5, 0.5, 0, 0]],
    )

    alice = root / "Alice"
    alice.mkdir(parents=True)
    write_glb(alice / "alice.glb", [mesh], bones)
    (alice / "diffuse.png").write_bytes(b"\x89PNG fake")
    (alice / "preview.png").write_bytes(b"\x89PNG preview")

    bob = root / "Bob"
    bob.mkdir()
    write_glb(bob / "bob.glb", [mesh, quad_mesh("Hair", joints=mesh["joints"], weights=mesh["weights"])], bones)

    (root / "Empty").mkdir()
    return root


@pytest.fixture
def glb_writer():
    """``write_glb(path, meshes, bone_names=None, **kwargs)``."""
    return write_glb


@pytest.fixture
def gltf_builder():
    return build_gltf


@pytest.fixture
def quad():
    """``quad_mesh(name="Body", *, joints=None, weights=None)``."""
    return quad_mesh


@pytest.fixture
def host_factory():
    """``make_host_character(bone_names=None)``."""
    return make_host_character
