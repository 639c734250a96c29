"""Tests for inspection output."""

from __future__ import annotations

import warnings

import pytest

from rigswap.errors import RigswapError
from rigswap.importer import load_meshes
from rigswap.inspection import inspect_meshes, render_text
from rigswap.warning_policy import RigswapWarning, WarningPolicy


class TestInspectMeshes:
    def test_summary(self, mixamo_glb):
        payload = inspect_meshes(load_meshes(mixamo_glb))
        assert payload["inspect_schema_version"] == 1
        assert payload["summary"] == {
            "mesh_count": 1,
            "skinned_count": 1,
            "vertex_count": 4,
            "triangle_count": 2,
        }
        entry = payload["meshes"][0]
        assert entry["bones"] == ["Hips", "Spine", "Head"]
        assert entry["has_normals"] and entry["has_uvs"]
        assert "remap" not in entry

    def test_remap_with_host_bones(self, mixamo_glb):
        payload = inspect_meshes(load_meshes(mixamo_glb), host_bones=["Hips", "Spine"])
        entry = payload["meshes"][0]
        assert [row["index"] for row in entry["remap"]] == [0, 1, 0]
        assert entry["remap"][2] == {"source": "Head", "host": "Hips", "index": 0}
        assert entry["fallbacks"] == ["Head"]

    def test_fallbacks_not_warned(self, mixamo_glb):
        meshes = load_meshes(mixamo_glb)
        with warnings.catch_warnings(record=True) as w:
            warnings.simplefilter("always")
            inspect_meshes(meshes, host_bones=["Root"])
        assert len(w) == 0

    def test_explicit_policy_reports_fallbacks(self, mixamo_glb):
        meshes = load_meshes(mixamo_glb)
        with pytest.warns(RigswapWarning, match=r"\[W01\].*'Head'"):
            payload = inspect_meshes(meshes, host_bones=["Hips", "Spine"], policy=WarningPolicy())
        assert payload["meshes"][0]["fallbacks"] == ["Head"]

    def test_unmapped_as_error(self, mixamo_glb):
        policy = WarningPolicy(warn_as_error=frozenset({"W01"}))
        with pytest.raises(RigswapError, match="W01"):
            inspect_meshes(load_meshes(mixamo_glb), host_bones=["Hips"], policy=policy)

    def test_static_mesh_has_no_remap(self, tmp_path, glb_writer, quad):
        meshes = load_meshes(glb_writer(tmp_path / "prop.glb", [quad("Prop")]))
        entry = inspect_meshes(meshes, host_bones=["Hips"])["meshes"][0]
        assert not entry["skinned"]
        assert "remap" not in entry


class TestRenderText:
    def test_text_lines(self, mixamo_glb):
        payload = inspect_meshes(load_meshes(mixamo_glb), host_bones=["Hips", "Spine"])
        text = render_text(payload)
        assert text.startswith("meshes: 1 (1 skinned)\n")
        assert "[Body] skinned, 4 verts, 2 tris" in text
        assert "  Spine -> [1] Spine\n" in text
        assert "  Head -> [0] Hips  (fallback)" in text
        assert "  fallbacks: 1" in text

    def test_bone_list_without_host(self, mixamo_glb):
        text = render_text(inspect_meshes(load_meshes(mixamo_glb)))
        assert "  bones: Hips, Spine, Head" in text
