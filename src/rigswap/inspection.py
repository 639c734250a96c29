"""Inspection diagnostics for imported mesh assets."""

from __future__ import annotations

from rigswap.mesh import RawMesh
from rigswap.remap import build_remap_table
from rigswap.warning_policy import WarningPolicy

_QUIET = WarningPolicy(suppress=frozenset({"W01"}))


def inspect_meshes(
    meshes: list[RawMesh],
    *,
    host_bones: list[str] | None = None,
    policy: WarningPolicy | None = None,
) -> dict[str, object]:
    """Summarize imported meshes and, given a host bone list, their remap tables.

    Unmapped-bone warnings (W01) are suppressed unless a policy is given;
    the fallbacks are listed in the payload either way.
    """
    if policy is None:
        policy = _QUIET
    entries: list[dict[str, object]] = []
    for mesh in meshes:
        entry: dict[str, object] = {
            "name": mesh.name,
            "vertices": mesh.vertex_count,
            "triangles": mesh.triangle_count,
            "has_normals": bool(len(mesh.normals)),
            "has_uvs": bool(len(mesh.uvs)),
            "skinned": mesh.is_skinned,
            "bones": list(mesh.bone_names),
        }
        if host_bones and mesh.is_skinned:
            table = build_remap_table(
                mesh.bone_names, host_bones, mesh_name=mesh.name, policy=policy
            )
            entry["remap"] = [
                {"source": src, "host": host_bones[int(dst)], "index": int(dst)}
                for src, dst in zip(mesh.bone_names, table.indices)
            ]
            entry["fallbacks"] = list(table.unmapped)
        entries.append(entry)

    return {
        "inspect_schema_version": 1,
        "summary": {
            "mesh_count": len(meshes),
            "skinned_count": sum(1 for m in meshes if m.is_skinned),
            "vertex_count": sum(m.vertex_count for m in meshes),
            "triangle_count": sum(m.triangle_count for m in meshes),
        },
        "meshes": entries,
    }


def render_text(payload: dict[str, object]) -> str:
    summary = payload["summary"]
    lines = [
        f"meshes: {summary['mesh_count']} ({summary['skinned_count']} skinned)",
        f"vertices: {summary['vertex_count']}  triangles: {summary['triangle_count']}",
    ]
    for entry in payload["meshes"]:
        kind = "skinned" if entry["skinned"] else "static"
        lines.append("")
        lines.append(f"[{entry['name']}] {kind}, {entry['vertices']} verts, {entry['triangles']} tris")
        if "remap" in entry:
            for row in entry["remap"]:
                marker = "  (fallback)" if row["source"] in entry["fallbacks"] else ""
                lines.append(f"  {row['source']} -> [{row['index']}] {row['host']}{marker}")
            lines.append(f"  fallbacks: {len(entry['fallbacks'])}")
        elif entry["bones"]:
            lines.append("  bones: " + ", ".join(entry["bones"]))
    return "\n".join(lines) + "\n"
