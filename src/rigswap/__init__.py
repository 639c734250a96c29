"""Runtime retargeting of externally authored skinned meshes onto host skeletons."""

__version__ = "0.3.0"
