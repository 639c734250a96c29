"""Custom exception hierarchy for rigswap."""


class RigswapError(Exception):
    """Base exception for all rigswap errors."""


class AssetNotFoundError(RigswapError):
    """Raised when a mesh asset path does not resolve to a file."""


class ImportFailureError(RigswapError):
    """Raised when the asset parser fails or the scene contains no meshes."""


class NoHostSkeletonError(RigswapError):
    """Raised when no skinned renderer exists to derive the host bone order from."""


class PartialMeshError(RigswapError):
    """Raised when a single mesh of a multi-mesh asset cannot be remapped."""


class ConfigError(RigswapError):
    """Raised when the persisted settings file cannot be read or validated."""
