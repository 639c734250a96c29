"""Discovery of custom character models on disk.

Layout: ``<models_dir>/<ModelName>/`` holding one mesh asset, an optional
main texture and an optional ``preview`` image.
"""

from __future__ import annotations

import logging
from pathlib import Path

from rigswap.importer import SUPPORTED_SUFFIXES
from rigswap.models import DEFAULT_MODEL_NAME, ModelEntry
from rigswap.warning_policy import WarningPolicy, emit_warning

logger = logging.getLogger(__name__)

TEXTURE_SUFFIXES: tuple[str, ...] = (".png", ".jpg", ".jpeg", ".tga", ".bmp", ".dds")
PREVIEW_SUFFIXES: tuple[str, ...] = (".png", ".jpg", ".jpeg", ".tga", ".bmp")
PREFERRED_TEXTURE_STEMS: tuple[str, ...] = ("texture", "diffuse", "albedo", "color", "main")

README_TEXT = (
    "Place your mesh asset and texture files in this folder.\n\n"
    "Required:\n"
    "- YourModel.glb or YourModel.gltf (the rigged 3D model)\n\n"
    "Optional:\n"
    "- YourTexture.png/jpg/tga (main texture for the model)\n"
    "- preview.png/jpg (thumbnail shown in the model selector)\n\n"
    "The folder name is used as the model name in the menu.\n"
)


class ModelRegistry:
    """Name -> ModelEntry lookup, always containing the built-in default."""

    def __init__(
        self,
        models_dir: str | Path | None = None,
        *,
        policy: WarningPolicy | None = None,
    ) -> None:
        self.policy = policy
        self._models: dict[str, ModelEntry] = {}
        self.register_model(ModelEntry(name=DEFAULT_MODEL_NAME, is_custom=False))
        if models_dir is not None:
            self.scan(Path(models_dir))

    def register_model(self, entry: ModelEntry) -> None:
        self._models[entry.name] = entry

    def get_model(self, name: str) -> ModelEntry | None:
        return self._models.get(name)

    def list_models(self) -> list[ModelEntry]:
        return sorted(self._models.values(), key=lambda m: m.name)

    def scan(self, models_dir: Path) -> int:
        """Register every model folder under ``models_dir``.

        Creates the directory with an example folder when it does not exist.

        Returns:
            Number of custom models registered by this scan.
        """
        if not models_dir.is_dir():
            example = models_dir / "ExampleModel"
            example.mkdir(parents=True, exist_ok=True)
            (example / "README.txt").write_text(README_TEXT, encoding="utf-8")
            logger.info("Created models directory with example folder: %s", example)
            return 0

        count = 0
        for folder in sorted(p for p in models_dir.iterdir() if p.is_dir()):
            try:
                entry = self._load_folder(folder)
            except OSError as e:
                emit_warning("W04", f"Failed to load model from folder {folder}: {e}", policy=self.policy)
                continue
            if entry is not None:
                self.register_model(entry)
                count += 1

        logger.info("Loaded %d custom model(s) from %s", count, models_dir)
        return count

    def _load_folder(self, folder: Path) -> ModelEntry | None:
        assets = sorted(
            p for p in folder.iterdir() if p.is_file() and p.suffix.lower() in SUPPORTED_SUFFIXES
        )
        if not assets:
            emit_warning("W04", f"No mesh asset found in folder: {folder}", policy=self.policy)
            return None

        source = assets[0]
        if len(assets) > 1:
            emit_warning(
                "W04", f"Multiple mesh assets found in {folder}, using: {source.name}", policy=self.policy
            )

        texture = find_texture(folder, (*PREFERRED_TEXTURE_STEMS, source.stem))
        if texture is None:
            emit_warning("W05", f"No texture found for model {folder.name!r}", policy=self.policy)

        entry = ModelEntry(
            name=folder.name,
            is_custom=True,
            source_path=source,
            texture_path=texture,
            preview_path=find_preview(folder),
        )
        logger.info("Loaded model %r from %s", entry.name, source.name)
        return entry


def find_texture(folder: Path, preferred_stems: tuple[str, ...]) -> Path | None:
    """Pick the main texture in ``folder``.

    Preferred stems are tried in order (each across all image suffixes);
    otherwise the first image whose stem does not mention ``preview``.
    """
    for stem in preferred_stems:
        for suffix in TEXTURE_SUFFIXES:
            candidate = folder / f"{stem}{suffix}"
            if candidate.is_file():
                return candidate

    images = sorted(p for p in folder.iterdir() if p.is_file())
    for suffix in TEXTURE_SUFFIXES:
        for image in images:
            if image.suffix.lower() == suffix and "preview" not in image.stem.lower():
                return image
    return None


def find_preview(folder: Path) -> Path | None:
    for suffix in PREVIEW_SUFFIXES:
        candidate = folder / f"preview{suffix}"
        if candidate.is_file():
            return candidate
    return None
