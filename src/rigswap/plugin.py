"""Host integration: lifecycle hooks, persisted selection, per-character controllers."""

from __future__ import annotations

import logging
from pathlib import Path

from rigswap.config import ConfigStore
from rigswap.controller import ModelSwapController, find_character_root
from rigswap.errors import ConfigError
from rigswap.registry import ModelRegistry
from rigswap.scene import Node
from rigswap.warning_policy import WarningPolicy

logger = logging.getLogger(__name__)


class ModelChanger:
    """Glue between the host's lifecycle callbacks and the swap controllers.

    ``on_character_setup`` is the host's "character ready" trigger and
    ``select_model`` is what the selection overlay calls on apply.
    """

    def __init__(
        self,
        config_path: str | Path,
        models_dir: str | Path,
        *,
        policy: WarningPolicy | None = None,
    ) -> None:
        self.policy = policy
        self.config = ConfigStore(config_path)
        self.registry = ModelRegistry(models_dir, policy=policy)
        self._controllers: dict[int, tuple[Node, ModelSwapController]] = {}
        logger.info("Model changer loaded with %d models", len(self.registry.list_models()))

    def controller_for(self, host: Node) -> ModelSwapController | None:
        pair = self._controllers.get(id(host))
        return pair[1] if pair is not None else None

    def on_character_setup(self, host: Node) -> bool:
        """Attach a controller to a freshly set-up character and apply the saved choice.

        The settings file is re-read first so an edit made while the host was
        running takes effect on the next character.
        """
        controller = self.controller_for(host)
        if controller is None:
            character_root = find_character_root(host)
            if character_root is None:
                logger.error("Cannot find character root under %r", host.name)
                return False
            logger.info("Found character root: %s", character_root.name)
            controller = ModelSwapController(character_root, self.registry, policy=self.policy)
            self._controllers[id(host)] = (host, controller)
        try:
            self.config.reload()
        except ConfigError as e:
            logger.error("Keeping previous settings: %s", e)
        return controller.apply(self.config.current_model)

    def on_character_teardown(self, host: Node) -> None:
        pair = self._controllers.pop(id(host), None)
        if pair is not None:
            pair[1].teardown()

    def select_model(self, name: str) -> bool:
        """Persist ``name`` as the selection and apply it to every live character.

        Returns:
            True when the name is registered and every character accepted it.
        """
        if self.registry.get_model(name) is None:
            logger.error("Unknown model %r", name)
            return False
        self.config.current_model = name
        logger.info("Model set to: %s", name)
        results = [controller.apply(name) for _host, controller in self._controllers.values()]
        return all(results)
