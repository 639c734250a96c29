"""Coded diagnostics raised while importing and swapping models."""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass

from rigswap.errors import RigswapError

logger = logging.getLogger(__name__)

WARNING_CODES: dict[str, str] = {
    "W01": "source bone not found on host skeleton, bound to the fallback bone",
    "W02": "no skinned renderer under the character root",
    "W03": "one mesh of a model could not be bound and was skipped",
    "W04": "model folder has no usable asset, or more than one",
    "W05": "model texture missing or unreadable",
}
KNOWN_CODES: frozenset[str] = frozenset(WARNING_CODES)


class RigswapWarning(UserWarning):
    """Warning with a machine-readable code."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        super().__init__(f"[{code}] {message}")


@dataclass(frozen=True)
class WarningPolicy:
    """Per-code handling: drop, raise, or (default) warn."""

    warn_as_error: frozenset[str] = frozenset()
    suppress: frozenset[str] = frozenset()

    @classmethod
    def from_code_lists(
        cls, warn_as_error: str | None = None, suppress: str | None = None
    ) -> WarningPolicy | None:
        """Build a policy from comma-separated code lists, or None if both are unset.

        Raises ``ValueError`` for unknown codes.
        """
        if warn_as_error is None and suppress is None:
            return None
        return cls(
            warn_as_error=parse_code_list(warn_as_error or ""),
            suppress=parse_code_list(suppress or ""),
        )


def emit_warning(code: str, message: str, *, policy: WarningPolicy | None = None) -> None:
    """Emit a coded warning under ``policy``.

    Suppression wins over warn-as-error. A suppressed warning still goes to
    the debug log. A code in ``warn_as_error`` raises ``RigswapError``.
    """
    if policy is not None:
        if code in policy.suppress:
            logger.debug("Suppressed [%s] %s", code, message)
            return
        if code in policy.warn_as_error:
            raise RigswapError(f"[{code}] {message}")

    warnings.warn(RigswapWarning(code, message), stacklevel=2)


def parse_code_list(raw: str) -> frozenset[str]:
    """Parse ``"W01, w04"`` style input into a set of known codes.

    Raises ``ValueError`` for unknown codes.
    """
    codes = {token.strip().upper() for token in raw.split(",")} - {""}
    unknown = sorted(codes - KNOWN_CODES)
    if unknown:
        raise ValueError(f"Unknown warning code: {unknown[0]!r} (known: {sorted(KNOWN_CODES)})")
    return frozenset(codes)
