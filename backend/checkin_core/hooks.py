from __future__ import annotations

import logging

from .errors import ControllerHookError
from .models import ControllerContext, ControllerResult
from .registry import ControllerRegistry

logger = logging.getLogger(__name__)


class HookRunner:
    """Runs controller hooks so that a failing hook never fails the turn."""

    def __init__(self, registry: ControllerRegistry) -> None:
        self.registry = registry
        self.failures: list[ControllerHookError] = []

    def run_preprocess(self, controller_name: str | None, ctx: ControllerContext) -> ControllerResult | None:
        return self._run(controller_name, "preprocess", ctx)

    def run_postprocess(self, controller_name: str | None, ctx: ControllerContext) -> ControllerResult | None:
        return self._run(controller_name, "postprocess", ctx)

    def _run(self, controller_name: str | None, hook: str, ctx: ControllerContext) -> ControllerResult | None:
        controller = self.registry.get(controller_name)
        method = getattr(controller, hook, None) if controller is not None else None
        if method is None:
            return None
        try:
            result = method(ctx)
        except Exception as exc:
            failure = ControllerHookError(str(controller_name), hook, ctx.node_id, exc)
            self.failures.append(failure)
            del self.failures[:-50]
            logger.exception("%s", failure)
            return None
        if result is not None and not isinstance(result, ControllerResult):
            logger.warning(
                "%s.%s returned %s instead of ControllerResult; ignoring",
                controller_name,
                hook,
                type(result).__name__,
            )
            return None
        return result
