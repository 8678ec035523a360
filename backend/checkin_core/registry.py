from __future__ import annotations

HOOK_NAMES = ("preprocess", "postprocess")


class ControllerRegistry:
    def __init__(self) -> None:
        self._controllers: dict[str, object] = {}
        self._aliases: dict[str, str] = {}

    def register(self, name: str, controller: object) -> None:
        if not any(callable(getattr(controller, hook, None)) for hook in HOOK_NAMES):
            raise TypeError(f"Controller '{name}' defines neither preprocess nor postprocess")
        self._controllers[name] = controller

    def add_alias(self, alias: str, target: str) -> None:
        self._aliases[alias] = target

    def get(self, name: str | None) -> object | None:
        if not name:
            return None
        return self._controllers.get(self._aliases.get(name, name))

    def resolve(self, name: str) -> object:
        controller = self.get(name)
        if controller is None:
            raise KeyError(f"Controller not found: {name}")
        return controller

    def names(self) -> list[str]:
        return sorted({*self._controllers.keys(), *self._aliases.keys()})

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None
