from __future__ import annotations


class CheckinError(Exception):
    pass


class GraphValidationError(CheckinError):
    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("Check-in graph validation errors:\n" + "\n".join(self.errors))


class SessionNotFoundError(CheckinError):
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class NodeNotFoundError(CheckinError):
    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Node not found: {node_id}")


class SessionClosedError(CheckinError):
    def __init__(self, session_id: str, status: str) -> None:
        self.session_id = session_id
        self.status = status
        super().__init__(f"Session {session_id} is {status}")


class ControllerHookError(CheckinError):
    def __init__(self, controller_name: str, hook: str, node_id: str, cause: BaseException) -> None:
        self.controller_name = controller_name
        self.hook = hook
        self.node_id = node_id
        self.cause = cause
        super().__init__(f"{controller_name}.{hook} failed at {node_id}: {cause}")


class RegexCompilationError(CheckinError):
    def __init__(self, pattern: str, cause: BaseException) -> None:
        self.pattern = pattern
        super().__init__(f"Invalid regex pattern {pattern!r}: {cause}")


class GenerationError(CheckinError):
    pass


class GenerationTimeoutError(GenerationError):
    pass


class GenerationTransportError(GenerationError):
    pass


class SessionExistsError(CheckinError):
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session already exists: {session_id}")
