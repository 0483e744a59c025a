class PortOwnerError(Exception):
    """Base exception for all the port resolution errors."""


class CommandExecutionFailedError(PortOwnerError):
    """An external tool couldn't be spawned, exited with non-zero code or timed out."""


class ProcessNotFoundError(PortOwnerError):
    def __init__(self, pid: int):
        self.pid: int = pid
        super().__init__(f"Process {pid} not found")


class PortNotFoundError(PortOwnerError):
    def __init__(self, port: int):
        self.port: int = port
        super().__init__(f"Port {port} is not in use")


class PermissionDeniedError(PortOwnerError):
    pass


class InvalidPortError(PortOwnerError):
    pass


class ParseFailureError(PortOwnerError):
    pass


class IOFailureError(PortOwnerError):
    pass


class UncategorizedError(PortOwnerError):
    pass


def get_exception_type_string(exception: Exception) -> str:
    """ Get exception type string """
    return type(exception).__name__
