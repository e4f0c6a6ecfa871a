__all__ = [
    "BackendError",
    "StoreError",
]


class BackendError(Exception):
    """
    Raised when the remote backend fails to perform an operation.

    Examples:

    - `gdrive` exits with a non-zero status, e.g. authentication expired
    - `gdrive` executable could not be launched
    """

    output: str

    def __init__(self, output: str, *, command: list[str] | None = None):
        self.output = output
        self.command = command
        super().__init__(output or "backend command failed")


class StoreError(Exception):
    """
    Raised when the metadata store file can't be read, parsed or written.
    """

    def __init__(self, message: str, *, path: object = None):
        self.path = path
        super().__init__(f"{message}: '{path}'" if path else message)
