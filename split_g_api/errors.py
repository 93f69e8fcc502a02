class SplitGError(Exception):
    """Base class for errors raised while scoring a pour."""


class ConfigError(SplitGError):
    pass


class InvalidImage(SplitGError):
    pass


class InferenceError(SplitGError):
    pass


class StorageError(SplitGError):
    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status
