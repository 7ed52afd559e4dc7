class SnapClassError(Exception):
    """Base class for errors raised by snapclass itself."""


class CaptureError(SnapClassError):
    pass


class ExtractorLoadError(SnapClassError):
    pass


class ExtractorNotReadyError(SnapClassError):
    """Raised when the extractor is used before load() has completed."""


class InsufficientDataError(SnapClassError):
    def __init__(self, required, available):
        super().__init__(
            f'At least {required} total images needed (example: '
            f'{required // 2}A + {required - required // 2}B), have {available}'
        )
        self.required = required
        self.available = available


class NotTrainedError(SnapClassError):
    pass


class TrainingInProgressError(SnapClassError):
    pass
