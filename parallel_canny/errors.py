"""Exception types raised by the edge detector."""


class CannyError(Exception):
    """Base class for every error raised by parallel_canny."""


class InvalidParameterError(CannyError, ValueError):
    """A detector parameter or the input raster is unusable."""


class PGMFormatError(CannyError):
    """A raster file is not a binary PGM image."""


class StageError(CannyError):
    """A pipeline stage failed on some worker and the group was aborted."""

    def __init__(self, stage: str, rank: int, message: str = ""):
        self.stage = stage
        self.rank = rank
        detail = f": {message}" if message else ""
        super().__init__(f"[Process {rank}] stage '{stage}' failed{detail}")
