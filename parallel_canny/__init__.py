"""Canny edge detection shared out across a group of cooperating workers."""

from parallel_canny.collective import PartitionPlan, ThreadGroup, WorkerContext, run_threaded
from parallel_canny.errors import CannyError, InvalidParameterError, PGMFormatError, StageError
from parallel_canny.kernel import make_gaussian_kernel
from parallel_canny.pipeline import CannyResult, canny
from parallel_canny.suppression import EDGE, NO_EDGE, POSSIBLE_EDGE

__all__ = [
    "CannyError",
    "CannyResult",
    "EDGE",
    "InvalidParameterError",
    "NO_EDGE",
    "PGMFormatError",
    "POSSIBLE_EDGE",
    "PartitionPlan",
    "StageError",
    "ThreadGroup",
    "WorkerContext",
    "canny",
    "make_gaussian_kernel",
    "run_threaded",
]
