"""Worker-group abstraction shared by every pipeline stage.

A stage never talks to MPI (or to threads) directly. It receives a
``WorkerContext`` carrying the rank, the group size and the collective
operations, and a ``PartitionPlan`` telling it which rows or columns it owns.
Every stage writes only its own slice and then calls exactly one combine:

* ``allgather_rows`` for buffers filled by disjoint row blocks,
* ``allreduce_sum`` / ``reduce_sum`` for full-size buffers that are zero
  outside the worker's slice.

Two backends implement the contract: ``MPIWorker`` (see ``mpi_backend``) for
process groups started by ``mpirun``, and ``ThreadWorker`` below, which runs
the same program on a pool of threads inside one process.
"""

import copy
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from functools import reduce

import numpy as np

from parallel_canny.utils import setup_logger

logger = setup_logger("parallel_canny.collective")


@dataclass(frozen=True)
class PartitionPlan:
    """Contiguous row/column ranges owned by one rank."""

    rank: int
    size: int
    rows: int
    cols: int

    @staticmethod
    def _bounds(rank, size, extent):
        return rank * extent // size, (rank + 1) * extent // size

    def row_range(self):
        return self._bounds(self.rank, self.size, self.rows)

    def col_range(self):
        return self._bounds(self.rank, self.size, self.cols)

    def row_counts(self):
        """Number of rows owned by each rank, in rank order."""
        counts = []
        for rank in range(self.size):
            start, end = self._bounds(rank, self.size, self.rows)
            counts.append(end - start)
        return counts


class WorkerContext:
    """Rank, group size and collective operations of one worker."""

    def __init__(self, rank: int, size: int):
        if size < 1 or not 0 <= rank < size:
            raise ValueError(f"invalid rank {rank} for a group of {size}")
        self.rank = rank
        self.size = size

    @property
    def is_leader(self) -> bool:
        return self.rank == 0

    def plan(self, rows: int, cols: int) -> PartitionPlan:
        return PartitionPlan(self.rank, self.size, rows, cols)

    def barrier(self):
        raise NotImplementedError

    def allgather_rows(self, local: np.ndarray, counts) -> np.ndarray:
        """Concatenate the row blocks of all ranks along axis 0."""
        raise NotImplementedError

    def allreduce_sum(self, local: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def reduce_sum(self, local: np.ndarray, root: int = 0):
        raise NotImplementedError

    def bcast(self, obj, root: int = 0):
        raise NotImplementedError

    def abort(self, errorcode: int = 1):
        raise NotImplementedError


class ThreadGroup:
    """Rendezvous point for ``size`` threads executing the same program."""

    def __init__(self, size: int):
        if size < 1:
            raise ValueError(f"a worker group needs at least one worker, got {size}")
        self.size = size
        self._barrier = threading.Barrier(size)
        self._slots = [None] * size

    def worker(self, rank: int) -> "ThreadWorker":
        return ThreadWorker(self, rank)

    def wait(self):
        self._barrier.wait()

    def exchange(self, rank: int, value):
        """Publish ``value`` and return every rank's value, in rank order."""
        self._slots[rank] = value
        self._barrier.wait()
        values = list(self._slots)
        # Second rendezvous: no slot may be overwritten before everyone read it.
        self._barrier.wait()
        return values

    def abort(self):
        self._barrier.abort()

    @property
    def broken(self) -> bool:
        return self._barrier.broken


class ThreadWorker(WorkerContext):
    """Collectives over a ``ThreadGroup``; buffers are copied, never shared."""

    def __init__(self, group: ThreadGroup, rank: int):
        super().__init__(rank, group.size)
        self.group = group

    def barrier(self):
        self.group.wait()

    def allgather_rows(self, local, counts):
        blocks = self.group.exchange(self.rank, np.array(local, copy=True))
        for rank, (block, count) in enumerate(zip(blocks, counts)):
            if block.shape[0] != count:
                raise ValueError(f"rank {rank} contributed {block.shape[0]} rows, expected {count}")
        return np.concatenate(blocks, axis=0)

    def allreduce_sum(self, local):
        buffers = self.group.exchange(self.rank, np.array(local, copy=True))
        return reduce(lambda acc, buf: np.add(acc, buf, dtype=acc.dtype), buffers)

    def reduce_sum(self, local, root=0):
        buffers = self.group.exchange(self.rank, np.array(local, copy=True))
        if self.rank != root:
            return None
        return reduce(lambda acc, buf: np.add(acc, buf, dtype=acc.dtype), buffers)

    def bcast(self, obj, root=0):
        # Root posts a snapshot, so later mutation of its own object is not seen.
        posted = copy.deepcopy(obj) if self.rank == root else None
        snapshot = self.group.exchange(self.rank, posted)[root]
        return obj if self.rank == root else copy.deepcopy(snapshot)

    def abort(self, errorcode=1):
        logger.error(f"[Process {self.rank}] aborting thread group (code {errorcode})")
        self.group.abort()


def run_threaded(size: int, target, *args, **kwargs):
    """Run ``target(ctx, *args, **kwargs)`` on ``size`` threads in lockstep.

    Returns the per-rank results in rank order. If any worker raises, the
    barrier is broken so the others stop at their next collective, and the
    first error that is not a consequence of the broken barrier is re-raised.
    """
    group = ThreadGroup(size)

    def _worker(rank):
        try:
            return target(group.worker(rank), *args, **kwargs)
        except BaseException:
            group.abort()
            raise

    with ThreadPoolExecutor(max_workers=size) as executor:
        futures = [executor.submit(_worker, rank) for rank in range(size)]
        wait(futures)

    errors = [f.exception() for f in futures if f.exception() is not None]
    if errors:
        root_causes = [e for e in errors if not _broken_barrier(e)]
        raise (root_causes or errors)[0]
    return [f.result() for f in futures]


def _broken_barrier(exc):
    return isinstance(exc, threading.BrokenBarrierError) or isinstance(
        exc.__cause__, threading.BrokenBarrierError
    )
