"""Collectives over an mpi4py communicator."""

import numpy as np
from mpi4py import MPI
from mpi4py.util.dtlib import from_numpy_dtype

from parallel_canny.collective import WorkerContext
from parallel_canny.utils import setup_logger

logger = setup_logger("parallel_canny.mpi")


class MPIWorker(WorkerContext):
    """One rank of an MPI process group (``MPI.COMM_WORLD`` by default)."""

    def __init__(self, comm=None):
        self.comm = comm if comm is not None else MPI.COMM_WORLD
        super().__init__(self.comm.Get_rank(), self.comm.Get_size())

    def barrier(self):
        self.comm.Barrier()

    def allgather_rows(self, local, counts):
        local = np.ascontiguousarray(local)
        row_shape = local.shape[1:]
        row_items = int(np.prod(row_shape, dtype=np.int64))
        full = np.empty((sum(counts),) + row_shape, dtype=local.dtype)

        sizes = [count * row_items for count in counts]
        displs = [sum(sizes[:rank]) for rank in range(len(sizes))]
        datatype = from_numpy_dtype(local.dtype)
        self.comm.Allgatherv([local, datatype], [full, sizes, displs, datatype])
        return full

    def allreduce_sum(self, local):
        local = np.ascontiguousarray(local)
        result = np.empty_like(local)
        self.comm.Allreduce(local, result, op=MPI.SUM)
        return result

    def reduce_sum(self, local, root=0):
        local = np.ascontiguousarray(local)
        result = np.empty_like(local) if self.rank == root else None
        self.comm.Reduce(local, result, op=MPI.SUM, root=root)
        return result

    def bcast(self, obj, root=0):
        return self.comm.bcast(obj, root=root)

    def abort(self, errorcode=1):
        logger.error(f"[Process {self.rank}] aborting MPI group (code {errorcode})")
        self.comm.Abort(errorcode)
