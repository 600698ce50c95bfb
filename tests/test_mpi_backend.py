import numpy as np
import pytest

MPI = pytest.importorskip("mpi4py.MPI")

from parallel_canny import canny, run_threaded  # noqa: E402
from parallel_canny.mpi_backend import MPIWorker  # noqa: E402


@pytest.fixture
def worker():
    return MPIWorker(MPI.COMM_SELF)


def test_single_rank_collectives(worker):
    assert (worker.rank, worker.size, worker.is_leader) == (0, 1, True)
    block = np.arange(12, dtype=np.int16).reshape(3, 4)
    np.testing.assert_array_equal(worker.allgather_rows(block, [3]), block)
    np.testing.assert_array_equal(worker.allreduce_sum(block), block)
    np.testing.assert_array_equal(worker.reduce_sum(block), block)
    assert worker.bcast({"a": 1}) == {"a": 1}


def test_float_rows_gather(worker):
    block = np.linspace(0, 1, 10, dtype=np.float32).reshape(2, 5)
    gathered = worker.allgather_rows(block, [2])
    assert gathered.dtype == np.float32
    np.testing.assert_array_equal(gathered, block)


def test_mpi_and_threads_agree(worker, shapes_image):
    via_mpi = canny(worker, shapes_image, 1.0, 0.3, 0.7)
    via_threads = run_threaded(2, canny, shapes_image, 1.0, 0.3, 0.7)[0]
    np.testing.assert_array_equal(via_mpi.edge, via_threads.edge)
    assert via_mpi.high_threshold == via_threads.high_threshold
