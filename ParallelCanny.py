import argparse
import os
import sys
import time

import cv2
import matplotlib.pyplot as plt

from parallel_canny.collective import run_threaded
from parallel_canny.errors import CannyError
from parallel_canny.pgm import output_name, read_pgm, write_direction, write_pgm
from parallel_canny.pipeline import DEFAULT_SIGMA, DEFAULT_THIGH, DEFAULT_TLOW, canny
from parallel_canny.utils import set_verbosity, setup_logger

logger = setup_logger("parallel_canny.driver")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Canny edge detection split across a group of MPI processes (or threads).",
        epilog="Example: mpirun -n 4 python ParallelCanny.py image.pgm 1.0 0.3 0.7",
    )
    parser.add_argument("image", help="An image to process. Must be in binary PGM format.")
    parser.add_argument("sigma", type=float, nargs="?", default=DEFAULT_SIGMA,
                        help="Standard deviation of the gaussian blur kernel.")
    parser.add_argument("tlow", type=float, nargs="?", default=DEFAULT_TLOW,
                        help="Fraction (0.0-1.0) of the high edge strength threshold.")
    parser.add_argument("thigh", type=float, nargs="?", default=DEFAULT_THIGH,
                        help="Fraction (0.0-1.0) of the distribution of non-zero edge "
                             "strengths used to compute the high edge strength threshold.")
    parser.add_argument("--direction", action="store_true",
                        help="Also write a floating point gradient direction image (.fim).")
    parser.add_argument("--output", help="Edge image path (default: derived from the input name).")
    parser.add_argument("--threads", type=int, metavar="N",
                        help="Run N workers as threads in this process instead of using MPI.")
    parser.add_argument("--show", action="store_true", help="Display the original and edge images.")
    parser.add_argument("--compare", type=int, nargs=2, metavar=("LOW", "HIGH"),
                        help="Also run cv2.Canny with these thresholds and save both results.")
    parser.add_argument("--verbose", action="store_true", help="Log per-process progress.")
    return parser.parse_args(argv)


def parallel_canny_edges(ctx, args):
    """Read the image, run the detector on every worker, write the results on rank 0."""
    rank = ctx.rank
    logger.debug(f"[Process {rank}/{ctx.size}] Starting. Current directory: {os.getcwd()}")

    # All processes read the image
    try:
        image = read_pgm(args.image)
    except (OSError, CannyError) as exc:
        logger.error(f"[Process {rank}] ERROR: Could not read image at {args.image}: {exc}")
        ctx.abort(1)
        raise
    logger.debug(f"[Process {rank}] Successfully read image of shape {image.shape}")

    start_time = time.time()
    result = canny(ctx, image, args.sigma, args.tlow, args.thigh, want_direction=args.direction)
    if not ctx.is_leader:
        return None

    logger.info(f"Edge detection completed in {time.time() - start_time:.2f} seconds")
    outfile = args.output or output_name(args.image, args.sigma, args.tlow, args.thigh, "pgm")
    logger.info(f"[Process {rank}] Writing the edge image in the file {outfile}")
    write_pgm(outfile, result.edge)
    if result.direction is not None:
        dirfile = output_name(args.image, args.sigma, args.tlow, args.thigh, "fim")
        logger.info(f"[Process {rank}] Writing the gradient direction image in the file {dirfile}")
        write_direction(dirfile, result.direction)
    return image, result, outfile


def show_results(image, edges, title="Edge Image (Parallel)", save_path=None):
    plt.figure(figsize=(12, 6))
    plt.subplot(121), plt.imshow(image, cmap='gray')
    plt.title('Original Image'), plt.xticks([]), plt.yticks([])
    plt.subplot(122), plt.imshow(edges, cmap='gray')
    plt.title(title), plt.xticks([]), plt.yticks([])
    plt.tight_layout()
    if save_path:
        plt.savefig(save_path)
        plt.close()
    else:
        plt.show()


def compare_with_opencv(image, edges, elapsed, low, high, outfile, show=False):
    """Run cv2.Canny on the same image and put both edge maps side by side."""
    cv_start = time.time()
    cv_edges = cv2.Canny(image, low, high)
    cv_time = time.time() - cv_start
    logger.info(f"OpenCV sequential implementation time: {cv_time:.4f} seconds")

    # Our maps mark edges with 0; flip so both show white edges on black.
    ours = 255 - edges
    plt.figure(figsize=(12, 6))
    plt.subplot(121), plt.imshow(ours, cmap='gray')
    plt.title(f'Our Parallel Implementation ({elapsed:.2f}s)'), plt.xticks([]), plt.yticks([])
    plt.subplot(122), plt.imshow(cv_edges, cmap='gray')
    plt.title(f'OpenCV Implementation ({cv_time:.2f}s)'), plt.xticks([]), plt.yticks([])
    plt.tight_layout()
    if show:
        plt.show()
    else:
        plt.close()

    base, _ = os.path.splitext(outfile)
    cv_path = f"{base}_opencv.pgm"
    write_pgm(cv_path, cv_edges)
    return cv_path


def make_context():
    from parallel_canny.mpi_backend import MPIWorker

    return MPIWorker()


def run(ctx, args):
    total_start = time.time()
    outcome = parallel_canny_edges(ctx, args)
    if outcome is None:
        return None
    image, result, outfile = outcome
    elapsed = time.time() - total_start
    logger.info(f"Total processing time: {elapsed:.2f} seconds")
    return image, result, outfile, elapsed


def present(outcome, args):
    """Display and compare on the leader, from the main thread."""
    image, result, outfile, elapsed = outcome
    if args.show:
        show_results(image, result.edge)
    if args.compare:
        low, high = args.compare
        compare_with_opencv(image, result.edge, elapsed, low, high, outfile, show=args.show)


def main(argv=None):
    """Run parallel Canny edge detection"""
    args = parse_args(argv)
    set_verbosity(args.verbose)

    if args.threads:
        logger.info(f"=== Starting parallel Canny edge detection with {args.threads} threads ===")
        try:
            outcome = run_threaded(args.threads, run, args)[0]
        except (OSError, CannyError) as exc:
            logger.error(f"Edge detection failed: {exc}")
            return 1
        present(outcome, args)
        return 0

    ctx = make_context()
    if ctx.is_leader:
        logger.info(f"=== Starting parallel Canny edge detection with {ctx.size} processes ===")
    ctx.barrier()
    outcome = run(ctx, args)
    if outcome is not None:
        present(outcome, args)
    return 0


if __name__ == "__main__":
    sys.exit(main())
