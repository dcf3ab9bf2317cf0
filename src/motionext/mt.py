from __future__ import annotations
from typing import Dict, Optional
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
import logging
import threading
import numpy as np

from .core import MotionExtractor
from .pipeline import RunStats

logger = logging.getLogger(__name__)

def run_parallel(
    extractor: MotionExtractor,
    fs,                      # FrameSource
    sink,                    # FrameSink
    workers: int = 2,
    max_futures: int = 32,
    stop: Optional[threading.Event] = None,
) -> RunStats:
    """
    Data-parallel execution of the compare/composite stage.

    Reference selection stays on the calling thread because the delay
    buffer must see frames in order; the pixel work for each frame is
    submitted to a thread pool. Results are written in input order and at
    most max_futures tasks are in flight.
    """
    if workers < 1 or max_futures < 1:
        raise ValueError("workers and max_futures must be >= 1")

    stats = RunStats()
    next_write = 0
    futures: Dict[int, Future] = {}     # idx -> Future
    results: Dict[int, np.ndarray] = {} # idx -> processed frame

    def drain_ready(block: bool = False) -> None:
        nonlocal next_write
        if block and futures:
            wait(futures.values(), return_when=FIRST_COMPLETED)
        done = [idx for idx, fut in list(futures.items()) if fut.done()]
        for idx in done:
            # re-raises worker exceptions on the calling thread
            results[idx] = futures.pop(idx).result()
        while next_write in results:
            sink.write(results.pop(next_write))
            next_write += 1
            stats.frames_written += 1

    with ThreadPoolExecutor(max_workers=workers) as ex:
        idx = 0
        try:
            while True:
                if stop is not None and stop.is_set():
                    stats.cancelled = True
                    break
                ok, frame = fs.read()
                if not ok:
                    break
                stats.frames_read += 1

                reference = extractor.next_reference(frame)
                if reference is None:
                    continue

                # Backpressure: don't exceed max_futures in flight
                while len(futures) >= max_futures:
                    drain_ready(block=True)

                futures[idx] = ex.submit(extractor.composite, frame, reference)
                idx += 1
                drain_ready()

            # End of stream (or stop): finish what was submitted, in order
            while futures:
                drain_ready(block=True)
            drain_ready()
        finally:
            for fut in futures.values():
                fut.cancel()

    logger.debug("parallel run finished with %d worker(s)", workers)
    return stats
