import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, List, Optional, Tuple


def get_max_workers(max_workers: Optional[int] = None) -> int:
    if max_workers is not None and max_workers > 0:
        return max_workers

    cpu_count = os.cpu_count() or 4
    return min(cpu_count, 32)


def _run_one(fn: Callable, src: str, dst: str) -> Tuple[str, Optional[str]]:
    fname = os.path.basename(src)
    try:
        fn(src, dst)
        return (fname, None)
    except (OSError, ValueError) as e:
        return (fname, str(e))


def parallel_convert(
    fn: Callable,
    jobs: List[Tuple[str, str]],
    max_workers: Optional[int] = None,
) -> List[Tuple[str, str]]:
    """Run fn(src, dst) for every job on a thread pool; return (name, error) failures."""
    if not jobs:
        return []

    workers = min(get_max_workers(max_workers), len(jobs))
    errors = []
    completed = 0
    total = len(jobs)

    print(f"[PARALLEL] Converting {total} files with {workers} threads...")

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {
            executor.submit(_run_one, fn, src, dst): src for src, dst in jobs
        }

        for future in as_completed(futures):
            fname, error = future.result()
            completed += 1

            if error:
                errors.append((fname, error))
                print(f"  [{completed}/{total}] FAIL: {fname}")
            else:
                print(f"  [{completed}/{total}] OK: {fname}")

    print(f"[PARALLEL] Conversion complete: {total - len(errors)}/{total} files")
    return errors
