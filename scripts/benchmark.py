#!/usr/bin/env python3
"""Benchmark corpus indexing and query latency.

Usage:
    uv run python scripts/benchmark.py --size 10000 --queries 20
    uv run python scripts/benchmark.py --directory /path/to/project
"""

import argparse
import asyncio
import random
import string
import sys
import tempfile
import time
from pathlib import Path

# Add the src directory to the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


def format_time(seconds: float) -> str:
    """Format time in human readable format."""
    if seconds < 1:
        return f"{seconds * 1000:.1f}ms"
    return f"{seconds:.2f}s"


def synthetic_paths(size: int, seed: int = 0) -> list[str]:
    """Generate a project-like tree of relative file paths."""
    rng = random.Random(seed)
    directories = ["src", "tests", "docs", "lib", "scripts", "assets", "config"]
    extensions = ["py", "rs", "md", "txt", "toml", "json", "lua"]

    paths = set()
    while len(paths) < size:
        depth = rng.randint(1, 4)
        parts = [rng.choice(directories) for _ in range(depth)]
        name = "".join(rng.choices(string.ascii_lowercase + "_", k=rng.randint(4, 14)))
        parts.append(f"{name}.{rng.choice(extensions)}")
        paths.add("/".join(parts))
    return sorted(paths)


def collect_paths(directory: Path) -> list[str]:
    """Collect files of a real directory tree, skipping hidden entries."""
    paths = []
    for path in directory.rglob("*"):
        relative = path.relative_to(directory)
        if any(part.startswith(".") for part in relative.parts):
            continue
        if path.is_file():
            paths.append(str(relative))
    print(f"Found {len(paths)} files in {directory}")
    return paths


def make_queries(paths: list[str], count: int, seed: int = 1) -> list[str]:
    """Take queries from fragments of the corpus so most of them match something."""
    rng = random.Random(seed)
    queries = []
    for _ in range(count):
        name = Path(rng.choice(paths)).stem
        length = rng.randint(2, max(2, min(len(name), 6)))
        queries.append(name[:length])
    return queries


async def benchmark(paths: list[str], queries: list[str], root: Path) -> dict:
    """Index the corpus through the task pipeline and time each query."""
    from neo_fuzzy.search.database import Database
    from neo_fuzzy.search.messages import PreviewResult
    from neo_fuzzy.search.process import SpawnOutput
    from neo_fuzzy.search.session import FinderSession

    listing = "\n".join(paths).encode()

    async def fake_spawn(cmd, args, cwd):
        return SpawnOutput(0, listing)

    async def no_preview(path):
        return PreviewResult()

    with tempfile.TemporaryDirectory() as tmp:
        database = Database(Path(tmp) / "benchmark.db")
        session = FinderSession(database=database, spawn_fn=fake_spawn, preview_fn=no_preview)

        print(f"  Indexing {len(paths)} paths...", end=" ", flush=True)
        index_start = time.perf_counter()
        session.open("files", root)
        await session.wait_idle()
        index_time = time.perf_counter() - index_start
        print(format_time(index_time))

        print(f"  Running {len(queries)} queries...", end=" ", flush=True)
        query_times = []
        result_counts = []
        for query in queries:
            q_start = time.perf_counter()
            session.set_query(query)
            await session.wait_idle()
            query_times.append(time.perf_counter() - q_start)
            result_counts.append(len(session.snapshot.lines))
        avg_query_time = sum(query_times) / len(query_times) * 1000  # ms
        print(f"{avg_query_time:.1f}ms avg")

        await session.close()
        database.close()

    query_times.sort()
    return {
        "size": len(paths),
        "index_time": index_time,
        "query_avg_ms": avg_query_time,
        "query_p50_ms": query_times[len(query_times) // 2] * 1000,
        "query_max_ms": query_times[-1] * 1000,
        "results_avg": sum(result_counts) / len(result_counts),
    }


def print_results_table(results: list[dict]):
    """Print benchmark results in a table format."""
    print("\n" + "=" * 70)
    print("BENCHMARK RESULTS")
    print("=" * 70)

    print(f"{'Corpus':>8} {'Index':>10} {'Avg':>10} {'p50':>10} {'Max':>10} {'Results':>9}")
    print("-" * 70)

    for r in results:
        print(
            f"{r['size']:>8} "
            f"{format_time(r['index_time']):>10} "
            f"{r['query_avg_ms']:>8.1f}ms "
            f"{r['query_p50_ms']:>8.1f}ms "
            f"{r['query_max_ms']:>8.1f}ms "
            f"{r['results_avg']:>9.0f}"
        )

    print("=" * 70)
    print("\nNotes:")
    print("  - Index: Time to populate the corpus from the listing")
    print("  - Avg/p50/Max: Time from query change until the state is merged")
    print("  - Results: Average number of lines returned (capped at 300)")


def main():
    parser = argparse.ArgumentParser(description="Benchmark corpus indexing and query latency")
    parser.add_argument(
        "--size",
        "-s",
        type=int,
        nargs="+",
        default=[1000, 10000, 50000],
        help="Synthetic corpus sizes to benchmark (default: 1000 10000 50000)",
    )
    parser.add_argument(
        "--directory",
        "-d",
        type=Path,
        default=None,
        help="Benchmark the files of a real directory instead of a synthetic corpus",
    )
    parser.add_argument(
        "--queries",
        "-q",
        type=int,
        default=10,
        help="Number of queries to test (default: 10)",
    )
    args = parser.parse_args()

    if args.directory is not None:
        if not args.directory.is_dir():
            print(f"Error: Directory does not exist: {args.directory}")
            sys.exit(1)
        corpora = [(collect_paths(args.directory), args.directory)]
    else:
        root = Path(tempfile.gettempdir())
        corpora = [(synthetic_paths(size), root) for size in args.size]

    results = []
    for i, (paths, root) in enumerate(corpora, 1):
        if not paths:
            print("Error: No files found")
            sys.exit(1)
        print(f"[{i}/{len(corpora)}] {len(paths)} paths")
        queries = make_queries(paths, args.queries)
        results.append(asyncio.run(benchmark(paths, queries, root)))
        print()

    print_results_table(results)


if __name__ == "__main__":
    main()
