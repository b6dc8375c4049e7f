"""
Benchmarks for temporary MongoDB instances: how long a test pays for one.
"""

import os
import sys
import threading
import time

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from temp_mongo import TempMongo


def benchmark_startup(runs=5, **options):
    """
    Benchmark: time from start() to a ready client, and from close() to gone.
    """
    label = "TCP" if options.get("use_tcp") else "default endpoint"
    print("\n" + "="*60)
    print(f"BENCHMARK: Startup / Teardown ({label})")
    print("="*60)

    startup_total = 0.0
    teardown_total = 0.0

    for run in range(runs):
        start = time.time()
        mongo = TempMongo.start(**options)
        startup = time.time() - start

        start = time.time()
        mongo.close()
        teardown = time.time() - start

        startup_total += startup
        teardown_total += teardown
        print(f"Run {run+1}: Startup: {startup:.3f}s | Teardown: {teardown:.3f}s")

    print(f"\nAverage startup: {startup_total / runs:.3f}s, "
          f"average teardown: {teardown_total / runs:.3f}s")


def benchmark_parallel_startup(instances=5):
    """
    Benchmark: several instances started from threads at once.
    """
    print("\n" + "="*60)
    print("BENCHMARK: Parallel Startup")
    print("="*60)

    mongos = []
    lock = threading.Lock()

    def worker():
        mongo = TempMongo.start()
        with lock:
            mongos.append(mongo)

    start = time.time()
    threads = [threading.Thread(target=worker) for _ in range(instances)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    elapsed = time.time() - start

    print(f"Instances: {len(mongos)} | Time: {elapsed:.3f}s")

    for mongo in mongos:
        mongo.close()


def benchmark_write_throughput():
    """
    Benchmark: insert throughput on a temporary instance.
    """
    print("\n" + "="*60)
    print("BENCHMARK: Write Throughput")
    print("="*60)

    with TempMongo.start() as mongo:
        collection = mongo.client["bench"]["writes"]

        for batch_size in [1, 10, 100]:
            num_writes = 1000
            start = time.time()

            if batch_size == 1:
                for i in range(num_writes):
                    collection.insert_one({"i": i})
            else:
                for b in range(num_writes // batch_size):
                    collection.insert_many([{"b": b, "i": i} for i in range(batch_size)])

            elapsed = time.time() - start
            print(f"Batch size: {batch_size:3d} | "
                  f"Writes: {num_writes} | "
                  f"Time: {elapsed:.3f}s | "
                  f"Throughput: {num_writes / elapsed:.1f} writes/sec")


def run_all_benchmarks():
    """Run all benchmarks."""
    print("\n" + "#"*60)
    print("# TEMP MONGO BENCHMARKS")
    print("#"*60)

    benchmark_startup()
    benchmark_startup(use_tcp=True)
    benchmark_parallel_startup()
    benchmark_write_throughput()

    print("\n" + "#"*60)
    print("# BENCHMARKS COMPLETE")
    print("#"*60)


if __name__ == "__main__":
    run_all_benchmarks()
