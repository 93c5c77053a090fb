# benchmarks/performance_tests.py

import time
import numpy as np
from pathlib import Path
from typing import List, Dict
import matplotlib.pyplot as plt
from core.embedding_codec import decode, encode
from core.embedding_index import EmbeddingIndex
from core.search import SearchOrchestrator
from core.similarity import score_batch


def make_index(n_images: int, dimension: int = 768, seed: int = 0) -> EmbeddingIndex:
    """Random index of n_images embeddings"""
    rng = np.random.default_rng(seed)
    vectors = rng.standard_normal((n_images, dimension)).astype(np.float32)
    return EmbeddingIndex(
        (f"image_{i:06d}.jpg", vector) for i, vector in enumerate(vectors)
    )


class PerformanceBenchmark:
    """
    Benchmark suite for performance testing
    """

    def __init__(self, dimension: int = 768):
        self.dimension = dimension
        self.results = {}

    def benchmark_scoring(self,
                          corpus_sizes: List[int] = [100, 1000, 10000],
                          n_queries: int = 20) -> Dict:
        """Benchmark score_batch for different corpus sizes"""
        rng = np.random.default_rng(1)
        results = {}

        for n in corpus_sizes:
            matrix = make_index(n, self.dimension).as_matrix()
            queries = rng.standard_normal((n_queries, self.dimension)).astype(np.float32)
            times = []

            for query in queries:
                start = time.time()
                _ = score_batch(query, matrix)
                elapsed = time.time() - start
                times.append(elapsed)

            results[f'N={n}'] = {
                'mean_time': np.mean(times),
                'queries_per_second': n_queries / np.sum(times)
            }

        self.results['scoring'] = results
        return results

    def benchmark_search(self,
                         n_images: int = 10000,
                         k_values: List[int] = [1, 5, 10, 50],
                         n_queries: int = 20) -> Dict:
        """Benchmark full search (score, rank, top-k) for different k values"""
        index = make_index(n_images, self.dimension)
        orchestrator = SearchOrchestrator(encoder=None, index=index)
        rng = np.random.default_rng(2)
        queries = rng.standard_normal((n_queries, self.dimension)).astype(np.float32)
        results = {}

        for k in k_values:
            times = []

            for query in queries:
                start = time.time()
                _ = orchestrator.search_by_embedding(query, top_k=k)
                elapsed = time.time() - start
                times.append(elapsed)

            results[f'k={k}'] = {
                'mean_time': np.mean(times),
                'queries_per_second': n_queries / np.sum(times)
            }

        self.results['search'] = results
        return results

    def benchmark_codec(self, corpus_sizes: List[int] = [100, 1000, 10000]) -> Dict:
        """Benchmark index serialization"""
        results = {}

        for n in corpus_sizes:
            index = make_index(n, self.dimension)

            start = time.time()
            data = encode(index)
            encode_time = time.time() - start

            start = time.time()
            _ = decode(data)
            decode_time = time.time() - start

            results[f'N={n}'] = {
                'encode_time': encode_time,
                'decode_time': decode_time,
                'size_mb': len(data) / (1024 ** 2)
            }

        self.results['codec'] = results
        return results

    def benchmark_memory_usage(self, operation_func, *args) -> Dict:
        """Benchmark memory usage of operation"""
        import psutil
        import os

        process = psutil.Process(os.getpid())

        # Measure before
        mem_before = process.memory_info().rss / (1024 ** 2)  # MB

        # Run operation
        start = time.time()
        operation_func(*args)
        elapsed = time.time() - start

        # Measure after
        mem_after = process.memory_info().rss / (1024 ** 2)  # MB

        return {
            'memory_before_mb': mem_before,
            'memory_after_mb': mem_after,
            'memory_increase_mb': mem_after - mem_before,
            'execution_time': elapsed
        }

    def generate_report(self, output_path: str = "benchmark_report.html"):
        """Generate HTML report with benchmark results"""
        html = """
        <!DOCTYPE html>
        <html>
        <head>
            <title>Search Benchmark Report</title>
            <style>
                body { font-family: Arial, sans-serif; margin: 40px; }
                .benchmark-section { margin: 30px 0; padding: 20px; background: #f5f5f5; }
                table { width: 100%; border-collapse: collapse; }
                th, td { padding: 8px; text-align: left; border-bottom: 1px solid #ddd; }
            </style>
        </head>
        <body>
            <h1>Search Benchmark Report</h1>
            <p>Generated: """ + time.strftime("%Y-%m-%d %H:%M:%S") + """</p>
        """

        for benchmark_name, results in self.results.items():
            html += f"""
            <div class="benchmark-section">
                <h2>{benchmark_name.replace('_', ' ').title()}</h2>
                <table>
                    <tr><th>Metric</th><th>Value</th></tr>
            """

            for key, value in results.items():
                if isinstance(value, dict):
                    html += f"<tr><td colspan='2'><strong>{key}</strong></td></tr>"
                    for sub_key, sub_value in value.items():
                        html += f"<tr><td>&nbsp;&nbsp;{sub_key}</td><td>{sub_value:.4f}</td></tr>"
                else:
                    html += f"<tr><td>{key}</td><td>{value:.4f}</td></tr>"

            html += "</table></div>"

        html += "</body></html>"

        with open(output_path, 'w') as f:
            f.write(html)

        print(f"Benchmark report saved to: {output_path}")

    def plot_results(self, output_dir: str = "benchmark_plots"):
        """Generate visualization plots for benchmark results"""
        Path(output_dir).mkdir(exist_ok=True)

        if 'scoring' in self.results:
            sizes = list(self.results['scoring'].keys())
            qps = [self.results['scoring'][s]['queries_per_second'] for s in sizes]

            plt.figure(figsize=(10, 6))
            plt.plot(sizes, qps, marker='o', linewidth=2, markersize=8)
            plt.xlabel('Corpus Size')
            plt.ylabel('Queries per Second')
            plt.title('Scoring Throughput vs Corpus Size')
            plt.grid(True, alpha=0.3)
            plt.tight_layout()
            plt.savefig(Path(output_dir) / 'scoring.png', dpi=150)
            plt.close()

        if 'codec' in self.results:
            sizes = list(self.results['codec'].keys())
            encode_times = [self.results['codec'][s]['encode_time'] for s in sizes]
            decode_times = [self.results['codec'][s]['decode_time'] for s in sizes]

            plt.figure(figsize=(10, 6))
            plt.plot(sizes, encode_times, marker='o', label='encode')
            plt.plot(sizes, decode_times, marker='s', label='decode')
            plt.xlabel('Corpus Size')
            plt.ylabel('Time (seconds)')
            plt.title('Index Codec Performance')
            plt.legend()
            plt.tight_layout()
            plt.savefig(Path(output_dir) / 'codec.png', dpi=150)
            plt.close()

        print(f"Plots saved to: {output_dir}")


def run_benchmarks():
    """Run complete benchmark suite"""
    print("Starting performance benchmarks...")

    benchmark = PerformanceBenchmark()

    print("\n1. Benchmarking scoring...")
    for size, stats in benchmark.benchmark_scoring().items():
        print(f"   {size}: {stats['queries_per_second']:.1f} queries/sec")

    print("\n2. Benchmarking search...")
    for k, stats in benchmark.benchmark_search().items():
        print(f"   {k}: {stats['mean_time'] * 1000:.2f} ms/query")

    print("\n3. Benchmarking codec...")
    for size, stats in benchmark.benchmark_codec().items():
        print(f"   {size}: encode {stats['encode_time']:.3f}s, "
              f"decode {stats['decode_time']:.3f}s")

    print("\n4. Measuring memory for a 50k image index...")
    memory = benchmark.benchmark_memory_usage(make_index, 50000)
    print(f"   Increase: {memory['memory_increase_mb']:.1f} MB")

    print("\n5. Generating reports...")
    benchmark.generate_report()
    benchmark.plot_results()

    print("\nBenchmarks complete!")

if __name__ == "__main__":
    run_benchmarks()
