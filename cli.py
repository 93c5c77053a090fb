# cli.py

import argparse
import json
import logging
import sys
from pathlib import Path

from config import SystemConfig
from core.embedding_index import EmbeddingIndex, load_or_empty
from core.exceptions import ImageSearchError
from utils.file_utils import format_file_size
from utils.logging_config import PerformanceLogger, setup_logging

logger = logging.getLogger(__name__)


def _create_encoder(config: SystemConfig):
    """Load the SigLIP2 encoder described by the config"""
    import torch
    from core.encoders import SigLIPEncoder

    device = 'cuda' if config.encoder.use_gpu and torch.cuda.is_available() else 'cpu'
    return SigLIPEncoder(
        model_name=config.encoder.model_name,
        device=device,
        max_token_length=config.encoder.max_token_length,
        image_size=config.encoder.image_size
    )


def _index_path(args, config: SystemConfig) -> Path:
    return Path(getattr(args, 'index_path', None) or config.index.index_path)


def _load_index(args, config: SystemConfig) -> EmbeddingIndex:
    return load_or_empty(_index_path(args, config),
                         max_vector_length=config.index.max_vector_length)


def _print_results(response, output: str = None):
    """Print ranked results and optionally save them as JSON"""
    if response.index_empty:
        print("Error: Embedding index is empty. Please index images first.")
        return

    print(f"\nTop {len(response.results)} of {response.corpus_size} images "
          f"({response.elapsed_ms:.1f} ms):")
    for i, result in enumerate(response.results, 1):
        print(f"{i}. {result.name} (similarity: {result.score:.4f})")

    if output:
        output_data = [
            {"name": result.name, "similarity": result.score}
            for result in response.results
        ]
        with open(output, 'w') as f:
            json.dump(output_data, f, indent=2)
        print(f"\nResults saved to: {output}")


def _run_search(args, config: SystemConfig, query_kind: str):
    from core.search import SearchOrchestrator

    index = _load_index(args, config)
    if index.is_empty:
        # Skip loading the model when there is nothing to search
        print("Error: Embedding index is empty. Please index images first.")
        return

    with _create_encoder(config) as encoder:
        orchestrator = SearchOrchestrator(encoder, index, top_k=config.search.top_k,
                                          perf_logger=args.perf)
        if query_kind == 'text':
            response = orchestrator.search_by_text(args.query, top_k=args.top_k)
        else:
            response = orchestrator.search_by_image(args.query, top_k=args.top_k)

    _print_results(response, args.output)


def search_command(args, config: SystemConfig):
    """Search images matching a text query"""
    print(f"Searching for: \"{args.query}\"")
    _run_search(args, config, 'text')


def search_image_command(args, config: SystemConfig):
    """Search images similar to a query image"""
    print(f"Searching for images similar to: {args.query}")
    _run_search(args, config, 'image')


def compare_command(args, config: SystemConfig):
    """Compare two texts"""
    from core.search import SearchOrchestrator

    with _create_encoder(config) as encoder:
        orchestrator = SearchOrchestrator(encoder)
        with args.perf.measure("text_similarity"):
            score = orchestrator.text_similarity(args.text_a, args.text_b)

    print(f"Similarity: {score:.4f}")


def index_command(args, config: SystemConfig):
    """Index images from directory"""
    from core.index_builder import IndexBuilder

    directory = args.directory or config.index.images_dir
    index_path = _index_path(args, config)
    print(f"Indexing images from: {directory}")

    with _create_encoder(config) as encoder:
        builder = IndexBuilder(
            encoder.encode_image_file,
            extensions=config.index.extensions,
            recursive=config.index.recursive,
            dimension=config.encoder.feature_dim
        )
        with args.perf.measure("build_index", directory=str(directory)):
            index = builder.build_index(directory)

    if builder.skipped:
        print(f"Skipped {len(builder.skipped)} images:")
        for path, reason in builder.skipped:
            print(f"  - {path.name}: {reason}")

    if not builder.persist(index, index_path):
        print(f"Error: Failed to save index to {index_path}")
        sys.exit(1)

    print(f"Indexed {len(index)} images into {index_path}")


def info_command(args, config: SystemConfig):
    """Show index statistics"""
    index_path = _index_path(args, config)
    index = _load_index(args, config)

    if index.is_empty:
        print(f"Index at {index_path} is empty or missing")
        return

    print(f"Index: {index_path}")
    print(f"  File size: {format_file_size(index_path.stat().st_size)}")
    print(f"  Images: {len(index)}")
    print(f"  Embedding dimension: {index.dimension}")
    duplicates = len(index) - len(set(index.names))
    if duplicates:
        print(f"  Duplicate names: {duplicates}")


def main_cli(argv=None):
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="SigLIP Image Search - Command Line Interface"
    )
    parser.add_argument('-c', '--config', default='config.yaml',
                        help='Path to YAML configuration file')
    parser.add_argument('--structured-logs', action='store_true',
                        help='Also write a JSON-lines log to the log directory')
    parser.add_argument('--metrics', help='Save timing metrics to this JSON file')
    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Index command
    index_parser = subparsers.add_parser('index', help='Index images from directory')
    index_parser.add_argument('directory', nargs='?',
                              help='Directory containing images')
    index_parser.add_argument('--index-path', help='Output index file')
    index_parser.set_defaults(func=index_command)

    # Text search command
    search_parser = subparsers.add_parser('search', help='Search images by text')
    search_parser.add_argument('query', help='Text query')
    search_parser.add_argument('-k', '--top-k', type=int, default=None,
                               help='Number of results to return')
    search_parser.add_argument('-o', '--output', help='Output JSON file for results')
    search_parser.add_argument('--index-path', help='Index file to search')
    search_parser.set_defaults(func=search_command)

    # Image search command
    image_parser = subparsers.add_parser('search-image',
                                         help='Search for similar images')
    image_parser.add_argument('query', help='Path to query image')
    image_parser.add_argument('-k', '--top-k', type=int, default=None,
                              help='Number of results to return')
    image_parser.add_argument('-o', '--output', help='Output JSON file for results')
    image_parser.add_argument('--index-path', help='Index file to search')
    image_parser.set_defaults(func=search_image_command)

    # Text comparison command
    compare_parser = subparsers.add_parser('compare', help='Compare two texts')
    compare_parser.add_argument('text_a', help='First text')
    compare_parser.add_argument('text_b', help='Second text')
    compare_parser.set_defaults(func=compare_command)

    # Info command
    info_parser = subparsers.add_parser('info', help='Show index statistics')
    info_parser.add_argument('--index-path', help='Index file to inspect')
    info_parser.set_defaults(func=info_command)

    # Parse arguments
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return

    config = SystemConfig.load(args.config)
    setup_logging(config.log_level, config.log_dir, structured=args.structured_logs)
    args.perf = PerformanceLogger()

    # Execute command
    try:
        args.func(args, config)
    except ImageSearchError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        if args.metrics and args.perf.metrics:
            args.perf.save_metrics(args.metrics)
            print(f"Metrics saved to: {args.metrics}")


if __name__ == "__main__":
    main_cli()
