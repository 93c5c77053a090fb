# scripts/maintenance.py

import argparse
import shutil
import sys
from datetime import datetime
from pathlib import Path

from config import SystemConfig
from core.embedding_codec import FORMAT_VERSION, decode, detect_version, write_index_file
from core.exceptions import ImageSearchError, NotFound


def _read_bytes(index_path: Path) -> bytes:
    if not index_path.is_file():
        raise NotFound(f"Index file not found: {index_path}")
    return index_path.read_bytes()


def verify_index(index_path: Path, max_vector_length: int) -> bool:
    """Verify index integrity"""
    try:
        data = _read_bytes(index_path)
        index = decode(data, max_vector_length=max_vector_length)
    except ImageSearchError as e:
        print(f"Index not found or corrupted: {e}")
        return False

    version = detect_version(data)
    label = "legacy (no header)" if version == 0 else f"v{version}"
    print(f"Index loaded successfully: {len(index)} images, "
          f"dimension {index.dimension}, format {label}")

    duplicates = len(index) - len(set(index.names))
    if duplicates:
        print(f"Warning: {duplicates} duplicate image names")
    return True


def upgrade_index(index_path: Path, max_vector_length: int) -> bool:
    """Rewrite a legacy index in the current versioned format"""
    data = _read_bytes(index_path)
    if detect_version(data) == FORMAT_VERSION:
        print(f"Index already uses format v{FORMAT_VERSION}")
        return True

    index = decode(data, max_vector_length=max_vector_length)

    backup_path = index_path.with_name(
        f"{index_path.name}.backup.{datetime.now().strftime('%Y%m%d_%H%M%S')}"
    )
    shutil.copy(index_path, backup_path)
    print(f"Backup created: {backup_path}")

    write_index_file(index, index_path)
    print(f"Upgraded {len(index)} embeddings to format v{FORMAT_VERSION}")
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Maintenance utilities")
    parser.add_argument('action', choices=['verify', 'upgrade'])
    parser.add_argument('--config', default='config.yaml', help='Configuration file')
    parser.add_argument('--index-path', help='Index file (defaults to config)')

    args = parser.parse_args()
    config = SystemConfig.load(args.config)
    path = Path(args.index_path or config.index.index_path)

    try:
        if args.action == 'verify':
            ok = verify_index(path, config.index.max_vector_length)
        else:
            ok = upgrade_index(path, config.index.max_vector_length)
    except ImageSearchError as e:
        print(f"Error: {e}")
        ok = False

    sys.exit(0 if ok else 1)
