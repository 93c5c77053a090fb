"""
File operation utilities
"""

from pathlib import Path
from typing import Iterable, List

DEFAULT_IMAGE_EXTENSIONS = ('.jpg', '.jpeg', '.png')


def get_image_files(directory: str,
                    extensions: Iterable[str] = DEFAULT_IMAGE_EXTENSIONS,
                    recursive: bool = False,
                    sort: bool = True) -> List[Path]:
    """
    Get all image files in directory

    Suffixes are matched case-insensitively. With sort enabled the result
    is ordered by file name (then full path), independent of the order the
    filesystem lists entries in.
    """
    wanted = {ext.lower() if ext.startswith('.') else f'.{ext.lower()}'
              for ext in extensions}

    path = Path(directory)
    candidates = path.rglob('*') if recursive else path.iterdir()
    image_files = [f for f in candidates
                   if f.is_file() and f.suffix.lower() in wanted]

    if sort:
        image_files.sort(key=lambda f: (f.name, str(f)))

    return image_files


def format_file_size(size_bytes: int) -> str:
    """Format file size in human readable format"""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size_bytes < 1024.0:
            return f"{size_bytes:.2f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.2f} PB"
