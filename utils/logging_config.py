# utils/logging_config.py

import json
import logging
import logging.handlers
import sys
import time
from collections import deque
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

import numpy as np

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: str = "INFO",
                  log_dir: Optional[str] = "logs",
                  structured: bool = False):
    """
    Setup application logging

    Logs go to stdout and, when log_dir is set, to a rotating file.
    With structured enabled a JSON-lines log is written alongside.
    """
    handlers = [logging.StreamHandler(sys.stdout)]

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path / "image_search.log",
            maxBytes=10*1024*1024,  # 10 MB
            backupCount=5
        )
        handlers.append(file_handler)

        if structured:
            json_handler = logging.handlers.RotatingFileHandler(
                log_path / "image_search_structured.json",
                maxBytes=10*1024*1024,
                backupCount=5
            )
            json_handler.setFormatter(JSONFormatter())
            handlers.append(json_handler)

    for handler in handlers:
        if handler.formatter is None:
            handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=handlers,
        force=True
    )


class JSONFormatter(logging.Formatter):
    """Format logs as JSON"""

    def format(self, record):
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class PerformanceLogger:
    """
    Log performance metrics

    Only the most recent max_entries metrics are kept.
    """

    def __init__(self, max_entries: int = 1000):
        self.metrics = deque(maxlen=max_entries)

    def log_metric(self, operation: str, duration: float, **metadata):
        """Log a performance metric"""
        metric = {
            'timestamp': datetime.now().isoformat(),
            'operation': operation,
            'duration_seconds': duration,
            **metadata
        }
        self.metrics.append(metric)

    @contextmanager
    def measure(self, operation: str, **metadata):
        """Time the enclosed block and record it under operation"""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.log_metric(operation, time.perf_counter() - start, **metadata)

    def save_metrics(self, output_path: str):
        """Save metrics to JSON file"""
        with open(output_path, 'w') as f:
            json.dump(list(self.metrics), f, indent=2)

    def get_statistics(self, operation: str = None) -> dict:
        """Get statistics for operations"""
        if operation:
            durations = [m['duration_seconds'] for m in self.metrics
                         if m['operation'] == operation]
        else:
            durations = [m['duration_seconds'] for m in self.metrics]

        if not durations:
            return {}

        return {
            'count': len(durations),
            'mean': float(np.mean(durations)),
            'median': float(np.median(durations)),
            'min': float(np.min(durations)),
            'max': float(np.max(durations)),
            'std': float(np.std(durations)),
            'total': float(np.sum(durations))
        }
