"""JSONL writers for session artifacts."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional, TextIO


class JSONLWriter:
    """Writes records to a JSONL file, one flushed line per record."""

    def __init__(self, output_path: Path):
        self.output_path = output_path
        self._file: Optional[TextIO] = None

    def __enter__(self):
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.output_path, 'w', encoding='utf-8')
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._file:
            self._file.close()
            self._file = None

    def write_record(self, record: Any):
        """Write a dict, or anything with ``to_dict()``, as one JSON line."""
        if self._file:
            data = record.to_dict() if hasattr(record, "to_dict") else record
            self._file.write(json.dumps(data, ensure_ascii=False) + '\n')
            self._file.flush()

    def write_records(self, records: Iterable[Any]):
        for record in records:
            self.write_record(record)


def read_jsonl(path: Path) -> list[dict]:
    """Load every record of a JSONL file, skipping blank lines."""
    with open(path, encoding='utf-8') as f:
        return [json.loads(line) for line in f if line.strip()]


def generate_output_filename(prefix: str, when: Optional[datetime] = None) -> str:
    """Timestamped filename, e.g. ``conversation_2026-10-18T10-31-05.jsonl``."""
    when = when or datetime.now()
    return f"{prefix}_{when.strftime('%Y-%m-%dT%H-%M-%S')}.jsonl"
