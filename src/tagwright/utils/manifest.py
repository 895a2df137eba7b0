"""
Build manifest.

Every status change of a document (started, rewritten, failed, cancelled) is
appended as one JSON line to `<output>/manifest.jsonl`. Reading the file
back gives the latest state per source document, which is what `tagwright
status` prints.
"""

import json
import os
from collections import Counter
from dataclasses import asdict, dataclass, fields
from typing import Dict, Iterator, Optional, Set, Tuple


DEFAULT_MANIFEST_NAME = "manifest.jsonl"

STATUS_STARTED = "started"
STATUS_REWRITTEN = "rewritten"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"


@dataclass
class ManifestRecord:
    source: str
    status: str
    output_path: Optional[str] = None
    tags_rewritten: int = 0
    started_at: float = 0.0
    finished_at: float = 0.0
    error: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ManifestRecord":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


class Manifest:
    def __init__(self, output_dir: str, name: str = DEFAULT_MANIFEST_NAME):
        os.makedirs(output_dir, exist_ok=True)
        self.path = os.path.join(output_dir, name)

    def append(self, rec: ManifestRecord) -> None:
        line = json.dumps(asdict(rec), ensure_ascii=False)
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(line + "\n")

    def iter_records(self) -> Iterator[ManifestRecord]:
        if not os.path.exists(self.path):
            return
        with open(self.path, 'r', encoding='utf-8') as f:
            for line in f:
                if not line.strip():
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError:
                    # Last line of an interrupted build
                    continue
                if data.get('source'):
                    yield ManifestRecord.from_dict(data)

    def latest(self) -> Dict[str, ManifestRecord]:
        records: Dict[str, ManifestRecord] = {}
        for rec in self.iter_records():
            records[rec.source] = rec
        return records

    def latest_status(self) -> Dict[str, str]:
        return {source: rec.status for source, rec in self.latest().items()}

    def get_status_sets(self) -> Tuple[Set[str], Set[str]]:
        """(rewritten, failed) source documents by latest status."""
        latest = self.latest_status()
        return (
            {s for s, status in latest.items() if status == STATUS_REWRITTEN},
            {s for s, status in latest.items() if status == STATUS_FAILED},
        )

    def summary(self) -> Dict[str, int]:
        latest = self.latest().values()
        counts = Counter(rec.status for rec in latest)
        return {
            'documents': sum(counts.values()),
            'rewritten': counts[STATUS_REWRITTEN],
            'failed': counts[STATUS_FAILED],
            'cancelled': counts[STATUS_CANCELLED],
            'tags': sum(rec.tags_rewritten for rec in latest if rec.status == STATUS_REWRITTEN),
        }
