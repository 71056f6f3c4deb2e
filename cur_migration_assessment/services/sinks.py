"""
Overflow sinks that hold workload records outside the parser's working set.
"""

import asyncio
from pathlib import Path
from typing import List, Protocol, Union

from ..models.workloads import WorkloadRecord
from ..utils.logging import get_logger

logger = get_logger(__name__)


class RecordSink(Protocol):
    """Async persistence used when the in-memory record map grows too large"""

    async def save(self, record: WorkloadRecord) -> None:
        ...

    async def find_all(self) -> List[WorkloadRecord]:
        ...


class InMemoryRecordSink:
    """Keeps flushed records in a list; useful for tests and small runs"""

    def __init__(self):
        self.records: List[WorkloadRecord] = []
        self.save_calls = 0

    async def save(self, record: WorkloadRecord) -> None:
        self.save_calls += 1
        self.records.append(record)

    async def find_all(self) -> List[WorkloadRecord]:
        return list(self.records)


class JsonLinesRecordSink:
    """Appends records to a JSON Lines file, one record per line.

    Writes are buffered and performed off the event loop.
    """

    def __init__(self, path: Union[str, Path], buffer_size: int = 1000):
        self.path = Path(path)
        self.buffer_size = buffer_size
        self._pending: List[str] = []
        self.path.parent.mkdir(parents=True, exist_ok=True)

    async def save(self, record: WorkloadRecord) -> None:
        self._pending.append(record.model_dump_json(by_alias=True))
        if len(self._pending) >= self.buffer_size:
            await self.flush()

    async def flush(self) -> None:
        if not self._pending:
            return
        lines, self._pending = self._pending, []
        await asyncio.to_thread(self._append_lines, lines)

    async def find_all(self) -> List[WorkloadRecord]:
        await self.flush()
        if not self.path.exists():
            return []
        return await asyncio.to_thread(self._read_records)

    async def clear(self) -> None:
        self._pending = []
        if self.path.exists():
            await asyncio.to_thread(self.path.unlink)

    def _append_lines(self, lines: List[str]) -> None:
        with open(self.path, "a", encoding="utf-8") as f:
            for line in lines:
                f.write(line)
                f.write("\n")

    def _read_records(self) -> List[WorkloadRecord]:
        records = []
        with open(self.path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line:
                    records.append(WorkloadRecord.model_validate_json(line))
        logger.debug("Loaded overflow records", path=str(self.path), count=len(records))
        return records
