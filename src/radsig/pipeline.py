"""Producer/consumer machinery shared by every marker-table analysis.

A :class:`TableParser` thread streams the table into a :class:`BatchedQueue`
while a second thread drains it in batches and hands each batch to an
analysis-specific processor. The calling thread joins both workers before
returning, so processor state is safe to read afterwards.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from tqdm import tqdm

from .config import RunConfig
from .errors import MalformedMarkerTable
from .markers_queue import BatchedQueue
from .popmap import Popmap
from .table import GroupColumns, Header, Marker, estimate_marker_count, open_table, parse_marker_line, read_header

logger = logging.getLogger(__name__)


class BatchProcessor(Protocol):
    def process_batch(self, batch: list[Marker]) -> None: ...


class TableParser:
    """Producer: parses the marker table and feeds the queue in row order."""

    def __init__(
        self,
        table_path: str | Path,
        popmap: Popmap | None,
        config: RunConfig,
        queue: BatchedQueue[Marker],
    ) -> None:
        self.table_path = Path(table_path)
        self.popmap = popmap
        self.config = config
        self.queue = queue
        self.header: Header | None = None
        self.header_ready = threading.Event()
        self.n_rows = 0
        self.error: Exception | None = None

    def run(self) -> None:
        try:
            self._parse()
        except Exception as exc:
            self.error = exc
            self.queue.abort()
        else:
            self.queue.close()
        finally:
            self.header_ready.set()

    def _publish_header(self, header: Header) -> GroupColumns:
        columns = GroupColumns.build(header, self.popmap)
        if columns.unknown:
            if self.config.strict_individuals:
                raise MalformedMarkerTable(
                    f"{len(columns.unknown)} individual(s) from the marker table are not in the "
                    f"popmap: {', '.join(columns.unknown)}"
                )
            logger.warning(
                "%d individual(s) from the marker table are not in the popmap and have no group: %s",
                len(columns.unknown),
                ", ".join(columns.unknown),
            )
        try:
            file_size = os.path.getsize(self.table_path)
        except OSError:
            file_size = 0
        self.queue.n_markers = estimate_marker_count(file_size, header)
        self.header = header
        self.header_ready.set()
        logger.debug(
            "Header parsed: %d individuals (%d and %d in the compared groups), ~%d markers",
            header.n_individuals,
            columns.group1.size,
            columns.group2.size,
            self.queue.n_markers,
        )
        return columns

    def _parse(self) -> None:
        batch_size = self.config.parser_batch_size
        min_depth = self.config.min_depth
        with open_table(self.table_path) as handle:
            header, line_no = read_header(handle)
            columns = self._publish_header(header)
            batch: list[Marker] = []
            for line_no, raw in enumerate(handle, start=line_no + 1):
                if not raw.strip():
                    continue
                batch.append(parse_marker_line(raw, line_no, header, columns, min_depth))
                self.n_rows += 1
                if len(batch) >= batch_size:
                    if not self.queue.put_batch(batch):
                        return
                    batch = []
            if batch:
                self.queue.put_batch(batch)


def consume(
    queue: BatchedQueue[Marker],
    processor: BatchProcessor,
    header_ready: threading.Event,
    config: RunConfig,
    *,
    desc: str = "Processing markers",
) -> int:
    """Drain ``queue`` into ``processor`` until the producer is done.

    Returns the number of markers handed to the processor.
    """
    # Soft wait: the header only sizes the progress bar.
    header_ready.wait(config.header_grace_period)
    total = queue.n_markers or None
    n_processed = 0
    with tqdm(
        total=total,
        desc=desc,
        unit=" markers",
        disable=None if config.progress else True,
        leave=False,
    ) as bar:
        while True:
            batch = queue.get_batch(config.batch_size, timeout=config.poll_interval)
            if batch:
                processor.process_batch(batch)
                n_processed += len(batch)
                if bar.total is None and queue.n_markers:
                    bar.total = max(queue.n_markers, n_processed)
                bar.update(len(batch))
            elif queue.finished:
                break
    return n_processed


class _ConsumerWorker:
    def __init__(
        self,
        queue: BatchedQueue[Marker],
        processor: BatchProcessor,
        header_ready: threading.Event,
        config: RunConfig,
        desc: str,
    ) -> None:
        self.queue = queue
        self.processor = processor
        self.header_ready = header_ready
        self.config = config
        self.desc = desc
        self.n_processed = 0
        self.error: Exception | None = None

    def run(self) -> None:
        try:
            self.n_processed = consume(
                self.queue, self.processor, self.header_ready, self.config, desc=self.desc
            )
        except Exception as exc:
            self.error = exc
            self.queue.abort()


@dataclass(frozen=True)
class PipelineRun:
    header: Header
    n_rows: int
    n_processed: int


def run_pipeline(
    table_path: str | Path,
    popmap: Popmap | None,
    config: RunConfig,
    processor: BatchProcessor,
    *,
    desc: str = "Processing markers",
) -> PipelineRun:
    """Run parser and processor on two threads and wait for both."""
    queue: BatchedQueue[Marker] = BatchedQueue()
    parser = TableParser(table_path, popmap, config, queue)
    consumer = _ConsumerWorker(queue, processor, parser.header_ready, config, desc)

    threads = [
        threading.Thread(target=parser.run, name="radsig-table-parser", daemon=True),
        threading.Thread(target=consumer.run, name="radsig-marker-processor", daemon=True),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    if parser.error is not None:
        raise parser.error
    if consumer.error is not None:
        raise consumer.error
    assert parser.header is not None
    return PipelineRun(header=parser.header, n_rows=parser.n_rows, n_processed=consumer.n_processed)
