"""Two-stage binary scan pipeline.

Stage 1 (indexer pool) indexes every file matched by the specs; each indexed
graph becomes a task of stage 2 (scan pool), which submits it to the
scanning service. The scan pool is told it is done only once the indexer
pool finished, so every graph is scanned before the pipeline returns.

Responses are appended to the slot of the worker that produced them and
concatenated after both pools drained; indexing order is not preserved.
"""

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field

from auditcore.errors import ScanServiceError, join_errors
from auditcore.graph.types import GraphNode
from auditcore.sca.models import GraphScanParams, ScanGraphClient, ScanResponse, ScanType
from auditcore.scan.files import FileSpec, collect_files
from auditcore.scan.indexer import BinaryIndexer
from auditcore.scan.pool import WorkerPool
from auditcore.utils.logging import logger


def get_repo_path_from_target(target: str) -> str:
    """The service files results under a directory, never a file path."""
    if target.endswith("/"):
        return target
    return target[: target.rfind("/") + 1]


@dataclass
class BinaryScanResults:
    responses: list[ScanResponse] = field(default_factory=list)
    error: BaseException | None = None


class BinaryScanPipeline:
    def __init__(
        self,
        indexer: BinaryIndexer,
        client: ScanGraphClient,
        threads: int = 3,
        max_queued_tasks: int = 20000,
        watches: Iterable[str] = (),
        project_key: str = "",
        include_vulnerabilities: bool = True,
        include_licenses: bool = False,
    ):
        self.indexer = indexer
        self.client = client
        self.threads = max(1, threads)
        self.max_queued_tasks = max_queued_tasks
        self.watches = list(watches)
        self.project_key = project_key
        self.include_vulnerabilities = include_vulnerabilities
        self.include_licenses = include_licenses

    def _scan_task(self, graph: GraphNode, spec: FileSpec, slots: list[list[ScanResponse]]):
        def task(worker_id: int) -> None:
            params = GraphScanParams(
                graph=graph,
                scan_type=ScanType.BINARY,
                repo_path=get_repo_path_from_target(spec.target),
                project_key=self.project_key,
                watches=list(self.watches),
                include_vulnerabilities=self.include_vulnerabilities,
                include_licenses=self.include_licenses,
            )
            try:
                response = self.client.scan_graph(params)
            except Exception as e:
                logger.error(f"Scanning {graph.id} failed with error: {e}")
                raise ScanServiceError(f"Scanning {graph.id} failed: {e}") from e
            slots[worker_id].append(response)

        return task

    def _index_task(self, path: str, spec: FileSpec, scan_pool: WorkerPool, slots):
        def task(worker_id: int) -> None:
            logger.info(f"[Thread {worker_id}] Indexing file: {path}")
            graph = self.indexer.index_file(path)
            if graph is None:
                return
            scan_pool.add_task(self._scan_task(graph, spec, slots))

        return task

    def _produce(self, specs: list[FileSpec], index_pool, scan_pool, slots, producer_errors):
        try:
            for spec in specs:
                try:
                    for path in collect_files(spec):
                        index_pool.add_task(self._index_task(path, spec, scan_pool, slots))
                except OSError as e:
                    logger.error(f"Collecting files for pattern {spec.pattern} failed: {e}")
                    producer_errors.append(e)
        finally:
            index_pool.done()

    def run(self, specs: Iterable[FileSpec]) -> BinaryScanResults:
        """Index and scan every file matched by ``specs``.

        Returns:
            Merged responses and the joined error of every stage. A file the
            indexer does not support contributes neither.
        """
        specs = list(specs)
        slots: list[list[ScanResponse]] = [[] for _ in range(self.threads)]
        producer_errors: list[BaseException] = []
        index_pool = WorkerPool("indexer", self.threads, self.max_queued_tasks)
        scan_pool = WorkerPool("scanner", self.threads, self.max_queued_tasks)

        producer = threading.Thread(
            target=self._produce,
            args=(specs, index_pool, scan_pool, slots, producer_errors),
            name="file-producer",
            daemon=True,
        )

        def run_index_pool() -> None:
            try:
                index_pool.run()
            finally:
                # No indexing task can add scan tasks any more
                scan_pool.done()

        indexing = threading.Thread(target=run_index_pool, name="indexer-runner", daemon=True)

        producer.start()
        indexing.start()
        scan_pool.run()
        indexing.join()
        producer.join()

        responses = [response for slot in slots for response in slot]
        error = join_errors(
            *producer_errors, *index_pool.collect_errors(), *scan_pool.collect_errors()
        )
        if error is None:
            logger.info("Scan completed successfully.")
        return BinaryScanResults(responses=responses, error=error)
