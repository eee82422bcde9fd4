"""Tests for the binary scan pipeline: file collection, worker pool, indexer."""

import os
import sys
import threading

import pytest

from auditcore.errors import AuditError, IndexerError, ScanServiceError, iter_errors
from auditcore.graph.types import GraphNode
from auditcore.sca.models import ScanResponse, ScanType
from auditcore.scan import (
    BinaryIndexer,
    BinaryScanPipeline,
    FileSpec,
    WorkerPool,
    collect_files,
    get_repo_path_from_target,
)
from auditcore.scan.files import get_root_path


class FakeIndexer:
    """Indexes .jar files; .txt is unsupported and names containing 'broken' fail."""

    def __init__(self):
        self.indexed = []
        self._lock = threading.Lock()

    def index_file(self, path):
        with self._lock:
            self.indexed.append(path)
        name = os.path.basename(path)
        if "broken" in name:
            raise IndexerError(f"Indexer failed indexing {path} with exit code 1")
        if not name.endswith(".jar"):
            return None
        return GraphNode(f"sha256:{name}", [GraphNode(f"gav://org:{name}:1.0")])


class FakeClient:
    def __init__(self, reject=()):
        self.reject = set(reject)
        self.requests = []
        self._lock = threading.Lock()

    def scan_graph(self, params):
        with self._lock:
            self.requests.append(params)
        if params.graph.id in self.reject:
            raise RuntimeError("service unavailable")
        return ScanResponse(scan_id=params.graph.id)


@pytest.fixture
def artifacts(tmp_path):
    root = tmp_path / "artifacts"
    (root / "sub").mkdir(parents=True)
    for name in ("a.jar", "b.jar", "readme.txt", "sub/c.jar"):
        (root / name).write_bytes(b"PK")
    return root


class TestRepoPath:
    @pytest.mark.parametrize(
        "target,expected",
        [
            ("libs-release/org/app/app-1.0.jar", "libs-release/org/app/"),
            ("libs-release/org/", "libs-release/org/"),
            ("app.jar", ""),
            ("", ""),
        ],
    )
    def test_repo_path_from_target(self, target, expected):
        assert get_repo_path_from_target(target) == expected


class TestCollectFiles:
    def test_existing_file(self, artifacts):
        path = str(artifacts / "a.jar")

        assert list(collect_files(FileSpec(path))) == [path]

    def test_wildcard_is_recursive(self, artifacts):
        found = list(collect_files(FileSpec(str(artifacts / "*.jar"))))

        assert sorted(os.path.relpath(p, artifacts) for p in found) == ["a.jar", "b.jar", os.path.join("sub", "c.jar")]

    def test_non_recursive(self, artifacts):
        found = list(collect_files(FileSpec(str(artifacts / "*.jar"), recursive=False)))

        assert [os.path.basename(p) for p in found] == ["a.jar", "b.jar"]

    def test_bare_directory_means_everything(self, artifacts):
        found = list(collect_files(FileSpec(str(artifacts))))

        assert len(found) == 4

    def test_exclusions(self, artifacts):
        spec = FileSpec(str(artifacts / "*.jar"), exclusions=("*b.jar", "*/sub/*"))

        assert [os.path.basename(p) for p in collect_files(spec)] == ["a.jar"]

    def test_missing_root(self, tmp_path):
        assert list(collect_files(FileSpec(str(tmp_path / "nope" / "*.jar")))) == []

    def test_home_is_expanded(self, artifacts, monkeypatch):
        monkeypatch.setenv("HOME", str(artifacts))

        assert list(collect_files(FileSpec("~/a.jar"))) == [str(artifacts / "a.jar")]

    def test_root_path(self):
        assert get_root_path("/data/libs/*.jar") == "/data/libs"
        assert get_root_path("*.jar") == "."
        assert get_root_path("data/libs") == os.path.join("data", "libs")


class TestWorkerPool:
    def test_runs_every_task_with_a_worker_id(self):
        pool = WorkerPool("test", threads=3)
        seen = []
        lock = threading.Lock()

        def task(worker_id):
            with lock:
                seen.append(worker_id)

        for _ in range(20):
            pool.add_task(task)
        pool.done()
        pool.run()

        assert len(seen) == 20
        assert set(seen) <= {0, 1, 2}
        assert pool.collect_errors() == []

    def test_task_errors_are_collected_and_pool_continues(self):
        pool = WorkerPool("test", threads=2)
        ran = []

        def failing(worker_id):
            raise ValueError("bad task")

        pool.add_task(failing)
        pool.add_task(lambda worker_id: ran.append(worker_id))
        pool.add_task(failing)
        pool.done()
        pool.run()

        errors = pool.collect_errors()
        assert len(errors) == 2
        assert all(isinstance(e, ValueError) for e in errors)
        assert len(ran) == 1

    def test_no_tasks_after_done(self):
        pool = WorkerPool("test", threads=1)
        pool.done()
        pool.done()

        with pytest.raises(AuditError, match="no longer accepts"):
            pool.add_task(lambda worker_id: None)

    def test_producer_feeds_a_running_pool(self):
        pool = WorkerPool("test", threads=2, max_queued_tasks=1)
        count = []
        lock = threading.Lock()

        def task(worker_id):
            with lock:
                count.append(1)

        def produce():
            for _ in range(50):
                pool.add_task(task)
            pool.done()

        producer = threading.Thread(target=produce)
        producer.start()
        pool.run()
        producer.join()

        assert len(count) == 50


class TestBinaryScanPipeline:
    @pytest.mark.parametrize("threads", [1, 4])
    def test_every_supported_file_is_scanned(self, artifacts, threads):
        client = FakeClient()
        pipeline = BinaryScanPipeline(FakeIndexer(), client, threads=threads, watches=["prod"])

        results = pipeline.run([FileSpec(str(artifacts / "*"), target="libs-release/org/app.jar")])

        assert results.error is None
        assert sorted(r.scan_id for r in results.responses) == [
            "sha256:a.jar",
            "sha256:b.jar",
            "sha256:c.jar",
        ]
        for request in client.requests:
            assert request.scan_type == ScanType.BINARY
            assert request.repo_path == "libs-release/org/"
            assert request.watches == ["prod"]

    def test_unsupported_files_yield_nothing(self, artifacts):
        indexer = FakeIndexer()
        client = FakeClient()

        results = BinaryScanPipeline(indexer, client).run([FileSpec(str(artifacts / "*.txt"))])

        assert len(indexer.indexed) == 1
        assert results.responses == []
        assert results.error is None
        assert client.requests == []

    def test_indexing_failure_is_reported(self, artifacts):
        (artifacts / "broken.jar").write_bytes(b"")

        results = BinaryScanPipeline(FakeIndexer(), FakeClient(), threads=2).run(
            [FileSpec(str(artifacts / "*.jar"))]
        )

        assert len(results.responses) == 3
        [error] = iter_errors(results.error)
        assert isinstance(error, IndexerError)

    def test_scan_failure_is_reported(self, artifacts):
        client = FakeClient(reject={"sha256:b.jar"})

        results = BinaryScanPipeline(FakeIndexer(), client, threads=3).run(
            [FileSpec(str(artifacts / "*.jar"))]
        )

        assert sorted(r.scan_id for r in results.responses) == ["sha256:a.jar", "sha256:c.jar"]
        [error] = iter_errors(results.error)
        assert isinstance(error, ScanServiceError)
        assert "sha256:b.jar" in str(error)

    def test_no_matching_files(self, tmp_path):
        results = BinaryScanPipeline(FakeIndexer(), FakeClient()).run([FileSpec(str(tmp_path / "*.jar"))])

        assert results.responses == []
        assert results.error is None

    def test_many_files_with_small_queues(self, tmp_path):
        for i in range(40):
            (tmp_path / f"lib{i}.jar").write_bytes(b"")

        results = BinaryScanPipeline(FakeIndexer(), FakeClient(), threads=3, max_queued_tasks=2).run(
            [FileSpec(str(tmp_path / "*.jar"))]
        )

        assert len(results.responses) == 40
        assert results.error is None


@pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX shell scripts")
class TestBinaryIndexer:
    def make_indexer(self, tmp_path, body):
        exe = tmp_path / "indexer"
        exe.write_text("#!/bin/sh\n" + body, encoding="utf-8")
        exe.chmod(0o755)
        return BinaryIndexer(exe, tmp_path / "index-tmp")

    def test_graph_from_stdout(self, tmp_path):
        record = tmp_path / "args.txt"
        indexer = self.make_indexer(
            tmp_path,
            f'echo "$@" > "{record}"\n'
            "cat <<'EOF'\n"
            '{"component_id": "sha256:abc", "nodes": [{"component_id": "gav://org:lib:1.0"}]}\n'
            "EOF\n",
        )

        graph = indexer.index_file("/data/app.jar")

        assert graph.id == "sha256:abc"
        assert [n.id for n in graph.nodes] == ["gav://org:lib:1.0"]
        assert record.read_text(encoding="utf-8").strip() == f"graph /data/app.jar --temp-dir {tmp_path / 'index-tmp'}"

    def test_unsupported_file(self, tmp_path):
        assert self.make_indexer(tmp_path, "exit 3\n").index_file("/data/readme.txt") is None

    def test_failure(self, tmp_path):
        indexer = self.make_indexer(tmp_path, 'echo "corrupt archive" >&2\nexit 1\n')

        with pytest.raises(IndexerError, match="corrupt archive"):
            indexer.index_file("/data/app.jar")

    def test_invalid_json(self, tmp_path):
        with pytest.raises(IndexerError, match="invalid JSON"):
            self.make_indexer(tmp_path, "echo 'not json'\n").index_file("/data/app.jar")

    def test_empty_graph(self, tmp_path):
        assert self.make_indexer(tmp_path, "echo '{}'\n").index_file("/data/app.jar") is None
