from __future__ import annotations

from pathlib import Path
import sys
from typing import Dict, List, Optional, Tuple

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from google.api_core.exceptions import NotFound, PreconditionFailed, ServiceUnavailable

from printrelay.blob_store import GcsBlobStore
from printrelay.events import RecordingEventSink
from printrelay.printers import PrinterDescriptor, PrinterRegistry
from printrelay.printflow import DispatchPipeline, PipelineState
from printrelay.staging import StagingArea
from printrelay.transport import TransportReceipt


class FakeListedBlob:
    def __init__(self, name: str, size: int, generation: int) -> None:
        self.name = name
        self.size = size
        self.updated = None
        self.generation = generation


class FakeBlob:
    def __init__(
        self,
        storageClient: "FakeStorageClient",
        bucketName: str,
        objectName: str,
        generation: Optional[int] = None,
    ) -> None:
        self.storageClient = storageClient
        self.bucketName = bucketName
        self.objectName = objectName
        self.generation = generation

    def download_as_bytes(self, **kwargs) -> bytes:
        self.storageClient.requestKwargs.append(("get", dict(kwargs)))
        failure = self.storageClient.popFailure("get", self.objectName)
        if failure:
            raise failure
        key = (self.bucketName, self.objectName)
        if key not in self.storageClient.blobContents:
            raise NotFound(f"No such object: {self.bucketName}/{self.objectName}")
        if self.generation is not None and self.generation != self.storageClient.generations[key]:
            raise NotFound(f"No such object: {self.bucketName}/{self.objectName}#{self.generation}")
        self.storageClient.downloads.append(self.objectName)
        return self.storageClient.blobContents[key]

    def delete(self, if_generation_match: Optional[int] = None, **kwargs) -> None:
        if if_generation_match is not None:
            kwargs["if_generation_match"] = if_generation_match
        self.storageClient.requestKwargs.append(("delete", dict(kwargs)))
        self.storageClient.deleteCalls.append(self.objectName)
        failure = self.storageClient.popFailure("delete", self.objectName)
        if failure:
            raise failure
        key = (self.bucketName, self.objectName)
        if key not in self.storageClient.blobContents:
            raise NotFound(f"No such object: {self.bucketName}/{self.objectName}")
        if if_generation_match is not None and if_generation_match != self.storageClient.generations[key]:
            raise PreconditionFailed(f"Generation mismatch for {self.bucketName}/{self.objectName}")
        del self.storageClient.blobContents[key]


class FakeBucket:
    def __init__(self, storageClient: "FakeStorageClient", name: str) -> None:
        self.storageClient = storageClient
        self.name = name

    def blob(self, objectName: str, generation: Optional[int] = None) -> FakeBlob:
        return FakeBlob(self.storageClient, self.name, objectName, generation)


class FakeStorageClient:
    """In-memory stand-in for ``google.cloud.storage.Client``."""

    def __init__(self, project: Optional[str] = None) -> None:
        self.project = project
        self.blobContents: Dict[Tuple[str, str], bytes] = {}
        self.generations: Dict[Tuple[str, str], int] = {}
        self.nextGeneration = 1000
        self.downloads: List[str] = []
        self.deleteCalls: List[str] = []
        self.requestKwargs: List[Tuple[str, dict]] = []
        self.failures: Dict[Tuple[str, Optional[str]], List[Exception]] = {}

    def put(self, bucketName: str, objectName: str, data: bytes) -> int:
        """Store *data*; every upload gets a fresh generation, like GCS."""
        self.nextGeneration += 1
        self.blobContents[(bucketName, objectName)] = data
        self.generations[(bucketName, objectName)] = self.nextGeneration
        return self.nextGeneration

    def remove(self, bucketName: str, objectName: str) -> None:
        del self.blobContents[(bucketName, objectName)]

    def failNext(self, operation: str, objectName: Optional[str], error: Exception) -> None:
        self.failures.setdefault((operation, objectName), []).append(error)

    def popFailure(self, operation: str, objectName: Optional[str]) -> Optional[Exception]:
        pending = self.failures.get((operation, objectName))
        if pending:
            return pending.pop(0)
        return None

    def bucket(self, name: str) -> FakeBucket:
        return FakeBucket(self, name)

    def list_blobs(self, bucketName: str, prefix: str = "", **kwargs):
        self.requestKwargs.append(("list", dict(kwargs, prefix=prefix)))
        failure = self.popFailure("list", None)
        if failure:
            raise failure
        return [
            FakeListedBlob(objectName, len(data), self.generations[(storedBucket, objectName)])
            for (storedBucket, objectName), data in self.blobContents.items()
            if storedBucket == bucketName and objectName.startswith(prefix)
        ]


class FakeTransport:
    """Records sends; raises queued failures in order."""

    def __init__(self) -> None:
        self.calls: List[Tuple[Path, str, int]] = []
        self.failures: List[Exception] = []

    async def send(self, file_path, host: str, port: int) -> TransportReceipt:
        self.calls.append((Path(file_path), host, port))
        if self.failures:
            raise self.failures.pop(0)
        return TransportReceipt(host=host, port=port, bytes_sent=Path(file_path).stat().st_size, elapsed=0.0)


BUCKET = "print-jobs"


@pytest.fixture
def storageClient() -> FakeStorageClient:
    return FakeStorageClient(project="test-project")


@pytest.fixture
def blobStore(storageClient: FakeStorageClient) -> GcsBlobStore:
    return GcsBlobStore(BUCKET, client=storageClient)


@pytest.fixture
def stagingArea(tmp_path: Path) -> StagingArea:
    return StagingArea(tmp_path / "staging")


@pytest.fixture
def registry() -> PrinterRegistry:
    return PrinterRegistry(
        [
            PrinterDescriptor("Office Printer", "192.168.3.36", 9100),
            PrinterDescriptor("Warehouse Printer", "172.16.87.3", 9100),
        ]
    )


@pytest.fixture
def sink() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def fakeTransport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def pipeline(
    blobStore: GcsBlobStore,
    stagingArea: StagingArea,
    fakeTransport: FakeTransport,
    registry: PrinterRegistry,
    sink: RecordingEventSink,
) -> DispatchPipeline:
    return DispatchPipeline(
        store=blobStore,
        staging=stagingArea,
        transport=fakeTransport,
        registry=registry,
        sink=sink,
        state=PipelineState(),
    )


@pytest.fixture
def serviceUnavailable() -> ServiceUnavailable:
    return ServiceUnavailable("store is down")
