"""Blob store gateway: list, fetch and delete print documents in a bucket."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from google.api_core.exceptions import GoogleAPICallError, NotFound, PreconditionFailed
from google.auth.exceptions import GoogleAuthError
from google.cloud import storage

from .errors import FetchError, RemoteCleanupError

log = logging.getLogger(__name__)

# Failures the storage client raises for unreachable stores or bad credentials.
# requests' exceptions derive from OSError, so transport failures land here too.
_STORE_ERRORS = (GoogleAPICallError, GoogleAuthError, OSError)


@dataclass(frozen=True)
class BlobObject:
    key: str
    size: int = 0
    updated: Optional[datetime] = None
    generation: Optional[int] = None


@runtime_checkable
class BlobStoreGateway(Protocol):
    """Contract the dispatch pipeline needs from the object store.

    The bucket (and any credentials) are bound when the gateway is built.
    """

    def list_objects(self) -> List[BlobObject]:
        """Return every object in the bucket, in store listing order.

        Raises:
            FetchError: If the store cannot be listed.
        """
        ...

    def get(self, key: str, generation: Optional[int] = None) -> bytes:
        """Return the full content of *key*, pinned to *generation* when given.

        Raises:
            FetchError: If the store is unreachable or the key no longer exists.
        """
        ...

    def delete(self, key: str, generation: Optional[int] = None) -> bool:
        """Delete *key* from the bucket.

        With a *generation* only that version of the object is deleted; a
        newer upload under the same key is left in place.

        Returns:
            False if the object was already gone or has been replaced.

        Raises:
            RemoteCleanupError: If the delete fails.
        """
        ...


class GcsBlobStore:
    """Google Cloud Storage implementation of :class:`BlobStoreGateway`."""

    def __init__(
        self,
        bucket_name: str,
        *,
        client: Optional[Any] = None,
        project: Optional[str] = None,
        prefix: str = "",
        timeout: Optional[float] = None,
    ) -> None:
        """
        Args:
            bucket_name: Bucket holding the print documents.
            client: Optional pre-built ``storage.Client`` (or a compatible fake).
            project: GCP project used when the client has to be created.
            prefix: Only objects under this prefix are listed.
            timeout: Per-request timeout in seconds. ``None`` keeps the
                storage library's own default.
        """
        self.bucket_name = bucket_name
        self.prefix = prefix
        self.timeout = timeout
        self._project = project
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            clientKwargs: Dict[str, Any] = {}
            if self._project:
                clientKwargs["project"] = self._project
            self._client = storage.Client(**clientKwargs)
        return self._client

    def _requestKwargs(self) -> Dict[str, Any]:
        if self.timeout is None:
            return {}
        return {"timeout": self.timeout}

    def list_objects(self) -> List[BlobObject]:
        listKwargs = self._requestKwargs()
        if self.prefix:
            listKwargs["prefix"] = self.prefix
        try:
            blobs = self.client.list_blobs(self.bucket_name, **listKwargs)
            objects = [
                BlobObject(
                    key=blob.name,
                    size=int(getattr(blob, "size", 0) or 0),
                    updated=getattr(blob, "updated", None),
                    generation=getattr(blob, "generation", None),
                )
                for blob in blobs
            ]
        except _STORE_ERRORS as error:
            raise FetchError(None, str(error)) from error
        log.debug("Listed %d objects in gs://%s/%s", len(objects), self.bucket_name, self.prefix)
        return objects

    def get(self, key: str, generation: Optional[int] = None) -> bytes:
        try:
            blob = self.client.bucket(self.bucket_name).blob(key, generation=generation)
            return blob.download_as_bytes(**self._requestKwargs())
        except NotFound as error:
            raise FetchError(key, "object no longer exists") from error
        except _STORE_ERRORS as error:
            raise FetchError(key, str(error)) from error

    def delete(self, key: str, generation: Optional[int] = None) -> bool:
        deleteKwargs = self._requestKwargs()
        if generation is not None:
            deleteKwargs["if_generation_match"] = generation
        try:
            self.client.bucket(self.bucket_name).blob(key).delete(**deleteKwargs)
        except NotFound:
            log.info("gs://%s/%s is already gone", self.bucket_name, key)
            return False
        except PreconditionFailed:
            log.info("gs://%s/%s was replaced by a newer upload, leaving it in place", self.bucket_name, key)
            return False
        except _STORE_ERRORS as error:
            raise RemoteCleanupError(key, str(error)) from error
        log.info("Deleted gs://%s/%s", self.bucket_name, key)
        return True


__all__ = ["BlobObject", "BlobStoreGateway", "GcsBlobStore"]
