import asyncio
from typing import Awaitable, Callable, Optional

from app.core.errors import StorageCleanupWarning, UploadFailure, ValidationError
from app.core.logging_config import logger
from app.services.document_store import DocumentStore, RawFile, StoredDocument

OrphanSink = Callable[[list[StorageCleanupWarning]], Awaitable[None]]

# Stores still running after their batch timed out, with their compensation.
background_cleanups: set[asyncio.Task] = set()


async def drain_background_cleanups() -> None:
    if background_cleanups:
        logger.info(f"Waiting for {len(background_cleanups)} background upload cleanup(s)")
        await asyncio.gather(*background_cleanups, return_exceptions=True)


class UploadOrchestrator:
    """
    Turns a batch of raw files into stored documents, all or nothing.

    Every file is checked against the MIME allow-list and size limit before
    any store call. Store calls for a batch run concurrently; if any of them
    fails the ones that succeeded are removed again before UploadFailure is
    raised. When the batch times out, UploadFailure is raised right away and
    the stores still in flight are settled and removed in the background.
    References that cannot be removed after the request is gone (timeout or
    cancellation) go to `orphan_sink`.
    """

    def __init__(
            self,
            store: DocumentStore,
            allowed_mime_types: list[str] | set[str],
            max_file_size: int,
            timeout: float | None = None,
            orphan_sink: Optional[OrphanSink] = None,
    ):
        self.store = store
        self.allowed_mime_types = {m.strip().lower() for m in allowed_mime_types if m.strip()}
        self.max_file_size = max_file_size
        self.timeout = timeout
        self.orphan_sink = orphan_sink

    def validate_batch(self, files: list[RawFile], require_one: bool = True) -> None:
        error = None
        if require_one and not files:
            error = "Please upload at least one document"
        for upload in files:
            if error:
                break
            if (upload.mime_type or "").lower() not in self.allowed_mime_types:
                error = f"File type not allowed: {upload.name} ({upload.mime_type})"
            elif upload.size > self.max_file_size:
                error = f"File too large: {upload.name} exceeds {self.max_file_size} bytes"
        if error:
            logger.warning(f"Rejected upload batch: {error}")
            self.discard(files)
            raise ValidationError(error)

    @staticmethod
    def discard(files: list[RawFile]) -> None:
        for upload in files:
            upload.discard()

    async def upload_batch(self, files: list[RawFile]) -> list[StoredDocument]:
        self.validate_batch(files)
        logger.info(f"Uploading batch of {len(files)} document(s)")

        # Each task discards its own temporary file once its store call settles.
        tasks = [asyncio.create_task(self._store_one(upload)) for upload in files]
        try:
            done, pending = await asyncio.wait(tasks, timeout=self.timeout)
        except asyncio.CancelledError:
            logger.warning("Upload batch cancelled; settling in-flight uploads before compensating")
            await asyncio.shield(self._settle_and_record(tasks))
            raise

        stored, failures = self._collect([task for task in tasks if task in done])
        if pending:
            logger.error(f"Upload batch timed out after {self.timeout}s with {len(pending)} pending")
            self._settle_in_background([task for task in tasks if task in pending])
            failures.insert(0, TimeoutError(f"Upload timed out after {self.timeout}s"))

        if failures:
            warnings = await self._compensate(stored)
            raise UploadFailure(
                "Failed to upload documents",
                cause=failures[0],
                orphaned_refs=[w.storage_ref for w in warnings],
            )

        logger.info(f"Uploaded batch of {len(stored)} document(s)")
        return stored

    async def _store_one(self, upload: RawFile) -> StoredDocument:
        try:
            return await self.store.store(upload)
        finally:
            upload.discard()

    @staticmethod
    def _collect(tasks: list[asyncio.Task]) -> tuple[list[StoredDocument], list[BaseException]]:
        stored, failures = [], []
        for task in tasks:
            if task.cancelled():
                failures.append(asyncio.CancelledError())
            elif task.exception() is not None:
                failures.append(task.exception())
            else:
                stored.append(task.result())
        return stored, failures

    def _settle_in_background(self, tasks: list[asyncio.Task]) -> None:
        cleanup = asyncio.create_task(self._settle_and_record(tasks))
        background_cleanups.add(cleanup)
        cleanup.add_done_callback(background_cleanups.discard)

    async def _settle_and_record(self, tasks: list[asyncio.Task]) -> None:
        await asyncio.gather(*tasks, return_exceptions=True)
        stored, _ = self._collect(tasks)
        warnings = await self._compensate(stored)
        if not warnings:
            return
        logger.warning(f"{len(warnings)} late upload(s) could not be removed")
        if self.orphan_sink is not None:
            try:
                await self.orphan_sink(warnings)
            except Exception as e:
                logger.error(f"Failed to record late orphans {[w.storage_ref for w in warnings]}: {str(e)}")

    async def _compensate(self, stored: list[StoredDocument]) -> list[StorageCleanupWarning]:
        """Removes already stored documents; returns a warning per ref that could not be removed."""
        if not stored:
            return []
        logger.warning(f"Compensating {len(stored)} stored document(s)")
        return await self.release_refs([doc.storage_ref for doc in stored])

    async def release(self, documents) -> list[StorageCleanupWarning]:
        """Best-effort removal of documents (anything with a storage_ref)."""
        return await self.release_refs([doc.storage_ref for doc in documents])

    async def release_refs(self, refs: list[str]) -> list[StorageCleanupWarning]:
        if not refs:
            return []
        results = await asyncio.gather(*(self.store.remove(ref) for ref in refs), return_exceptions=True)
        warnings = []
        for ref, result in zip(refs, results):
            if isinstance(result, BaseException):
                logger.warning(f"Could not remove {ref} from storage: {str(result)}")
                warnings.append(StorageCleanupWarning(ref, result))
        return warnings
