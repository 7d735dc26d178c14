"""HTTP client that uploads files to the Controller as chunked transfers."""

import os
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

import httpx

from common.logging_config import get_logger
from cli.chunker import chunk_count, read_chunk
from cli.config import Config

logger = get_logger(__name__)


class TransferClientError(Exception):
    """
    Raised when the controller rejects a request or cannot be reached.

    Attributes:
        status_code: HTTP status, or None for network failures
        payload: Decoded JSON error body (kind, code and typed fields)
    """

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Optional[dict] = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}

    @property
    def kind(self) -> Optional[str]:
        return self.payload.get('kind')


@dataclass
class UploadSummary:
    transfer_id: str
    filename: str
    target_path: str
    total_chunks: int
    uploaded: List[int]
    complete: bool


ProgressCallback = Callable[[int, int], None]


class TransferClient:
    """HTTP client for the transfer API with retry logic and bounded parallel uploads."""

    def __init__(self, config: Config, transport: Optional[httpx.BaseTransport] = None):
        """
        Initialize transfer client.

        Args:
            config: Configuration instance
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.config = config
        self.session = httpx.Client(
            base_url=config.get_base_url(),
            timeout=config.get_timeout(),
            transport=transport
        )
        logger.info(f"Initialized TransferClient [base_url={config.get_base_url()}]")

    def close(self) -> None:
        self.session.close()

    def _request_with_retry(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        """
        Make HTTP request with retry logic on 5xx errors and network failures.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            **kwargs: Additional arguments to pass to httpx request

        Returns:
            HTTP response object (2xx, 4xx, or the last 5xx)

        Raises:
            TransferClientError: If the controller cannot be reached after retries
        """
        retry_config = self.config.get_retry_config()
        max_retries = retry_config['max_retries']
        base = retry_config['retry_backoff_base']
        multiplier = retry_config['retry_backoff_multiplier']

        request_id = str(uuid.uuid4())
        headers = dict(kwargs.pop('headers', {}) or {})
        headers['X-Request-ID'] = request_id

        last_exception = None
        for attempt in range(max_retries + 1):
            delay = base * (multiplier ** attempt)
            try:
                response = self.session.request(method, endpoint, headers=headers, **kwargs)
            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_exception = e
                if attempt < max_retries:
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s [request_id={request_id}]"
                    )
                    time.sleep(delay)
                continue

            if response.status_code >= 500 and attempt < max_retries:
                logger.warning(
                    f"Server error (attempt {attempt + 1}/{max_retries + 1}): "
                    f"{method} {endpoint} status={response.status_code}, retrying in {delay}s [request_id={request_id}]"
                )
                time.sleep(delay)
                continue

            return response

        logger.error(f"Network error (max retries exceeded): {method} {endpoint} error={last_exception}")
        if isinstance(last_exception, httpx.TimeoutException):
            raise TransferClientError("Request timed out. Server may be overloaded.")
        raise TransferClientError("Cannot connect to controller server. Is it running?")

    @staticmethod
    def _raise_for_error(response: httpx.Response) -> None:
        if response.status_code < 400:
            return
        try:
            payload = response.json()
        except ValueError:
            payload = {'detail': response.text or 'Unknown error'}
        if not isinstance(payload, dict):
            payload = {'detail': str(payload)}
        detail = payload.get('detail', 'Unknown error')
        raise TransferClientError(
            f"{detail} (status {response.status_code})", response.status_code, payload
        )

    def upload_chunk(
        self,
        transfer_id: str,
        filename: str,
        index: int,
        total_chunks: int,
        data: bytes,
        target_path: str = "",
    ) -> dict:
        """
        Upload one chunk.

        Returns:
            Ingest response: accepted, complete, received, expected, node_id
        """
        response = self._request_with_retry(
            'POST',
            '/transfers/chunks',
            data={
                'transfer_id': transfer_id,
                'filename': filename,
                'index': str(index),
                'total_chunks': str(total_chunks),
                'target_path': target_path,
            },
            files={'chunk': (f"chunk_{index}", data, 'application/octet-stream')},
        )
        self._raise_for_error(response)
        return response.json()

    def _upload_indices(
        self,
        path: str,
        transfer_id: str,
        filename: str,
        total_chunks: int,
        indices: Iterable[int],
        target_path: str,
        on_progress: Optional[ProgressCallback],
    ) -> UploadSummary:
        chunk_size = self.config.get_chunk_size()
        indices = list(indices)
        uploaded: List[int] = []
        complete = False

        def send(index: int) -> dict:
            data = read_chunk(path, index, chunk_size)
            return self.upload_chunk(transfer_id, filename, index, total_chunks, data, target_path)

        with ThreadPoolExecutor(max_workers=self.config.get_concurrency()) as pool:
            futures = {pool.submit(send, index): index for index in indices}
            for future in as_completed(futures):
                result = future.result()
                uploaded.append(futures[future])
                complete = complete or result.get('complete', False)
                if on_progress:
                    on_progress(len(uploaded), len(indices))

        logger.info(f"Uploaded {len(uploaded)} chunks of transfer {transfer_id} (complete={complete})")
        return UploadSummary(
            transfer_id=transfer_id,
            filename=filename,
            target_path=target_path,
            total_chunks=total_chunks,
            uploaded=sorted(uploaded),
            complete=complete,
        )

    def upload_file(
        self,
        path: str,
        target_path: str = "",
        filename: Optional[str] = None,
        transfer_id: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> UploadSummary:
        """
        Split a file into chunks and upload them in parallel.

        Args:
            path: Local file to upload
            target_path: Destination directory on the server
            filename: Artifact name (defaults to the file's basename)
            transfer_id: Transfer id (generated when omitted)
            on_progress: Called with (done, total) after each chunk

        Returns:
            UploadSummary of the transfer

        Raises:
            TransferClientError: If a chunk is rejected or the server is unreachable
            OSError: If the local file cannot be read
        """
        size = os.path.getsize(path)
        total_chunks = chunk_count(size, self.config.get_chunk_size())
        filename = filename or os.path.basename(path)
        transfer_id = transfer_id or uuid.uuid4().hex

        logger.info(
            f"Uploading {path} as transfer {transfer_id}: {size} bytes in {total_chunks} chunks"
        )
        return self._upload_indices(
            path, transfer_id, filename, total_chunks, range(total_chunks), target_path, on_progress
        )

    def resume(
        self,
        path: str,
        transfer_id: str,
        target_path: str = "",
        on_progress: Optional[ProgressCallback] = None,
    ) -> UploadSummary:
        """
        Re-send only the chunks the controller is still missing.

        Raises:
            TransferClientError: If the transfer is unknown or a chunk is rejected
        """
        status = self.status(transfer_id)
        missing = status.get('missing', [])
        logger.info(f"Resuming transfer {transfer_id}: {len(missing)} chunks missing")

        if not missing:
            return UploadSummary(
                transfer_id=transfer_id,
                filename=status['filename'],
                target_path=status.get('target_path', target_path),
                total_chunks=status['total_chunks'],
                uploaded=[],
                complete=status.get('complete', True),
            )

        return self._upload_indices(
            path,
            transfer_id,
            status['filename'],
            status['total_chunks'],
            missing,
            target_path or status.get('target_path', ''),
            on_progress,
        )

    def merge(self, transfer_id: str, filename: str = "", target_path: str = "") -> dict:
        """
        Ask the controller to merge a transfer.

        Returns:
            Merge response: artifact_path, size, checksum, chunks
        """
        response = self._request_with_retry(
            'POST',
            '/transfers/merge',
            json={'transfer_id': transfer_id, 'filename': filename, 'target_path': target_path},
        )
        self._raise_for_error(response)
        return response.json()

    def status(self, transfer_id: str) -> dict:
        response = self._request_with_retry('GET', f'/transfers/{transfer_id}')
        self._raise_for_error(response)
        return response.json()
