"""HTTP client for communicating with the HashVault service."""

import math
import mimetypes
import sys
import time
import uuid
from pathlib import Path
from typing import Optional

import httpx

from common.constants import DEFAULT_MIME_TYPE, FINALIZE_TIMEOUT_SECONDS
from common.formatting import format_file_size
from common.logging_config import get_logger
from cli.config import Config
from cli.constants import GREEN, RESET

logger = get_logger(__name__)


class UploadError(Exception):
    """Raised when a step of a chunked upload is rejected."""

    pass


class VaultClient:
    """HTTP client for the HashVault API with retry logic and error handling."""

    def __init__(
        self,
        config: Config,
        transport: Optional[httpx.BaseTransport] = None,
        chunk_size: Optional[int] = None,
    ):
        """
        Initialize vault client.

        Args:
            config: Configuration instance
            transport: Optional httpx transport (tests pass a MockTransport)
            chunk_size: Bytes per chunk for chunked uploads (config chunk_size if None)
        """
        self.config = config
        self.chunk_size = chunk_size or config.get_chunk_size()
        self.session = httpx.Client(
            base_url=config.get_base_url(),
            timeout=config.get_timeout(),
            transport=transport,
        )
        self.request_id = None
        logger.info(f"Initialized VaultClient [base_url={config.get_base_url()}]")

    def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        max_retries: Optional[int] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic on 5xx errors and network failures.

        Args:
            method: HTTP method (GET, POST, DELETE, etc.)
            endpoint: API endpoint path
            max_retries: Max retry attempts (uses config default if None)
            **kwargs: Additional arguments to pass to httpx request

        Returns:
            HTTP response object

        Raises:
            ConnectionError: If max retries exceeded or connection fails
        """
        retry_config = self.config.get_retry_config()
        max_retries = max_retries if max_retries is not None else retry_config['max_retries']
        backoff = retry_config['retry_backoff_multiplier']

        last_exception = None

        self.request_id = str(uuid.uuid4())
        if 'headers' not in kwargs:
            kwargs['headers'] = {}
        kwargs['headers']['X-Request-ID'] = self.request_id

        logger.debug(
            f"Making request: {method} {endpoint} [request_id={self.request_id}]"
        )

        for attempt in range(max_retries + 1):
            try:
                response = self.session.request(method, endpoint, **kwargs)

                logger.debug(
                    f"Response received: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                )

                if 400 <= response.status_code < 500:
                    logger.warning(
                        f"Client error: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                    )
                    return response

                if response.status_code >= 500 and attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Server error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} status={response.status_code}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue

                return response

            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_exception = e
                if attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue
                else:
                    logger.error(
                        f"Network error (max retries exceeded): {method} {endpoint} error={e} [request_id={self.request_id}]"
                    )

        if isinstance(last_exception, httpx.TimeoutException):
            raise ConnectionError("Request timed out. Server may be overloaded.")
        if last_exception is not None:
            raise ConnectionError("Cannot connect to HashVault server. Is it running?")
        raise ConnectionError("Max retries exceeded")

    def _format_error(self, response: httpx.Response) -> str:
        """
        Map HTTP errors to user-friendly messages.

        Args:
            response: HTTP response object

        Returns:
            User-friendly error message
        """
        try:
            error_data = response.json()
            detail = error_data.get('detail', 'Unknown error')
            code = error_data.get('code', 'UNKNOWN')
        except ValueError:
            error_data = {}
            detail = response.text if response.text else 'Unknown error'
            code = 'UNKNOWN'

        if code == 'OVER_FREE_TIER_LIMIT':
            return f"File exceeds the per-file limit of {format_file_size(error_data.get('limit', 0))}."
        if code == 'INSUFFICIENT_CAPACITY':
            return (
                f"Not enough storage space: {format_file_size(error_data.get('required', 0))} required, "
                f"{format_file_size(error_data.get('available', 0))} available. Run: purchase <tx-hash>"
            )
        if code == 'INCOMPLETE_UPLOAD':
            return f"Upload incomplete: chunk {error_data.get('missing_index')} never arrived. Please upload again."

        error_messages = {
            'UNAUTHORIZED': 'No wallet set. Please run: wallet <address>',
            'NOT_FOUND': 'File not found, or it belongs to another wallet.',
            'CHUNK_TOO_LARGE': 'Chunk rejected as too large.',
            'UPSTREAM_STORAGE_ERROR': f'Storage backend error: {detail}',
            'DUPLICATE_CONTENT': 'This content is already registered.',
            'DUPLICATE_PURCHASE': 'This transaction was already applied.',
            'UPLOAD_IN_PROGRESS': 'This upload is already being finalized.',
            'TIMEOUT': 'The server timed out processing the request.',
        }

        if code in error_messages:
            return error_messages[code]

        status_messages = {
            400: 'Bad request',
            401: 'Not authenticated',
            404: 'Not found',
            409: 'Conflict',
            413: 'File too large',
            500: 'Server error',
            503: 'Service unavailable',
            504: 'Gateway timeout',
        }

        message = status_messages.get(response.status_code, detail)
        if detail and detail != message:
            message = f"{message}: {detail}"
        return f"{message} (Code: {code})" if code != 'UNKNOWN' else message

    def _get_wallet_header(self) -> dict:
        """
        Get Authorization header carrying the wallet address.

        Raises:
            ValueError: If no wallet address is configured
        """
        wallet = self.config.get_wallet_address()
        if not wallet:
            raise ValueError("No wallet set. Please run: wallet <address>")
        return {'Authorization': wallet}

    def set_wallet(self, address: Optional[str]) -> str:
        """
        Show or set the wallet address.

        Returns:
            Confirmation message
        """
        if address is None:
            wallet = self.config.get_wallet_address()
            return f"Wallet: {wallet}" if wallet else "No wallet set. Please run: wallet <address>"

        if not address.strip():
            return "Error: wallet address cannot be empty"
        self.config.set_wallet_address(address.strip())
        logger.info("Wallet address updated")
        return f"Wallet set to {address.strip()}"

    def upload_file(self, file_path: str, mime_type: Optional[str] = None) -> str:
        """
        Upload a local file.

        Files up to the chunk size go in one multipart request; larger files
        are sent in chunks and then finalized.

        Args:
            file_path: Local path to the file
            mime_type: Optional MIME type (guessed from the name if absent)

        Returns:
            Formatted result message
        """
        try:
            headers = self._get_wallet_header()
        except ValueError as e:
            return f"Error: {e}"

        path = Path(file_path).expanduser()
        if not path.exists():
            return f"Error: File not found: {file_path}"
        if not path.is_file():
            return f"Error: Not a file: {file_path}"

        file_size = path.stat().st_size
        if file_size == 0:
            return f"Error: File is empty: {file_path}"

        mime_type = mime_type or mimetypes.guess_type(path.name)[0] or self.config.get_default_mime_type()

        try:
            response = self._request_with_retry(
                'POST',
                '/storage/check',
                json={'fileSize': file_size},
                headers=dict(headers)
            )
            if response.status_code != 200:
                return f"Upload refused: {self._format_error(response)}"

            if file_size <= self.chunk_size:
                return self._upload_direct(path, file_size, mime_type, headers)
            return self._upload_chunked(path, file_size, mime_type, headers)

        except UploadError as e:
            return f"Error uploading {file_path}: {e}"
        except ConnectionError as e:
            return f"Error: {e}"
        except OSError as e:
            return f"Error reading {file_path}: {e}"

    def _upload_direct(self, path: Path, file_size: int, mime_type: str, headers: dict) -> str:
        data = path.read_bytes()
        response = self._request_with_retry(
            'POST',
            '/upload',
            files={'file': (path.name, data, mime_type)},
            data={'walletAddress': self.config.get_wallet_address(), 'mimeType': mime_type},
            headers=dict(headers)
        )
        if response.status_code != 200:
            raise UploadError(self._format_error(response))

        record = response.json()['file']
        logger.info(f"Uploaded {path.name} directly [cid={record['cid']}]")
        return f"Uploaded: {record['fileName']} (CID: {record['cid']}, Size: {format_file_size(file_size)})"

    def _upload_chunked(self, path: Path, file_size: int, mime_type: str, headers: dict) -> str:
        upload_id = uuid.uuid4().hex
        total_chunks = math.ceil(file_size / self.chunk_size)
        sent = 0

        logger.info(f"Starting chunked upload of {path.name}: {total_chunks} chunks [upload_id={upload_id}]")

        try:
            with open(path, 'rb') as f:
                for chunk_index in range(total_chunks):
                    chunk = f.read(self.chunk_size)
                    response = self._request_with_retry(
                        'POST',
                        '/upload-chunk',
                        files={'file': (path.name, chunk, DEFAULT_MIME_TYPE)},
                        data={
                            'uploadId': upload_id,
                            'chunkIndex': str(chunk_index),
                            'totalChunks': str(total_chunks),
                            'fileName': path.name,
                        },
                        headers=dict(headers)
                    )
                    if response.status_code != 200:
                        raise UploadError(self._format_error(response))

                    sent += len(chunk)
                    progress = (sent / file_size) * 100
                    sys.stdout.write(
                        f"\rUploading {path.name}: {format_file_size(sent)} / {format_file_size(file_size)} ({GREEN}{progress:.1f}%{RESET})"
                    )
                    sys.stdout.flush()
        finally:
            if sent:
                sys.stdout.write('\n')
                sys.stdout.flush()

        response = self._request_with_retry(
            'POST',
            '/finalize-upload',
            max_retries=0,
            json={
                'uploadId': upload_id,
                'fileName': path.name,
                'totalChunks': total_chunks,
                'walletAddress': self.config.get_wallet_address(),
                'fileType': mime_type,
                'fileSize': file_size,
            },
            headers=dict(headers),
            timeout=FINALIZE_TIMEOUT_SECONDS + 30
        )
        if response.status_code != 200:
            raise UploadError(self._format_error(response))

        result = response.json()
        logger.info(f"Finalized chunked upload [upload_id={upload_id}] [cid={result['cid']}]")
        return f"Uploaded: {result['name']} (CID: {result['cid']}, Size: {format_file_size(result['size'])}, {total_chunks} chunks)"

    def list_files(self, refresh: bool = False) -> str:
        """
        List the wallet's files.

        Returns:
            Formatted list of files
        """
        try:
            headers = self._get_wallet_header()
        except ValueError as e:
            return f"Error: {e}"

        params = {'walletAddress': self.config.get_wallet_address()}
        if refresh:
            params['refresh'] = 'true'

        try:
            response = self._request_with_retry('GET', '/upload', headers=headers, params=params)

            if response.status_code != 200:
                return f"Error: {self._format_error(response)}"

            files = response.json()['files']
            if not files:
                return "No files stored yet."

            output = [f"Found {len(files)} file(s):\n"]
            for entry in files:
                kind = "folder" if entry['isFolder'] else entry['mimeType']
                output.append(
                    f"  - {entry['fileName']} ({kind})\n"
                    f"    CID: {entry['cid']}\n"
                    f"    Size: {entry['formattedSize']}\n"
                    f"    Path: {entry['folderPath']}\n"
                    f"    Updated: {entry['lastUpdate']}"
                )
            return '\n'.join(output)

        except ConnectionError as e:
            return f"Error: {e}"

    def delete_file(self, cid: str) -> str:
        """
        Delete a file or folder by content id.

        Returns:
            Formatted result with deletion count
        """
        try:
            headers = self._get_wallet_header()
        except ValueError as e:
            return f"Error: {e}"

        params = {'cid': cid, 'walletAddress': self.config.get_wallet_address()}
        try:
            response = self._request_with_retry('DELETE', '/upload', headers=headers, params=params)

            if response.status_code != 200:
                return f"Error: {self._format_error(response)}"

            data = response.json()
            return f"Deleted {data['deletedCount']} record(s), freed {format_file_size(data['freedBytes'])}."

        except ConnectionError as e:
            return f"Error: {e}"

    def storage_info(self) -> str:
        """
        Show storage figures.

        Returns:
            Formatted usage summary
        """
        try:
            headers = self._get_wallet_header()
        except ValueError as e:
            return f"Error: {e}"

        try:
            response = self._request_with_retry('GET', '/storage/info', headers=headers)

            if response.status_code != 200:
                return f"Error: {self._format_error(response)}"

            data = response.json()
            lines = [
                f"Used:      {format_file_size(data['totalStorageUsed'])}",
                f"Purchased: {format_file_size(data['totalStoragePurchased'])}",
                f"Available: {format_file_size(data['totalAvailableStorage'])}",
                f"Remaining: {format_file_size(data['remainingStorage'])}",
                f"Files:     {data['filesCount']}",
            ]
            if data.get('estimated'):
                lines.append("(estimated: the server could not compute exact figures)")
            return '\n'.join(lines)

        except ConnectionError as e:
            return f"Error: {e}"

    def check_storage(self, file_size: int) -> str:
        """
        Check whether a file of file_size bytes fits.

        Returns:
            Formatted check result
        """
        try:
            headers = self._get_wallet_header()
        except ValueError as e:
            return f"Error: {e}"

        try:
            response = self._request_with_retry(
                'POST',
                '/storage/check',
                json={'fileSize': file_size},
                headers=headers
            )

            if response.status_code != 200:
                return f"Does not fit: {self._format_error(response)}"

            data = response.json()
            return (
                f"Fits. {format_file_size(data['remainingStorage'])} of "
                f"{format_file_size(data['totalAvailableStorage'])} remaining."
            )

        except ConnectionError as e:
            return f"Error: {e}"

    def purchase(self, transaction_hash: str, payment_method: str = "USDT", network: str = "Base") -> str:
        """
        Apply a storage plan purchase.

        Returns:
            Formatted purchase result
        """
        try:
            headers = self._get_wallet_header()
        except ValueError as e:
            return f"Error: {e}"

        payload = {
            'transactionHash': transaction_hash,
            'paymentMethod': payment_method,
            'network': network,
        }
        try:
            response = self._request_with_retry(
                'POST',
                '/storage/purchase',
                max_retries=0,
                json=payload,
                headers=headers
            )

            if response.status_code != 200:
                return f"Purchase failed: {self._format_error(response)}"

            data = response.json()
            return (
                f"Purchase applied. Purchased: {format_file_size(data['totalStoragePurchased'])}, "
                f"available: {format_file_size(data['totalAvailableStorage'])}"
            )

        except ConnectionError as e:
            return f"Error: {e}"

    def download(self, cid: str, output_path: Optional[str] = None) -> str:
        """
        Download content by content id with progress feedback.

        Args:
            cid: Content identifier
            output_path: Optional output file (defaults to <download_dir>/<cid>)

        Returns:
            Success message with download details
        """
        output_file = Path(output_path).expanduser() if output_path else self.config.get_download_dir() / cid
        if output_file.exists() and output_file.is_dir():
            output_file = output_file / cid

        try:
            with self.session.stream('GET', f'/retrieve/{cid}') as response:
                if response.status_code != 200:
                    response.read()
                    return f"Error: {self._format_error(response)}"

                output_file.parent.mkdir(parents=True, exist_ok=True)
                total_size = int(response.headers.get('Content-Length', 0))
                downloaded = 0

                with open(output_file, 'wb') as f:
                    for chunk in response.iter_bytes(chunk_size=8192):
                        f.write(chunk)
                        downloaded += len(chunk)
                        if total_size > 0:
                            progress = (downloaded / total_size) * 100
                            sys.stdout.write(
                                f"\rDownloading {cid}: {format_file_size(downloaded)} / {format_file_size(total_size)} ({GREEN}{progress:.1f}%{RESET})"
                            )
                        else:
                            sys.stdout.write(f"\rDownloading {cid}: {format_file_size(downloaded)}")
                        sys.stdout.flush()

                sys.stdout.write('\n')
                sys.stdout.flush()

            return f"Downloaded: {cid} ({format_file_size(downloaded)})\nSaved to: {output_file.absolute()}"

        except httpx.ConnectError:
            return "Error: Cannot connect to HashVault server. Is it running?"
        except httpx.TimeoutException:
            return "Error: Request timed out. Server may be overloaded."
        except IOError as e:
            return f"Error writing file: {e}"

    def close(self) -> None:
        """Close HTTP session."""
        self.session.close()
