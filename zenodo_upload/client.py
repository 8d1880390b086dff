"""HTTP client for the Zenodo deposition API."""

import json
import logging
from pathlib import Path
from typing import Iterator, List, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError
from tqdm import tqdm

from config import ConfigError
from .schemas import APIErrorBody, Deposition, DepositionFile, DepositionMetadata

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_SIZE = 1024 * 1024
UPLOAD_SUCCESS_CODES = (200, 201)


class ZenodoAPIError(Exception):
    """A Zenodo request failed. status_code is None for transport failures."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body

    def __str__(self):
        if self.status_code is None:
            return f"Transport error: {self.message}"
        return f"HTTP {self.status_code}: {self.message}"


class ZenodoClient:
    """Thin typed wrapper over the Zenodo REST endpoints the uploader needs."""

    def __init__(self, base_url: str, token: str, timeout: Optional[float] = None,
                 http_client: Optional[httpx.Client] = None):
        if not token:
            raise ConfigError("Zenodo token is required")
        self.base_url = base_url.rstrip('/')
        self._auth_headers = {'Authorization': f'Bearer {token}'}
        self._http = http_client or httpx.Client(timeout=timeout)

    def close(self):
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def depositions_url(self) -> str:
        return f"{self.base_url}/api/deposit/depositions"

    def deposition_url(self, deposition_id) -> str:
        return f"{self.depositions_url}/{deposition_id}"

    def record_url(self, deposition_id) -> str:
        return f"{self.base_url}/records/{deposition_id}"

    def deposit_page_url(self, deposition_id) -> str:
        return f"{self.base_url}/deposit/{deposition_id}"

    def _raise_for_response(self, response: httpx.Response):
        body = response.text
        try:
            message = APIErrorBody(**response.json()).describe()
        except (ValueError, TypeError, ValidationError):
            message = body[:500] or response.reason_phrase
        raise ZenodoAPIError(message, response.status_code, body)

    def _request(self, method: str, url: str, expected: tuple, **kwargs) -> httpx.Response:
        headers = dict(self._auth_headers)
        headers.update(kwargs.pop('headers', {}))
        try:
            response = self._http.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise ZenodoAPIError(str(e)) from e

        logger.debug(f"{method} {url} -> HTTP {response.status_code}")
        if response.status_code not in expected:
            self._raise_for_response(response)
        return response

    def _parse(self, model, response: httpx.Response):
        try:
            return model(**response.json())
        except (ValueError, TypeError, ValidationError) as e:
            raise ZenodoAPIError(
                f"Unexpected response body: {e}", response.status_code, response.text
            ) from e

    def create_deposition(self) -> Deposition:
        """Create an empty deposition."""
        response = self._request('POST', self.depositions_url, (201,), json={})
        logger.debug(f"Deposition creation response: {response.text}")
        return self._parse(Deposition, response)

    def get_deposition(self, deposition_id) -> Deposition:
        response = self._request('GET', self.deposition_url(deposition_id), (200,))
        return self._parse(Deposition, response)

    def update_metadata(self, deposition_id, metadata: DepositionMetadata) -> Deposition:
        """Replace the deposition's metadata document."""
        response = self._request(
            'PUT', self.deposition_url(deposition_id), (200,),
            content=json.dumps(metadata.to_payload()),
            headers={'Content-Type': 'application/json'},
        )
        return self._parse(Deposition, response)

    def list_files(self, deposition_id) -> List[DepositionFile]:
        response = self._request('GET', f"{self.deposition_url(deposition_id)}/files", (200,))
        try:
            return [DepositionFile(**item) for item in response.json()]
        except (ValueError, TypeError, ValidationError) as e:
            raise ZenodoAPIError(
                f"Unexpected files listing: {e}", response.status_code, response.text
            ) from e

    def publish(self, deposition_id) -> Deposition:
        response = self._request('POST', f"{self.deposition_url(deposition_id)}/actions/publish", (202,))
        return self._parse(Deposition, response)

    def _iter_file(self, path: Path, progress: Optional[tqdm]) -> Iterator[bytes]:
        with open(path, 'rb') as f:
            for chunk in iter(lambda: f.read(UPLOAD_CHUNK_SIZE), b""):
                if progress is not None:
                    progress.update(len(chunk))
                yield chunk

    def upload_file(self, bucket_url: str, path: Path, show_progress: bool = False) -> DepositionFile:
        """
        Stream a file into a deposition bucket.

        Args:
            bucket_url: The deposition's bucket link
            path: Local file to upload, stored under its own filename
            show_progress: Display a tqdm progress bar

        Returns:
            DepositionFile parsed from the bucket response

        Raises:
            ZenodoAPIError: On a non-200/201 response or a transport failure
        """
        path = Path(path)
        file_size = path.stat().st_size
        url = f"{bucket_url.rstrip('/')}/{quote(path.name)}"

        with tqdm(total=file_size, unit='B', unit_scale=True,
                  desc="  Uploading", leave=False, disable=not show_progress) as pbar:
            response = self._request(
                'PUT', url, UPLOAD_SUCCESS_CODES,
                content=self._iter_file(path, pbar if show_progress else None),
                headers={
                    'Content-Type': 'application/octet-stream',
                    'Content-Length': str(file_size),
                },
            )

        try:
            return DepositionFile(**response.json())
        except (ValueError, TypeError, ValidationError):
            return DepositionFile(key=path.name, size=file_size)
