"""Shared pytest fixtures: a fake Zenodo server and a fake binflate."""

import json
import re
import stat

import httpx
import pytest

from zenodo_upload.client import ZenodoClient

ZENODO_URL = "https://zenodo.test"

FAKE_BINFLATE = """#!/bin/sh
# Writes every log category binflate can produce, tagged with the input file
for t in iono scint navsol channel txinfo iq; do
    echo "$t $2" > "$t.log"
done
"""


class FakeZenodo:
    """In-memory stand-in for the deposition API, served through httpx.MockTransport."""

    def __init__(self):
        self.depositions = {}
        self.next_id = 1000
        self.calls = []
        self.fail_create = False
        self.fail_metadata = False
        self.fail_listing = False
        self.fail_uploads = 0

    def add_file(self, deposition_id, name, size):
        self.depositions[deposition_id]['files'][name] = size

    def size_of(self, deposition_id):
        return sum(self.depositions[deposition_id]['files'].values())

    def _deposition_json(self, dep_id):
        return {
            "id": dep_id,
            "state": "unsubmitted",
            "submitted": False,
            "links": {
                "bucket": f"{ZENODO_URL}/api/files/bucket-{dep_id}",
                "html": f"{ZENODO_URL}/deposit/{dep_id}",
            },
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = request.read()
        method, path = request.method, request.url.path
        self.calls.append((method, path))

        if request.headers.get('Authorization') != 'Bearer test-token':
            return httpx.Response(401, json={"status": 401, "message": "Invalid token"})

        if method == 'POST' and path == '/api/deposit/depositions':
            if self.fail_create:
                return httpx.Response(403, json={"status": 403, "message": "Permission denied."})
            dep_id = self.next_id
            self.next_id += 1
            self.depositions[dep_id] = {'files': {}, 'metadata': None, 'published': False}
            return httpx.Response(201, json=self._deposition_json(dep_id))

        m = re.match(r'^/api/deposit/depositions/(\d+)$', path)
        if m:
            dep_id = int(m.group(1))
            if dep_id not in self.depositions:
                return httpx.Response(404, json={"status": 404, "message": "PID does not exist."})
            if method == 'PUT':
                if self.fail_metadata:
                    return httpx.Response(400, json={
                        "status": 400, "message": "Validation error.",
                        "errors": [{"field": "metadata.creators", "messages": ["Bad creator"]}],
                    })
                self.depositions[dep_id]['metadata'] = json.loads(body)['metadata']
            return httpx.Response(200, json=self._deposition_json(dep_id))

        m = re.match(r'^/api/deposit/depositions/(\d+)/files$', path)
        if m and method == 'GET':
            if self.fail_listing:
                return httpx.Response(503, text="Service Unavailable")
            files = self.depositions[int(m.group(1))]['files']
            return httpx.Response(200, json=[
                {"id": name, "filename": name, "filesize": size} for name, size in files.items()
            ])

        m = re.match(r'^/api/deposit/depositions/(\d+)/actions/publish$', path)
        if m and method == 'POST':
            dep_id = int(m.group(1))
            self.depositions[dep_id]['published'] = True
            return httpx.Response(202, json=self._deposition_json(dep_id))

        m = re.match(r'^/api/files/bucket-(\d+)/(.+)$', path)
        if m and method == 'PUT':
            if self.fail_uploads:
                self.fail_uploads -= 1
                return httpx.Response(500, json={"status": 500, "message": "Internal server error"})
            dep_id, name = int(m.group(1)), m.group(2)
            self.depositions[dep_id]['files'][name] = len(body)
            return httpx.Response(201, json={"key": name, "size": len(body)})

        return httpx.Response(404, json={"status": 404, "message": "Not found"})


@pytest.fixture
def fake_zenodo():
    return FakeZenodo()


@pytest.fixture
def zenodo_client(fake_zenodo):
    http = httpx.Client(transport=httpx.MockTransport(fake_zenodo.handler))
    client = ZenodoClient(ZENODO_URL, "test-token", http_client=http)
    yield client
    client.close()


@pytest.fixture
def fake_binflate(tmp_path):
    script = tmp_path / "bin" / "binflate"
    script.parent.mkdir()
    script.write_text(FAKE_BINFLATE)
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


def make_bin(root, year, doy, receiver, hhmm, size=64, prefix="dataout"):
    """Create a raw file in the standard layout and return its path."""
    bin_dir = root / str(year) / f"{doy:03d}" / receiver / "bin"
    bin_dir.mkdir(parents=True, exist_ok=True)
    path = bin_dir / f"{prefix}_{year}_{doy:03d}_{hhmm}.bin"
    path.write_bytes(b"\x00" * size)
    return path
