"""Test fixtures: generated photos, in-memory store/storage doubles, Flask client."""
import io
import json
from unittest.mock import MagicMock

import pytest
import requests
from PIL import Image

from listing_desk.api.client import ListingStoreError, StoreNotConfiguredError
from listing_desk.dashboard import create_app
from listing_desk.models import DEFAULT_FIELDS, PROPERTY_ID, next_property_id


def make_image_bytes(size=(400, 300), color=(40, 90, 160), fmt="JPEG") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def make_logo_bytes(size=(100, 50), color=(255, 0, 0, 255)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def make_response(status_code=200, payload=None) -> requests.Response:
    """A real requests.Response carrying a JSON body."""
    response = requests.Response()
    response.status_code = status_code
    response._content = b"" if payload is None else json.dumps(payload).encode("utf-8")
    response.headers["Content-Type"] = "application/json"
    return response


class FakeStore:
    """In-memory stand-in for ListingStoreClient."""

    table = "listings_test"

    def __init__(self, rows=None, configured=True, fail_create=None):
        self.rows = [dict(r) for r in rows or []]
        self.configured = configured
        self.fail_create = fail_create
        self.created = []
        self.updated = []
        self.deleted = []

    @property
    def is_configured(self):
        return self.configured

    def require_configured(self):
        if not self.configured:
            raise StoreNotConfiguredError()

    def list_all(self):
        self.require_configured()
        return [dict(r) for r in self.rows]

    def get(self, property_id):
        for row in self.rows:
            if str(row.get(PROPERTY_ID)) == str(property_id):
                return dict(row)
        return None

    def create(self, record):
        if self.fail_create:
            raise ListingStoreError(self.fail_create, status_code=409)
        record = dict(record)
        if record.get(PROPERTY_ID) in (None, ""):
            record[PROPERTY_ID] = next_property_id(self.rows)
        self.rows.append(record)
        self.created.append(record)
        return dict(record)

    def update(self, property_id, patch):
        self.updated.append((property_id, dict(patch)))
        matched = []
        for row in self.rows:
            if str(row.get(PROPERTY_ID)) == str(property_id):
                row.update(patch)
                matched.append(dict(row))
        return matched

    def delete(self, property_id):
        self.deleted.append(property_id)
        self.rows = [r for r in self.rows if str(r.get(PROPERTY_ID)) != str(property_id)]

    def delete_many(self, property_ids):
        count = 0
        for property_id in property_ids:
            self.delete(property_id)
            count += 1
        return count


class FakeStorage:
    """In-memory stand-in for PhotoStorageClient; `fail_on` holds 1-based upload numbers that fail."""

    bucket = "photos_test"
    base_url = "https://example.supabase.co"

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.objects = {}
        self.attempts = 0
        self.removed = []
        self._counter = 0

    def make_object_key(self, extension="jpg"):
        self._counter += 1
        return f"uploads/key-{self._counter}.{extension}"

    def upload(self, path, data, content_type="image/jpeg", cache_control="3600", upsert=False):
        self.attempts += 1
        if self.attempts in self.fail_on:
            raise ListingStoreError("The resource already exists", status_code=409)
        self.objects[path] = data
        return {"Key": path}

    def get_public_url(self, path):
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"

    def remove(self, paths):
        self.removed.extend(paths)
        for path in paths:
            self.objects.pop(path, None)
        return [{"name": p} for p in paths]


SAMPLE_ROWS = [
    {PROPERTY_ID: 2, "Status": "Active", "Village": "Ayala Heights", "Location": "Cebu City",
     "Listing Price": "8.5M", "Lot Area": 250, "Photos": "", "Video": ""},
    {PROPERTY_ID: 5, "Status": "Draft", "Village": "Maria Luisa", "Location": "Banilad",
     "Listing Price": "25M", "Lot Area": 600, "Photos": "https://example.com/a.jpg", "Video": ""},
    {PROPERTY_ID: 9, "Status": "Active", "Village": "Sto. Nino", "Location": "Mandaue",
     "Listing Price": "3M", "Lot Area": 120, "Photos": "", "Video": "https://youtu.be/x"},
]


@pytest.fixture
def photo_bytes():
    return make_image_bytes()


@pytest.fixture
def logo_bytes():
    return make_logo_bytes()


@pytest.fixture
def mock_session():
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    return session


@pytest.fixture
def fake_store():
    return FakeStore(SAMPLE_ROWS)


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def app(fake_store, fake_storage):
    app = create_app(store=fake_store, storage=fake_storage, fields=list(DEFAULT_FIELDS))
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
