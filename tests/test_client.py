"""Tests for the table and storage REST clients."""
import re

import pytest
import requests

from listing_desk.api import ListingStoreClient, PhotoStorageClient, ListingStoreError, StoreNotConfiguredError
from listing_desk.models import PROPERTY_ID

from conftest import make_response


BASE_URL = "https://example.supabase.co"


@pytest.fixture
def store(mock_session):
    return ListingStoreClient(base_url=BASE_URL, api_key="anon", table="mlianglistings", session=mock_session)


@pytest.fixture
def storage(mock_session):
    return PhotoStorageClient(base_url=BASE_URL, api_key="anon", bucket="photos", session=mock_session)


def call_kwargs(session, index=-1):
    return session.request.call_args_list[index].kwargs


class TestListingStoreClient:
    def test_list_all(self, store, mock_session):
        mock_session.request.return_value = make_response(200, [{PROPERTY_ID: 1}])
        assert store.list_all() == [{PROPERTY_ID: 1}]
        kwargs = call_kwargs(mock_session)
        assert kwargs["method"] == "GET"
        assert kwargs["url"] == f"{BASE_URL}/rest/v1/mlianglistings"
        assert kwargs["params"] == {"select": "*"}

    def test_create_assigns_next_id(self, store, mock_session):
        existing = [{PROPERTY_ID: 2}, {PROPERTY_ID: 5}, {PROPERTY_ID: 9}]
        mock_session.request.side_effect = [
            make_response(200, existing),
            make_response(201, [{PROPERTY_ID: 10, "Village": "Ayala"}]),
        ]
        saved = store.create({"Village": "Ayala"})
        assert saved[PROPERTY_ID] == 10
        kwargs = call_kwargs(mock_session)
        assert kwargs["method"] == "POST"
        assert kwargs["json"] == {"Village": "Ayala", PROPERTY_ID: 10}
        assert kwargs["headers"]["Prefer"] == "return=representation"

    def test_create_keeps_given_id(self, store, mock_session):
        mock_session.request.return_value = make_response(201, [{PROPERTY_ID: 42}])
        store.create({PROPERTY_ID: 42})
        assert mock_session.request.call_count == 1

    def test_update_uses_eq_filter_and_never_patches_key(self, store, mock_session):
        mock_session.request.return_value = make_response(200, [{PROPERTY_ID: 5, "Notes": "x"}])
        rows = store.update(5, {PROPERTY_ID: 99, "Notes": "x"})
        kwargs = call_kwargs(mock_session)
        assert kwargs["method"] == "PATCH"
        assert kwargs["params"][PROPERTY_ID] == "eq.5"
        assert kwargs["json"] == {"Notes": "x"}
        assert rows[0]["Notes"] == "x"

    def test_delete_many_one_call_each(self, store, mock_session):
        mock_session.request.return_value = make_response(204)
        assert store.delete_many([1, 2]) == 2
        assert [call_kwargs(mock_session, i)["params"][PROPERTY_ID] for i in range(2)] == ["eq.1", "eq.2"]

    def test_get_missing_returns_none(self, store, mock_session):
        mock_session.request.return_value = make_response(200, [])
        assert store.get(77) is None

    def test_remote_message_surfaced(self, store, mock_session):
        mock_session.request.return_value = make_response(409, {"message": "duplicate key value"})
        with pytest.raises(ListingStoreError) as exc:
            store.create({PROPERTY_ID: 1})
        assert exc.value.message == "duplicate key value"
        assert exc.value.status_code == 409

    def test_network_error_wrapped(self, store, mock_session):
        mock_session.request.side_effect = requests.ConnectionError("offline")
        with pytest.raises(ListingStoreError) as exc:
            store.list_all()
        assert "offline" in exc.value.message

    def test_not_configured(self, mock_session):
        client = ListingStoreClient(base_url="", api_key="", session=mock_session)
        assert not client.is_configured
        with pytest.raises(StoreNotConfiguredError):
            client.list_all()
        mock_session.request.assert_not_called()


class TestPhotoStorageClient:
    def test_object_key_format(self):
        assert re.fullmatch(r"uploads/\d+-\d{1,6}\.jpg", PhotoStorageClient.make_object_key())

    def test_upload_headers(self, storage, mock_session):
        mock_session.request.return_value = make_response(200, {"Key": "photos/uploads/a.jpg"})
        storage.upload("uploads/a.jpg", b"data")
        kwargs = call_kwargs(mock_session)
        assert kwargs["url"] == f"{BASE_URL}/storage/v1/object/photos/uploads/a.jpg"
        assert kwargs["data"] == b"data"
        assert kwargs["headers"]["x-upsert"] == "false"
        assert kwargs["headers"]["cache-control"] == "max-age=3600"

    def test_public_url_needs_no_request(self, storage, mock_session):
        url = storage.get_public_url("uploads/a.jpg")
        assert url == f"{BASE_URL}/storage/v1/object/public/photos/uploads/a.jpg"
        mock_session.request.assert_not_called()

    def test_remove(self, storage, mock_session):
        mock_session.request.return_value = make_response(200, [])
        storage.remove(["uploads/a.jpg"])
        kwargs = call_kwargs(mock_session)
        assert kwargs["method"] == "DELETE"
        assert kwargs["json"] == {"prefixes": ["uploads/a.jpg"]}
