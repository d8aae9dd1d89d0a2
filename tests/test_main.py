"""Tests for the listing-desk command line."""
import io
import json
import zipfile

import pytest

from listing_desk import main as cli
from listing_desk.api import Config
from listing_desk.models import PROPERTY_ID

from conftest import SAMPLE_ROWS, FakeStorage, FakeStore, make_image_bytes


@pytest.fixture
def clients(monkeypatch):
    store, storage = FakeStore(SAMPLE_ROWS), FakeStorage()
    monkeypatch.setattr(cli, "create_clients", lambda config: (store, storage))
    monkeypatch.setattr(Config, "SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setattr(Config, "SUPABASE_ANON_KEY", "anon")
    return store, storage


@pytest.fixture
def photos(tmp_path):
    paths = []
    for name in ("a.jpg", "b.jpg"):
        path = tmp_path / name
        path.write_bytes(make_image_bytes())
        paths.append(str(path))
    return paths


class TestListingCommands:
    def test_list_with_search(self, clients, capsys):
        cli.main(["list", "--search", "mandaue"])
        rows = json.loads(capsys.readouterr().out)
        assert [r[PROPERTY_ID] for r in rows] == [9]

    def test_create(self, clients, capsys):
        store, _ = clients
        cli.main(["create", "--data", '{"Village": "Ayala", "Location": "Cebu"}'])
        assert store.created[0][PROPERTY_ID] == 10
        assert "created successfully" in capsys.readouterr().out

    def test_create_invalid_exits(self, clients, capsys):
        with pytest.raises(SystemExit) as exc:
            cli.main(["create", "--data", '{"Village": "Ayala"}'])
        assert exc.value.code == 1
        assert "Location: is required" in capsys.readouterr().err

    def test_update_sends_only_given_fields(self, clients):
        store, _ = clients
        cli.main(["update", "5", "--data", '{"Property ID": 77, "Notes": "Reduced", "CGT": ""}'])
        assert store.updated == [("5", {"Notes": "Reduced", "CGT": None})]

    def test_update_step_from_stored_value(self, clients, capsys):
        store, _ = clients
        cli.main(["update", "2", "--step", "Lot Area=10", "--step", "Floor Area=-3"])
        assert store.updated == [("2", {"Lot Area": 260, "Floor Area": 0})]
        assert "updated successfully" in capsys.readouterr().out

    def test_update_step_rejects_text_field(self, clients, capsys):
        with pytest.raises(SystemExit) as exc:
            cli.main(["update", "2", "--step", "Village=1"])
        assert exc.value.code == 1
        assert "--step expects FIELD=DELTA" in capsys.readouterr().out

    def test_update_missing_listing_exits(self, clients, capsys):
        with pytest.raises(SystemExit) as exc:
            cli.main(["update", "404", "--data", '{"Notes": "x"}'])
        assert exc.value.code == 1
        assert "Listing 404 not found" in capsys.readouterr().err

    def test_delete_without_prompt(self, clients):
        store, _ = clients
        cli.main(["delete", "2", "5", "--yes"])
        assert store.deleted == ["2", "5"]

    def test_post(self, clients, capsys):
        cli.main(["post", "9"])
        assert capsys.readouterr().out.strip().endswith("PM for Video")

    def test_unconfigured_exits(self, monkeypatch):
        monkeypatch.setattr(Config, "SUPABASE_URL", "")
        with pytest.raises(SystemExit) as exc:
            cli.main(["list"])
        assert exc.value.code == 1


class TestPhotoCommands:
    def test_watermark_to_zip(self, photos, tmp_path, capsys):
        target = tmp_path / "out.zip"
        cli.main(["watermark", *photos, "--zip", str(target), "--contact-text", "Call"])
        with zipfile.ZipFile(io.BytesIO(target.read_bytes())) as archive:
            assert archive.namelist() == ["watermarked-a.jpg", "watermarked-b.jpg"]

    def test_watermark_to_directory(self, photos, tmp_path):
        output = tmp_path / "out"
        cli.main(["watermark", *photos, "--output", str(output), "--anchor", "center"])
        assert sorted(p.name for p in output.iterdir()) == ["watermarked-a.jpg", "watermarked-b.jpg"]

    def test_upload(self, clients, photos, capsys):
        store, storage = clients
        cli.main(["upload", *photos, "--property-id", "321"])
        assert store.created[-1][PROPERTY_ID] == 321
        assert len(storage.objects) == 2
        assert "Successful: 2" in capsys.readouterr().out

    def test_upload_abort_exits(self, clients, photos, monkeypatch):
        store, _ = clients
        failing = FakeStorage(fail_on={1})
        monkeypatch.setattr(cli, "create_clients", lambda config: (store, failing))
        with pytest.raises(SystemExit):
            cli.main(["upload", *photos, "--policy", "abort"])
        assert len(store.created) == 0

    def test_position_help_describes_offset(self, capsys):
        with pytest.raises(SystemExit):
            cli.main(["watermark", "--help"])
        help_text = " ".join(capsys.readouterr().out.split())
        assert "Block offset as a fraction" in help_text
        assert "centre" not in help_text
