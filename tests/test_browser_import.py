"""Tests for passvault.browser_import — Chrome/Edge CSV import and export."""

import threading

import pytest

from passvault import config
from passvault.browser_import import BrowserImporter, ImportResult, parse_entries
from passvault.exceptions import StorageUnavailable
from passvault.storage import PasswordEntry

HEADER = "name,url,username,password,note\n"


def _write(path, text, encoding="utf-8"):
    with open(path, "w", encoding=encoding, newline="") as f:
        f.write(text)
    return str(path)


@pytest.fixture
def importer(storage):
    return BrowserImporter(storage)


class TestImport:

    def test_browser_row(self, importer, storage, tmp_path):
        path = _write(tmp_path / "in.csv", HEADER + '"Google",https://google.com,alice,secret123\n')
        result = importer.import_from_file(path)

        assert (result.accepted, result.skipped) == (1, 0)
        [entry] = storage.get_entries()
        assert entry.name == "Google"
        assert entry.url == "https://google.com"
        assert entry.username == "alice"
        assert entry.password == "secret123"
        assert entry.notes == ""

    def test_empty_name_defaults_to_url(self, importer, storage, tmp_path):
        path = _write(tmp_path / "in.csv", HEADER + ",https://x.com,bob,pw\n")
        importer.import_from_file(path)
        assert storage.get_entries()[0].name == "https://x.com"

    def test_short_row_skipped_without_aborting(self, importer, storage, tmp_path):
        path = _write(tmp_path / "in.csv", HEADER + (
            "a,https://a.com,u,p\n"
            "only,three,fields\n"
            "c,https://c.com,u,p,note\n"
        ))
        result = importer.import_from_file(path)

        assert result.accepted == 2
        assert result.skipped == 1
        assert result.total == 3
        assert "line 3" in result.diagnostics[0]
        assert [e.url for e in storage.get_entries()] == ["https://a.com", "https://c.com"]

    def test_empty_url_skipped(self, importer, storage, tmp_path):
        path = _write(tmp_path / "in.csv", HEADER + "name,,u,p\nb,https://b.com,u,p\n")
        result = importer.import_from_file(path)
        assert (result.accepted, result.skipped) == (1, 1)

    def test_header_skipped_unvalidated(self, importer, storage, tmp_path):
        path = _write(tmp_path / "in.csv", "whatever\nn,https://n.com,u,p\n")
        result = importer.import_from_file(path)
        assert result.accepted == 1
        assert storage.count() == 1

    def test_header_only(self, importer, storage, tmp_path):
        result = importer.import_from_file(_write(tmp_path / "in.csv", HEADER))
        assert result == ImportResult()

    def test_byte_order_mark(self, importer, storage, tmp_path):
        path = _write(tmp_path / "in.csv", HEADER + "n,https://n.com,u,p\n", encoding="utf-8-sig")
        assert importer.import_from_file(path).accepted == 1

    def test_blank_lines_and_crlf(self, importer, storage, tmp_path):
        path = _write(tmp_path / "in.csv", HEADER.replace("\n", "\r\n") + "\r\nn,https://n.com,u,p\r\n\r\n")
        result = importer.import_from_file(path)
        assert (result.accepted, result.skipped) == (1, 0)
        assert storage.get_entries()[0].password == "p"

    def test_multiline_notes(self, importer, storage, tmp_path):
        path = _write(tmp_path / "in.csv", HEADER + 'n,https://n.com,u,p,"first line\nsecond, line"\n')
        importer.import_from_file(path)
        assert storage.get_entries()[0].notes == "first line\nsecond, line"

    def test_stray_quote_does_not_swallow_later_rows(self, importer, storage):
        result = importer.import_lines([
            HEADER,
            'a,https://a.com,alice,pa"ss\n',
            "b,https://b.com,bob,pw2\n",
            "c,https://c.com,carol,pw3\n",
            "d,https://d.com,dave,pw4\n",
        ])

        assert (result.accepted, result.skipped) == (4, 0)
        assert [e.url for e in storage.get_entries()] == [
            "https://a.com", "https://b.com", "https://c.com", "https://d.com",
        ]
        assert storage.get_entries()[1].password == "pw2"

    def test_unterminated_quote_skips_only_its_row(self, importer, storage):
        result = importer.import_lines([
            HEADER,
            'a,https://a.com,alice,"pass\n',
            "b,https://b.com,bob,pw2\n",
            "c,https://c.com,carol,pw3\n",
        ])

        assert (result.accepted, result.skipped) == (2, 1)
        assert result.diagnostics == ["line 2: unterminated quoted field"]
        assert [e.url for e in storage.get_entries()] == ["https://b.com", "https://c.com"]

    def test_invalid_utf8_skips_only_its_row(self, importer, storage, tmp_path):
        path = tmp_path / "in.csv"
        path.write_bytes(
            b"name,url,username,password\n"
            b"a,https://a.com,u,p\n"
            b"b,https://b.com,u,p\xff\xfe\n"
            b"c,https://c.com,u,p\n"
        )
        result = importer.import_from_file(str(path))

        assert (result.accepted, result.skipped) == (2, 1)
        assert result.diagnostics == ["line 3: invalid UTF-8"]
        assert [e.url for e in storage.get_entries()] == ["https://a.com", "https://c.com"]

    def test_cancel_before_start(self, importer, storage):
        event = threading.Event()
        event.set()
        result = importer.import_lines([HEADER, "n,https://n.com,u,p\n"], cancel_event=event)
        assert result.cancelled
        assert result.accepted == 0
        assert storage.count() == 0

    def test_cancel_between_rows(self, importer, storage):
        event = threading.Event()

        def lines():
            yield HEADER
            yield "a,https://a.com,u,p\n"
            event.set()
            yield "b,https://b.com,u,p\n"

        result = importer.import_lines(lines(), cancel_event=event)
        assert result.cancelled
        assert result.accepted == 1
        assert [e.url for e in storage.get_entries()] == ["https://a.com"]

    def test_storage_failure_propagates(self, importer, storage, monkeypatch):
        def broken_add(entry):
            raise StorageUnavailable("read-only")

        monkeypatch.setattr(storage, "add_entry", broken_add)
        with pytest.raises(StorageUnavailable):
            importer.import_lines([HEADER, "n,https://n.com,u,p\n"])


class TestParseEntries:

    def test_preview_does_not_store(self, storage):
        entries, skipped = parse_entries([HEADER, "n,https://n.com,u,p\n", "bad\n"])
        assert [e.url for e in entries] == ["https://n.com"]
        assert len(skipped) == 1
        assert skipped[0].line_number == 3
        assert storage.count() == 0


class TestExport:

    def test_header_and_rows(self, importer, storage):
        storage.add_entry(PasswordEntry(name="B", url="https://b.com", username="u", password="p"))
        storage.add_entry(PasswordEntry(name="A, Inc", url="https://a.com", username="u",
                                        password='p"w', notes="line1\nline2"))
        lines = list(importer.export_lines())
        assert lines == [
            config.CSV_EXPORT_HEADER,
            '"A, Inc",https://a.com,u,"p""w","line1\nline2"',
            "B,https://b.com,u,p,",
        ]

    def test_export_to_file(self, importer, storage, tmp_path):
        storage.add_entry(PasswordEntry(url="https://a.com", username="u", password="p"))
        path = str(tmp_path / "out.csv")
        assert importer.export_to_file(path) == 1

        with open(path, "r", encoding="utf-8", newline="") as f:
            content = f.read()
        assert content == "name,url,username,password,note\nhttps://a.com,https://a.com,u,p,\n"
        assert not (tmp_path / "out.csv.tmp").exists()

    def test_export_empty_store(self, importer, tmp_path):
        path = str(tmp_path / "out.csv")
        assert importer.export_to_file(path) == 0
        with open(path, encoding="utf-8") as f:
            assert f.read() == config.CSV_EXPORT_HEADER + "\n"

    def test_export_then_import(self, importer, storage, tmp_path, db_path, cipher):
        originals = [
            PasswordEntry(name="Tricky, \"name\"", url="https://a.com", username="al,ice",
                          password='p,"w\nd', notes="multi\r\nline"),
            PasswordEntry(name="Plain", url="https://b.com", username="bob", password="pw"),
        ]
        for entry in originals:
            storage.add_entry(entry)
        path = str(tmp_path / "out.csv")
        importer.export_to_file(path)

        from passvault.storage import StorageManager
        target = StorageManager(str(tmp_path / "other.db"), cipher=cipher)
        result = BrowserImporter(target).import_from_file(path)
        assert (result.accepted, result.skipped) == (2, 0)

        imported = target.get_entries()
        assert [(e.name, e.url, e.username, e.password, e.notes) for e in imported] == [
            (e.name, e.url, e.username, e.password, e.notes) for e in originals
        ]
