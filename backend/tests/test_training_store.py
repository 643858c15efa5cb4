"""
CoinShop - Grading Training Data Store Tests
"""

import json

import pytest

from coinshop.core.exceptions import NotFoundError, ValidationError
from coinshop.services.training import TrainingDataStore

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture
def store(tmp_path):
    return TrainingDataStore(tmp_path / "grading")


class TestAddEntry:
    """Saving labelled photos."""

    def test_saves_file_and_metadata(self, store):
        """The image lands under its type and the entry is listed."""
        entry = store.add_entry(
            PNG_BYTES, "obverse.PNG", "Morgan Dollar", "1921", "MS-63", mint="S", notes="toned"
        )

        assert entry.image.startswith("Morgan-Dollar/1921-S-MS-63-")
        assert entry.image.endswith(".png")
        assert (store.root / entry.image).read_bytes() == PNG_BYTES
        assert entry.mint == "S"
        assert entry.notes == "toned"

        saved = json.loads(store.metadata_path.read_text())
        assert saved[0]["grade"] == "MS-63"
        assert store.list_entries() == [entry]

    def test_mint_defaults_to_philadelphia(self, store):
        """Without a mint mark the entry uses P."""
        entry = store.add_entry(PNG_BYTES, "coin.jpg", "Peace Dollar", "1923", "AU-58")
        assert entry.mint == "P"
        assert "-P-AU-58-" in entry.image

    @pytest.mark.parametrize(
        "image,type_,date,grade",
        [
            (b"", "Morgan", "1921", "MS-63"),
            (PNG_BYTES, "", "1921", "MS-63"),
            (PNG_BYTES, "Morgan", None, "MS-63"),
            (PNG_BYTES, "Morgan", "1921", ""),
        ],
    )
    def test_missing_fields(self, store, image, type_, date, grade):
        """Image, type, date and grade are all required."""
        with pytest.raises(ValidationError):
            store.add_entry(image, "coin.png", type_, date, grade)

    def test_bad_extension(self, store):
        """Only image extensions are accepted."""
        with pytest.raises(ValidationError):
            store.add_entry(PNG_BYTES, "payload.exe", "Morgan", "1921", "MS-63")

    def test_path_segments_are_sanitised(self, store):
        """Labels cannot escape the store directory."""
        entry = store.add_entry(PNG_BYTES, "coin.png", "../../etc", "1921", "MS-63")
        assert ".." not in entry.image
        assert (store.root / entry.image).is_file()


class TestReading:
    """Listing, resolving and stats."""

    def test_corrupt_metadata_reads_empty(self, store):
        """An unreadable metadata file is treated as no entries."""
        store.root.mkdir(parents=True)
        store.metadata_path.write_text("{not json")
        assert store.list_entries() == []
        assert store.stats()["total"] == 0

    def test_image_path(self, store):
        """Stored images resolve; traversal and missing files do not."""
        entry = store.add_entry(PNG_BYTES, "coin.png", "Morgan", "1921", "MS-63")
        assert store.image_path(entry.image).is_file()

        with pytest.raises(NotFoundError):
            store.image_path("../../../etc/passwd")
        with pytest.raises(NotFoundError):
            store.image_path("Morgan/missing.png")

    def test_stats(self, store):
        """Counts by type and grade."""
        store.add_entry(PNG_BYTES, "a.png", "Morgan", "1921", "MS-63")
        store.add_entry(PNG_BYTES, "b.png", "Morgan", "1881", "MS-65")
        store.add_entry(PNG_BYTES, "c.png", "Peace", "1922", "MS-63")

        stats = store.stats()
        assert stats["total"] == 3
        assert stats["by_type"] == {"Morgan": 2, "Peace": 1}
        assert stats["by_grade"] == {"MS-63": 2, "MS-65": 1}
