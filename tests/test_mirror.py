"""Tests for the client's local persistent mirror."""

from daily_vibe.client import LocalMirror


class TestLocalMirror:
    """The mirror degrades to empty instead of failing."""

    def test_missing_file_is_empty(self, tmp_path):
        assert LocalMirror(tmp_path / "absent.json").load() == {}

    def test_save_and_load(self, tmp_path):
        mirror = LocalMirror(tmp_path / "nested" / "mirror.json")

        assert mirror.save({"tasks": [{"id": "a"}], "pendingTasks": []}) is True
        assert mirror.get("tasks") == [{"id": "a"}]
        assert mirror.get("events", []) == []
        assert not (tmp_path / "nested" / "mirror.json.tmp").exists()

    def test_corrupt_content_reads_as_empty(self, tmp_path):
        path = tmp_path / "mirror.json"
        path.write_text("{not json", encoding="utf-8")

        assert LocalMirror(path).load() == {}

    def test_non_object_content_reads_as_empty(self, tmp_path):
        path = tmp_path / "mirror.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")

        assert LocalMirror(path).load() == {}

    def test_quota_exceeded_keeps_previous_contents(self, tmp_path):
        mirror = LocalMirror(tmp_path / "mirror.json", max_bytes=64)
        mirror.save({"tasks": []})

        assert mirror.save({"tasks": [{"title": "x" * 100}]}) is False
        assert mirror.load() == {"tasks": []}

    def test_clear(self, tmp_path):
        mirror = LocalMirror(tmp_path / "mirror.json")
        mirror.save({"tasks": []})

        mirror.clear()
        mirror.clear()

        assert mirror.load() == {}
