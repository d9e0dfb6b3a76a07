"""Tests for the managed .gitignore block."""
from grove.links import gitignore
from grove.links.gitignore import BLOCK_BEGIN, BLOCK_END


class TestManagedBlock:

    def test_add_creates_block(self, tmp_path):
        assert gitignore.add_entry(tmp_path, "/core")
        lines = (tmp_path / ".gitignore").read_text(encoding="utf-8").splitlines()
        assert lines == [BLOCK_BEGIN, "/core", BLOCK_END]

    def test_add_preserves_user_lines(self, tmp_path):
        (tmp_path / ".gitignore").write_text("*.o\nbuild/\n", encoding="utf-8")
        gitignore.add_entry(tmp_path, "/zeta")
        gitignore.add_entry(tmp_path, "/alpha")

        lines = (tmp_path / ".gitignore").read_text(encoding="utf-8").splitlines()
        assert lines[:2] == ["*.o", "build/"]
        assert gitignore.managed_entries(tmp_path) == ["/alpha", "/zeta"]

    def test_add_is_idempotent(self, tmp_path):
        gitignore.add_entry(tmp_path, "/core")
        assert not gitignore.add_entry(tmp_path, "/core")
        assert gitignore.managed_entries(tmp_path) == ["/core"]

    def test_remove_drops_empty_block(self, tmp_path):
        (tmp_path / ".gitignore").write_text("*.o\n", encoding="utf-8")
        gitignore.add_entry(tmp_path, "/core")
        assert gitignore.remove_entry(tmp_path, "/core")
        assert (tmp_path / ".gitignore").read_text(encoding="utf-8") == "*.o\n"

    def test_remove_keeps_other_entries(self, tmp_path):
        gitignore.add_entry(tmp_path, "/a")
        gitignore.add_entry(tmp_path, "/b")
        gitignore.remove_entry(tmp_path, "/a")
        assert gitignore.managed_entries(tmp_path) == ["/b"]

    def test_remove_missing(self, tmp_path):
        assert not gitignore.remove_entry(tmp_path, "/core")
        assert not (tmp_path / ".gitignore").exists()

    def test_entry_outside_block_untouched(self, tmp_path):
        (tmp_path / ".gitignore").write_text("/core\n", encoding="utf-8")
        assert not gitignore.remove_entry(tmp_path, "/core")
        gitignore.add_entry(tmp_path, "/core")
        assert gitignore.managed_entries(tmp_path) == ["/core"]
        assert (tmp_path / ".gitignore").read_text(encoding="utf-8").startswith("/core\n\n")
