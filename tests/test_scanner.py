"""
Tests for local and remote tree indexing.
"""
import os
import tempfile
import unittest
from pathlib import Path

from fake_share import FakeShare, make_config

from smbdeploy.core.file_entry import filetime_from_ns
from smbdeploy.core.run_context import RunContext
from smbdeploy.core.workers import WorkerPool
from smbdeploy.operations.scanner import index_local, index_remote


class TestIndexLocal(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self.tmpdir.name)
        self.config = make_config()
        self.ctx = RunContext()

    def tearDown(self):
        self.tmpdir.cleanup()

    def _write(self, rel: str, data: bytes = b"x"):
        path = self.root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    def test_indexes_files_and_folders(self):
        self._write("a.txt", b"a" * 100)
        self._write("sub/b.txt", b"b" * 50)
        entries = index_local(self.root, self.config, self.ctx)
        by_path = {e.relative_path: e for e in entries}
        self.assertEqual(set(by_path), {"a.txt", "sub", "sub/b.txt"})
        self.assertTrue(by_path["sub"].is_folder)
        self.assertEqual(by_path["sub"].size_bytes, 0)
        self.assertEqual(by_path["a.txt"].size_bytes, 100)
        self.assertEqual(by_path["sub/b.txt"].level, 2)
        self.assertFalse(self.ctx.cancelled())

    def test_folders_come_before_files(self):
        self._write("z.txt")
        self._write("a/inner.txt")
        entries = index_local(self.root, self.config, self.ctx)
        self.assertEqual([e.relative_path for e in entries], ["a", "a/inner.txt", "z.txt"])

    def test_last_write_time_is_filetime(self):
        path = self._write("a.txt")
        os.utime(path, ns=(1_700_000_000_123_456_789, 1_700_000_000_123_456_789))
        entry = index_local(self.root, self.config, self.ctx)[0]
        self.assertEqual(entry.last_write_time, filetime_from_ns(1_700_000_000_123_456_789))
        self.assertEqual(entry.last_write_time % 10, 0)

    def test_ignored_folder_is_not_descended(self):
        self._write("wwwroot/uploads/deep/photo.jpg")
        self._write("wwwroot/site.css")
        self.config.paths.ignore_folder_paths = ["wwwroot/uploads"]
        entries = index_local(self.root, self.config, self.ctx)
        paths = [e.relative_path for e in entries]
        self.assertEqual(paths, ["wwwroot", "wwwroot/site.css"])

    def test_ignore_by_name(self):
        self._write("a/node_modules/x.js")
        self._write("a/b.txt")
        self._write("Thumbs.db")
        self.config.paths.ignore_folders_named = ["node_modules"]
        self.config.paths.ignore_files_named = ["Thumbs.db"]
        paths = [e.relative_path for e in index_local(self.root, self.config, self.ctx)]
        self.assertEqual(paths, ["a", "a/b.txt"])

    def test_hidden_entries_are_skipped(self):
        self._write(".git/config")
        self._write(".env")
        self._write("visible.txt")
        paths = [e.relative_path for e in index_local(self.root, self.config, self.ctx)]
        self.assertEqual(paths, ["visible.txt"])

    def test_missing_root_cancels(self):
        entries = index_local(self.root / "nope", self.config, self.ctx)
        self.assertEqual(entries, [])
        self.assertTrue(self.ctx.cancelled())
        self.assertEqual(len(self.ctx.errors), 1)

    @unittest.skipIf(os.name == "nt", "symlinks need extra privileges on Windows")
    def test_symlink_loop_cancels(self):
        self._write("a/inner.txt")
        os.symlink(self.root, self.root / "a" / "loop", target_is_directory=True)
        index_local(self.root, self.config, self.ctx)
        self.assertTrue(self.ctx.cancelled())
        self.assertEqual(len(self.ctx.errors), 1)
        self.assertIn("loop", self.ctx.errors[0])

    @unittest.skipIf(os.name == "nt", "symlinks need extra privileges on Windows")
    def test_symlinked_folder_is_followed(self):
        self._write("shared/logo.png")
        os.symlink(self.root / "shared", self.root / "images", target_is_directory=True)
        paths = [e.relative_path for e in index_local(self.root, self.config, self.ctx)]
        self.assertIn("images/logo.png", paths)
        self.assertFalse(self.ctx.cancelled())

    def test_flags_from_config(self):
        self._write("wwwroot/css/site.css")
        self._write("robots.txt")
        self._write("bin/app.dll")
        self.config.paths.online_copy_folder_paths = ["wwwroot"]
        self.config.paths.static_paths = ["robots.txt"]
        by_path = {e.relative_path: e for e in index_local(self.root, self.config, self.ctx)}
        self.assertTrue(by_path["wwwroot/css/site.css"].online_safe)
        self.assertFalse(by_path["wwwroot"].online_safe)
        self.assertTrue(by_path["robots.txt"].static)
        self.assertFalse(by_path["bin/app.dll"].online_safe)
        self.assertFalse(by_path["bin/app.dll"].static)


class TestIndexRemote(unittest.TestCase):

    def setUp(self):
        self.share = FakeShare()
        self.config = make_config()
        self.config.paths.remote_root_path = "site"
        self.ctx = RunContext()

    def test_indexes_relative_to_remote_root(self):
        self.share.put_file("site\\a.txt", b"a" * 10, last_write_time=100)
        self.share.put_file("site\\sub\\b.txt", b"b", last_write_time=50)
        entries = index_remote(self.share, self.config, self.ctx)
        by_path = {e.relative_path: e for e in entries}
        self.assertEqual(set(by_path), {"a.txt", "sub", "sub/b.txt"})
        self.assertEqual(by_path["a.txt"].last_write_time, 100)
        self.assertEqual(by_path["a.txt"].size_bytes, 10)
        self.assertEqual(by_path["sub/b.txt"].full_path, "site\\sub\\b.txt")

    def test_missing_root_is_empty(self):
        self.assertEqual(index_remote(self.share, self.config, self.ctx), [])
        self.assertFalse(self.ctx.cancelled())

    def test_share_root(self):
        self.config.paths.remote_root_path = ""
        self.share.put_file("a.txt")
        paths = [e.relative_path for e in index_remote(self.share, self.config, self.ctx)]
        self.assertEqual(paths, ["a.txt"])

    def test_hidden_and_ignored_are_skipped(self):
        self.share.put_file("site\\a.txt")
        self.share.put_file("site\\secret.txt", hidden=True)
        self.share.put_folder("site\\logs")
        self.share.put_file("site\\logs\\today.log")
        self.config.paths.ignore_folder_paths = ["logs"]
        paths = [e.relative_path for e in index_remote(self.share, self.config, self.ctx)]
        self.assertEqual(paths, ["a.txt"])
        self.assertNotIn(("list_folder", "site\\logs"), self.share.calls)

    def test_listing_failure_names_the_path(self):
        self.share.put_file("site\\sub\\b.txt")
        self.share.fail("list_folder", "site\\sub")
        index_remote(self.share, self.config, self.ctx)
        self.assertTrue(self.ctx.cancelled())
        self.assertEqual(len(self.ctx.errors), 1)
        self.assertIn("site\\sub", self.ctx.errors[0])

    def test_parallel_walk_matches_serial(self):
        for i in range(5):
            for j in range(3):
                self.share.put_file(f"site\\d{i}\\e{j}\\f.txt", b"x", last_write_time=i)
        pool = WorkerPool(self.config, self.ctx, session=self.share)
        parallel = index_remote(self.share, self.config, self.ctx, pool=pool)
        serial = index_remote(self.share, self.config, RunContext())
        self.assertEqual(sorted(e.relative_path for e in parallel),
                         sorted(e.relative_path for e in serial))
        self.assertEqual(len(parallel), 5 + 15 + 15)


if __name__ == "__main__":
    unittest.main()
