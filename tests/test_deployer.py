"""
End-to-end tests for the deployment orchestrator against the in-memory share.
"""
import os
import subprocess
import tempfile
import unittest
from pathlib import Path

from fake_share import FakeShare, make_config

from smbdeploy.config import FileCopySettings
from smbdeploy.core.deployer import Deployer
from smbdeploy.core.file_entry import filetime_from_ns
from smbdeploy.core.run_context import RunContext

T100_NS = 1_600_000_100_000_000_000
T50_NS = 1_600_000_050_000_000_000


class DeployerTestCase(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.project = Path(self.tmpdir.name)
        self.publish = self.project / "publish"
        self.publish.mkdir()

        self.share = FakeShare(max_write_size=16)
        self.config = make_config()
        self.config.project.working_path = str(self.project)
        self.config.project.publish_path = "publish"
        self.config.paths.remote_root_path = "site"
        self.ctx = RunContext()

    def tearDown(self):
        self.tmpdir.cleanup()

    def _local(self, rel: str, data: bytes, mtime_ns: int) -> Path:
        path = self.publish / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        os.utime(path, ns=(mtime_ns, mtime_ns))
        return path

    def _deployer(self, **kwargs) -> Deployer:
        kwargs.setdefault("skip_build", True)
        return Deployer(self.config, self.ctx, session_factory=lambda config, ctx: self.share, **kwargs)


class TestDeployEndToEnd(DeployerTestCase):

    def setUp(self):
        super().setUp()
        self._local("a.txt", b"a" * 100, T100_NS)
        self._local("sub/b.txt", b"b" * 50, T50_NS)
        self.share.put_file("site\\a.txt", b"a" * 100, last_write_time=filetime_from_ns(T100_NS))
        self.share.put_file("site\\c.txt", b"orphan")
        self.share.put_folder("site\\sub")

    def test_copies_skips_and_deletes(self):
        result = self._deployer().run()

        self.assertTrue(result.success, result.errors)
        self.assertEqual(result.errors, [])
        self.assertEqual([e.relative_path for e in result.plan.copy], ["sub/b.txt"])
        self.assertEqual([e.relative_path for e in result.plan.skipped], ["a.txt"])
        self.assertEqual([e.relative_path for e in result.plan.delete_files], ["c.txt"])
        self.assertEqual((result.copied, result.skipped, result.deleted), (1, 1, 1))

        self.assertEqual(self.share.tree(), ["site", "site\\a.txt", "site\\sub", "site\\sub\\b.txt"])
        self.assertEqual(self.share.files["site\\sub\\b.txt"].last_write_time, filetime_from_ns(T50_NS))
        self.assertNotIn(("open", "site\\a.txt"), self.share.calls)

    def test_second_run_copies_nothing(self):
        self.assertTrue(self._deployer().run().success)
        self.share.calls.clear()

        result = Deployer(self.config, RunContext(), session_factory=lambda config, ctx: self.share,
                          skip_build=True).run()

        self.assertTrue(result.success)
        self.assertEqual(result.copied, 0)
        self.assertEqual(result.skipped, 2)
        self.assertEqual(result.deleted, 0)

    def test_maintenance_window_wraps_the_copy(self):
        self._deployer().run()
        ops = [(op, path) for op, path in self.share.calls if op in ("open", "delete")]
        self.assertEqual(ops, [
            ("open", "site\\app_offline.htm"),
            ("open", "site\\sub\\b.txt"),
            ("delete", "site\\c.txt"),
            ("delete", "site\\app_offline.htm"),
        ])

    def test_no_delete(self):
        self.config.delete_orphans = False
        result = self._deployer().run()
        self.assertTrue(result.success)
        self.assertIn("site\\c.txt", self.share.files)

    def test_online_safe_files_are_copied_before_offline(self):
        self._local("wwwroot/site.css", b"body{}", T50_NS)
        self.config.paths.online_copy_folder_paths = ["wwwroot"]
        self._deployer().run()
        opens = [path for op, path in self.share.calls if op == "open"]
        self.assertLess(opens.index("site\\wwwroot\\site.css"), opens.index("site\\app_offline.htm"))
        self.assertGreater(opens.index("site\\sub\\b.txt"), opens.index("site\\app_offline.htm"))

    def test_file_copies(self):
        self._local("appsettings.Production.json", b"{}", T50_NS)
        self.config.paths.file_copies = [FileCopySettings("appsettings.Production.json", "appsettings.json")]
        result = self._deployer().run()
        self.assertTrue(result.success, result.errors)
        self.assertEqual(result.file_copies, 1)
        self.assertEqual(self.share.files["site\\appsettings.json"].data, b"{}")

    def test_static_file_copies_run_before_offline(self):
        self._local("web.Production.config", b"<configuration/>", T50_NS)
        self.config.paths.static_file_copies = [FileCopySettings("web.Production.config", "web.config")]
        result = self._deployer().run()

        self.assertTrue(result.success, result.errors)
        self.assertEqual(result.static_file_copies, 1)
        self.assertEqual(self.share.files["site\\web.config"].data, b"<configuration/>")
        opens = [path for op, path in self.share.calls if op == "open"]
        self.assertLess(opens.index("site\\web.config"), opens.index("site\\app_offline.htm"))

    def test_failure_leaves_site_offline(self):
        self.share.fail("write", "site\\sub\\b.txt", times=5)
        result = self._deployer().run()

        self.assertFalse(result.success)
        self.assertEqual(len(result.errors), 1)
        self.assertIn("site\\sub\\b.txt", result.errors[0])
        self.assertIn("site\\app_offline.htm", self.share.files)
        self.assertIn("site\\c.txt", self.share.files)
        self.assertGreaterEqual(self.share.disconnects, 1)


class TestDeployFailures(DeployerTestCase):

    def test_connect_failure(self):
        result = Deployer(self.config, self.ctx, session_factory=lambda config, ctx: None,
                          skip_build=True).run()
        self.assertFalse(result.success)
        self.assertEqual(len(result.errors), 1)

    def test_build_failure_stops_before_indexing(self):
        def runner(argv, **kwargs):
            return subprocess.CompletedProcess(argv, 2, stdout="compile error\n")

        self.config.project.build_command = "make publish"
        result = self._deployer(skip_build=False, build_runner=runner).run()

        self.assertFalse(result.success)
        self.assertIn("exit code: 2", result.errors[0])
        self.assertEqual(self.share.calls, [])
        self.assertEqual(self.share.disconnects, 1)

    def test_build_runs_in_working_path(self):
        seen = {}

        def runner(argv, **kwargs):
            seen["argv"] = argv
            seen["cwd"] = kwargs["cwd"]
            return subprocess.CompletedProcess(argv, 0, stdout="")

        self.config.project.build_command = ["dotnet", "publish", "-o", "publish"]
        result = self._deployer(skip_build=False, build_runner=runner).run()

        self.assertTrue(result.success, result.errors)
        self.assertEqual(seen["argv"], ["dotnet", "publish", "-o", "publish"])
        self.assertEqual(Path(seen["cwd"]), self.project.resolve())


if __name__ == "__main__":
    unittest.main()
