"""
Tests for the maintenance window marker file.
"""
import unittest

from fake_share import FakeShare, make_config

from smbdeploy.config import OfflineSettings
from smbdeploy.core.run_context import RunContext
from smbdeploy.operations.offline import bring_online, marker_path, render_offline_page, take_offline


class TestRenderOfflinePage(unittest.TestCase):

    def test_titles_and_content(self):
        settings = OfflineSettings(meta_title="Be right back", page_title="Updating",
                                   content_html="<p>Soon</p>")
        page = render_offline_page(settings)
        self.assertIn("<title>Be right back</title>", page)
        self.assertIn("<h1>Updating</h1>", page)
        self.assertIn("<p>Soon</p>", page)

    def test_titles_are_escaped(self):
        page = render_offline_page(OfflineSettings(page_title="Tom & Jerry <beta>"))
        self.assertIn("Tom &amp; Jerry &lt;beta&gt;", page)


class TestMaintenanceWindow(unittest.TestCase):

    def setUp(self):
        self.share = FakeShare(max_write_size=64)
        self.config = make_config()
        self.config.paths.remote_root_path = "site"
        self.ctx = RunContext()

    def test_marker_path(self):
        self.assertEqual(marker_path(self.config), "site\\app_offline.htm")

    def test_take_offline_then_online(self):
        self.assertTrue(take_offline(self.share, self.config, self.ctx))
        marker = self.share.files["site\\app_offline.htm"]
        self.assertIn(b"Unavailable for Maintenance", marker.data)

        self.assertTrue(bring_online(self.share, self.config, self.ctx))
        self.assertNotIn("site\\app_offline.htm", self.share.files)

    def test_bring_online_without_marker_is_success(self):
        self.assertTrue(bring_online(self.share, self.config, self.ctx))
        self.assertFalse(self.ctx.cancelled())

    def test_disabled(self):
        self.config.take_server_offline = False
        self.assertTrue(take_offline(self.share, self.config, self.ctx))
        self.assertTrue(bring_online(self.share, self.config, self.ctx))
        self.assertEqual(self.share.calls, [])

    def test_custom_marker_name(self):
        self.config.offline.marker_file_name = "maintenance.htm"
        self.assertTrue(take_offline(self.share, self.config, self.ctx))
        self.assertIn("site\\maintenance.htm", self.share.files)

    def test_cancelled_run_does_not_go_offline(self):
        self.ctx.cancel()
        self.assertFalse(take_offline(self.share, self.config, self.ctx))
        self.assertEqual(self.share.files, {})


if __name__ == "__main__":
    unittest.main()
