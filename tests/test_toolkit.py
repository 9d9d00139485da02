"""Toolkit alias listing and profile installation tests."""


from pathlib import Path
import tempfile
import unittest

from pan import toolkit


class ToolkitTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_aliases_use_shell_forms(self) -> None:
        aliases = {a.alias: a.command for a in toolkit.toolkit_aliases()}
        self.assertEqual(aliases["yb"], "yarn build")
        self.assertEqual(aliases["gcmsg"], "git commit -m")
        self.assertEqual(aliases["gpsup"], "git push -u origin")
        self.assertNotIn("ggp", aliases)

    def test_listing_mentions_every_alias(self) -> None:
        listing = toolkit.format_toolkit_listing()
        for alias in toolkit.toolkit_aliases():
            self.assertIn(alias.alias, listing)

    def test_snippet_is_fenced_and_quoted(self) -> None:
        snippet = toolkit.generate_toolkit_snippet()
        lines = snippet.splitlines()
        self.assertEqual(lines[0], toolkit.SENTINEL_BEGIN)
        self.assertEqual(lines[-1], toolkit.SENTINEL_END)
        self.assertIn("alias yi='yarn install'", lines)
        self.assertEqual(toolkit._single_quote("it's"), "'it'\\''s'")

    def test_install_appends_once(self) -> None:
        profile = self.root / "rc"
        profile.write_text("export PATH=/bin", encoding="utf-8")
        first  = toolkit.install_toolkit_aliases(profile)
        second = toolkit.install_toolkit_aliases(profile)
        self.assertTrue(first.installed)
        self.assertFalse(second.installed)
        self.assertEqual(second.reason, "already installed")
        text = profile.read_text(encoding="utf-8")
        self.assertTrue(text.startswith("export PATH=/bin\n"))
        self.assertEqual(text.count(toolkit.SENTINEL_BEGIN), 1)

    def test_install_creates_missing_profile(self) -> None:
        profile = self.root / "nested" / ".zshrc"
        result  = toolkit.install_toolkit_aliases(profile)
        self.assertTrue(result.installed)
        self.assertTrue(profile.exists())

    def test_default_profile_follows_shell(self) -> None:
        home = Path.home()
        self.assertEqual(toolkit.default_profile({"SHELL": "/bin/zsh"}),
                         home / ".zshrc")
        self.assertEqual(toolkit.default_profile({"SHELL": "/bin/bash"}),
                         home / ".bashrc")
        self.assertEqual(toolkit.default_profile({}), home / ".profile")


if __name__ == "__main__":
    unittest.main()
