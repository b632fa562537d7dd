import json
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

from changescribe.vcs.hosting_client import GhClient, GhError


class DummyProc(SimpleNamespace):
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""


class TestGhClient(unittest.TestCase):
    def test_is_available(self) -> None:
        """Test detecting the gh executable."""
        with patch("subprocess.run", return_value=DummyProc(returncode=0, stdout="gh version 2", stderr="")):
            self.assertTrue(GhClient().is_available())
        with patch("subprocess.run", side_effect=FileNotFoundError("gh")):
            self.assertFalse(GhClient().is_available())

    def test_find_open_pr(self) -> None:
        """Test finding an open PR."""
        prs = [{"number": 7, "title": "feat: x", "url": "https://example.com/pr/7"}]
        with patch.object(GhClient, "_run", autospec=True, return_value=DummyProc(returncode=0, stdout=json.dumps(prs))) as mock_run:
            found = GhClient(Path("/repo")).find_open_pr("main", "feature/x")
        self.assertEqual(found["number"], 7)
        args = mock_run.call_args.args[1]
        self.assertEqual(args[:2], ["pr", "list"])
        self.assertIn("--head", args)
        self.assertIn("feature/x", args)

    def test_find_open_pr_failures_mean_none(self) -> None:
        """Test that lookup failures mean no PR."""
        for proc in (
            DummyProc(returncode=1, stdout="", stderr="auth required"),
            DummyProc(returncode=0, stdout="not json", stderr=""),
            DummyProc(returncode=0, stdout="[]", stderr=""),
        ):
            with patch.object(GhClient, "_run", autospec=True, return_value=proc):
                self.assertIsNone(GhClient().find_open_pr("main", "x"))

    def test_create_pr_uses_body_file(self) -> None:
        """Test that PR creation passes the body through a file."""
        seen = {}

        def fake_run(self, args):
            body_path = Path(args[args.index("--body-file") + 1])
            seen["args"] = args
            seen["body"] = body_path.read_text(encoding="utf-8")
            seen["path"] = body_path
            return DummyProc(returncode=0, stdout="https://example.com/pr/8\n", stderr="")

        with patch.object(GhClient, "_run", autospec=True, side_effect=fake_run):
            url = GhClient().create_pr("main", "feature/x", "Adds x", "Body `text`", draft=True)

        self.assertEqual(url, "https://example.com/pr/8")
        self.assertEqual(seen["body"], "Body `text`")
        self.assertIn("--draft", seen["args"])
        self.assertEqual(seen["args"][seen["args"].index("--title") + 1], "Adds x")
        self.assertTrue(seen["path"].name.startswith("pr-body-"))
        self.assertFalse(seen["path"].exists())

    def test_create_pr_failure(self) -> None:
        """Test that a failed PR creation raises GhError."""
        proc = DummyProc(returncode=1, stdout="", stderr="a pull request already exists")
        with patch.object(GhClient, "_run", autospec=True, return_value=proc):
            with self.assertRaises(GhError) as ctx:
                GhClient().create_pr("main", "x", "t", "b")
        self.assertIn("already exists", str(ctx.exception))

    def test_edit_pr(self) -> None:
        """Test editing an existing PR."""
        with patch.object(GhClient, "_run", autospec=True, return_value=DummyProc(returncode=0)) as mock_run:
            GhClient().edit_pr(7, "New title", "body")
        args = mock_run.call_args.args[1]
        self.assertEqual(args[:3], ["pr", "edit", "7"])
        self.assertEqual(args[-2:], ["--title", "New title"])


if __name__ == "__main__":
    unittest.main()
