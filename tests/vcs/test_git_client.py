import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

from changescribe.summary.commit_model import Commit
from changescribe.vcs.change_set import ChangeSet
from changescribe.vcs.git_client import (
    DIFF_TOO_LARGE_NOTICE,
    MAX_COMMIT_DIFF_CHARS,
    GitClient,
    GitError,
    GitOutputTooLarge,
)


class DummyProc(SimpleNamespace):
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""


def ok(stdout: str = "") -> DummyProc:
    return DummyProc(returncode=0, stdout=stdout, stderr="")


class TestRun(unittest.TestCase):
    def test_run_raises_on_failure(self) -> None:
        """Test that a failing git command raises GitError."""
        with patch("subprocess.run", return_value=DummyProc(returncode=1, stdout="", stderr="fatal: bad")):
            with self.assertRaises(GitError) as ctx:
                GitClient(Path("/repo"))._run(["status"])
        self.assertEqual(str(ctx.exception), "fatal: bad")

    def test_run_unchecked_returns_result(self) -> None:
        """Test that unchecked runs return the result."""
        with patch("subprocess.run", return_value=DummyProc(returncode=1, stdout="x", stderr="")):
            result = GitClient(Path("/repo"))._run(["status"], check=False)
        self.assertEqual(result.returncode, 1)

    def test_run_output_too_large(self) -> None:
        """Test that oversized output raises GitOutputTooLarge."""
        with patch("subprocess.run", return_value=ok("x" * 11)):
            with self.assertRaises(GitOutputTooLarge):
                GitClient(Path("/repo"))._run(["diff"], max_bytes=10)

    def test_run_limit_counts_encoded_bytes(self) -> None:
        """Test that the output limit counts UTF-8 bytes."""
        # Six characters, twelve UTF-8 bytes.
        with patch("subprocess.run", return_value=ok("éééééé")):
            with self.assertRaises(GitOutputTooLarge):
                GitClient(Path("/repo"))._run(["diff"], max_bytes=10)
        with patch("subprocess.run", return_value=ok("éééee")):
            result = GitClient(Path("/repo"))._run(["diff"], max_bytes=10)
        self.assertEqual(result.stdout, "éééee")

    def test_git_missing(self) -> None:
        """Test that a missing git executable raises GitError."""
        with patch("subprocess.run", side_effect=FileNotFoundError("git")):
            with self.assertRaises(GitError):
                GitClient(Path("/repo"))._run(["status"])

    def test_find_repo_root(self) -> None:
        """Test finding the repository root from a subdirectory."""
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / ".git").mkdir()
            nested = root / "a" / "b"
            nested.mkdir(parents=True)
            self.assertEqual(GitClient.find_repo_root(nested), root)


class TestCollectChangeSet(unittest.TestCase):
    def test_clean_tree(self) -> None:
        """Test collecting changes from a clean tree."""
        with patch.object(GitClient, "_run", autospec=True, return_value=ok("")):
            self.assertEqual(GitClient(Path("/repo")).collect_change_set(), ChangeSet.empty())

    def test_stages_everything_when_nothing_staged(self) -> None:
        """Test that everything is staged when nothing was staged."""
        calls = []
        staged = {"done": False}

        def fake_run(self, args, check=True, max_bytes=None):
            calls.append(args)
            if args[0] == "status":
                return ok(" M app.py\n?? logo.png\n")
            if args[0] == "add":
                staged["done"] = True
                return ok()
            if args[:3] == ["diff", "--staged", "--name-status"]:
                return ok("M\tapp.py\nA\tlogo.png\n" if staged["done"] else "")
            if args[:3] == ["diff", "--staged", "--name-only"]:
                return ok("app.py\nlogo.png\n")
            if args[:3] == ["diff", "--staged", "-U3"] and "--" in args:
                return ok("+print('hi')\n" * 500)
            if args[:3] == ["diff", "--staged", "-U3"]:
                return ok("full diff")
            if args[:3] == ["diff", "--staged", "--stat"]:
                return ok(" app.py | 1 +\n")
            if args[0] == "log":
                assert check is False
                return ok("abc123 feat: init\n")
            if args[0] == "branch":
                return ok("main\n")
            raise AssertionError(f"Unexpected git command: {args}")

        with patch.object(GitClient, "_run", autospec=True, side_effect=fake_run):
            change_set = GitClient(Path("/repo")).collect_change_set()

        self.assertIn(["add", "."], calls)
        self.assertTrue(change_set.has_changes)
        self.assertEqual(change_set.file_changes, "M\tapp.py\nA\tlogo.png\n")
        self.assertEqual(change_set.modified_files, ("app.py", "logo.png"))
        self.assertEqual(change_set.detailed_diff, "full diff")
        self.assertEqual(change_set.last_commit, "abc123 feat: init")
        self.assertEqual(change_set.current_branch, "main")
        # Unknown file types are not analyzed.
        self.assertEqual([item.file for item in change_set.file_analysis], ["app.py"])
        self.assertEqual(change_set.file_analysis[0].type, "Python")
        self.assertEqual(len(change_set.file_analysis[0].changes), 2000)

    def test_oversized_diff_uses_notice(self) -> None:
        """Test that an oversized diff is replaced by a notice."""
        def fake_run(self, args, check=True, max_bytes=None):
            if args[0] == "status":
                return ok(" M a.py\n")
            if args == ["diff", "--staged", "-U3", "--diff-filter=ACMRT"]:
                raise GitOutputTooLarge("too big")
            if args[:3] == ["diff", "--staged", "-U3"]:
                raise GitOutputTooLarge("too big")
            if args[:3] == ["diff", "--staged", "--name-only"]:
                return ok("a.py\n")
            return ok("x\n")

        with patch.object(GitClient, "_run", autospec=True, side_effect=fake_run):
            change_set = GitClient(Path("/repo")).collect_change_set()
        self.assertEqual(change_set.detailed_diff, DIFF_TOO_LARGE_NOTICE)
        self.assertEqual(change_set.file_analysis, ())


class TestCommitAndPush(unittest.TestCase):
    def test_commit_from_file_uses_temp_file(self) -> None:
        """Test that the commit message goes through a temp file."""
        seen = {}

        def fake_run(self, args, check=True, max_bytes=None):
            path = Path(args[2])
            seen["args"] = args
            seen["content"] = path.read_text(encoding="utf-8")
            seen["path"] = path
            return ok()

        with patch.object(GitClient, "_run", autospec=True, side_effect=fake_run):
            GitClient(Path("/repo")).commit_from_file("feat: a\n\n- change: b")

        self.assertEqual(seen["args"][:2], ["commit", "-F"])
        self.assertEqual(seen["content"], "feat: a\n\n- change: b")
        self.assertTrue(seen["path"].name.startswith("commit-msg-"))
        self.assertFalse(seen["path"].exists())

    def test_push(self) -> None:
        """Test pushing a branch."""
        with patch.object(GitClient, "_run", autospec=True, return_value=ok()) as mock_run:
            GitClient(Path("/repo")).push("feature/x")
        self.assertEqual(mock_run.call_args.args[1], ["push", "origin", "feature/x"])

    def test_push_branch_existing_remote(self) -> None:
        """Test pushing a branch that already exists on the remote."""
        def fake_run(self, args, check=True, max_bytes=None):
            if args[0] == "push":
                raise GitError("rejected")
            return ok("  origin/main\n  origin/feature/x\n")

        with patch.object(GitClient, "_run", autospec=True, side_effect=fake_run):
            self.assertFalse(GitClient(Path("/repo")).push_branch("feature/x"))

    def test_push_branch_failure(self) -> None:
        """Test that a failed push of a new branch raises."""
        def fake_run(self, args, check=True, max_bytes=None):
            if args[0] == "push":
                raise GitError("no remote")
            return ok("  origin/main\n")

        with patch.object(GitClient, "_run", autospec=True, side_effect=fake_run):
            with self.assertRaises(GitError):
                GitClient(Path("/repo")).push_branch("feature/x")


class TestCommitRange(unittest.TestCase):
    def test_resolve_base_ref(self) -> None:
        """Test resolving the base ref with and without origin."""
        with patch.object(GitClient, "_run", autospec=True, return_value=DummyProc(returncode=0)):
            self.assertEqual(GitClient(Path("/repo")).resolve_base_ref("main"), "origin/main")
        with patch.object(GitClient, "_run", autospec=True, return_value=DummyProc(returncode=1)):
            self.assertEqual(GitClient(Path("/repo")).resolve_base_ref("main"), "main")

    def test_fetch_base(self) -> None:
        """Test that a failed fetch is reported."""
        with patch.object(GitClient, "_run", autospec=True, return_value=DummyProc(returncode=128)):
            self.assertFalse(GitClient(Path("/repo")).fetch_base("main"))

    def test_collect_commits_parses_records(self) -> None:
        """Test parsing commit log records."""
        log = (
            f"{'a' * 40}\x1ffeat: add x\x1fline one\nline two\x1e\n"
            f"{'b' * 40}\x1ffix: correct y\x1f\x1e"
        )
        with patch.object(GitClient, "_run", autospec=True, return_value=ok(log)) as mock_run:
            commits = GitClient(Path("/repo")).collect_commits("origin/main")
        args = mock_run.call_args.args[1]
        self.assertEqual(args[:3], ["log", "origin/main..HEAD", "--reverse"])
        self.assertEqual(
            commits,
            [
                Commit(sha="a" * 40, title="feat: add x", body="line one\nline two"),
                Commit(sha="b" * 40, title="fix: correct y", body=""),
            ],
        )

    def test_collect_commits_limit_keeps_most_recent(self) -> None:
        """Test that the limit keeps the most recent commits."""
        log = "".join(f"{i:040d}\x1ft{i}\x1f\x1e\n" for i in range(5))
        with patch.object(GitClient, "_run", autospec=True, return_value=ok(log)):
            commits = GitClient(Path("/repo")).collect_commits("main", limit=2)
        self.assertEqual([c.title for c in commits], ["t3", "t4"])

    def test_collect_commits_caps_body(self) -> None:
        """Test that commit bodies are capped."""
        log = f"{'a' * 40}\x1ft\x1f{'x' * 5000}\x1e"
        with patch.object(GitClient, "_run", autospec=True, return_value=ok(log)):
            commits = GitClient(Path("/repo")).collect_commits("main")
        self.assertEqual(len(commits[0].body), 4000)

    def test_collect_commits_unknown_base(self) -> None:
        """Test the error for an unknown base ref."""
        error = GitError("fatal: ambiguous argument 'nope..HEAD': unknown revision or path")
        with patch.object(GitClient, "_run", autospec=True, side_effect=error):
            with self.assertRaises(GitError) as ctx:
                GitClient(Path("/repo")).collect_commits("nope")
        self.assertIn("Use --base", str(ctx.exception))

    def test_enrich_commits(self) -> None:
        """Test adding stats and diffs to commits."""
        def fake_run(self, args, check=True, max_bytes=None):
            if "--stat" in args:
                return ok(" a.py | 2 +-\n")
            if args[-1] == "big":
                raise GitOutputTooLarge("too big")
            return ok("d" * 5000)

        commits = [Commit(sha="small", title="a"), Commit(sha="big", title="b")]
        with patch.object(GitClient, "_run", autospec=True, side_effect=fake_run):
            GitClient(Path("/repo")).enrich_commits(commits)
        self.assertEqual(commits[0].stat, "a.py | 2 +-")
        self.assertTrue(commits[0].diff.startswith("d" * MAX_COMMIT_DIFF_CHARS))
        self.assertIn("truncated", commits[0].diff)
        self.assertEqual(commits[1].diff, DIFF_TOO_LARGE_NOTICE)


if __name__ == "__main__":
    unittest.main()
