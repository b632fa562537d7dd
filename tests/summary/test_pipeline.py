import unittest
from unittest.mock import Mock

from changescribe.llm.completion_client import Completion, LLMError
from changescribe.summary.commit_model import FEATURE_HEADINGS, RELEASE_HEADINGS, Commit
from changescribe.summary.pipeline import (
    chunk_commits,
    format_commit_titles,
    is_unknown_summary,
    serialize_commit,
    PrSummaryPipeline,
)


RELEASE_SUMMARY = "\n".join(
    [
        "Release summary",
        "- Adds x and fixes y",
        "Notable user-facing changes",
        "- x is available",
        "Risk / breaking changes",
        "- None",
        "QA / verification",
        "- Verify x",
        "Operational notes / rollout",
        "- Standard deploy",
        "Follow-ups / TODOs",
        "- None",
    ]
)

UNKNOWN_RELEASE_SUMMARY = "\n".join(f"{heading}\nUnknown" for heading in RELEASE_HEADINGS)


def commit(index: int, body: str = "") -> Commit:
    return Commit(sha=f"{index:040d}", title=f"feat: change {index}", body=body)


def scripted_client(*texts) -> Mock:
    client = Mock()
    client.complete.side_effect = [Completion(content=text) for text in texts]
    return client


class TestChunking(unittest.TestCase):
    def test_small_commits_share_a_chunk(self) -> None:
        """Test that small commits share one chunk."""
        commits = [commit(i) for i in range(5)]
        self.assertEqual(chunk_commits(commits, 8000), [commits])

    def test_budget_splits_in_order(self) -> None:
        """Test that the size budget splits commits in order."""
        commits = [commit(i, body="x" * 300) for i in range(6)]
        size = len(serialize_commit(commits[0]))
        chunks = chunk_commits(commits, size * 2)
        self.assertEqual([len(chunk) for chunk in chunks], [2, 2, 2])
        self.assertEqual([c for chunk in chunks for c in chunk], commits)

    def test_oversized_commit_is_alone(self) -> None:
        """Test that an oversized commit gets its own chunk."""
        commits = [commit(0), commit(1, body="x" * 9000), commit(2)]
        chunks = chunk_commits(commits, 8000)
        self.assertEqual(chunks, [[commits[0]], [commits[1]], [commits[2]]])

    def test_no_commits(self) -> None:
        """Test chunking an empty commit list."""
        self.assertEqual(chunk_commits([]), [])


class TestHelpers(unittest.TestCase):
    def test_format_commit_titles_keeps_most_recent(self) -> None:
        """Test that only the most recent titles are listed."""
        commits = [commit(i) for i in range(5)]
        self.assertEqual(format_commit_titles(commits, 2), "- feat: change 3\n- feat: change 4")

    def test_format_commit_titles_blank_title(self) -> None:
        """Test the placeholder for a blank title."""
        self.assertEqual(format_commit_titles([Commit(sha="a", title=" ")], 40), "- (no title)")

    def test_empty_summary_is_unknown(self) -> None:
        """Test that an empty summary is unknown."""
        self.assertTrue(is_unknown_summary("  \n", "feature"))
        self.assertTrue(is_unknown_summary("", "release"))

    def test_feature_summary_only_checks_emptiness(self) -> None:
        """Test that feature summaries are only checked for emptiness."""
        self.assertFalse(is_unknown_summary("Unknown", "feature"))

    def test_release_all_unknown(self) -> None:
        """Test a release summary with every section unknown."""
        self.assertTrue(is_unknown_summary(UNKNOWN_RELEASE_SUMMARY, "release"))
        self.assertTrue(is_unknown_summary(UNKNOWN_RELEASE_SUMMARY.lower(), "release"))

    def test_release_partially_unknown(self) -> None:
        """Test that a partly unknown release summary is usable."""
        text = UNKNOWN_RELEASE_SUMMARY.replace("Release summary\nUnknown", "Release summary\n- Adds x", 1)
        self.assertFalse(is_unknown_summary(text, "release"))

    def test_release_missing_heading(self) -> None:
        """Test that a missing release heading counts as unknown."""
        self.assertTrue(is_unknown_summary("Release summary\n- Adds x", "release"))

    def test_release_unknown_must_be_exact(self) -> None:
        """Test that only an exact "unknown" line counts."""
        text = UNKNOWN_RELEASE_SUMMARY.replace("Unknown", "Unknown.")
        self.assertFalse(is_unknown_summary(text, "release"))


class TestPrSummaryPipeline(unittest.TestCase):
    def test_release_run(self) -> None:
        """Test a full release run."""
        commits = [Commit(sha="a" * 40, title="feat: add x"), Commit(sha="b" * 40, title="fix: correct y")]
        client = scripted_client("snapshot text", "condensed text", RELEASE_SUMMARY)
        progress = []
        result = PrSummaryPipeline(client, on_progress=progress.append).run(
            commits, "staging", "origin/main", "release"
        )

        self.assertEqual(client.complete.call_count, 3)
        positions = [result.final_summary.index(heading) for heading in RELEASE_HEADINGS]
        self.assertEqual(positions, sorted(positions))
        self.assertEqual(result.snapshot, "snapshot text")
        self.assertEqual(result.condensed, ["condensed text"])
        self.assertFalse(result.retried)
        self.assertEqual(
            progress,
            [
                "Pass 1 complete (5Cs snapshot)",
                "Pass 2 complete (per-commit condensation)",
                "Pass 3 complete (PR synthesis)",
            ],
        )
        for call in client.complete.call_args_list:
            self.assertEqual(call.kwargs["max_tokens"], 2048)
        synthesis_prompt = client.complete.call_args_list[2].args[0][1]["content"]
        self.assertIn("- feat: add x\n- fix: correct y", synthesis_prompt)
        self.assertIn("snapshot text", synthesis_prompt)

    def test_one_call_per_chunk(self) -> None:
        """Test that each chunk gets one condensation call."""
        commits = [commit(i, body="x" * 5000) for i in range(3)]
        client = scripted_client("snap", "c1", "", "c3", "summary")
        result = PrSummaryPipeline(client).run(commits, "f", "main", "feature")
        self.assertEqual(client.complete.call_count, 5)
        self.assertEqual(result.condensed, ["c1", "c3"])
        self.assertEqual(result.final_summary, "summary")

    def test_unknown_release_summary_is_retried(self) -> None:
        """Test that an unknown release summary is retried with fallbacks."""
        commits = [commit(i) for i in range(50)]
        client = scripted_client("", "", UNKNOWN_RELEASE_SUMMARY, RELEASE_SUMMARY)
        result = PrSummaryPipeline(client).run(commits, "staging", "main", "release")
        self.assertTrue(result.retried)
        self.assertEqual(result.final_summary, RELEASE_SUMMARY)
        first, retry = (call.args[0][1]["content"] for call in client.complete.call_args_list[2:])
        self.assertIn("(not provided)", first)
        self.assertIn("(pass2 unavailable)", retry)
        self.assertNotIn("feat: change 9\n", first)
        self.assertIn("- feat: change 0\n", retry)

    def test_empty_retry_keeps_first_result(self) -> None:
        """Test that an empty retry keeps the first result."""
        client = scripted_client("snap", "c", "", "")
        result = PrSummaryPipeline(client).run([commit(1)], "f", "main", "feature")
        self.assertTrue(result.retried)
        self.assertEqual(result.final_summary, "")
        self.assertEqual(client.complete.call_count, 4)

    def test_second_unknown_is_accepted(self) -> None:
        """Test that a second unknown summary is accepted."""
        client = scripted_client("snap", "c", UNKNOWN_RELEASE_SUMMARY, UNKNOWN_RELEASE_SUMMARY)
        result = PrSummaryPipeline(client).run([commit(1)], "staging", "main", "release")
        self.assertEqual(result.final_summary, UNKNOWN_RELEASE_SUMMARY)
        self.assertEqual(client.complete.call_count, 4)

    def test_feature_headings_passed_to_model(self) -> None:
        """Test that the feature headings reach the prompt."""
        client = scripted_client("snap", "c", "summary")
        PrSummaryPipeline(client).run([commit(1)], "f", "main", "feature")
        prompt = client.complete.call_args_list[2].args[0][1]["content"]
        for heading in FEATURE_HEADINGS:
            self.assertIn(heading, prompt)

    def test_complete_summary_has_no_missing_headings(self) -> None:
        """Test that a complete summary has no missing headings."""
        client = scripted_client("snap", "c", RELEASE_SUMMARY)
        result = PrSummaryPipeline(client).run([commit(1)], "staging", "main", "release")
        self.assertEqual(result.missing_headings, [])

    def test_missing_feature_headings_are_reported_without_retry(self) -> None:
        """Test that missing headings are reported without another call."""
        client = scripted_client("snap", "c", "summary")
        with self.assertLogs("changescribe.summary.pipeline", level="WARNING") as logs:
            result = PrSummaryPipeline(client).run([commit(1)], "f", "main", "feature")
        self.assertEqual(result.missing_headings, list(FEATURE_HEADINGS))
        self.assertFalse(result.retried)
        self.assertEqual(client.complete.call_count, 3)
        self.assertIn("missing headings", logs.output[0])

    def test_partial_release_summary_lists_missing_headings(self) -> None:
        """Test that a partial release summary lists its missing headings."""
        partial = "Release summary\n- Adds x"
        client = scripted_client("snap", "c", partial, partial)
        result = PrSummaryPipeline(client).run([commit(1)], "staging", "main", "release")
        self.assertEqual(client.complete.call_count, 4)
        self.assertEqual(result.missing_headings, list(RELEASE_HEADINGS[1:]))

    def test_transport_error_propagates(self) -> None:
        """Test that transport errors propagate."""
        client = Mock()
        client.complete.side_effect = LLMError("down", status_code=503)
        with self.assertRaises(LLMError):
            PrSummaryPipeline(client).run([commit(1)], "f", "main", "feature")


if __name__ == "__main__":
    unittest.main()
