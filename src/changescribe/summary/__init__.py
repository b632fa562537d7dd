"""
Pull request summarization for changescribe.

See :mod:`changescribe.summary.pipeline` for the three-pass pipeline and
:mod:`changescribe.summary.artifacts` for the files it produces. Only
the data models are re-exported here; the pipeline depends on the
prompt builders, which in turn depend on these models.
"""

from .commit_model import Commit, PrSummary, PrSummaryResult  # noqa: F401
