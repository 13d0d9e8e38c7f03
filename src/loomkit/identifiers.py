"""Pure pattern helpers for issue, PR and branch identifiers.

Loom worktrees encode their identity in two places: PR looms live in a
directory ending in ``_pr_<n>`` and issue looms check out a branch that
carries ``issue-<n>`` (for example ``feat/issue-42__add-login``). Everything
here is string matching only; nothing touches git.
"""

from __future__ import annotations

import re

IssueKey = int | str

_NUMERIC_RE = re.compile(r"^\d+$")
_TRACKER_KEY_RE = re.compile(r"^[A-Za-z]+-\d+$")
_EXPLICIT_PR_RE = re.compile(r"^(?:pr|PR)[/-](\d+)$")
_PR_PATH_RE = re.compile(r"_pr_(\d+)$")
_ISSUE_IN_BRANCH_RE = re.compile(
    r"(?<![A-Za-z0-9])issue-([A-Za-z]+-\d+|\d+)(?=__|-|$)", re.IGNORECASE
)
_ISSUE_IN_NAME_RE = re.compile(r"(?<![A-Za-z0-9])issue-(\d+)(?!\d)", re.IGNORECASE)
_PR_BRANCH_PATTERNS = (
    re.compile(r"^pr/(\d+)", re.IGNORECASE),
    re.compile(r"^pull/(\d+)", re.IGNORECASE),
    re.compile(r"^(\d+)[-_]"),
    re.compile(r"^feature/pr[-_]?(\d+)", re.IGNORECASE),
    re.compile(r"^hotfix/pr[-_]?(\d+)", re.IGNORECASE),
    re.compile(r"(?<![A-Za-z])pr[-_]?(\d+)", re.IGNORECASE),
)
_NUMERIC_SUFFIX_RE = re.compile(r"[-_]?(\d+)$")


def is_numeric(value: str) -> bool:
    """
    >>> is_numeric("42"), is_numeric("4a"), is_numeric("")
    (True, False, False)
    """
    return bool(_NUMERIC_RE.match(value))


def is_tracker_key(value: str) -> bool:
    """Return whether ``value`` looks like a tracker key such as ``ENG-123``.

    >>> is_tracker_key("ENG-123"), is_tracker_key("issue-87-test")
    (True, False)
    """
    return bool(_TRACKER_KEY_RE.match(value))


def explicit_pr_number(value: str) -> int | None:
    """Parse an explicit ``pr/<n>``, ``PR/<n>`` or ``PR-<n>`` reference.

    >>> explicit_pr_number("pr/12"), explicit_pr_number("PR-7"), explicit_pr_number("pr/x")
    (12, 7, None)
    """
    match = _EXPLICIT_PR_RE.match(value)
    return int(match.group(1)) if match else None


def pr_number_from_path(path: str) -> int | None:
    """
    >>> pr_number_from_path("/src/app_pr_42")
    42
    >>> pr_number_from_path("/src/app_pr_42x") is None
    True
    """
    match = _PR_PATH_RE.search(path.rstrip("/\\"))
    return int(match.group(1)) if match else None


def issue_branch_pattern(key: IssueKey) -> re.Pattern[str]:
    """Build the matcher for branches that belong to an issue key.

    The key must appear as ``issue-<key>`` on a word boundary, so ``tissue-66``
    and ``issue-666`` never match 66.

    >>> bool(issue_branch_pattern(66).search("feat/issue-66__fix"))
    True
    >>> bool(issue_branch_pattern(66).search("feat/tissue-66"))
    False
    >>> bool(issue_branch_pattern(66).search("issue-666"))
    False
    """
    escaped = re.escape(str(key))
    return re.compile(rf"(?<![A-Za-z0-9])issue-{escaped}(?![0-9])", re.IGNORECASE)


def extract_issue_number(branch: str) -> IssueKey | None:
    """Extract the issue key embedded in a branch name.

    Recognises ``issue-<n>__``, ``issue-<n>-`` and a trailing ``issue-<n>``.
    Tracker keys come back upper-cased.

    >>> extract_issue_number("issue-87-test")
    87
    >>> extract_issue_number("feat/issue-eng-12__login")
    'ENG-12'
    >>> extract_issue_number("feature/login") is None
    True
    """
    match = _ISSUE_IN_BRANCH_RE.search(branch)
    if not match:
        return None
    value = match.group(1)
    if value.isdigit():
        return int(value)
    return value.upper()


def extract_pr_number(branch: str) -> int | None:
    """Extract a PR number from common PR branch layouts.

    >>> extract_pr_number("pr/123-fix"), extract_pr_number("feature/pr-9")
    (123, 9)
    >>> extract_pr_number("issue-87-test") is None
    True
    """
    for pattern in _PR_BRANCH_PATTERNS:
        match = pattern.search(branch)
        if match:
            return int(match.group(1))
    return None


def issue_number_from_name(name: str) -> int | None:
    """Find a numeric ``issue-<n>`` anywhere in a directory or branch name.

    >>> issue_number_from_name("app-issue-31"), issue_number_from_name("tissue-3")
    (31, None)
    """
    match = _ISSUE_IN_NAME_RE.search(name)
    return int(match.group(1)) if match else None


def numeric_suffix(key: str) -> int | None:
    """Return the trailing number of a tracker key.

    >>> numeric_suffix("MARK-324"), numeric_suffix("abc")
    (324, None)
    """
    match = _NUMERIC_SUFFIX_RE.search(key)
    return int(match.group(1)) if match else None
