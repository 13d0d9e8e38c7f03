from __future__ import annotations

import json
import tempfile
import threading
from pathlib import Path

from loomkit import metadata, paths
from loomkit.models import LoomMetadata, ParentLoom


def _store(tmp: str) -> metadata.MetadataStore:
    return metadata.MetadataStore(Path(tmp) / "looms")


def test_write_then_read_uses_slugged_filename_and_aliases() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        store = _store(tmp)
        record = metadata.build_metadata(
            Path("/src/app-looms/issue-7"),
            branch_name="feat/issue-7__login",
            issue_type="issue",
            issue_numbers=["7"],
            port=3007,
            parent_loom=ParentLoom(type="epic", identifier=3, branch_name="feat/issue-3"),
        )

        store.write("/src/app-looms/issue-7", record)

        file_path = Path(tmp) / "looms" / "___src___app-looms___issue-7.json"
        payload = json.loads(file_path.read_text(encoding="utf-8"))
        loaded = store.read("/src/app-looms/issue-7")

    assert payload["branchName"] == "feat/issue-7__login"
    assert payload["worktreePath"] == "/src/app-looms/issue-7"
    assert payload["parentLoom"] == {
        "type": "epic",
        "identifier": "3",
        "branchName": "feat/issue-3",
        "worktreePath": None,
    }
    assert payload["status"] == "active"
    assert loaded is not None
    assert loaded.port == 3007
    assert loaded.color_hex == metadata.loom_color("feat/issue-7__login")
    assert loaded.session_id == metadata.session_id_for(Path("/src/app-looms/issue-7"))


def test_write_fills_created_at_and_worktree_path() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        stored = _store(tmp).write("/w/a", LoomMetadata(description="x"))

    assert stored.created_at is not None
    assert stored.worktree_path == "/w/a"


def test_write_leaves_no_temp_files_behind() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        store = _store(tmp)
        store.write("/w/a", LoomMetadata(description="first"))
        store.write("/w/a", LoomMetadata(description="second"))

        names = sorted(path.name for path in store.directory.iterdir() if path.is_file())
        loaded = store.read("/w/a")

    assert names == [paths.slugify_path("/w/a")]
    assert loaded is not None
    assert loaded.description == "second"


def test_unknown_keys_survive_a_rewrite() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        store = _store(tmp)
        store.directory.mkdir(parents=True)
        store.path_for("/w/a").write_text(
            json.dumps({"description": "x", "created_at": "2026-01-01T00:00:00Z", "extraKey": 5}),
            encoding="utf-8",
        )

        store.mark_finished("/w/a")
        payload = json.loads(store.path_for("/w/a").read_text(encoding="utf-8"))

    assert payload["extraKey"] == 5
    assert payload["status"] == "finished"


def test_list_skips_unparsable_and_sorts_by_creation() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        store = _store(tmp)
        store.write("/w/new", LoomMetadata(description="new", created_at="2026-03-01T00:00:00Z"))
        store.write("/w/old", LoomMetadata(description="old", created_at="2026-01-01T00:00:00Z"))
        (store.directory / "broken.json").write_text("{not json", encoding="utf-8")
        (store.directory / "list.json").write_text("[1, 2]", encoding="utf-8")
        (store.directory / "bad-status.json").write_text(
            json.dumps({"status": "exploded"}), encoding="utf-8"
        )

        records = store.list_all()

    assert [record.description for record in records] == ["old", "new"]


def test_mark_finished_moves_record_between_lists_and_keeps_timestamp() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        store = _store(tmp)
        store.write("/w/a", LoomMetadata(description="a"))
        store.write("/w/b", LoomMetadata(description="b"))

        first = store.mark_finished("/w/a")
        second = store.mark_finished("/w/a")
        active = [record.description for record in store.list_active()]
        finished = [record.description for record in store.list_finished()]

    assert first is not None and second is not None
    assert first.finished_at is not None
    assert second.finished_at == first.finished_at
    assert active == ["b"]
    assert finished == ["a"]


def test_mark_finished_without_record_returns_none() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        assert _store(tmp).mark_finished("/w/missing") is None


def test_add_url_records_numbers_once() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        store = _store(tmp)
        store.write("/w/a", LoomMetadata(description="a", issue_numbers=["7"]))

        store.add_url("/w/a", "issue", 7, "https://github.com/o/r/issues/7")
        updated = store.add_url("/w/a", "pr", "#12", "https://github.com/o/r/pull/12")

    assert updated is not None
    assert updated.issue_numbers == ["7"]
    assert updated.issue_urls == {"7": "https://github.com/o/r/issues/7"}
    assert updated.pr_numbers == ["12"]
    assert updated.pr_urls == {"12": "https://github.com/o/r/pull/12"}


def test_delete_reports_whether_a_record_existed() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        store = _store(tmp)
        store.write("/w/a", LoomMetadata(description="a"))

        assert store.delete("/w/a") is True
        assert store.delete("/w/a") is False
        assert store.read("/w/a") is None


def test_concurrent_updates_do_not_lose_writes() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        store = _store(tmp)
        store.write("/w/a", LoomMetadata(description="a"))

        def add(index: int) -> None:
            store.add_url("/w/a", "pr", index, f"https://example.test/pull/{index}")

        threads = [threading.Thread(target=add, args=(index,)) for index in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        loaded = store.read("/w/a")

    assert loaded is not None
    assert sorted(loaded.pr_numbers, key=int) == [str(index) for index in range(8)]
