"""
Tests for the synchronization pipeline.

All collaborators are replaced by in-memory fakes or tmp_path files, so no
git repository or network access is needed.

Tests cover:
- Full run: diff once, patch every target, write only changed files
- Locale derived from the target's directory name
- Per-document error isolation
- Empty change sets and missing targets
- Commit step and cancellation
- Parallel processing keeps target order
"""

import json
import threading

import pytest

from locsync.config import SyncConfig
from locsync.errors import RevisionNotFound
from locsync.pipeline import DocumentStatus, SyncPipeline, locale_for_path
from locsync.translate import CallableTranslator, DummyTranslator
from locsync.tree import JsonTree


class FakeLoader:
    """Returns fixed before/after snapshots."""

    def __init__(self, before, after):
        self.before = JsonTree.from_python(before)
        self.after = JsonTree.from_python(after)
        self.calls = 0

    def load(self, path, base, head):
        self.calls += 1
        return self.before, self.after


class MissingRevisionLoader:
    def load(self, path, base, head):
        raise RevisionNotFound(path, base)


class ListEnumerator:
    def __init__(self, paths):
        self.paths = paths

    def enumerate(self, pattern, exclude=None):
        return list(self.paths)


class FakeCommitter:
    def __init__(self):
        self.calls = []

    def commit_and_push(self, files, branch, message="chore: Auto-translate JSON files"):
        self.calls.append((list(files), branch))
        return bool(files)


def make_config(**overrides) -> SyncConfig:
    values = dict(
        source_file="locales/en/app.json",
        target_glob="locales/*/app.json",
        base_rev="base",
        head_rev="head",
        translator_backend="dummy",
    )
    values.update(overrides)
    return SyncConfig(**values)


def write_json(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")


def read_json(path):
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture
def locales(tmp_path):
    """Three target locale files in per-locale directories."""
    paths = {}
    for code, title in (("fr", "Bonjour"), ("de", "Hallo"), ("pt", "Olá")):
        path = tmp_path / "locales" / code / "app.json"
        write_json(path, {"title": title, "keep": f"{code}-keep"})
        paths[code] = path
    return paths


class TestLocaleForPath:
    """Locale codes from directory names."""

    @pytest.mark.parametrize("path,expected", [
        ("locales/fr/app.json", "FR"),
        ("locales/en/app.json", "EN-US"),
        ("locales/pt/app.json", "PT-PT"),
        ("locales/zh/app.json", "ZH"),
        ("locales/pt-br/app.json", "PT-BR"),
    ])
    def test_normalization(self, path, expected):
        assert locale_for_path(path) == expected


class TestSyncRun:
    """Complete runs with fakes."""

    def test_run_updates_every_target(self, locales):
        loader = FakeLoader({"title": "Hello"}, {"title": "Hello world", "subtitle": "New"})
        pipeline = SyncPipeline(
            make_config(),
            translator=DummyTranslator("prefix"),
            loader=loader,
            enumerator=ListEnumerator([str(p) for p in locales.values()]),
        )

        result = pipeline.run()

        assert loader.calls == 1
        assert result.success
        assert result.attempted == 3
        assert len(result.modified_files) == 3
        assert read_json(locales["fr"]) == {
            "title": "[FR] Hello world", "keep": "fr-keep", "subtitle": "[FR] New",
        }
        assert read_json(locales["pt"])["subtitle"] == "[PT-PT] New"
        assert result.summary() == "Modified 3 of 3 document(s)"

    def test_unchanged_documents_are_not_written(self, tmp_path):
        path = tmp_path / "fr" / "app.json"
        write_json(path, {"a": "x"})
        before_mtime = path.stat().st_mtime_ns
        pipeline = SyncPipeline(
            make_config(),
            translator=DummyTranslator(),
            loader=FakeLoader({"a": "x", "gone": "y"}, {"a": "x"}),
            enumerator=ListEnumerator([str(path)]),
        )

        result = pipeline.run()

        assert result.modified_files == []
        assert result.documents[0].succeeded
        assert path.stat().st_mtime_ns == before_mtime

    def test_unreadable_document_does_not_stop_others(self, tmp_path, locales):
        broken = tmp_path / "locales" / "it" / "app.json"
        broken.parent.mkdir(parents=True)
        broken.write_text("{not json", encoding="utf-8")
        targets = [str(locales["de"]), str(broken), str(tmp_path / "missing" / "app.json"), str(locales["fr"])]
        pipeline = SyncPipeline(
            make_config(),
            translator=DummyTranslator(),
            loader=FakeLoader({"title": "Hello"}, {"title": "Hi"}),
            enumerator=ListEnumerator(targets),
        )

        result = pipeline.run()

        statuses = [d.status for d in result.documents]
        assert statuses == [
            DocumentStatus.SUCCEEDED, DocumentStatus.ERRORED,
            DocumentStatus.ERRORED, DocumentStatus.SUCCEEDED,
        ]
        assert "not valid JSON" in result.documents[1].error
        assert not result.success
        assert read_json(locales["fr"])["title"] == "[FR] Hi"

    def test_entry_failures_still_write_document(self, locales):
        def flaky(text, locale):
            if text == "two":
                raise RuntimeError("rate limited")
            return f"{locale}:{text}"

        pipeline = SyncPipeline(
            make_config(),
            translator=CallableTranslator(flaky),
            loader=FakeLoader({}, {"a": "one", "b": "two", "c": "three"}),
            enumerator=ListEnumerator([str(locales["fr"])]),
        )

        result = pipeline.run()

        doc = result.documents[0]
        assert doc.succeeded
        assert doc.to_dict()["failed"] == 1
        data = read_json(locales["fr"])
        assert data["a"] == "FR:one" and data["c"] == "FR:three"
        assert "b" not in data

    def test_empty_change_set_short_circuits(self):
        enumerator = ListEnumerator(["never/used.json"])
        enumerator.enumerate = lambda *a, **k: pytest.fail("targets should not be enumerated")
        pipeline = SyncPipeline(
            make_config(),
            translator=DummyTranslator(),
            loader=FakeLoader({"a": "x"}, {"a": "x"}),
            enumerator=enumerator,
        )

        result = pipeline.run()

        assert result.changes.is_empty
        assert result.documents == []
        assert result.success

    def test_no_targets(self):
        pipeline = SyncPipeline(
            make_config(),
            translator=DummyTranslator(),
            loader=FakeLoader({}, {"a": "x"}),
            enumerator=ListEnumerator([]),
        )
        result = pipeline.run()
        assert result.attempted == 0
        assert len(result.changes) == 1

    def test_missing_revision_is_fatal(self):
        pipeline = SyncPipeline(
            make_config(),
            translator=DummyTranslator(),
            loader=MissingRevisionLoader(),
            enumerator=ListEnumerator([]),
        )
        with pytest.raises(RevisionNotFound):
            pipeline.run()

    def test_progress_reported(self, locales):
        progress = []
        pipeline = SyncPipeline(
            make_config(),
            translator=DummyTranslator(),
            loader=FakeLoader({}, {"a": "x"}),
            enumerator=ListEnumerator([str(locales["fr"]), str(locales["de"])]),
            progress_callback=lambda msg, pct: progress.append(pct),
        )
        pipeline.run()
        assert progress[0] == 0.0
        assert progress[-1] == 1.0
        assert progress == sorted(progress)


class TestCommit:
    """Optional commit-and-push step."""

    def test_commit_modified_files(self, locales):
        committer = FakeCommitter()
        pipeline = SyncPipeline(
            make_config(commit_changes=True, branch="main"),
            translator=DummyTranslator(),
            loader=FakeLoader({}, {"a": "x"}),
            enumerator=ListEnumerator([str(locales["fr"])]),
            committer=committer,
        )

        result = pipeline.run()

        assert committer.calls == [([str(locales["fr"])], "main")]
        assert result.committed

    def test_no_commit_by_default(self, locales):
        committer = FakeCommitter()
        SyncPipeline(
            make_config(),
            translator=DummyTranslator(),
            loader=FakeLoader({}, {"a": "x"}),
            enumerator=ListEnumerator([str(locales["fr"])]),
            committer=committer,
        ).run()
        assert committer.calls == []


class TestConcurrency:
    """Thread-pool fan-out and cancellation."""

    def test_parallel_results_in_target_order(self, locales):
        targets = [str(locales[c]) for c in ("pt", "de", "fr")]
        pipeline = SyncPipeline(
            make_config(max_workers=3),
            translator=DummyTranslator(),
            loader=FakeLoader({"title": "Hello"}, {"title": "Hi"}),
            enumerator=ListEnumerator(targets),
        )

        result = pipeline.run()

        assert [d.path for d in result.documents] == targets
        assert [d.locale for d in result.documents] == ["PT-PT", "DE", "FR"]
        assert all(d.modified for d in result.documents)

    def test_parallel_translation_calls_overlap(self, locales):
        """With two workers both documents are in flight at the same time."""
        barrier = threading.Barrier(2, timeout=5)

        def wait_for_peer(text, locale):
            barrier.wait()
            return text

        pipeline = SyncPipeline(
            make_config(max_workers=2),
            translator=CallableTranslator(wait_for_peer),
            loader=FakeLoader({}, {"a": "x"}),
            enumerator=ListEnumerator([str(locales["fr"]), str(locales["de"])]),
        )

        result = pipeline.run()

        assert result.success

    def test_cancel_before_start(self, locales):
        committer = FakeCommitter()
        pipeline = SyncPipeline(
            make_config(commit_changes=True, branch="main"),
            translator=DummyTranslator(),
            loader=FakeLoader({}, {"a": "x"}),
            enumerator=ListEnumerator([str(locales["fr"])]),
            committer=committer,
        )
        pipeline.cancel()

        result = pipeline.run()

        assert result.cancelled
        assert result.documents[0].error == "cancelled"
        assert "a" not in read_json(locales["fr"])
        assert committer.calls == []

    def test_cancel_midway(self, locales):
        targets = [str(locales[c]) for c in ("de", "fr", "pt")]
        pipeline = None

        def cancel_after_first(text, locale):
            pipeline.cancel()
            return text

        pipeline = SyncPipeline(
            make_config(),
            translator=CallableTranslator(cancel_after_first),
            loader=FakeLoader({}, {"a": "x"}),
            enumerator=ListEnumerator(targets),
        )

        result = pipeline.run()

        assert [d.succeeded for d in result.documents] == [True, False, False]
        assert read_json(locales["de"])["a"] == "x"
        assert "a" not in read_json(locales["pt"])
