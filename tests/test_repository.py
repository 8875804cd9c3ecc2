# tests/test_repository.py
"""
Tests for the object repository.
"""

import threading

import pytest
import yaml

from uiauto_healing.attributes import CapturedAttributes
from uiauto_healing.exceptions import (ConfigError, HealingError, ObjectNotFoundError,
                                       RepositoryWriteConflictError)
from uiauto_healing.extractor import LocatorExtractor
from uiauto_healing.locators import CandidateLocator, LocatorChain
from uiauto_healing.repository import ObjectRepository, UsageOutcome


def _store(repo, attrs, name=None):
    return repo.upsert(attrs, LocatorExtractor().extract(attrs), name=name)


@pytest.fixture
def repo():
    with ObjectRepository() as r:
        yield r


class TestUpsert:
    """Tests for capture-time deduplication."""

    def test_repeat_capture_returns_same_id(self, repo):
        """Second capture with a regenerated dynamic id finds the first object."""
        first = _store(repo, CapturedAttributes(tag="button", id="submit-btn-17cf2a9b", text="Submit"))
        second = _store(repo, CapturedAttributes(tag="button", id="submit-btn-88ab4e21", text="Submit"))

        assert first == second
        assert len(repo) == 1
        assert first.startswith("obj_")

    def test_repeat_capture_keeps_edited_chain(self, repo):
        """A repeat upsert never overwrites the stored chain."""
        attrs = CapturedAttributes(tag="input", name="email")
        oid = _store(repo, attrs)
        edited = LocatorChain([CandidateLocator("css", "#login input[name=email]", 90)])
        repo.update_locator_chain(oid, edited)

        assert _store(repo, attrs) == oid
        assert repo.get(oid).chain == edited

    def test_name_derived_from_attributes(self, repo):
        """Default names come from the most descriptive attribute."""
        oid = _store(repo, CapturedAttributes(tag="button", aria_label="Close dialog"))

        assert repo.get(oid).name == "button_close_dialog"
        assert repo.find_by_name("button_close_dialog").id == oid

    def test_concurrent_upserts_create_one_object(self, repo):
        """Racing captures of one fingerprint yield a single object."""
        attrs = CapturedAttributes(tag="button", test_id="pay-now")
        chain = LocatorExtractor().extract(attrs)
        barrier = threading.Barrier(16)
        ids = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            oid = repo.upsert(attrs, chain)
            with lock:
                ids.append(oid)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(set(ids)) == 1
        assert len(repo) == 1

    def test_requires_open(self):
        """Using a repository before open() is an error."""
        repo = ObjectRepository()

        with pytest.raises(HealingError):
            repo.upsert(CapturedAttributes(tag="a"), LocatorChain([CandidateLocator("text", "x", 80)]))


class TestQueries:
    """Tests for lookups and listing."""

    def test_lookups(self, repo):
        """get, find_by_fingerprint, list_by_platform and list_by_tag agree."""
        web_id = _store(repo, CapturedAttributes(tag="button", id="save"))
        mob_id = _store(repo, CapturedAttributes(tag="button", id="save", platform="mobile"))
        link_id = _store(repo, CapturedAttributes(tag="a", text="Home"))

        web = repo.get(web_id)
        assert repo.find_by_fingerprint(web.fingerprint) is web
        assert [o.id for o in repo.list_by_platform("mobile")] == [mob_id]
        assert {o.id for o in repo.list_by_tag("button")} == {web_id, mob_id}
        assert repo.get("obj_missing") is None
        assert link_id in repo

    def test_search_and_labels(self, repo):
        """search filters combine; labels are free-form."""
        a = _store(repo, CapturedAttributes(tag="button", aria_label="Checkout"))
        _store(repo, CapturedAttributes(tag="button", aria_label="Cancel"))
        repo.add_label(a, "payments")
        repo.add_label(a, "payments")

        assert repo.get(a).labels == ("payments",)
        assert [o.id for o in repo.search(label="payments")] == [a]
        assert [o.id for o in repo.search(tag="button", name_contains="CHECK")] == [a]
        assert repo.search(platform="desktop") == []

    def test_statistics(self, repo):
        """Counts by platform and average chain length."""
        _store(repo, CapturedAttributes(tag="button", text="Submit"))
        _store(repo, CapturedAttributes(tag="div"))

        stats = repo.statistics()
        assert stats["total_objects"] == 2
        assert stats["by_platform"]["web"] == 2
        assert stats["average_locators_per_object"] == 1.5


class TestEdits:
    """Tests for explicit write operations."""

    def test_record_usage(self, repo):
        """Each outcome increments its own counter."""
        oid = _store(repo, CapturedAttributes(tag="button", id="ok"))
        repo.record_usage(oid, UsageOutcome.RESOLVED)
        repo.record_usage(oid, "healed")
        usage = repo.record_usage(oid, UsageOutcome.FAILED)

        assert (usage.resolved, usage.healed, usage.failed) == (1, 1, 1)
        assert usage.last_resolved_at is not None
        assert repo.get(oid).usage == usage

    def test_record_usage_rejects_unknown_outcome(self, repo):
        """Outcome must be resolved, healed or failed."""
        oid = _store(repo, CapturedAttributes(tag="button", id="ok"))

        with pytest.raises(ValueError):
            repo.record_usage(oid, "skipped")

    def test_update_locator_chain_from_list(self, repo):
        """A plain list of locator dicts is accepted."""
        oid = _store(repo, CapturedAttributes(tag="button", id="ok"))
        updated = repo.update_locator_chain(oid, [{"kind": "test-id", "value": "ok-btn", "reliability": 95}])

        assert updated.chain.primary.value == "ok-btn"

    def test_empty_chain_rejected(self, repo):
        """A chain can never become empty."""
        oid = _store(repo, CapturedAttributes(tag="button", id="ok"))

        with pytest.raises(ConfigError):
            repo.update_locator_chain(oid, [])

    def test_rename_and_delete(self, repo):
        """Rename keeps the id; delete frees the fingerprint."""
        attrs = CapturedAttributes(tag="button", id="ok")
        oid = _store(repo, attrs)
        repo.rename(oid, "ok_button")
        assert repo.get(oid).name == "ok_button"

        repo.delete(oid)
        assert repo.get(oid) is None
        assert _store(repo, attrs) != oid

    def test_unknown_id(self, repo):
        """Edits on missing objects raise ObjectNotFoundError."""
        with pytest.raises(ObjectNotFoundError):
            repo.delete("obj_nope")
        with pytest.raises(ObjectNotFoundError):
            repo.record_usage("obj_nope", "resolved")


class TestPersistence:
    """Tests for YAML persistence, export and import."""

    def test_reopen_restores_objects(self, tmp_path):
        """Objects survive close and reopen."""
        path = tmp_path / "objects.yaml"
        with ObjectRepository(str(path)) as repo:
            oid = _store(repo, CapturedAttributes(tag="button", id="submit-btn-17cf2a9b", text="Submit"))
            repo.add_label(oid, "smoke")

        with ObjectRepository(str(path)) as repo:
            obj = repo.get(oid)
            assert obj.chain.primary.value == "Submit"
            assert obj.labels == ("smoke",)
            assert obj.attributes.id == "submit-btn-17cf2a9b"

        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert raw["objects"][oid]["tags"] == ["smoke"]

    def test_schema_violation(self, tmp_path):
        """Invalid files are rejected with ConfigError."""
        path = tmp_path / "bad.yaml"
        path.write_text("version: '1.0'\nobjects:\n  x:\n    id: x\n    locators: []\n", encoding="utf-8")

        with pytest.raises(ConfigError):
            ObjectRepository(str(path)).open()

    def test_duplicate_fingerprint_in_file(self, tmp_path):
        """Two ids bound to one fingerprint surface as a write conflict."""
        path = tmp_path / "objects.yaml"
        with ObjectRepository(str(path)) as repo:
            oid = _store(repo, CapturedAttributes(tag="button", id="ok"))

        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        clone = dict(data["objects"][oid], id="obj_clone")
        data["objects"]["obj_clone"] = clone
        path.write_text(yaml.safe_dump(data), encoding="utf-8")

        with pytest.raises(RepositoryWriteConflictError):
            ObjectRepository(str(path)).open()

    def test_export_and_import(self, tmp_path):
        """Export writes a loadable copy; import replaces or merges."""
        with ObjectRepository() as source:
            a = _store(source, CapturedAttributes(tag="button", id="a"))
            exported = source.export(str(tmp_path / "shared.yaml"))

        with ObjectRepository() as target:
            b = _store(target, CapturedAttributes(tag="button", id="b"))

            assert target.import_objects(exported, merge=True) == 1
            assert {a, b} <= {o.id for o in target.list_all()}

            target.import_objects(exported)
            assert [o.id for o in target.list_all()] == [a]

    def test_import_conflict(self, tmp_path):
        """Merging a different id with a known fingerprint is refused."""
        attrs = CapturedAttributes(tag="button", id="same")
        with ObjectRepository() as source:
            _store(source, attrs)
            exported = source.export(str(tmp_path / "shared.yaml"))

        with ObjectRepository() as target:
            _store(target, attrs)
            with pytest.raises(RepositoryWriteConflictError):
                target.import_objects(exported, merge=True)
