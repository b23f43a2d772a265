"""
Tests for change tracking.

Covers:
- ChangeTracker originals / previous changes / commit protocol
- Document dirty API (changed, changes, previous_changes, per-key accessors)
- Rollback safety: failed saves keep the pending changes
"""

import pytest

from docspine import HALT, Document, Key, Presence, SchemaError, before_save
from docspine.dirty import ChangeTracker


class DirtyArticle(Document):
    name = Key(str)
    views = Key(int, default=0)
    tags = Key(list, default=[])
    blocked = Key(bool, default=False)

    validations = [Presence("name")]

    @before_save
    def stop_when_blocked(self):
        if self.blocked:
            return HALT


class TestChangeTracker:
    def test_records_first_original_only(self):
        tracker = ChangeTracker()
        tracker.record("name", "a", "b")
        tracker.record("name", "b", "c")
        assert tracker.original("name") == "a"
        assert tracker.changes(lambda name: "c") == {"name": ("a", "c")}

    def test_writing_back_original_forgets(self):
        tracker = ChangeTracker()
        tracker.record("name", "a", "b")
        tracker.record("name", "b", "a")
        assert not tracker
        assert tracker.changed_keys == []

    def test_no_change_not_recorded(self):
        tracker = ChangeTracker()
        tracker.record("name", "a", "a")
        assert not tracker.is_changed("name")

    def test_none_versus_falsy_is_a_change(self):
        tracker = ChangeTracker()
        tracker.record("count", None, 0)
        assert tracker.is_changed("count")

    def test_initializing_suppresses_tracking(self):
        tracker = ChangeTracker()
        with tracker.initializing():
            tracker.record("name", None, "a")
        assert not tracker

    def test_clear_changes_commits_on_success(self):
        tracker = ChangeTracker()
        tracker.record("name", "a", "b")
        assert tracker.clear_changes(lambda name: "b", lambda: True) is True
        assert not tracker
        assert tracker.previous_changes == {"name": ("a", "b")}

    def test_clear_changes_keeps_state_on_failure(self):
        tracker = ChangeTracker()
        tracker.record("name", "a", "b")
        assert tracker.clear_changes(lambda name: "b", lambda: False) is False
        assert tracker.is_changed("name")
        assert tracker.previous_changes == {}

    def test_clear_changes_keeps_state_on_exception(self):
        tracker = ChangeTracker()
        tracker.record("name", "a", "b")

        def boom():
            raise RuntimeError("storage down")

        with pytest.raises(RuntimeError):
            tracker.clear_changes(lambda name: "b", boom)
        assert tracker.is_changed("name")

    def test_will_change_without_modification(self):
        tracker = ChangeTracker()
        tracker.will_change("tags", ["a"])
        assert tracker.is_changed("tags")
        assert tracker.changes(lambda name: ["a"]) == {}

    def test_discard_keeps_previous(self):
        tracker = ChangeTracker()
        tracker.record("name", "a", "b")
        tracker.clear_changes(lambda name: "b")
        tracker.record("name", "b", "c")
        tracker.discard()
        assert not tracker
        assert tracker.previous_changes == {"name": ("a", "b")}

    def test_reset_drops_everything(self):
        tracker = ChangeTracker()
        tracker.record("name", "a", "b")
        tracker.clear_changes(lambda name: "b")
        tracker.reset()
        assert tracker.previous_changes == {}


class TestDocumentChanges:
    def test_save_cycle(self, ctx):
        article = DirtyArticle.create(ctx, name="Original")
        assert not article.changed

        article.name = "Changed"
        assert article.changed
        assert article.changes == {"name": ("Original", "Changed")}
        assert article.changed_keys == ["name"]
        assert article.changed_attributes == {"name": "Original"}

        assert article.save()
        assert not article.changed
        assert article.previous_changes["name"] == ("Original", "Changed")

    def test_hydrated_documents_are_clean(self, ctx):
        created = DirtyArticle.create(ctx, name="Fresh")
        found = DirtyArticle.find(ctx, created.id)
        assert not found.changed
        assert found.previous_changes == {}

    def test_coercion_applies_before_comparison(self, ctx):
        article = DirtyArticle.create(ctx, name="a", views=3)
        article.views = "3"
        assert not article.changed

    def test_per_key_accessors(self, ctx):
        article = DirtyArticle.create(ctx, name="Original")
        article.name = "Changed"
        assert article.attribute_changed("name")
        assert article.attribute_was("name") == "Original"
        assert article.attribute_change("name") == ("Original", "Changed")
        assert article.attribute_change("views") is None
        assert article.attribute_was("views") == 0

        article.save()
        assert article.attribute_previously_changed("name")
        assert article.attribute_previous_change("name") == ("Original", "Changed")
        assert not article.attribute_previously_changed("views")

    def test_will_save_and_saved_change(self, ctx):
        article = DirtyArticle.create(ctx, name="Original")
        assert not article.will_save_change_to_attribute("name")
        article.name = "Changed"
        assert article.will_save_change_to_attribute("name")
        assert article.saved_change_to_attribute("name") == (None, "Original")

        article.save()
        assert not article.will_save_change_to_attribute("name")
        assert article.saved_change_to_attribute("name") == ("Original", "Changed")
        assert article.saved_change_to_attribute("views") is None

    def test_accessor_bundle(self, ctx):
        article = DirtyArticle.create(ctx, name="Original")
        article.name = "Changed"
        bundle = DirtyArticle.schema.accessor("name")
        assert bundle.changed(article)
        assert bundle.was(article) == "Original"

    def test_reset_attribute(self, ctx):
        article = DirtyArticle.create(ctx, name="Original")
        article.name = "Changed"
        article.reset_attribute("name")
        assert article.name == "Original"
        assert not article.changed

    def test_restore_attribute(self, ctx):
        article = DirtyArticle.create(ctx, name="Original")
        article.views = 10
        article.restore_attribute("views")
        assert article.views == 0

    def test_will_change_for_in_place_mutation(self, ctx, storage):
        article = DirtyArticle.create(ctx, name="a")
        article.attribute_will_change("tags")
        article.tags.append("python")
        assert article.changes == {"tags": ([], ["python"])}
        article.save()
        assert storage.records("dirty_articles")[0]["tags"] == ["python"]

    def test_invalid_save_keeps_changes(self, ctx):
        article = DirtyArticle.create(ctx, name="Original")
        article.name = ""
        assert article.save() is False
        assert article.changes == {"name": ("Original", "")}
        assert "name" in article.errors

    def test_halted_save_keeps_changes(self, ctx):
        article = DirtyArticle.create(ctx, name="Original")
        article.name = "Changed"
        article.blocked = True
        assert article.save() is False
        assert article.attribute_changed("name")
        assert article.previous_changes == {"name": (None, "Original")}

    def test_reload_discards_unsaved_changes(self, ctx):
        article = DirtyArticle.create(ctx, name="Original")
        article.name = "Unsaved"
        article.reload()
        assert article.name == "Original"
        assert not article.changed

    def test_unknown_key_accessor(self):
        with pytest.raises(SchemaError) as info:
            DirtyArticle().attribute_changed("nope")
        assert "nope" in str(info.value)
