from itertools import count
from textwrap import dedent

import pytest

from schemasync.config import StoreConfig
from schemasync.docstore import MemoryCollection
from schemasync.errors import (
    AlreadyExists,
    InputTooSparse,
    NotFound,
    RevisionConflict,
    UnsupportedDialect,
)
from schemasync.models import Entity, Field
from schemasync.store import CanonicalSchemaStore

USER_SOURCE = dedent(
    """
    const userSchema = new mongoose.Schema({
      email: { type: String, required: true, unique: true },
      name: String
    }, { timestamps: true });
    module.exports = mongoose.model('User', userSchema);
    """
)

TASK_SOURCE = dedent(
    """
    const taskSchema = new mongoose.Schema({
      title: { type: String, required: true, maxlength: 200 },
      assignedTo: { type: mongoose.Schema.Types.ObjectId, ref: 'User' },
      tags: [String]
    }, { timestamps: true });
    module.exports = mongoose.model('Task', taskSchema);
    """
)


@pytest.fixture
def clock():
    ticks = count(1000)
    return lambda: float(next(ticks))


@pytest.fixture
def store(clock):
    return CanonicalSchemaStore(
        MemoryCollection(), MemoryCollection(), clock=clock
    )


class FlakyCollection(MemoryCollection):
    """Fails the first ``failures`` saves as if another writer got there."""

    def __init__(self, failures: int):
        super().__init__()
        self.failures = failures
        self.attempts = 0

    def save(self, key, doc, expected_revision):
        self.attempts += 1
        if self.failures > 0 and expected_revision > 0:
            self.failures -= 1
            raise RevisionConflict(
                key, expected_revision, expected_revision + 1
            )
        return super().save(key, doc, expected_revision)


class TestSchemaDocument:
    def test_get_or_create(self, store):
        doc = store.get_or_create("p1", actor_id="u1", product_name="Acme")
        assert doc.name == "Database Schema - Acme"
        assert doc.created_by == "u1"
        assert doc.revision == 1
        assert store.get_or_create("p1").revision == 1

    def test_get_schema_missing(self, store):
        with pytest.raises(NotFound):
            store.get_schema("missing")

    def test_update_schema(self, store):
        store.get_or_create("p1")
        doc = store.update_schema(
            "p1",
            {"description": "All models", "tags": ("a", "b"), "revision": 99},
            actor_id="u2",
        )
        assert doc.description == "All models"
        assert doc.tags == ["a", "b"]
        assert doc.updated_by == "u2"
        assert store.get_schema("p1").revision == 2

    def test_update_missing_schema(self, store):
        with pytest.raises(NotFound):
            store.update_schema("missing", {"name": "x"})

    def test_stats(self, store):
        store.import_from_code("p1", USER_SOURCE)
        store.import_from_code("p1", TASK_SOURCE)
        stats = store.stats("p1")
        assert stats.total_entities == 2
        assert stats.total_fields == 5
        assert stats.total_relationships == 1
        assert store.stats("missing").total_entities == 0


class TestImport:
    def test_creates_schema_on_first_import(self, store):
        outcome = store.import_from_code("p1", TASK_SOURCE)
        assert outcome.created is True
        assert outcome.entity_name == "Task"
        assert outcome.entity["imported_at"] is not None
        assert outcome.entity["last_synced_at"] is None
        assert store.get_schema("p1").name == "Database Schema - p1"

    def test_reimport_is_idempotent(self, store):
        store.import_from_code("p1", TASK_SOURCE)
        first = store.get_entity("p1", "Task")
        outcome = store.import_from_code("p1", TASK_SOURCE)

        assert outcome.created is False
        entities = store.get_schema("p1").entities
        assert [e.name for e in entities] == ["Task"]
        again = entities[0]
        assert again.fields == first.fields
        assert again.indexes == first.indexes
        assert again.relationships == first.relationships

    def test_reimport_keeps_imported_at(self, store):
        store.import_from_code("p1", TASK_SOURCE)
        first = store.get_entity("p1", "Task")
        store.import_from_code("p1", TASK_SOURCE)
        again = store.get_entity("p1", "Task")
        assert again.imported_at == first.imported_at
        assert first.last_synced_at is None
        assert again.last_synced_at > first.imported_at

    def test_name_match_is_case_insensitive(self, store):
        store.import_from_code("p1", TASK_SOURCE)
        store.import_from_code("p1", TASK_SOURCE.replace("'Task'", "'task'"))
        assert [e.name for e in store.get_schema("p1").entities] == ["task"]

    def test_refused_overwrite(self, store):
        store.import_from_code("p1", TASK_SOURCE)
        with pytest.raises(AlreadyExists) as exc_info:
            store.import_from_code("p1", TASK_SOURCE, overwrite=False)
        assert exc_info.value.entity_name == "Task"
        assert "Task" in str(exc_info.value)

    def test_reimport_keeps_annotations(self, store):
        store.import_from_code("p1", TASK_SOURCE)
        store.update_entity(
            "p1", "Task", {"module": "planning", "notes": "core"}
        )
        store.import_from_code("p1", TASK_SOURCE)
        task = store.get_entity("p1", "Task")
        assert task.module == "planning"
        assert task.notes == "core"

    def test_import_entity_leaves_argument_untouched(self, store):
        entity = Entity(
            name="Comment",
            fields=[Field(name="author", type="String", reference="User")],
        )
        outcome = store.import_entity("p1", entity)
        assert entity.fields[0].type == "String"
        assert entity.fields[0].is_foreign_key is False
        assert outcome.entity["fields"][0]["type"] == "ObjectId"
        stored = store.get_entity("p1", "Comment").get_field("author")
        assert stored.is_foreign_key

    def test_sparse_source(self, store):
        with pytest.raises(InputTooSparse):
            store.import_from_code("p1", "tiny")
        with pytest.raises(NotFound):
            store.get_schema("p1")

    def test_unsupported_dialect(self, store):
        with pytest.raises(UnsupportedDialect):
            store.import_from_code("p1", TASK_SOURCE, dialect="typeorm")

    def test_degraded_fields_are_reported(self, store):
        source = TASK_SOURCE.replace("tags: [String]", "tags: 'a' + b")
        outcome = store.import_from_code("p1", source)
        assert [d.path for d in outcome.degraded] == ["tags"]


class TestBulkImport:
    def test_partial_failure_is_reported(self, store):
        report = store.import_many_from_code(
            "p1", [USER_SOURCE, "tiny", TASK_SOURCE, USER_SOURCE]
        )
        assert report.total == 4
        assert report.created == 2
        assert report.updated == 1
        assert report.failed == 1
        assert [e.index for e in report.errors] == [1]
        names = [o.entity_name for o in report.entities]
        assert names == ["User", "Task", "User"]
        assert len(store.list_entities("p1")) == 2

    def test_refused_overwrites_are_failures(self, store):
        store.import_from_code("p1", USER_SOURCE)
        report = store.import_many_from_code(
            "p1", [USER_SOURCE, TASK_SOURCE], overwrite=False
        )
        assert report.failed == 1
        assert "User" in report.errors[0].error
        assert report.created == 1

    def test_import_from_json(self, store):
        report = store.import_from_json(
            "p1",
            {
                "entities": [
                    {
                        "name": "Project",
                        "module": "core",
                        "fields": [
                            {
                                "name": "name",
                                "type": "string",
                                "required": True,
                            },
                            {"name": "owner", "type": "String", "ref": "User"},
                        ],
                    },
                    "garbage",
                ]
            },
        )
        assert report.total == 2
        assert report.failed == 0
        project = store.get_entity("p1", "project")
        assert project.source_type == "manual"
        assert project.get_field("owner").type == "ObjectId"


class TestEntities:
    def test_list_entities(self, store):
        store.import_from_code("p1", TASK_SOURCE)
        (summary,) = store.list_entities("p1")
        assert summary.name == "Task"
        assert summary.field_count == 3
        assert summary.relationship_count == 1
        assert summary.has_timestamps is True
        assert store.list_entities("missing") == []

    def test_get_entity_missing(self, store):
        store.get_or_create("p1")
        with pytest.raises(NotFound):
            store.get_entity("p1", "Nope")

    def test_update_entity_enforces_references(self, store):
        store.import_from_code("p1", TASK_SOURCE)
        updated = store.update_entity(
            "p1",
            "task",
            {
                "fields": [
                    {"name": "title", "type": "String"},
                    {
                        "name": "project",
                        "type": "String",
                        "reference": "Project",
                    },
                ],
                "name": "Renamed",
            },
        )
        assert updated.name == "Task"
        assert updated.get_field("project").type == "ObjectId"
        stored = store.get_entity("p1", "Task")
        assert stored.get_field("project").is_foreign_key

    def test_delete_entity(self, store):
        store.import_from_code("p1", TASK_SOURCE)
        removed = store.delete_entity("p1", "TASK")
        assert removed.name == "Task"
        assert store.list_entities("p1") == []
        with pytest.raises(NotFound):
            store.delete_entity("p1", "Task")

    def test_resync(self, store):
        store.import_from_code("p1", TASK_SOURCE)
        store.update_entity("p1", "Task", {"fields": []})
        outcome = store.resync_entity("p1", "Task")
        assert outcome.created is False
        assert len(store.get_entity("p1", "Task").fields) == 3

    def test_resync_without_source(self, store):
        store.import_from_json("p1", [{"name": "Manual"}])
        with pytest.raises(NotFound):
            store.resync_entity("p1", "Manual")


class TestOutputs:
    def test_relationship_map(self, store):
        store.import_from_code("p1", USER_SOURCE)
        store.import_from_code("p1", TASK_SOURCE)
        graph = store.get_relationship_map("p1")
        assert {n.id for n in graph.nodes} == {"User", "Task"}
        assert [(e.source, e.target) for e in graph.edges] == [("Task", "User")]

    def test_relationship_map_missing_schema(self, store):
        graph = store.get_relationship_map("missing")
        assert graph.stats.total_nodes == 0

    def test_generate_code(self, store):
        store.import_from_code("p1", TASK_SOURCE)
        generated = store.generate_code("p1", "task")
        assert generated.entity_name == "Task"
        assert "mongoose.model('Task', TaskSchema)" in generated.code

    def test_export_json(self, store):
        store.import_from_code("p1", TASK_SOURCE)
        data = store.export_json("p1")
        assert data["product_id"] == "p1"
        assert data["stats"]["total_entities"] == 1
        (entity,) = data["entities"]
        assert entity["name"] == "Task"
        assert "source_code" not in entity
        assert "imported_at" not in entity


class TestArchitecture:
    def test_apply_and_read(self, store):
        store.apply_architecture(
            "p1",
            {"api_endpoints": [{"method": "get", "path": "/a"}]},
            product_name="Acme",
        )
        assert store.get_architecture("p1").project_name == "Acme"
        assert [e.path for e in store.list_endpoints("p1")] == ["/a"]

    def test_reapply_replaces_endpoints(self, store):
        store.apply_architecture(
            "p1",
            {"api_endpoints": [{"path": "/a"}, {"path": "/b"}]},
        )
        store.apply_architecture("p1", {"api_endpoints": [{"path": "/c"}]})
        assert [e.path for e in store.list_endpoints("p1")] == ["/c"]

    def test_missing_architecture(self, store):
        assert store.list_endpoints("p1") == []
        with pytest.raises(NotFound):
            store.get_architecture("p1")


class TestConcurrency:
    def test_conflict_is_retried(self, clock):
        schemas = FlakyCollection(failures=2)
        store = CanonicalSchemaStore(
            schemas, config=StoreConfig(max_write_attempts=3), clock=clock
        )
        store.import_from_code("p1", USER_SOURCE)
        store.import_from_code("p1", TASK_SOURCE)
        assert [e.name for e in store.get_schema("p1").entities] == [
            "User",
            "Task",
        ]
        assert schemas.attempts == 4

    def test_conflict_gives_up(self, clock):
        schemas = FlakyCollection(failures=5)
        store = CanonicalSchemaStore(
            schemas, config=StoreConfig(max_write_attempts=2), clock=clock
        )
        store.import_from_code("p1", USER_SOURCE)
        with pytest.raises(RevisionConflict):
            store.import_from_code("p1", TASK_SOURCE)
        assert [e.name for e in store.get_schema("p1").entities] == ["User"]


class TestLmdbBackedStore:
    def test_round_trip(self, tmp_path):
        config = StoreConfig(
            data_dir=tmp_path / "data", map_size=16 * 1024 * 1024
        )
        with CanonicalSchemaStore.open(config) as store:
            store.import_from_code("p1", TASK_SOURCE)
            store.apply_architecture("p1", {"api_endpoints": [{"path": "/x"}]})

        with CanonicalSchemaStore.open(config) as store:
            task = store.get_entity("p1", "Task")
            assert task.get_field("assignedTo").reference == "User"
            assert task.source_code == TASK_SOURCE
            assert [e.path for e in store.list_endpoints("p1")] == ["/x"]

    def test_unstorable_entity_fails_alone(self, tmp_path):
        config = StoreConfig(
            data_dir=tmp_path / "data", map_size=16 * 1024 * 1024
        )
        with CanonicalSchemaStore.open(config) as store:
            report = store.import_from_json(
                "p1",
                [
                    {"name": "A", "fields": [{"name": "x", "default": 10**20}]},
                    {"name": "B", "fields": [{"name": "y", "type": "String"}]},
                ],
            )
            assert report.total == 2
            assert report.failed == 1
            assert report.created == 1
            assert report.errors[0].index == 0
            assert "Cannot store 'p1'" in report.errors[0].error
            assert [s.name for s in store.list_entities("p1")] == ["B"]
