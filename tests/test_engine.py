from textwrap import dedent

import pytest

from schemasync.config import EngineConfig
from schemasync.errors import InputTooSparse, UnsupportedDialect
from schemasync.extract.engine import (
    SchemaExtractionEngine,
    derive_relationships,
    detect_soft_delete,
    parse,
)
from schemasync.models import Field

TASK_SOURCE = dedent(
    """
    const mongoose = require('mongoose');

    const taskSchema = new mongoose.Schema({
      title: {type:String, required:true, maxlength:200},
      assignedTo: {type: ObjectIdType, ref:'User'},
      tags: [String]
    }, { timestamps:true });

    module.exports = mongoose.model('Task', taskSchema);
    """
)

PROJECT_SOURCE = dedent(
    """
    const mongoose = require('mongoose');
    const { Schema } = mongoose;

    const memberSchema = new Schema({
      user: { type: Schema.Types.ObjectId, ref: 'User' },
      role: { type: String, enum: ['owner', 'editor', 'viewer'] }
    }, { _id: false });

    const projectSchema = new Schema({
      name: { type: String, required: [true, 'Name is required'], trim: true },
      slug: { type: String, unique: true, lowercase: true },
      owner: { type: Schema.Types.ObjectId, ref: 'User', required: true },
      members: [memberSchema],
      tasks: [{ type: Schema.Types.ObjectId, ref: 'Task' }],
      settings: {
        visibility: { type: String, default: 'private' },
        archived: { type: Boolean, default: false }
      },
      budget: { type: Number, min: 0 },
      deletedAt: { type: Date, default: null }
    }, {
      timestamps: { createdAt: 'created_at', updatedAt: 'updated_at' },
      collection: 'projects'
    });

    projectSchema.index({ owner: 1, name: 1 }, { unique: true });
    projectSchema.pre('save', function (next) { next(); });

    export default mongoose.model('Project', projectSchema);
    """
)

PRISMA_SOURCE = dedent(
    """
    model Post {
      id        Int      @id @default(autoincrement())
      title     String
      body      String?
      tags      String[]
      author    User     @relation(fields: [authorId], references: [id])
      authorId  Int
    }
    """
)


@pytest.fixture
def engine():
    return SchemaExtractionEngine()


class TestMongooseParse:
    def test_task_example(self, engine):
        entity = engine.parse(TASK_SOURCE)

        assert entity.name == "Task"
        names = [f.name for f in entity.fields]
        assert names == ["title", "assignedTo", "tags"]

        title = entity.get_field("title")
        assert title.type == "String"
        assert title.required
        assert title.maxlength == 200

        assigned = entity.get_field("assignedTo")
        assert assigned.type == "ObjectId"
        assert assigned.reference == "User"

        tags = entity.get_field("tags")
        assert tags.type == "Array"
        assert tags.array_type == "String"

        assert len(entity.relationships) == 1
        rel = entity.relationships[0]
        assert rel.target == "User"
        assert rel.cardinality == "one-to-one"
        assert rel.field == "assignedTo"

        assert entity.timestamps.enabled
        assert entity.timestamps.created_at == "createdAt"
        assert entity.timestamps.updated_at == "updatedAt"
        assert entity.degraded == []

    def test_provenance(self, engine):
        entity = engine.parse(TASK_SOURCE)
        assert entity.source_type == "mongoose"
        assert entity.source_code == TASK_SOURCE

    def test_picks_schema_bound_to_model(self, engine):
        entity = engine.parse(PROJECT_SOURCE)
        assert entity.name == "Project"
        assert [f.name for f in entity.fields] == [
            "name",
            "slug",
            "owner",
            "members",
            "tasks",
            "settings",
            "budget",
            "deletedAt",
        ]

    def test_constraints(self, engine):
        entity = engine.parse(PROJECT_SOURCE)
        name = entity.get_field("name")
        assert name.required and name.trim
        slug = entity.get_field("slug")
        assert slug.unique and slug.lowercase
        assert entity.get_field("budget").min == 0

    def test_nested_structure(self, engine):
        settings = engine.parse(PROJECT_SOURCE).get_field("settings")
        assert settings.type == "Object"
        visibility, archived = settings.nested_fields
        assert visibility.default_value == "private"
        assert archived.default_value is False

    def test_list_shapes(self, engine):
        entity = engine.parse(PROJECT_SOURCE)
        tasks = entity.get_field("tasks")
        assert tasks.reference == "Task"
        assert tasks.is_list
        members = entity.get_field("members")
        assert members.type == "Array"

    def test_relationships(self, engine):
        entity = engine.parse(PROJECT_SOURCE)
        by_field = {r.field: r for r in entity.relationships}
        assert by_field["owner"].cardinality == "one-to-one"
        assert by_field["tasks"].cardinality == "one-to-many"
        assert by_field["tasks"].target == "Task"

    def test_schema_options(self, engine):
        entity = engine.parse(PROJECT_SOURCE)
        assert entity.timestamps.enabled
        assert entity.timestamps.created_at == "created_at"
        assert entity.collection_name == "projects"

    def test_indexes(self, engine):
        indexes = engine.parse(PROJECT_SOURCE).indexes
        assert len(indexes) == 1
        assert indexes[0].fields == ["owner", "name"]
        assert indexes[0].unique

    def test_soft_delete(self, engine):
        entity = engine.parse(PROJECT_SOURCE)
        assert entity.soft_delete.enabled
        assert entity.soft_delete.field == "deletedAt"

    def test_name_from_schema_variable(self, engine):
        entity = engine.parse(
            "const invoiceSchema = "
            "new Schema({ total: Number, paid: Boolean });"
        )
        assert entity.name == "Invoice"
        assert len(entity.fields) == 2

    def test_missing_name_is_degraded(self, engine):
        entity = engine.parse("new mongoose.Schema({ total: Number })")
        assert entity.name == "UnknownModel"
        assert any(d.path == "name" for d in entity.degraded)
        assert len(entity.fields) == 1

    def test_unbalanced_body_still_extracts(self, engine):
        entity = engine.parse(
            "const aSchema = new mongoose.Schema({ a: String, b: Number"
        )
        assert [f.name for f in entity.fields] == ["a", "b"]
        reasons = [d.reason for d in entity.degraded]
        assert "unbalanced schema body" in reasons

    def test_module_level_parse(self):
        assert parse(TASK_SOURCE).name == "Task"


class TestPrismaParse:
    def test_fields(self, engine):
        entity = engine.parse(PRISMA_SOURCE, "prisma")
        assert entity.name == "Post"
        assert entity.source_type == "prisma"
        by_name = {f.name: f for f in entity.fields}
        assert by_name["id"].is_primary_key
        assert by_name["id"].type == "Number"
        assert by_name["title"].required
        assert not by_name["body"].required
        assert by_name["tags"].array_type == "String"

    def test_relation_forces_reference(self, engine):
        entity = engine.parse(PRISMA_SOURCE)
        author = entity.get_field("author")
        assert author.reference == "User"
        assert author.type == "ObjectId"
        assert [r.target for r in entity.relationships] == ["User"]

    def test_missing_model_block(self, engine):
        entity = engine.parse("datasource db { provider = 'x' }", "prisma")
        assert entity.name == "UnknownModel"
        assert entity.degraded


class TestDialects:
    def test_autodetect(self, engine):
        assert engine.detect_dialect(TASK_SOURCE) == "mongoose"
        assert engine.detect_dialect(PRISMA_SOURCE) == "prisma"

    def test_default_dialect_from_config(self):
        engine = SchemaExtractionEngine(EngineConfig(default_dialect="prisma"))
        assert engine.detect_dialect("something else") == "prisma"

    def test_hint_is_case_insensitive(self, engine):
        assert engine.resolve_dialect(TASK_SOURCE, " Mongoose ") == "mongoose"

    def test_unsupported_dialect(self, engine):
        with pytest.raises(UnsupportedDialect) as exc_info:
            engine.parse(TASK_SOURCE, "sequelize")
        assert exc_info.value.dialect == "sequelize"
        assert "mongoose" in exc_info.value.supported


class TestValidateSource:
    def test_accepts_model_source(self, engine):
        assert engine.validate_source(TASK_SOURCE) == TASK_SOURCE

    @pytest.mark.parametrize("source", [None, "", 42, "short"])
    def test_rejects_sparse_input(self, engine, source):
        with pytest.raises(InputTooSparse):
            engine.validate_source(source)

    def test_rejects_unrecognizable_input(self, engine):
        with pytest.raises(InputTooSparse):
            engine.validate_source("this is a long piece of prose text only")

    def test_min_length_is_configurable(self):
        engine = SchemaExtractionEngine(EngineConfig(min_source_length=5))
        assert engine.validate_source("Schema")


class TestDerivations:
    def test_derive_relationships(self):
        one = Field(name="owner")
        one.set_reference("User")
        many = Field(name="watchers", type="Array", array_type="ObjectId")
        many.set_reference("User")
        rels = derive_relationships([one, many, Field(name="plain")])
        assert [(r.field, r.cardinality) for r in rels] == [
            ("owner", "one-to-one"),
            ("watchers", "one-to-many"),
        ]
        assert rels[0].description == "Reference to User"

    def test_detect_soft_delete(self):
        assert not detect_soft_delete([Field(name="name")]).enabled
        policy = detect_soft_delete([Field(name="isDeleted", type="Boolean")])
        assert policy.enabled
        assert policy.field == "isDeleted"
