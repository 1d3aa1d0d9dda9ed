from textwrap import dedent

from schemasync.extract.secondary import detect_timestamps, extract_indexes

SOURCE = dedent(
    """
    const taskSchema = new mongoose.Schema({ title: String, project: String });

    taskSchema.index({ project: 1, createdAt: -1 });
    taskSchema.index(
      { slug: 1 },
      { unique: true, sparse: true, name: 'slug_idx' }
    );
    taskSchema.index({ title: 'text' });
    otherSchema.index({ ignored: 1 });
    """
)


class TestExtractIndexes:
    def test_compound_index(self):
        indexes = extract_indexes(SOURCE, "taskSchema")
        assert indexes[0].fields == ["project", "createdAt"]
        assert indexes[0].name == "project_createdAt"
        assert indexes[0].unique is False

    def test_index_options(self):
        slug = extract_indexes(SOURCE, "taskSchema")[1]
        assert slug.fields == ["slug"]
        assert slug.unique is True
        assert slug.sparse is True
        assert slug.name == "slug_idx"

    def test_text_index(self):
        assert extract_indexes(SOURCE, "taskSchema")[2].fields == ["title"]

    def test_only_named_schema(self):
        indexes = extract_indexes(SOURCE, "taskSchema")
        assert len(indexes) == 3
        assert all("ignored" not in idx.fields for idx in indexes)

    def test_unterminated_call_is_skipped(self):
        assert extract_indexes("s.index({ a: 1 }", "s") == []

    def test_no_indexes(self):
        assert extract_indexes("const s = new Schema({})", "s") == []


class TestDetectTimestamps:
    def test_enabled(self):
        policy = detect_timestamps(
            "new Schema({ a: String }, { timestamps: true })"
        )
        assert policy.enabled
        assert policy.created_at == "createdAt"
        assert policy.updated_at == "updatedAt"

    def test_custom_names(self):
        policy = detect_timestamps(
            "{ timestamps: "
            "{ createdAt: 'created_at', updatedAt: 'updated_at' } }"
        )
        assert policy.enabled
        assert policy.created_at == "created_at"
        assert policy.updated_at == "updated_at"

    def test_disabled(self):
        assert not detect_timestamps("{ timestamps: false }").enabled

    def test_absent(self):
        assert not detect_timestamps("new Schema({ a: String })").enabled
