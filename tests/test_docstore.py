import pytest

from schemasync.docstore import LmdbDocumentStore, MemoryCollection
from schemasync.errors import RevisionConflict, UnstorableDocument


@pytest.fixture
def lmdb_store(tmp_path):
    store = LmdbDocumentStore(tmp_path / "docs.db", map_size=16 * 1024 * 1024)
    yield store
    store.close()


@pytest.fixture(params=["memory", "lmdb"])
def collection(request, tmp_path):
    if request.param == "memory":
        yield MemoryCollection()
        return
    store = LmdbDocumentStore(tmp_path / "docs.db", map_size=16 * 1024 * 1024)
    yield store.collection("schemas")
    store.close()


class TestDocumentCollection:
    def test_load_missing(self, collection):
        assert collection.load("nope") is None

    def test_first_save_expects_revision_zero(self, collection):
        assert collection.save("p1", {"name": "x"}, 0) == 1
        doc = collection.load("p1")
        assert doc["name"] == "x"
        assert doc["revision"] == 1

    def test_revisions_advance(self, collection):
        collection.save("p1", {"n": 1}, 0)
        assert collection.save("p1", {"n": 2}, 1) == 2
        assert collection.load("p1")["n"] == 2

    def test_stale_revision_conflicts(self, collection):
        collection.save("p1", {"n": 1}, 0)
        collection.save("p1", {"n": 2}, 1)
        with pytest.raises(RevisionConflict) as exc_info:
            collection.save("p1", {"n": 3}, 1)
        assert exc_info.value.expected == 1
        assert exc_info.value.actual == 2
        assert collection.load("p1")["n"] == 2

    def test_create_race_conflicts(self, collection):
        collection.save("p1", {"n": 1}, 0)
        with pytest.raises(RevisionConflict):
            collection.save("p1", {"n": 2}, 0)

    def test_delete_and_keys(self, collection):
        collection.save("b", {}, 0)
        collection.save("a", {}, 0)
        assert collection.keys() == ["a", "b"]
        assert collection.delete("a") is True
        assert collection.delete("a") is False
        assert collection.keys() == ["b"]

    def test_nested_values(self, collection):
        doc = {
            "entities": [
                {"name": "User", "fields": [{"default_value": None}]}
            ]
        }
        collection.save("p1", doc, 0)
        loaded = collection.load("p1")
        assert loaded["entities"] == doc["entities"]


class TestMemoryCollection:
    def test_loaded_documents_are_copies(self):
        coll = MemoryCollection()
        coll.save("p1", {"items": [1]}, 0)
        doc = coll.load("p1")
        doc["items"].append(2)
        assert coll.load("p1")["items"] == [1]


class TestLmdbDocumentStore:
    def test_collections_are_separate(self, lmdb_store):
        lmdb_store.collection("schemas").save("p1", {"kind": "schema"}, 0)
        assert lmdb_store.collection("architectures").load("p1") is None

    def test_unknown_collection(self, lmdb_store):
        with pytest.raises(KeyError):
            lmdb_store.collection("nope")

    def test_persists_across_reopen(self, tmp_path):
        path = tmp_path / "docs.db"
        with LmdbDocumentStore(path, map_size=16 * 1024 * 1024) as store:
            store.collection("schemas").save("p1", {"n": 1}, 0)
        with LmdbDocumentStore(path, map_size=16 * 1024 * 1024) as store:
            assert store.collection("schemas").load("p1")["n"] == 1

    def test_unencodable_value_is_rejected(self, lmdb_store):
        schemas = lmdb_store.collection("schemas")
        schemas.save("p1", {"n": 1}, 0)
        with pytest.raises(UnstorableDocument) as exc_info:
            schemas.save("p1", {"n": 10**20}, 1)
        assert exc_info.value.key == "p1"
        assert schemas.load("p1") == {"n": 1, "revision": 1}
