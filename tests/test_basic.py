"""
Tests against a real mongod. Skipped when mongod is not installed.
"""

import os
import threading

import pytest
from bson import ObjectId
from pymongo import MongoClient

from temp_mongo import State, TempMongo, TempMongoBuilder

from conftest import pid_running, requires_mongod

pytestmark = requires_mongod


class TestBasicOperations:
    """Test the client handed out by a fresh instance."""

    def test_directory_layout(self, mongo):
        """Test: working directory holds data, log and socket."""
        assert mongo.state is State.READY
        assert os.path.isdir(mongo.directory)
        assert os.path.isdir(os.path.join(mongo.directory, "db"))
        assert os.path.isfile(mongo.log_path)
        if mongo.socket_path:
            assert os.path.exists(mongo.socket_path)
            assert os.path.dirname(mongo.socket_path) == mongo.directory
            assert os.path.exists(os.path.join(mongo.directory, f"mongodb-{mongo.endpoint.port}.sock"))

    def test_insert_and_find(self, mongo):
        """Test: insert a document then read it back."""
        collection = mongo.client["test"]["foo"]

        result = collection.insert_one({"hello": "world"})
        assert isinstance(result.inserted_id, ObjectId)

        document = collection.find_one({"_id": result.inserted_id})
        assert document == {"_id": result.inserted_id, "hello": "world"}

    def test_client_is_shared(self, mongo):
        """Test: client() always returns the same client."""
        assert mongo.client is mongo.client

    def test_independent_connection(self, mongo):
        """Test: a separate client on the endpoint sees the same data."""
        mongo.client["test"]["animals"].insert_one({"species": "dog", "cute": "yes"})

        other = MongoClient(mongo.uri, directConnection=True, serverSelectionTimeoutMS=2000)
        try:
            document = other["test"]["animals"].find_one({"species": "dog"}, {"_id": 0})
        finally:
            other.close()

        assert document == {"species": "dog", "cute": "yes"}

    def test_fresh_instance_is_empty(self, tmp_path):
        """Test: data does not leak between instances."""
        first = TempMongo.start(parent_directory=str(tmp_path))
        first.client["test"]["foo"].insert_one({"hello": "world"})
        first.kill_and_clean()

        second = TempMongo.start(parent_directory=str(tmp_path))
        try:
            assert "test" not in second.client.list_database_names()
        finally:
            second.kill_and_clean()

    def test_tcp(self, tmp_path):
        """Test: instance listening on a loopback port."""
        with TempMongo.start(parent_directory=str(tmp_path), use_tcp=True) as mongo:
            assert mongo.socket_path is None
            assert mongo.endpoint.address.startswith("127.0.0.1:")
            mongo.client["test"]["foo"].insert_one({"n": 1})
            assert mongo.client["test"]["foo"].count_documents({}) == 1


class TestTeardown:
    """Test cleanup of process and directory."""

    def test_close_removes_everything(self, parent_dir):
        """Test: close kills the server, removes the directory, endpoint goes away."""
        mongo = TempMongo.start(parent_directory=parent_dir)
        directory = mongo.directory
        pid = mongo.process_id
        endpoint = mongo.endpoint

        mongo.close()

        assert mongo.state is State.CLOSED
        assert not os.path.exists(directory)
        assert not pid_running(pid)
        assert not endpoint.probe()
        assert not os.path.exists(f"/tmp/mongodb-{endpoint.port}.sock")
        assert os.listdir(parent_dir) == []

    def test_close_is_idempotent(self, parent_dir):
        mongo = TempMongo.start(parent_directory=parent_dir)
        mongo.close()
        mongo.close()
        mongo.kill_and_clean()
        assert mongo.state is State.CLOSED

    def test_context_manager(self, parent_dir):
        with TempMongo.start(parent_directory=parent_dir) as mongo:
            directory = mongo.directory
            assert os.path.isdir(directory)
        assert not os.path.exists(directory)

    def test_context_manager_on_error(self, parent_dir):
        with pytest.raises(ZeroDivisionError):
            with TempMongo.start(parent_directory=parent_dir):
                1 / 0
        assert os.listdir(parent_dir) == []

    def test_garbage_collected(self, parent_dir):
        mongo = TempMongo.start(parent_directory=parent_dir)
        pid = mongo.process_id
        del mongo
        assert os.listdir(parent_dir) == []
        assert not pid_running(pid)

    def test_disown(self, parent_dir):
        """Test: disowned directory survives teardown, process does not."""
        mongo = TempMongo.start(parent_directory=parent_dir)
        mongo.disown()
        mongo.disown()
        assert not mongo.clean_on_drop
        mongo.close()

        assert os.path.isdir(mongo.directory)
        assert os.path.isfile(mongo.log_path)
        assert not pid_running(mongo.process_id)

    def test_builder_clean_on_drop(self, parent_dir):
        mongo = TempMongoBuilder().parent(parent_dir).clean_on_drop(False).spawn()
        mongo.close()
        assert os.path.isdir(mongo.directory)

    def test_set_clean_on_drop_back(self, parent_dir):
        mongo = TempMongo.start(parent_directory=parent_dir, clean_on_drop=False)
        mongo.set_clean_on_drop(True)
        mongo.close()
        assert os.listdir(parent_dir) == []

    def test_kill_and_clean_ignores_disown(self, parent_dir):
        mongo = TempMongo.start(parent_directory=parent_dir)
        mongo.disown()
        mongo.kill_and_clean()
        assert os.listdir(parent_dir) == []

    def test_kill_no_clean(self, parent_dir):
        mongo = TempMongo.start(parent_directory=parent_dir)
        path = mongo.kill_no_clean()
        assert path == mongo.directory
        assert os.path.isdir(path)
        assert not pid_running(mongo.process_id)
        assert not mongo.endpoint.probe()


class TestConcurrency:
    """Test several instances at once."""

    def test_instances_from_threads(self, parent_dir):
        """Test: five instances started in parallel are independent."""
        errors = []
        directories = []

        def worker(i):
            try:
                with TempMongo.start(parent_directory=parent_dir) as mongo:
                    directories.append(mongo.directory)
                    collection = mongo.client["test_1"]["foo"]
                    inserted = collection.insert_one({"worker": i}).inserted_id
                    assert collection.find_one({"_id": inserted})["worker"] == i
                    assert collection.count_documents({}) == 1
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(set(directories)) == 5
        assert os.listdir(parent_dir) == []

    def test_client_shared_between_threads(self, mongo):
        collection = mongo.client["test"]["counter"]

        def writer(i):
            for j in range(20):
                collection.insert_one({"thread": i, "n": j})

        threads = [threading.Thread(target=writer, args=(i,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert collection.count_documents({}) == 80


class TestSeeding:
    """Test seeding documents into an instance."""

    def test_seed_and_fetch(self, mongo):
        documents = [{"name": "Alice", "age": 30}, {"name": "Bob", "age": 25}]

        seed = mongo.prepare_seed_document("test_3", "trex", documents)
        assert mongo.load_document(seed) == 2

        fetched = list(mongo.client["test_3"]["trex"].find({}, {"_id": 0}))
        assert fetched == documents
        # Seeding does not modify the caller's documents
        assert "_id" not in documents[0]

    def test_print_documents(self, mongo, capsys):
        mongo.load_document(mongo.prepare_seed_document("test_documents", "trex", [{"name": "Alice"}]))
        mongo.print_documents("test_documents", "trex")

        out = capsys.readouterr().out
        assert "'name': 'Alice'" in out
