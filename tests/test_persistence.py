import json
import sys
import tempfile
from pathlib import Path
import unittest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from webnav.core.engine import NavigationEngine
from webnav.core.storage import (
    JsonFileStorage,
    MemoryStorage,
    decode_snapshot,
    encode_snapshot,
)
from webnav.core.types import (
    EngineConfig,
    FlowDefinition,
    NavigationEntry,
    NavigationSetup,
    Priority,
)

SETUP = NavigationSetup(
    main_page="Home", flows=[FlowDefinition(name="pay", steps=("Input", "Detail", "Confirm"))]
)


class BrokenStorage:
    def get_item(self, key):
        raise OSError("storage unavailable")

    def set_item(self, key, value):
        raise OSError("storage unavailable")

    def remove_item(self, key):
        raise OSError("storage unavailable")


class TestSnapshotCodec(unittest.TestCase):
    def test_decode_rejects_malformed_payloads(self):
        entry = NavigationEntry.create("Home").to_dict()
        bad = [
            "{not json",
            "[]",
            json.dumps({"entries": "x", "current_index": 0}),
            json.dumps({"entries": [entry], "current_index": "0"}),
            json.dumps({"entries": [entry], "current_index": True}),
            json.dumps({"entries": [entry], "current_index": 3}),
            json.dumps({"entries": [{"route": "Home"}], "current_index": 0}),
            json.dumps({"entries": [], "current_index": 0}),
            json.dumps({"entries": [dict(entry, timestamp=float("inf"))], "current_index": 0}),
            json.dumps({"entries": [dict(entry, timestamp=float("nan"))], "current_index": 0}),
            "[" * 100000 + "]" * 100000,
        ]
        for raw in bad:
            self.assertIsNone(decode_snapshot(raw), raw)

    def test_empty_snapshot_round_trips(self):
        self.assertEqual(decode_snapshot(encode_snapshot([], -1)), ([], -1))

    def test_entry_fields_survive_encoding(self):
        entry = NavigationEntry.create(
            "Detail", priority=Priority.POPUP, payload={"amount": 10}, flow_id="pay"
        )
        entries, index = decode_snapshot(encode_snapshot([entry], 0))
        self.assertEqual(entries, [entry])
        self.assertEqual(index, 0)


class TestEnginePersistence(unittest.TestCase):
    def test_history_round_trips_through_storage(self):
        storage = MemoryStorage()
        config = EngineConfig(storage_key="nav")
        engine = NavigationEngine(config, storage)
        engine.setup(SETUP)
        engine.navigate("Input", payload={"amount": 10})
        engine.navigate("Detail")
        engine.navigate("Sheet", priority=Priority.POPUP)
        engine.back()

        restored = NavigationEngine(EngineConfig(storage_key="nav"), storage)

        self.assertEqual(restored.get_history(), engine.get_history())
        self.assertEqual(restored.get_current(), engine.get_current())

        restored.setup(SETUP)
        self.assertEqual(restored.get_history(), engine.get_history())
        self.assertEqual(restored.active_flow.step_index, 1)
        self.assertIsNone(restored.active_flow.entry_page_id)

    def test_restored_engine_pushes_differing_initial_page(self):
        storage = MemoryStorage()
        engine = NavigationEngine(EngineConfig(), storage)
        engine.setup(SETUP)
        engine.navigate("Profile")

        restored = NavigationEngine(EngineConfig(), storage)
        restored.setup(SETUP, initial_page="Input")

        self.assertEqual(
            [entry.route for entry in restored.get_history()], ["Home", "Profile", "Input"]
        )
        self.assertEqual(restored.active_flow.entry_page_id, "Profile")

    def test_corrupt_snapshot_yields_empty_engine(self):
        storage = MemoryStorage({"nav-engine-history": "{not json"})
        with self.assertLogs("webnav.core.storage", level="WARNING"):
            engine = NavigationEngine(EngineConfig(), storage)
        self.assertEqual(engine.get_history(), ())
        self.assertIsNone(engine.get_current())

        engine.setup(SETUP)
        self.assertEqual([entry.route for entry in engine.get_history()], ["Home"])

    def test_out_of_range_snapshot_yields_empty_engine(self):
        entry = dict(NavigationEntry.create("Home").to_dict(), timestamp=float("inf"))
        for raw in (
            json.dumps({"entries": [entry], "current_index": 0}),
            "[" * 100000 + "]" * 100000,
        ):
            storage = MemoryStorage({"nav-engine-history": raw})
            with self.assertLogs("webnav.core.storage", level="WARNING"):
                engine = NavigationEngine(EngineConfig(), storage)
            self.assertEqual(engine.get_history(), ())

    def test_storage_failures_never_propagate(self):
        with self.assertLogs("webnav.core.storage", level="WARNING"):
            engine = NavigationEngine(EngineConfig(), BrokenStorage())
            engine.setup(SETUP)
            engine.navigate("Input")
        self.assertEqual(engine.get_current().route, "Input")

    def test_unserializable_payload_is_not_fatal(self):
        engine = NavigationEngine(EngineConfig(), MemoryStorage())
        engine.setup(SETUP)
        with self.assertLogs("webnav.core.storage", level="WARNING"):
            engine.navigate("Input", payload={"callback": object()})
        self.assertEqual(engine.get_current().route, "Input")

    def test_persistence_can_be_disabled(self):
        storage = MemoryStorage()
        engine = NavigationEngine(EngineConfig(enable_persistence=False), storage)
        engine.setup(SETUP)
        engine.navigate("A")
        self.assertEqual(storage.items, {})

    def test_clear_history_persists_empty_state(self):
        storage = MemoryStorage()
        engine = NavigationEngine(EngineConfig(), storage)
        engine.setup(SETUP)
        engine.navigate("A")
        engine.clear_history()
        self.assertEqual(decode_snapshot(storage.get_item("nav-engine-history")), ([], -1))


class TestJsonFileStorage(unittest.TestCase):
    def test_file_storage_round_trip(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "state" / "nav.json"
            storage = JsonFileStorage(path)
            self.assertIsNone(storage.get_item("nav"))

            engine = NavigationEngine(EngineConfig(storage_key="nav"), storage)
            engine.setup(SETUP)
            engine.navigate("Input")

            data = json.loads(path.read_text(encoding="utf-8"))
            self.assertIn("nav", data)

            restored = NavigationEngine(EngineConfig(storage_key="nav"), JsonFileStorage(path))
            self.assertEqual(restored.get_history(), engine.get_history())

            storage.remove_item("nav")
            self.assertIsNone(storage.get_item("nav"))

    def test_non_object_file_is_ignored_by_engine(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nav.json"
            path.write_text("[1, 2, 3]", encoding="utf-8")
            with self.assertLogs("webnav.core.storage", level="WARNING"):
                engine = NavigationEngine(EngineConfig(), JsonFileStorage(path))
            self.assertEqual(engine.get_history(), ())

    def test_unreadable_file_is_overwritten_on_save(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nav.json"
            path.write_text("{not json", encoding="utf-8")
            with self.assertLogs("webnav.core.storage", level="WARNING") as logs:
                engine = NavigationEngine(EngineConfig(), JsonFileStorage(path))
                engine.setup(SETUP)
                engine.navigate("A")
            self.assertTrue(any("Overwriting" in line for line in logs.output))

            restored = NavigationEngine(EngineConfig(), JsonFileStorage(path))
            self.assertEqual(
                [entry.route for entry in restored.get_history()], ["Home", "A"]
            )


if __name__ == "__main__":
    unittest.main()
