import uuid

from selforder.services.device import get_or_create_device_id
from selforder.storage import DEVICE_ID_KEY, MemoryStorage


def test_memory_storage_roundtrip():
    storage = MemoryStorage()
    storage.set("table_number", "4")
    assert storage.get("table_number") == "4"
    storage.remove("table_number")
    assert storage.get("table_number") is None


def test_device_id_is_generated_once():
    storage = MemoryStorage()

    first = get_or_create_device_id(storage)
    second = get_or_create_device_id(storage)

    assert first == second
    assert uuid.UUID(first).version == 4
    assert storage.get(DEVICE_ID_KEY) == first


def test_device_id_keeps_existing_value():
    storage = MemoryStorage({DEVICE_ID_KEY: "known-device"})
    assert get_or_create_device_id(storage) == "known-device"
