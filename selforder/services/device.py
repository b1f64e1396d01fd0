import logging
import uuid

from selforder.storage import DEVICE_ID_KEY, LocalStorage

logger = logging.getLogger(__name__)


def get_or_create_device_id(storage: LocalStorage) -> str:
    """Return the persisted device id, generating and storing one on first visit."""
    device_id = storage.get(DEVICE_ID_KEY)
    if not device_id:
        device_id = str(uuid.uuid4())
        storage.set(DEVICE_ID_KEY, device_id)
        logger.info("Issued new device id", extra={"device_id": device_id})
    return device_id
