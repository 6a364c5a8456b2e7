import uuid
from datetime import datetime, timezone

# Fixed namespace for the last-resort name based id.
NAMESPACE = uuid.UUID("3cd4853f-ad8f-40f9-8558-014dd707b7b4")

def generate_owner_id() -> str:
    """Return a unique owner token for one lock manager. Never raises."""
    try:
        return str(uuid.uuid1())
    except (ValueError, OSError):
        pass
    try:
        return str(uuid.uuid4())
    except (NotImplementedError, OSError):
        return str(uuid.uuid5(NAMESPACE, datetime.now(timezone.utc).isoformat()))
