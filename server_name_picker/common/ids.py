import uuid


def new_request_id() -> str:
    # Short prefix for easy log scanning.
    return f"req_{uuid.uuid4().hex[:12]}"
