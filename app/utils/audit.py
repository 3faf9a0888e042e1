import json
import logging

audit_logger = logging.getLogger("app.audit")


def audit(event: str, **fields) -> None:
    """
    Emit a structured audit record for an operational event.

    The fields are rendered as JSON in the message and also attached to the
    record as ``extra["audit"]`` so handlers can ship them as-is.
    """
    payload = {"event": event, **fields}
    audit_logger.info(
        f"{event} {json.dumps(fields, default=str, sort_keys=True)}",
        extra={"audit": payload},
    )
