import logging
import json
import datetime


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line. Structured `extra` payloads used by the
    ledger services are copied onto the record.
    """

    CONTEXT_FIELDS = (
        "operation",
        "inventory_id",
        "movement_id",
        "transfer_id",
        "reference",
        "reference_number",
        "activity",
        "actor_id",
        "warehouse_id",
        "product_id",
        "call_args",
        "call_kwargs",
        "duration_ms",
    )

    SENSITIVE_KEYS = {'password', 'token', 'secret', 'authorization'}

    def _scrub(self, data):
        if isinstance(data, dict):
            return {
                k: self._scrub(v) if k.lower() not in self.SENSITIVE_KEYS else '***REDACTED***'
                for k, v in data.items()
            }
        if isinstance(data, list):
            return [self._scrub(i) for i in data]
        return data

    def format(self, record):
        log_record = {
            "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "lvl": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
            "path": record.pathname,
            "line": record.lineno,
        }

        for field in self.CONTEXT_FIELDS:
            if hasattr(record, field):
                log_record[field] = self._scrub(getattr(record, field))

        if record.exc_info:
            log_record['exc'] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)
