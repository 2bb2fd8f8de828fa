from config import logger
from interfaces import AuditSink
from models import AuditRecord


class LoggingAuditSink(AuditSink):
    """Default sink: one structured log line per verification."""

    async def emit(self, record: AuditRecord) -> None:
        logger.info(
            f"Verification audit {record.request_id}: tier={record.tier.value if record.tier else None} "
            f"degraded={record.degraded} cache_hit={record.cache_hit} stages={len(record.stages)}",
            extra={"audit": record.model_dump(mode="json")}
        )
