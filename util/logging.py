"""
Structured operation logging for the memory store.
Record text is treated as sensitive - only truncated snippets reach the log.
"""

import logging
from typing import Any, Dict, List

class StructuredLogger:
    """Structured logger for store, vector, retrieval and migration operations."""

    def __init__(self, name: str = "notetoself"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None, level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.log(level, message)

    def log_store_operation(self, operation: str, record_id: str, table: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log a document store operation."""
        log_details = {"record_id": str(record_id), "table": table}
        if details:
            log_details.update(sanitize_payload(details))

        level = logging.INFO if status == "success" else logging.WARNING
        self.log_operation(f"store.{operation}", status, log_details, level)

    def log_vector_operation(self, operation: str, record_id: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log a vector operation."""
        log_details = {"record_id": str(record_id)}
        if details:
            log_details.update(details)

        level = logging.INFO if status == "success" else logging.WARNING
        self.log_operation(f"vector.{operation}", status, log_details, level)

    def log_retrieval(self, query: str, journal_count: int, chat_count: int, status: str = "success", details: Dict[str, Any] = None):
        """Log a retrieval (context assembly) request."""
        log_details = {
            "query": sanitize_payload(query),
            "journal_items": journal_count,
            "chat_items": chat_count
        }
        if details:
            log_details.update(details)

        level = logging.INFO if status == "success" else logging.WARNING
        self.log_operation("retrieval.context", status, log_details, level)

    def log_embedding_failure(self, reason: str, text: str = None, details: Dict[str, Any] = None):
        """Log an embedder that returned nothing or raised."""
        log_details = {"reason": reason}
        if text is not None:
            log_details["text"] = text[:50] + "..." if len(text) > 50 else text
        if details:
            log_details.update(details)

        self.log_operation("embedding.generate", "unavailable", log_details, logging.WARNING)

    def log_migration(self, step: str, from_value: int, to_value: int, details: Dict[str, Any] = None, status: str = "success"):
        """Log a schema version or embedding dimension migration step."""
        log_details = {"from": from_value, "to": to_value}
        if details:
            log_details.update(details)

        level = logging.INFO if status == "success" else logging.ERROR
        self.log_operation(f"migration.{step}", status, log_details, level)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)

# Global logger instance
logger = StructuredLogger()

def sanitize_payload(payload: Any, reveal_sensitive: bool = False, sensitive_fields: List[str] = None) -> Any:
    """Sanitize payloads for operation logging."""
    if sensitive_fields is None:
        sensitive_fields = ['text', 'embedding', 'vector']

    if isinstance(payload, dict):
        sanitized = {}
        for k, v in payload.items():
            if reveal_sensitive or k not in sensitive_fields:
                sanitized[k] = sanitize_payload(v, reveal_sensitive, sensitive_fields)
            else:
                sanitized[k] = "[REDACTED]"
        return sanitized
    elif isinstance(payload, str):
        # Truncate long strings
        return payload[:50] + "..." if len(payload) > 50 else payload
    elif isinstance(payload, list):
        return [sanitize_payload(item, reveal_sensitive, sensitive_fields) for item in payload]
    else:
        return payload
