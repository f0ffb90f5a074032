import logging
import time
from typing import Optional

from pythonjsonlogger import jsonlogger

from .config import Settings, settings as default_settings


class ServiceJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that stamps every record with service metadata."""

    def __init__(self, *args, service_name: str = "", environment: str = "", **kwargs):
        super().__init__(*args, **kwargs)
        self.service_name = service_name
        self.environment = environment

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record['service'] = self.service_name
        log_record['environment'] = self.environment
        log_record['timestamp'] = time.strftime(
            '%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)
        )
        log_record['level'] = record.levelname


def setup_logging(config: Optional[Settings] = None) -> None:
    """Configure structured JSON logging for the service."""
    config = config or default_settings
    log_level = getattr(logging, config.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(ServiceJsonFormatter(
        '%(timestamp)s %(level)s %(service)s %(environment)s %(name)s %(message)s',
        service_name=config.service_name,
        environment=config.environment,
    ))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear existing handlers to avoid duplicates
    for h in list(root_logger.handlers):
        root_logger.removeHandler(h)

    root_logger.addHandler(handler)

    # Set specific logger levels
    logging.getLogger('boto3').setLevel(logging.WARNING)
    logging.getLogger('botocore').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('google').setLevel(logging.WARNING)
