from .reports import ReportMailer
from .transport import SESEmailTransport

__all__ = ["ReportMailer", "SESEmailTransport"]
