import logging
from typing import List, Optional, Union

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..config import Settings, settings as default_settings
from ..notifications.exceptions import EmailDeliveryError

logger = logging.getLogger(__name__)


class SESEmailTransport:
    def __init__(self, config: Optional[Settings] = None, client=None):
        """
        Initialize the SES client.

        Args:
            config: Settings with AWS region and credentials
            client: Pre-built boto3 SES client, mainly for tests
        """
        config = config or default_settings
        self.ses = client or boto3.client(
            'ses',
            region_name=config.aws_region,
            aws_access_key_id=config.aws_access_key_id,
            aws_secret_access_key=config.aws_secret_access_key
        )
        logger.info("SES client initialized")

    def send_message(self,
                     sender: str,
                     to: Union[str, List[str]],
                     subject: str,
                     html_body: str) -> None:
        """
        Send an HTML email.

        Raises:
            EmailDeliveryError: On authentication, throttling or network failure
        """
        recipients = [to] if isinstance(to, str) else list(to)
        if not recipients:
            raise EmailDeliveryError("No email recipients configured")

        try:
            response = self.ses.send_email(
                Source=sender,
                Destination={'ToAddresses': recipients},
                Message={
                    'Subject': {'Data': subject, 'Charset': 'UTF-8'},
                    'Body': {'Html': {'Data': html_body, 'Charset': 'UTF-8'}},
                },
            )
            logger.info(f"Email sent with SES MessageId: {response.get('MessageId')}")
        except ClientError as e:
            logger.error(f"Error sending email via SES: {e}")
            raise EmailDeliveryError(str(e), cause=e) from e
        except BotoCoreError as e:
            logger.error(f"Unexpected error sending email via SES: {e}")
            raise EmailDeliveryError(str(e), cause=e) from e
