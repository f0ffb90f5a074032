import logging
from typing import Optional

from fastapi import HTTPException, Request, status

from .config import Settings
from .firebase import FirebaseServices
from .mail import ReportMailer, SESEmailTransport
from .notifications.dispatcher import DeliveryDispatcher
from .notifications.store import DeliveryRequestStore
from .notifications.transport import FCMTransport
from .users import RecipientProfileStore

logger = logging.getLogger(__name__)


class Services:
    """The clients one process uses, built once at startup"""

    def __init__(self,
                 config: Settings,
                 dispatcher: DeliveryDispatcher,
                 requests: DeliveryRequestStore,
                 mailer: Optional[ReportMailer] = None):
        self.config = config
        self.dispatcher = dispatcher
        self.requests = requests
        self.mailer = mailer


def build_services(config: Settings) -> Services:
    """Connect to Firebase and AWS and wire the dispatcher and mailer"""
    firebase = FirebaseServices(config)
    firestore_db = firebase.get_firestore_db()

    requests = DeliveryRequestStore(firestore_db, config.notifications_collection)
    dispatcher = DeliveryDispatcher(
        transport=FCMTransport(app=firebase.app),
        profiles=RecipientProfileStore(firestore_db, config.users_collection),
        requests=requests,
        firestore_db=firestore_db,
        config=config,
    )

    mailer = None
    if config.report_recipients:
        mailer = ReportMailer(SESEmailTransport(config), firestore_db, config)
    else:
        logger.warning("No report recipients configured, report emails will be disabled.")

    logger.info("Notification services initialized")
    return Services(config=config, dispatcher=dispatcher, requests=requests, mailer=mailer)


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Services not initialized"
        )
    return services
