import pytest

from fakes import FakeEmailTransport, FakeFirestore, FakeTransport
from notification_functions.config import Settings
from notification_functions.dependencies import Services
from notification_functions.mail.reports import ReportMailer
from notification_functions.notifications.dispatcher import DeliveryDispatcher
from notification_functions.notifications.store import DeliveryRequestStore
from notification_functions.users.profiles import RecipientProfileStore


@pytest.fixture
def config():
    return Settings(
        email_sender="alerts@example.com",
        report_recipients=["moderators@example.com"],
    )


@pytest.fixture
def db():
    return FakeFirestore()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def email_transport():
    return FakeEmailTransport()


@pytest.fixture
def profiles(db, config):
    return RecipientProfileStore(db, config.users_collection)


@pytest.fixture
def requests_store(db, config):
    return DeliveryRequestStore(db, config.notifications_collection)


@pytest.fixture
def dispatcher(transport, profiles, requests_store, db, config):
    return DeliveryDispatcher(
        transport=transport,
        profiles=profiles,
        requests=requests_store,
        firestore_db=db,
        config=config,
    )


@pytest.fixture
def mailer(email_transport, db, config):
    return ReportMailer(email_transport, db, config)


@pytest.fixture
def services(config, dispatcher, requests_store, mailer):
    return Services(config=config, dispatcher=dispatcher, requests=requests_store, mailer=mailer)
