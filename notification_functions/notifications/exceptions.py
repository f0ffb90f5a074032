from typing import Optional


class DispatchError(Exception):
    """Base class for failures while delivering a notification"""

    def __init__(self, detail: str, cause: Optional[BaseException] = None):
        super().__init__(detail)
        self.detail = detail
        self.cause = cause


class InvalidChannelTokenError(DispatchError):
    """The push provider reports the device token as invalid or unregistered"""

    def __init__(self, token: str, detail: str, cause: Optional[BaseException] = None):
        super().__init__(detail, cause)
        self.token = token


class TransportError(DispatchError):
    """Any other push provider or network failure"""


class EmailDeliveryError(DispatchError):
    """The email service rejected the message or could not be reached"""


class InvalidEventError(ValueError):
    """A change event could not be decoded into a trigger"""
