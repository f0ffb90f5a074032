from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration settings for the notification functions service"""

    # Application settings
    service_name: str = "notification-functions"
    log_level: str = "INFO"
    environment: str = "dev"

    # Firebase settings
    firebase_secret: Optional[str] = None
    firebase_project_id: Optional[str] = None

    # Firestore collections
    notifications_collection: str = "notifications"
    users_collection: str = "users"
    chats_collection: str = "chats"
    messages_subcollection: str = "messages"
    listings_collection: str = "listings"
    bundles_collection: str = "bundles"
    transactions_collection: str = "transactions"
    reports_collection: str = "reports"

    # Dispatch settings
    system_actor_id: str = "system"
    max_notification_body_length: int = 160  # provider payload limit, not a display limit

    # Retention sweep settings
    notification_retention_days: int = 7
    firestore_batch_size: int = 500  # Firestore allows up to 500 writes per batch

    # AWS SES settings
    aws_region: str = "ap-southeast-1"
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    email_sender: str = "no-reply@example.com"
    report_recipients: List[str] = []

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )


# Create settings instance
settings = Settings()
