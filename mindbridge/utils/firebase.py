"""Firebase utilities for the application."""
import firebase_admin
from firebase_admin import credentials, firestore
from google.cloud.firestore_v1 import Client
from mindbridge.core.config import get_config
from mindbridge.core.exceptions import ConfigurationError
from mindbridge.core.logging import get_logger

logger = get_logger(__name__)


def initialize_firebase() -> None:
    """Initialize Firebase Admin SDK if not already initialized."""
    if not firebase_admin._apps:
        config = get_config()
        if not config.firebase_credentials_path:
            raise ConfigurationError("FIREBASE_CREDENTIALS_PATH is not set")
        cred = credentials.Certificate(config.firebase_credentials_path)
        firebase_admin.initialize_app(cred)
        logger.info("Firebase initialized successfully")


def get_firestore_client() -> Client:
    """Get Firestore client instance.

    Returns:
        Firestore client instance
    """
    initialize_firebase()

    return firestore.client()
