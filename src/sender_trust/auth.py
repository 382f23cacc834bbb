"""OAuth credentials and the read-only Gmail API service."""

import logging

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build, Resource
from googleapiclient.errors import HttpError

from sender_trust.constants import CONFIG_DIR, CREDENTIALS_PATH, SCOPES, TOKEN_PATH

logger = logging.getLogger(__name__)


def _missing_credentials_message() -> str:
    return (
        f"Credentials file not found at {CREDENTIALS_PATH}.\n"
        "Create an OAuth client (Desktop app) with the Gmail API enabled in the "
        "Google Cloud Console and save the downloaded JSON as:\n"
        f"  {CREDENTIALS_PATH}"
    )


def _cached_credentials() -> Credentials | None:
    """Load the stored token, refreshing it when expired. None means a new consent is needed."""
    if not TOKEN_PATH.exists():
        return None
    creds = Credentials.from_authorized_user_file(str(TOKEN_PATH), SCOPES)
    if creds.valid:
        return creds
    if creds.expired and creds.refresh_token:
        try:
            creds.refresh(Request())
        except RefreshError as exc:
            logger.warning("Stored token could not be refreshed, asking for consent again: %s", exc)
            return None
        return creds
    return None


def get_gmail_service() -> Resource:
    """Return an authenticated, read-only Gmail API service object.

    Without a usable stored token a browser consent flow runs, which needs
    the OAuth client secrets at CREDENTIALS_PATH.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    creds = _cached_credentials()
    if creds is None:
        if not CREDENTIALS_PATH.exists():
            raise FileNotFoundError(_missing_credentials_message())
        flow = InstalledAppFlow.from_client_secrets_file(str(CREDENTIALS_PATH), SCOPES)
        creds = flow.run_local_server(port=0)

    TOKEN_PATH.write_text(creds.to_json())
    return build("gmail", "v1", credentials=creds, cache_discovery=False)


def check_auth() -> str | None:
    """Return the authenticated mailbox address, or None when the API rejects the token.

    A missing credentials file still raises FileNotFoundError.
    """
    service = get_gmail_service()
    try:
        profile = service.users().getProfile(userId="me").execute()
    except HttpError as exc:
        logger.warning("Gmail profile request failed: %s", exc)
        return None
    return profile.get("emailAddress")
