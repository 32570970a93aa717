import os
from typing import Any, Mapping, Optional, Tuple

from google.cloud import secretmanager

from livepix_proxy import cloud_logging as logging


CLIENT_ID_SECRET = "livepix-client-id"
CLIENT_SECRET_SECRET = "livepix-client-secret"


def get_secret_value(project_id, secret_id, version_id="latest"):
    """
    Retrieve a secret value from Google Cloud Secret Manager.

    Parameters
    ----------
    project_id : str
        The Google Cloud project ID where the secret is stored
    secret_id : str
        The ID of the secret to retrieve
    version_id : str, optional
        The version of the secret to retrieve, defaults to "latest"

    Returns
    -------
    str
        The secret payload as a UTF-8 decoded string

    Notes
    -----
    Authenticates with Application Default Credentials from the environment.
    """
    # Never include the secret payload itself in logs.
    logging.log_text(
        f"Fetching secret '{secret_id}' from project '{project_id}' (version '{version_id}').",
        severity="DEBUG",
    )
    client = secretmanager.SecretManagerServiceClient()
    name = f"projects/{project_id}/secrets/{secret_id}/versions/{version_id}"
    response = client.access_secret_version(request={"name": name})
    payload = response.payload.data.decode("UTF-8")

    logging.log_text(f"Successfully fetched secret '{secret_id}'.", severity="INFO")
    return payload


def parse_bearer_token(header: Optional[str]) -> Optional[str]:
    """Return the token of an ``Authorization: Bearer <token>`` header value."""
    if not header or not header.startswith("Bearer "):
        return None
    token = header[len("Bearer "):].strip()
    return token or None


def resolve_client_credentials(
    payload: Any = None,
    settings: Optional[Mapping[str, Any]] = None,
) -> Tuple[Optional[str], Optional[str]]:
    """
    Locate the LivePix OAuth client credentials.

    Sources are tried in order and the first complete pair wins:

    1. ``LIVEPIX_CLIENT_ID`` / ``LIVEPIX_CLIENT_SECRET`` in ``settings``
    2. ``clientId`` / ``clientSecret`` members of the request body
    3. Secret Manager secrets ``livepix-client-id`` / ``livepix-client-secret``
       in the project named by ``LIVEPIX_SECRET_PROJECT`` in ``settings``

    Parameters
    ----------
    payload : Any, optional
        Decoded request body.  Anything other than a mapping is ignored.
    settings : Mapping, optional
        Configuration source, e.g. ``app.config``; defaults to ``os.environ``.

    Returns
    -------
    tuple
        ``(client_id, client_secret)``, or ``(None, None)`` when no source
        provides both values.
    """
    if settings is None:
        settings = os.environ

    client_id = settings.get("LIVEPIX_CLIENT_ID")
    client_secret = settings.get("LIVEPIX_CLIENT_SECRET")
    if client_id and client_secret:
        logging.log_text("Using LivePix credentials from configuration.", severity="INFO")
        return client_id, client_secret

    if not isinstance(payload, Mapping):
        payload = {}
    client_id = payload.get("clientId")
    client_secret = payload.get("clientSecret")
    if client_id and client_secret:
        logging.log_text("Using LivePix credentials from request body.", severity="INFO")
        return str(client_id), str(client_secret)

    project_id = settings.get("LIVEPIX_SECRET_PROJECT")
    if project_id:
        logging.log_text("Using LivePix credentials from Secret Manager.", severity="INFO")
        return (
            get_secret_value(project_id, CLIENT_ID_SECRET),
            get_secret_value(project_id, CLIENT_SECRET_SECRET),
        )

    logging.log_text("No LivePix client credentials configured.", severity="WARNING")
    return None, None
