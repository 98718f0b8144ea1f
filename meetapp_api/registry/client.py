"""Client for the external registry service that fetches message bodies."""

import logging
from typing import Optional

import httpx

from meetapp_api.errors import RegistryRequestError
from meetapp_api.settings import Settings, get_settings
from meetapp_api.utils.metrics import registry_requests

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/api/registry-message/callback"


class RegistryClient:
    """Enqueues message body fetches; the registry reports back through the callback."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        app_url: str,
        timeout: float = 30.0,
        enqueue_path: str = "/api/fedresurs/enqueue/message-tables",
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.app_url = app_url.rstrip("/")
        self.timeout = timeout
        self.enqueue_path = enqueue_path
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RegistryClient":
        settings = settings or get_settings()
        return cls(
            base_url=settings.registry_base_url,
            api_key=settings.registry_api_key,
            app_url=settings.app_url,
            timeout=settings.registry_request_timeout_seconds,
            enqueue_path=settings.registry_enqueue_path,
        )

    @property
    def callback_url(self) -> str:
        return f"{self.app_url}{CALLBACK_PATH}"

    def request_bodies(self, messages: list, application_id: Optional[int] = None) -> dict:
        """Ask the registry to fetch bodies of ``messages``.

        Args:
            messages: ``[{"message_id": int, "message_uuid": str}, ...]``
            application_id: Meeting application waiting for the bodies

        Returns:
            Decoded JSON response of the registry service

        Raises:
            RegistryRequestError: On missing configuration, transport failure or non-2xx status
        """
        if not messages:
            raise RegistryRequestError("No messages to request")
        if not self.api_key:
            registry_requests.labels(result="not_configured").inc()
            raise RegistryRequestError("Registry API key is not configured")

        payload = {
            "messages": messages,
            "meeting_application_id": application_id,
            "callback_url": self.callback_url,
        }
        url = f"{self.base_url}{self.enqueue_path}"

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(
                    url,
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Accept": "application/json",
                    },
                )
        except httpx.HTTPError as e:
            registry_requests.labels(result="error").inc()
            logger.error(f"Registry request failed: {e}", extra={"meeting_application_id": application_id})
            raise RegistryRequestError(f"Registry request failed: {e}") from e

        if not response.is_success:
            registry_requests.labels(result="error").inc()
            logger.error(
                f"Registry returned HTTP {response.status_code}",
                extra={"meeting_application_id": application_id, "body": response.text[:500]},
            )
            raise RegistryRequestError(f"Registry returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            registry_requests.labels(result="error").inc()
            raise RegistryRequestError("Registry returned a non-JSON response") from e

        registry_requests.labels(result="sent").inc()
        logger.info(
            f"Requested {len(messages)} message bodies from registry",
            extra={"meeting_application_id": application_id},
        )
        return data if isinstance(data, dict) else {"success": False, "data": data}
