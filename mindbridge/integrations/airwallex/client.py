"""Airwallex payment acceptance API client."""
import time
import uuid
import requests
from typing import Optional, Dict, Any, List
from mindbridge.core.config import get_config, Config
from mindbridge.core.exceptions import GatewayUnavailable, ProcessorRequestError
from mindbridge.core.logging import get_logger
from mindbridge.integrations.airwallex.models import AccessToken, TokenCache, get_token_cache
from mindbridge.utils.money import to_major_units

logger = get_logger(__name__)

LOGIN_PATH = "/api/v1/authentication/login"
CUSTOMERS_PATH = "/api/v1/pa/customers"
CREATE_CUSTOMER_PATH = "/api/v1/pa/customers/create"
CREATE_INTENT_PATH = "/api/v1/pa/payment_intents/create"
INTENT_PATH = "/api/v1/pa/payment_intents/{intent_id}"


def new_request_id(prefix: str = "req") -> str:
    """Unique id for processor-side request deduplication."""
    return f"{prefix}_{uuid.uuid4().hex}"


class AirwallexClient:
    """Client for the Airwallex API.

    All calls go through :meth:`_request`, which attaches the cached bearer
    token and re-authenticates once when the processor rejects it.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        session: Optional[requests.Session] = None,
        token_cache: Optional[TokenCache] = None
    ):
        self.config = config or get_config()
        self.base_url = self.config.airwallex_api_url.rstrip("/")
        self.timeout = self.config.airwallex_request_timeout_seconds
        self.session = session or requests.Session()
        self.token_cache = token_cache or get_token_cache(self.config.token_refresh_margin_seconds)

    def authenticate(self) -> str:
        """Return a valid bearer token, logging in only when the cache is stale."""
        return self.token_cache.get_or_refresh(self._login)

    def _login(self) -> AccessToken:
        logger.info(
            "Authenticating with Airwallex",
            extra={"url": f"{self.base_url}{LOGIN_PATH}", "client_id": self.config.airwallex_client_id}
        )
        try:
            response = self.session.post(
                f"{self.base_url}{LOGIN_PATH}",
                headers={
                    "Content-Type": "application/json",
                    "x-client-id": self.config.airwallex_client_id,
                    "x-api-key": self.config.airwallex_api_key
                },
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Airwallex authentication request failed: {e}")
            raise GatewayUnavailable(f"Authentication request failed: {str(e)}")

        if response.status_code >= 500:
            raise GatewayUnavailable(
                f"Authentication failed with status {response.status_code}",
                {"http_status": response.status_code}
            )
        if not response.ok:
            logger.error(
                f"Airwallex authentication rejected with status {response.status_code}",
                extra={"status_code": response.status_code, "response_text": response.text}
            )
            raise ProcessorRequestError(
                "Authentication rejected",
                http_status=response.status_code,
                processor_code=self._error_code(response)
            )

        token = AccessToken.from_login_response(self._decode(response, LOGIN_PATH), now=time.time())
        logger.info("Airwallex authentication successful", extra={"expires_at": token.expires_at})
        return token

    def _send(
        self,
        method: str,
        path: str,
        token: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> requests.Response:
        try:
            return self.session.request(
                method,
                f"{self.base_url}{path}",
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json"
                },
                json=json,
                params=params,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Airwallex request failed: {e}", extra={"method": method, "path": path})
            raise GatewayUnavailable(f"Request to {path} failed: {str(e)}", {"path": path})

    def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Perform an authenticated request and return the decoded body."""
        token = self.authenticate()
        response = self._send(method, path, token, json=json, params=params)

        if response.status_code == 401:
            # Token expired or revoked under us; refresh once and replay.
            logger.info("Airwallex rejected bearer token, re-authenticating", extra={"path": path})
            self.token_cache.invalidate(token)
            token = self.authenticate()
            response = self._send(method, path, token, json=json, params=params)

        if response.status_code >= 500:
            logger.error(
                f"Airwallex server error {response.status_code}",
                extra={"path": path, "response_text": response.text}
            )
            raise GatewayUnavailable(
                f"{path} returned {response.status_code}",
                {"path": path, "http_status": response.status_code}
            )

        if not response.ok:
            code = self._error_code(response)
            logger.warning(
                f"Airwallex rejected request with status {response.status_code}",
                extra={"path": path, "processor_code": code}
            )
            raise ProcessorRequestError(
                f"{path} rejected",
                http_status=response.status_code,
                processor_code=code
            )

        return self._decode(response, path)

    @staticmethod
    def _decode(response: requests.Response, path: str) -> Dict[str, Any]:
        try:
            return response.json()
        except ValueError:
            # Proxies and maintenance pages answer 200 with HTML.
            logger.error(
                "Airwallex returned a non-JSON body",
                extra={"path": path, "http_status": response.status_code, "response_text": response.text[:200]}
            )
            raise GatewayUnavailable(
                f"{path} returned an unreadable response",
                {"path": path, "http_status": response.status_code}
            )

    @staticmethod
    def _error_code(response: requests.Response) -> Optional[str]:
        try:
            return response.json().get("code")
        except ValueError:
            return None

    def create_customer(
        self,
        merchant_customer_id: str,
        email: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create a processor-side customer."""
        payload = {
            "request_id": new_request_id(),
            "merchant_customer_id": merchant_customer_id,
            "first_name": first_name or "Client",
            "last_name": last_name or "User"
        }
        if email:
            payload["email"] = email

        return self._request("POST", CREATE_CUSTOMER_PATH, json=payload)

    def find_customers(self, merchant_customer_id: str) -> List[Dict[str, Any]]:
        """Look customers up by our own reference."""
        result = self._request(
            "GET",
            CUSTOMERS_PATH,
            params={"merchant_customer_id": merchant_customer_id}
        )
        return result.get("items", [])

    def create_payment_intent(
        self,
        amount: int,
        currency: str,
        customer_id: Optional[str],
        merchant_order_id: str,
        description: str = "Counselling session"
    ) -> Dict[str, Any]:
        """Create a payment intent. ``amount`` is in minor units."""
        major_amount = float(to_major_units(amount, currency))
        payload = {
            "request_id": new_request_id(),
            "amount": major_amount,
            "currency": currency,
            "merchant_order_id": merchant_order_id,
            "order": {
                "products": [{
                    "name": description,
                    "sku": "counselling-session",
                    "type": "service",
                    "unit_price": major_amount,
                    "quantity": 1
                }]
            }
        }
        if customer_id:
            payload["customer_id"] = customer_id

        return self._request("POST", CREATE_INTENT_PATH, json=payload)

    def get_payment_intent(self, intent_id: str) -> Dict[str, Any]:
        """Read a payment intent."""
        return self._request("GET", INTENT_PATH.format(intent_id=intent_id))
