import requests
from typing import Dict, Optional

from app.keycrm.payloads import CreatedOrder
from app.logging_config import get_logger

logger = get_logger(__name__)


class KeyCRMError(Exception):
    """KeyCRM answered with an error status or a body we cannot use."""

    def __init__(self, message, status_code=None, body=None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class KeyCRMAPI:
    """KeyCRM connection layer utilizing a requests session with bearer auth."""
    DEFAULT_BASE_URL = "https://openapi.keycrm.app/v1"

    def __init__(self, token, base_url=None, timeout: float = 30):
        if not token:
            raise ValueError("Missing KeyCRM API key")

        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout

        # Reusable HTTP session, token set once
        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    def _request(self, method: str, endpoint: str, **kwargs):
        """
        Make a single request. Retrying is left to the order queue, so a
        failed POST is never replayed here.

        Raises:
            KeyCRMError: on 4xx/5xx or an undecodable body
            requests.RequestException: on connection errors / timeouts
        """
        url = f"{self.base_url}{endpoint}"
        r = self.session.request(method, url, timeout=self.timeout, **kwargs)

        try:
            r.raise_for_status()
        except requests.HTTPError as http_err:
            logger.warning(
                "KeyCRM request failed",
                method=method,
                endpoint=endpoint,
                status_code=r.status_code,
                response=r.text[:500],
            )
            raise KeyCRMError(
                f"{r.status_code} from KeyCRM {method} {endpoint}: {r.text[:200]}",
                status_code=r.status_code,
                body=r.text,
            ) from http_err

        if not r.text:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise KeyCRMError(
                f"Invalid JSON from KeyCRM {method} {endpoint}",
                status_code=r.status_code,
                body=r.text,
            ) from e

    def _get(self, endpoint: str, params: Optional[Dict] = None):
        return self._request("GET", endpoint, params=params)

    def _post(self, endpoint: str, data: Dict):
        return self._request("POST", endpoint, json=data)

    def _put(self, endpoint: str, data: Dict):
        return self._request("PUT", endpoint, json=data)

    # -------------------------
    # Pipelines (leads)
    # -------------------------
    def create_pipeline_card(self, payload):
        return self._post("/pipelines/cards", payload.to_dict())

    # -------------------------
    # Orders
    # -------------------------
    def create_order(self, payload) -> CreatedOrder:
        created = CreatedOrder.from_response(self._post("/order", payload.to_dict()))
        if not created.id:
            raise KeyCRMError("KeyCRM create order response has no id", body=created.raw)
        return created

    def get_order(self, crm_order_id):
        return self._get(f"/order/{crm_order_id}")

    def update_order(self, crm_order_id, payload):
        return self._put(f"/order/{crm_order_id}", payload.to_dict())

    def create_order_payment(self, crm_order_id, payload):
        return self._post(f"/order/{crm_order_id}/payment", payload.to_dict())

    def list_payment_methods(self):
        response = self._get("/order/payment-method")
        return (response or {}).get("data", [])
