"""
Tests for KeyCRMAPI request handling (HTTP layer mocked).
"""
import pytest
import requests
from unittest.mock import Mock, patch

from app.keycrm.api import KeyCRMAPI, KeyCRMError
from app.keycrm.client import build_crm_client
from app.keycrm.payloads import CreatePaymentRequest, UpdateOrderRequest


def make_response(status_code=200, json_data=None, text=None):
    response = Mock(spec=requests.Response)
    response.status_code = status_code
    if text is None:
        text = "" if json_data is None else "json"
    response.text = text
    response.json.return_value = json_data
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} Error")
    else:
        response.raise_for_status.return_value = None
    return response


@pytest.fixture
def api():
    return KeyCRMAPI("secret-token", base_url="https://crm.example.com/v1/")


class TestKeyCRMAPI:
    def test_missing_token_rejected(self):
        with pytest.raises(ValueError):
            KeyCRMAPI("")

    def test_session_carries_bearer_token(self, api):
        assert api.session.headers["Authorization"] == "Bearer secret-token"
        assert api.base_url == "https://crm.example.com/v1"

    def test_create_order_returns_created_id(self, api):
        with patch.object(api.session, "request", return_value=make_response(json_data={"id": 321})) as request:
            created = api.create_order(Mock(to_dict=Mock(return_value={"source_id": 2})))

        assert created.id == 321
        request.assert_called_once_with(
            "POST", "https://crm.example.com/v1/order", timeout=30, json={"source_id": 2}
        )

    def test_create_order_without_id_is_error(self, api):
        with patch.object(api.session, "request", return_value=make_response(json_data={"ok": True})):
            with pytest.raises(KeyCRMError):
                api.create_order(Mock(to_dict=Mock(return_value={})))

    def test_http_error_becomes_keycrm_error(self, api):
        response = make_response(status_code=422, text='{"message": "invalid"}')
        with patch.object(api.session, "request", return_value=response):
            with pytest.raises(KeyCRMError) as exc_info:
                api.update_order("9", UpdateOrderRequest(status_id=8))

        assert exc_info.value.status_code == 422
        assert "invalid" in exc_info.value.body

    def test_connection_error_propagates(self, api):
        with patch.object(api.session, "request", side_effect=requests.ConnectionError("refused")):
            with pytest.raises(requests.ConnectionError):
                api.get_order("9")

    def test_invalid_json_is_error(self, api):
        response = make_response(text="<html>")
        response.json.side_effect = ValueError("no json")
        with patch.object(api.session, "request", return_value=response):
            with pytest.raises(KeyCRMError):
                api.get_order("9")

    def test_update_and_payment_endpoints(self, api):
        with patch.object(api.session, "request", return_value=make_response(json_data={"id": 9})) as request:
            api.update_order("9", UpdateOrderRequest(status_id=8))
            api.create_order_payment("9", CreatePaymentRequest(amount=500, payment_method_id=3))

        update_call, payment_call = request.call_args_list
        assert update_call[0] == ("PUT", "https://crm.example.com/v1/order/9")
        assert update_call[1]["json"] == {"status_id": 8}
        assert payment_call[0] == ("POST", "https://crm.example.com/v1/order/9/payment")
        assert payment_call[1]["json"] == {"amount": 500, "payment_method_id": 3}

    def test_list_payment_methods(self, api):
        methods = [{"id": 1, "name": "Готівка"}]
        with patch.object(api.session, "request", return_value=make_response(json_data={"data": methods})):
            assert api.list_payment_methods() == methods

    def test_empty_body_returns_none(self, api):
        with patch.object(api.session, "request", return_value=make_response(text="")):
            assert api.get_order("9") is None


def test_build_crm_client_from_config():
    client = build_crm_client({
        "KEYCRM_KEY": "abc",
        "KEYCRM_BASE_URL": "https://crm.example.com/v1",
        "CRM_TIMEOUT_SECONDS": 5,
    })

    assert client.base_url == "https://crm.example.com/v1"
    assert client.timeout == 5
