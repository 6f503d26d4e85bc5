"""
Outbound supplier communication.

SupplierClient is the only place that talks to suppliers. It builds the
order payload, submits it through the supplier's integration and records
the integration's health after every call.

Integration types:
    api:     POST {api_endpoint}/orders with a Bearer api_key
    webhook: POST to webhook_url, body signed with webhook_secret
             (X-Webhook-Signature, HMAC-SHA256 hex)
    email:   order email to the integration address
    manual:  nothing is sent; staff forward the order themselves

Catalog and stock feeds are read from GET {api_endpoint}/products.
check_connection() calls GET {api_endpoint}/health for API integrations.

Usage:
    from dropshipping.clients import SupplierClient

    submission = SupplierClient.send_order(dropship_order, integration)
    if submission.success:
        ...

Connection errors, timeouts and 5xx responses raise
SupplierCommunicationError so the calling task can retry. A 4xx response is
the supplier refusing the order and comes back as success=False.
"""

from __future__ import annotations

import json
import logging
import smtplib
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any

import requests
from django.conf import settings
from django.core.mail import send_mail
from django.utils.dateparse import parse_date

from core.helpers import sign_payload
from dropshipping.exceptions import SupplierCommunicationError
from dropshipping.states import IntegrationType

if TYPE_CHECKING:
    from dropshipping.models import DropshipOrder, SupplierIntegration

logger = logging.getLogger(__name__)


ORDER_CREATED_EVENT = "order.created"


def parse_estimated_delivery(value: Any) -> date | None:
    """
    Date part of a supplier ETA ("2024-03-01" or an ISO datetime).

    Malformed or impossible dates (2024-02-30) count as no ETA.
    """
    if not isinstance(value, str):
        return None
    try:
        return parse_date(value[:10])
    except ValueError:
        return None


@dataclass
class SupplierSubmission:
    """
    Outcome of submitting a dropship order to a supplier.

    Attributes:
        success: Supplier accepted the order (or nothing had to be sent)
        supplier_order_id: Supplier's reference, when returned
        estimated_delivery: Delivery date promised by the supplier
        response_data: Parsed response body
        error: Reason for a rejection
        status_code: HTTP status of the response, if any
        method: Integration type used
    """

    success: bool
    supplier_order_id: str = ""
    estimated_delivery: date | None = None
    response_data: dict[str, Any] = field(default_factory=dict)
    error: str = ""
    status_code: int | None = None
    method: str = ""


@dataclass
class ConnectionCheck:
    """
    Outcome of a supplier connectivity check.

    error_type is one of configuration, authentication, rejected or network.
    """

    success: bool
    error_type: str = ""
    error: str = ""
    details: dict[str, Any] = field(default_factory=dict)


class SupplierClient:
    @classmethod
    def build_order_payload(cls, dropship_order: DropshipOrder) -> dict[str, Any]:
        order = dropship_order.order
        return {
            "external_order_id": str(dropship_order.id),
            "order_number": order.number,
            "currency": order.currency,
            "shipping_address": dropship_order.shipping_address,
            "customer_email": order.user.email,
            "notes": dropship_order.notes,
            "items": [
                {
                    "sku": item.supplier_sku,
                    "quantity": item.quantity,
                    "unit_cost_cents": item.supplier_price_cents,
                    "name": item.product_details.get("name", ""),
                }
                for item in dropship_order.items.all()
            ],
            "total_cost_cents": dropship_order.total_cost_cents,
        }

    @classmethod
    def send_order(
        cls,
        dropship_order: DropshipOrder,
        integration: SupplierIntegration,
    ) -> SupplierSubmission:
        senders = {
            IntegrationType.API: cls._send_api,
            IntegrationType.WEBHOOK: cls._send_webhook,
            IntegrationType.EMAIL: cls._send_email,
            IntegrationType.MANUAL: cls._send_manual,
        }
        sender = senders.get(integration.integration_type)
        if sender is None:
            return SupplierSubmission(
                success=False,
                error=f"Unsupported integration type: {integration.integration_type}",
                method=integration.integration_type,
            )

        payload = cls.build_order_payload(dropship_order)
        log_context = {
            "dropship_order_id": str(dropship_order.id),
            "supplier_id": str(integration.supplier_id),
            "method": integration.integration_type,
        }

        try:
            submission = sender(payload, integration)
        except SupplierCommunicationError as e:
            integration.record_failure(e.message)
            logger.warning(f"Supplier unreachable: {e.message}", extra=log_context)
            raise

        if submission.success:
            integration.record_success()
            logger.info("Order submitted to supplier", extra=log_context)
        else:
            integration.record_failure(submission.error)
            logger.warning(
                f"Supplier rejected order: {submission.error}",
                extra={**log_context, "status_code": submission.status_code},
            )
        return submission

    @classmethod
    def fetch_products(cls, integration: SupplierIntegration) -> list[dict[str, Any]]:
        """
        Full catalog feed from GET {api_endpoint}/products.

        Entries carry ``sku`` plus any of ``name``, ``description``,
        ``cost_price_cents`` or ``price``, and ``stock_quantity``.
        """
        return cls._get_products(integration, "Catalog")

    @classmethod
    def fetch_stock(cls, integration: SupplierIntegration) -> list[dict[str, Any]]:
        """
        Stock levels from the same feed as fetch_products.

        Each entry carries at least ``sku`` and ``stock_quantity``.
        """
        return cls._get_products(integration, "Stock")

    @classmethod
    def _get_products(cls, integration: SupplierIntegration, purpose: str) -> list[dict[str, Any]]:
        response = cls._request(
            "get",
            f"{integration.api_endpoint.rstrip('/')}/products",
            integration,
            headers=cls._api_headers(integration),
        )
        if response.status_code >= 400:
            error = f"{purpose} request rejected: {response.status_code}"
            integration.record_failure(error)
            raise SupplierCommunicationError(error, status_code=response.status_code)

        integration.record_success()
        data = cls._json(response)
        return data.get("products") or data.get("data") or []

    # ==========================================================================
    # Connection checks
    # ==========================================================================

    @classmethod
    def check_connection(cls, integration: SupplierIntegration) -> ConnectionCheck:
        """
        Verify an integration is configured and, for APIs, reachable.

        API integrations get GET {api_endpoint}/health. Webhook and email
        integrations are only checked for configuration; nothing is sent to
        the supplier. Manual integrations always pass.
        """
        checks = {
            IntegrationType.API: cls._check_api,
            IntegrationType.WEBHOOK: cls._check_webhook,
            IntegrationType.EMAIL: cls._check_email,
        }
        check = checks.get(integration.integration_type)
        if check is None:
            return ConnectionCheck(success=True)
        return check(integration)

    @classmethod
    def _check_api(cls, integration: SupplierIntegration) -> ConnectionCheck:
        if not integration.api_endpoint:
            return ConnectionCheck(success=False, error_type="configuration", error="API endpoint not configured")
        if not integration.api_key:
            return ConnectionCheck(success=False, error_type="authentication", error="API key not configured")

        url = f"{integration.api_endpoint.rstrip('/')}/health"
        try:
            response = cls._request("get", url, integration, headers=cls._api_headers(integration))
        except SupplierCommunicationError as e:
            return ConnectionCheck(success=False, error_type="network", error=e.message, details={"endpoint": url})

        details = {"endpoint": url, "status_code": response.status_code}
        if response.status_code in (401, 403):
            return ConnectionCheck(
                success=False,
                error_type="authentication",
                error=f"Supplier refused the API key: {response.status_code}",
                details=details,
            )
        if response.status_code >= 400:
            return ConnectionCheck(
                success=False,
                error_type="rejected",
                error=f"Supplier returned {response.status_code}",
                details=details,
            )
        return ConnectionCheck(success=True, details=details)

    @staticmethod
    def _check_webhook(integration: SupplierIntegration) -> ConnectionCheck:
        if not integration.webhook_url:
            return ConnectionCheck(success=False, error_type="configuration", error="Webhook URL not configured")
        return ConnectionCheck(
            success=True,
            details={"webhook_url": integration.webhook_url, "signed": bool(integration.webhook_secret)},
        )

    @staticmethod
    def _check_email(integration: SupplierIntegration) -> ConnectionCheck:
        recipient = integration.email_address or integration.supplier.email
        if not recipient:
            return ConnectionCheck(success=False, error_type="configuration", error="Email address not configured")
        return ConnectionCheck(success=True, details={"email_address": recipient})

    # ==========================================================================
    # Senders
    # ==========================================================================

    @classmethod
    def _send_api(cls, payload: dict, integration: SupplierIntegration) -> SupplierSubmission:
        response = cls._request(
            "post",
            f"{integration.api_endpoint.rstrip('/')}/orders",
            integration,
            json=payload,
            headers=cls._api_headers(integration),
        )
        return cls._submission_from_response(response, IntegrationType.API)

    @classmethod
    def _send_webhook(cls, payload: dict, integration: SupplierIntegration) -> SupplierSubmission:
        body = json.dumps(payload, separators=(",", ":"), default=str)
        headers = {
            "Content-Type": "application/json",
            "X-Event-Type": ORDER_CREATED_EVENT,
        }
        if integration.webhook_secret:
            headers["X-Webhook-Signature"] = sign_payload(body, integration.webhook_secret)

        response = cls._request("post", integration.webhook_url, integration, data=body, headers=headers)
        return cls._submission_from_response(response, IntegrationType.WEBHOOK)

    @classmethod
    def _send_email(cls, payload: dict, integration: SupplierIntegration) -> SupplierSubmission:
        recipient = integration.email_address or integration.supplier.email
        lines = [
            f"New order {payload['order_number']} (reference {payload['external_order_id']})",
            "",
            "Items:",
            *[f"  {item['quantity']} x {item['sku']} {item['name']}".rstrip() for item in payload["items"]],
            "",
            "Ship to:",
            *[f"  {key}: {value}" for key, value in (payload["shipping_address"] or {}).items() if value],
        ]
        if payload["notes"]:
            lines += ["", f"Notes: {payload['notes']}"]

        try:
            send_mail(
                subject=f"New order {payload['order_number']}",
                message="\n".join(lines),
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=[recipient],
                fail_silently=False,
            )
        except smtplib.SMTPRecipientsRefused as e:
            return SupplierSubmission(success=False, error=f"Recipient refused: {e}", method=IntegrationType.EMAIL)
        except (smtplib.SMTPException, OSError) as e:
            raise SupplierCommunicationError(f"Mail server error: {e}") from e

        return SupplierSubmission(success=True, method=IntegrationType.EMAIL)

    @classmethod
    def _send_manual(cls, payload: dict, integration: SupplierIntegration) -> SupplierSubmission:
        return SupplierSubmission(success=True, method=IntegrationType.MANUAL)

    # ==========================================================================
    # HTTP helpers
    # ==========================================================================

    @staticmethod
    def _api_headers(integration: SupplierIntegration) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {integration.api_key}",
            "Accept": "application/json",
        }

    @classmethod
    def _request(cls, method: str, url: str, integration: SupplierIntegration, **kwargs) -> requests.Response:
        if not url:
            raise SupplierCommunicationError(
                f"No URL configured for {integration.integration_type} integration"
            )
        try:
            send = requests.post if method == "post" else requests.get
            response = send(url, timeout=integration.timeout, **kwargs)
        except requests.Timeout as e:
            raise SupplierCommunicationError(f"Supplier timed out: {e}") from e
        except requests.ConnectionError as e:
            raise SupplierCommunicationError(f"Could not connect to supplier: {e}") from e
        except requests.RequestException as e:
            raise SupplierCommunicationError(f"Supplier request failed: {e}") from e

        if response.status_code >= 500:
            raise SupplierCommunicationError(
                f"Supplier returned {response.status_code}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _json(response: requests.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    @classmethod
    def _submission_from_response(cls, response: requests.Response, method: str) -> SupplierSubmission:
        data = cls._json(response)
        if response.status_code >= 400:
            return SupplierSubmission(
                success=False,
                response_data=data,
                error=data.get("error") or data.get("message") or f"Supplier returned {response.status_code}",
                status_code=response.status_code,
                method=method,
            )

        estimated = data.get("estimated_delivery")
        return SupplierSubmission(
            success=True,
            supplier_order_id=str(data.get("supplier_order_id") or data.get("order_id") or data.get("id") or ""),
            estimated_delivery=parse_estimated_delivery(estimated),
            response_data=data,
            status_code=response.status_code,
            method=method,
        )
