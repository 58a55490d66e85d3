"""
Payout provider adapter.

This module provides the PayoutGateway class which encapsulates every call
to the payout provider (seller registration, balance, payout request and
payout cancellation). All provider traffic goes through this adapter to
ensure consistent authentication, timeouts, encryption, error translation
and observability.

Features:
- HTTP Basic authentication with the merchant secret key
- (connect, read) timeouts on every call
- JWE bodies via EncryptedChannel for registration and payout requests
- Settlement ID used as the provider idempotency key for payouts
- Error translation into SettlementError with an ErrorKind
- Structured logging with timing metrics, bodies masked

Error classification:
    connection error / timeout / 5xx / 429 -> PROVIDER_TRANSIENT (retryable)
    4xx with code INSUFFICIENT_BALANCE     -> INSUFFICIENT_BALANCE
    other 4xx                              -> PROVIDER_ERROR (provider_code set)
    undecryptable response                 -> ENCRYPTION

Retries:
    Registration, balance and cancellation retry transient failures
    in-process through the injected RetryPolicy. Payout requests make a
    single attempt; a transient payout failure is retried out-of-band by
    the retry_settlement task so the caller never blocks on backoff.

Usage:
    from settlements.adapters import PayoutGateway

    gateway = PayoutGateway.from_settings()
    balance = gateway.get_balance()
    result = gateway.request_payout(settlement, seller_account)
    result.payout_id  # "payout_abc"
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

import requests
from django.utils import timezone

from settlements.adapters.encryption import EncryptedChannel
from settlements.conf import get_provider_config, get_settlement_config
from settlements.exceptions import ErrorKind, SettlementError
from settlements.masking import mask_sensitive_text
from settlements.retry import RetryPolicy

if TYPE_CHECKING:
    from settlements.conf import ProviderConfig
    from settlements.models import SellerAccount, Settlement

logger = logging.getLogger(__name__)

SELLERS_PATH = "/v1/payouts/sellers"
BALANCE_PATH = "/v1/payouts/balance"
PAYOUTS_PATH = "/v1/payouts"

SYSTEM_VERSION = "1.0"
REGISTRATION_SOURCE = "LuggageKeeper-Backend"
PAYOUT_SOURCE = "LuggageKeeper-Settlement"
SCHEDULE_TYPE_EXPRESS = "EXPRESS"
USER_AGENT = "LuggageKeeper-Settlement/1.0"

INSUFFICIENT_BALANCE_CODE = "INSUFFICIENT_BALANCE"


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class Balance:
    """
    Provider account balance.

    Attributes:
        available_amount: Amount that can be paid out now
        pending_amount: Amount still settling on the provider side
    """

    available_amount: Decimal
    pending_amount: Decimal

    @property
    def total_amount(self) -> Decimal:
        return self.available_amount + self.pending_amount


@dataclass
class PayoutResult:
    """
    Result from payout request and cancellation calls.

    Attributes:
        payout_id: Provider payout ID
        status: Provider payout status literal
        raw_response: Decoded provider response
    """

    payout_id: str
    status: str
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class SellerRegistrationResult:
    """
    Result from seller registration.

    Attributes:
        seller_id: Provider seller ID
        status: Provider approval status literal (may be empty)
        raw_response: Decoded provider response
    """

    seller_id: str
    status: str
    raw_response: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Payout Gateway
# =============================================================================


class PayoutGateway:
    """
    Client for the payout provider API.

    Args:
        config: Provider connection settings
        channel: JWE channel (built from config if omitted)
        retry_policy: Policy for in-process transport retries
        session: requests.Session to use (injected in tests)
    """

    def __init__(
        self,
        config: ProviderConfig,
        channel: EncryptedChannel | None = None,
        retry_policy: RetryPolicy | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.config = config
        self.channel = channel or EncryptedChannel.from_config(config)
        self.retry_policy = retry_policy or RetryPolicy()
        self.session = session or requests.Session()
        self.session.auth = (config.secret_key, "")
        self.session.headers.update(self._default_headers())

    @classmethod
    def from_settings(cls) -> PayoutGateway:
        """Build a gateway from the process-wide configuration."""
        return cls(
            get_provider_config(),
            retry_policy=RetryPolicy.from_config(get_settlement_config()),
        )

    def _default_headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }
        if self.config.test_code:
            headers["TossPayments-Test-Code"] = self.config.test_code
        return headers

    # =========================================================================
    # Seller Registration
    # =========================================================================

    def build_registration_payload(self, seller_account: SellerAccount) -> dict[str, Any]:
        """Registration body; blank contact fields are omitted."""
        store = seller_account.store
        payload: dict[str, Any] = {
            "refSellerId": seller_account.ref_seller_id,
            "businessType": seller_account.business_type,
            "storeName": store.name,
        }
        if store.address and store.address.strip():
            payload["storeAddress"] = store.address

        contact_info = {}
        if store.phone_number and store.phone_number.strip():
            contact_info["phoneNumber"] = store.phone_number
        if store.email and store.email.strip():
            contact_info["email"] = store.email
        if contact_info:
            payload["contactInfo"] = contact_info

        payload["metadata"] = {
            "systemVersion": SYSTEM_VERSION,
            "registrationSource": REGISTRATION_SOURCE,
            "timestamp": timezone.now().isoformat(),
        }
        return payload

    def register_account(self, seller_account: SellerAccount) -> SellerRegistrationResult:
        """
        Register a store as a seller with the provider.

        Args:
            seller_account: Local seller account (with its store)

        Returns:
            SellerRegistrationResult with the provider seller ID

        Raises:
            SettlementError: PROVIDER_TRANSIENT after retries are spent,
                PROVIDER_ERROR on rejection or a response without sellerId,
                ENCRYPTION on JWE failures
        """
        token = self.channel.encrypt(self.build_registration_payload(seller_account))
        data = self._send(
            "POST",
            SELLERS_PATH,
            operation="register_seller",
            body=token,
            log_extra={"ref_seller_id": seller_account.ref_seller_id},
        )

        seller_id = data.get("sellerId")
        if not seller_id or not str(seller_id).strip():
            raise SettlementError(
                "Provider response did not contain a seller ID",
                kind=ErrorKind.PROVIDER_ERROR,
                details={"ref_seller_id": seller_account.ref_seller_id},
            )
        return SellerRegistrationResult(
            seller_id=str(seller_id),
            status=str(data.get("status") or ""),
            raw_response=data,
        )

    # =========================================================================
    # Balance
    # =========================================================================

    def get_balance(self) -> Balance:
        """
        Fetch the provider account balance.

        The balance endpoint answers plaintext JSON. Missing fields are a
        provider error; null values count as zero.

        Raises:
            SettlementError: PROVIDER_TRANSIENT after retries are spent,
                PROVIDER_ERROR on rejection or a malformed response
        """
        data = self._send("GET", BALANCE_PATH, operation="get_balance")

        missing = [name for name in ("availableAmount", "pendingAmount") if name not in data]
        if missing:
            raise SettlementError(
                "Balance response is missing required fields",
                kind=ErrorKind.PROVIDER_ERROR,
                details={"missing": missing},
            )

        balance = Balance(
            available_amount=self._to_amount(data["availableAmount"], "availableAmount"),
            pending_amount=self._to_amount(data["pendingAmount"], "pendingAmount"),
        )
        if balance.available_amount < 0 or balance.pending_amount < 0:
            logger.warning(
                "Provider reported a negative balance",
                extra={
                    "available_amount": str(balance.available_amount),
                    "pending_amount": str(balance.pending_amount),
                },
            )
        return balance

    @staticmethod
    def _to_amount(value: Any, name: str) -> Decimal:
        if value is None or (isinstance(value, str) and not value.strip()):
            return Decimal("0")
        try:
            return Decimal(str(value))
        except InvalidOperation:
            raise SettlementError(
                f"Balance field {name} is not a number",
                kind=ErrorKind.PROVIDER_ERROR,
                details={"field": name},
            )

    # =========================================================================
    # Payouts
    # =========================================================================

    def build_payout_payload(
        self,
        settlement: Settlement,
        seller_account: SellerAccount,
    ) -> dict[str, Any]:
        """Payout body keyed by the settlement ID."""
        settlement_id = str(settlement.id)
        return {
            "refPayoutId": settlement_id,
            "destination": seller_account.external_seller_id,
            "amount": str(settlement.settlement_amount),
            "scheduleType": SCHEDULE_TYPE_EXPRESS,
            "transactionDescription": f"Luggage storage settlement - order {settlement.order_id or 'N/A'}",
            "additionalInfo": {
                "storeId": str(settlement.store_id),
                "storeName": settlement.store.name,
                "originalAmount": str(settlement.original_amount),
                "platformFee": str(settlement.platform_fee),
            },
            "metadata": {
                "systemVersion": SYSTEM_VERSION,
                "payoutSource": PAYOUT_SOURCE,
                "timestamp": timezone.now().isoformat(),
                "settlementId": settlement_id,
                "businessType": seller_account.business_type,
            },
            "notification": {
                "webhookUrl": self.config.webhook_url,
                "notifyOnComplete": True,
                "notifyOnFailed": True,
            },
        }

    def request_payout(
        self,
        settlement: Settlement,
        seller_account: SellerAccount | None,
    ) -> PayoutResult:
        """
        Ask the provider to pay the settlement's net amount to the seller.

        The settlement ID is sent as refPayoutId and as the Idempotency-Key
        header, so a repeat after a timeout cannot create a second transfer.

        Args:
            settlement: Settlement to pay out
            seller_account: Destination seller, must be payout-eligible

        Returns:
            PayoutResult with the provider payout ID

        Raises:
            SettlementError(kind=PRECONDITION_FAILED): Seller missing or not
                eligible (checked before any I/O)
            SettlementError(kind=VALIDATION): Non-positive amount
            SettlementError: Provider failures as classified above
        """
        if seller_account is None or not seller_account.payout_eligible:
            raise SettlementError(
                "Seller account is not eligible for payouts",
                kind=ErrorKind.PRECONDITION_FAILED,
                details={
                    "settlement_id": str(settlement.id),
                    "store_id": str(settlement.store_id),
                    "seller_status": getattr(seller_account, "status", None),
                },
            )
        if settlement.settlement_amount is None or settlement.settlement_amount <= 0:
            raise SettlementError(
                "Settlement amount must be greater than zero",
                kind=ErrorKind.VALIDATION,
                details={"settlement_id": str(settlement.id)},
            )

        token = self.channel.encrypt(self.build_payout_payload(settlement, seller_account))
        data = self._send(
            "POST",
            PAYOUTS_PATH,
            operation="request_payout",
            body=token,
            idempotency_key=str(settlement.id),
            retry=False,
            log_extra={
                "settlement_id": str(settlement.id),
                "amount": str(settlement.settlement_amount),
            },
        )
        return self._payout_result(data, settlement_id=str(settlement.id))

    def cancel_payout(self, external_payout_id: str) -> PayoutResult:
        """
        Cancel a payout that the provider has not executed yet.

        Args:
            external_payout_id: Provider payout ID

        Raises:
            SettlementError(kind=VALIDATION): If the ID is blank
            SettlementError: Provider failures as classified above
        """
        if not external_payout_id or not external_payout_id.strip():
            raise SettlementError("External payout ID is required", kind=ErrorKind.VALIDATION)

        data = self._send(
            "POST",
            f"{PAYOUTS_PATH}/{external_payout_id}/cancel",
            operation="cancel_payout",
            log_extra={"external_payout_id": external_payout_id},
        )
        if not data.get("payoutId"):
            data = {**data, "payoutId": external_payout_id}
        return self._payout_result(data)

    @staticmethod
    def _payout_result(data: dict[str, Any], **details: Any) -> PayoutResult:
        payout_id = data.get("payoutId")
        if not payout_id or not str(payout_id).strip():
            raise SettlementError(
                "Provider response did not contain a payout ID",
                kind=ErrorKind.PROVIDER_ERROR,
                details=details,
            )
        return PayoutResult(
            payout_id=str(payout_id),
            status=str(data.get("status") or ""),
            raw_response=data,
        )

    # =========================================================================
    # Transport
    # =========================================================================

    def _send(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        body: str | None = None,
        idempotency_key: str | None = None,
        retry: bool = True,
        log_extra: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send a request, retrying transient failures when allowed."""

        def attempt() -> dict[str, Any]:
            return self._send_once(
                method,
                path,
                operation=operation,
                body=body,
                idempotency_key=idempotency_key,
                log_extra=log_extra or {},
            )

        if not retry:
            return attempt()
        return self.retry_policy.run(attempt, operation_name=operation)

    def _send_once(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        body: str | None,
        idempotency_key: str | None,
        log_extra: dict[str, Any],
    ) -> dict[str, Any]:
        log_context = {"operation": operation, "method": method, "path": path, **log_extra}
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None

        start_time = time.time()
        logger.info("Starting provider operation", extra=log_context)

        try:
            response = self.session.request(
                method,
                f"{self.config.base_url}{path}",
                data=body.encode("utf-8") if body is not None else None,
                headers=headers,
                timeout=(self.config.connect_timeout, self.config.read_timeout),
            )
        except (requests.Timeout, requests.ConnectionError) as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "Connection error to provider",
                extra={**log_context, "duration_ms": duration_ms, "error_type": type(e).__name__},
            )
            raise SettlementError(
                "Could not reach the payout provider",
                kind=ErrorKind.PROVIDER_TRANSIENT,
                details={"operation": operation, "error_type": type(e).__name__},
            )
        except requests.RequestException as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "Provider request could not be sent",
                extra={**log_context, "duration_ms": duration_ms, "error_type": type(e).__name__},
            )
            raise SettlementError(
                "Provider request could not be sent",
                kind=ErrorKind.PROVIDER_ERROR,
                details={"operation": operation, "error_type": type(e).__name__},
            )

        duration_ms = (time.time() - start_time) * 1000
        log_context = {**log_context, "status_code": response.status_code, "duration_ms": duration_ms}

        if response.status_code >= 400:
            self._handle_error_response(response, log_context)

        data = self._decode_body(response.text, operation)
        logger.info("Provider operation completed", extra=log_context)
        return data

    def _decode_body(self, text: str, operation: str) -> dict[str, Any]:
        """Decode a success body that may be a JWE token or plain JSON."""
        if not text or not text.strip():
            return {}
        if self.channel.looks_encrypted(text):
            return self.channel.decrypt(text)
        try:
            data = json.loads(text)
        except ValueError:
            raise SettlementError(
                "Provider response is not valid JSON",
                kind=ErrorKind.PROVIDER_ERROR,
                details={"operation": operation},
            )
        if not isinstance(data, dict):
            raise SettlementError(
                "Provider response is not a JSON object",
                kind=ErrorKind.PROVIDER_ERROR,
                details={"operation": operation},
            )
        return data

    @staticmethod
    def _parse_error(response: requests.Response) -> tuple[str | None, str | None]:
        """Extract (code, message) from a provider error body."""
        try:
            data = response.json()
        except ValueError:
            return None, None
        if not isinstance(data, dict):
            return None, None
        error = data.get("error") if isinstance(data.get("error"), dict) else data
        return error.get("code"), error.get("message")

    def _handle_error_response(
        self,
        response: requests.Response,
        log_context: dict[str, Any],
    ) -> None:
        """
        Translate a provider error response into a SettlementError.

        Raises:
            SettlementError: Always
        """
        code, message = self._parse_error(response)
        status_code = response.status_code
        log_context = {
            **log_context,
            "provider_code": code,
            "body": mask_sensitive_text(response.text[:1000]),
        }
        details = {"operation": log_context["operation"], "status_code": status_code}

        if status_code >= 500 or status_code == 429:
            logger.error("Provider unavailable or rate limited", extra=log_context)
            raise SettlementError(
                message or "Payout provider is unavailable",
                kind=ErrorKind.PROVIDER_TRANSIENT,
                provider_code=code,
                details=details,
            )

        if code == INSUFFICIENT_BALANCE_CODE:
            logger.warning("Provider balance is insufficient", extra=log_context)
            raise SettlementError(
                message or "Insufficient provider balance for payout",
                kind=ErrorKind.INSUFFICIENT_BALANCE,
                provider_code=code,
                details=details,
            )

        if status_code in (401, 403):
            logger.critical("Provider authentication failed - check secret key", extra=log_context)
        else:
            logger.error("Provider rejected request", extra=log_context)
        raise SettlementError(
            message or f"Provider rejected request with HTTP {status_code}",
            kind=ErrorKind.PROVIDER_ERROR,
            provider_code=code,
            details=details,
        )


__all__ = [
    "Balance",
    "PayoutGateway",
    "PayoutResult",
    "SellerRegistrationResult",
]
