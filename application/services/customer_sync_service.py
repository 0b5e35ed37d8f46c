"""Keep Culqi customers in step with platform customer events."""
from __future__ import annotations

from application.dtos.culqi import CustomerUpdatePayload
from application.dtos.platform import PlatformCustomer
from application.ports.payment_gateway import CulqiGateway
from application.ports.platform import CustomerStore
from application.services.culqi_customers import CULQI_CUSTOMER_ID_KEY, get_or_create_culqi_customer
from core.logging_config import get_logger
from domain.common.exceptions import UnexpectedPaymentStateException
from domain.common.result import Err


logger = get_logger(__name__, provider="culqi")

CUSTOMER_CREATED = "customer.created"
CUSTOMER_UPDATED = "customer.updated"
CUSTOMER_DELETED = "customer.deleted"


class CustomerSyncService:
    def __init__(self, client: CulqiGateway, customer_store: CustomerStore):
        self._client = client
        self._customers = customer_store

    @property
    def handlers(self):
        """Event name → handler, for wiring into the platform event bus."""
        return {
            CUSTOMER_CREATED: self.handle_new_customer,
            CUSTOMER_UPDATED: self.handle_updated_customer,
            CUSTOMER_DELETED: self.handle_deleted_customer,
        }

    async def handle_new_customer(self, customer: PlatformCustomer) -> None:
        result = await get_or_create_culqi_customer(self._client, customer, customer.email or "")
        if isinstance(result, Err):
            raise UnexpectedPaymentStateException(
                f"Failed to create Culqi customer with error: {result.error.merchant_message}",
                gateway_code=result.error.code,
            )

        await self._customers.update(
            customer.id,
            metadata={**customer.metadata, CULQI_CUSTOMER_ID_KEY: result.value.culqi_customer_id},
        )

    async def handle_updated_customer(self, customer: PlatformCustomer) -> None:
        culqi_customer_id = customer.metadata.get(CULQI_CUSTOMER_ID_KEY)
        if not culqi_customer_id:
            return

        update = CustomerUpdatePayload()
        if not customer.metadata.get("is_company"):
            if customer.first_name:
                update.first_name = customer.first_name
            if customer.last_name:
                update.last_name = customer.last_name
            if customer.phone:
                update.phone_number = customer.phone
        elif customer.first_name and customer.metadata.get("external_user_id"):
            update.metadata = {
                "external_user_id": customer.metadata["external_user_id"],
                "company_name": customer.first_name,
            }

        if not update.model_dump(exclude_none=True):
            return

        result = await self._client.update_customer(culqi_customer_id, update)
        if isinstance(result, Err):
            logger.warning(
                "culqi_customer_sync_failed",
                customer_id=customer.id,
                culqi_customer_id=culqi_customer_id,
                merchant_message=result.error.merchant_message,
            )

    async def handle_deleted_customer(self, customer: PlatformCustomer) -> None:
        culqi_customer_id = customer.metadata.get(CULQI_CUSTOMER_ID_KEY)
        if not culqi_customer_id:
            return

        result = await self._client.delete_customer(culqi_customer_id)
        if isinstance(result, Err):
            logger.warning(
                "culqi_customer_delete_failed",
                customer_id=customer.id,
                culqi_customer_id=culqi_customer_id,
                merchant_message=result.error.merchant_message,
            )
