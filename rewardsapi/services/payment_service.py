from typing import Optional

import stripe

from rewardsapi.config import Settings, settings as default_settings
import logging

logger = logging.getLogger(__name__)


class StripePaymentGateway:
    """결제 처리기 래퍼 - 리워드 교환용 고객 잔액 크레딧만 사용

    오류는 그대로 전파되며 호출자(RewardService)가 교환 건을 failed로 격리합니다.
    """

    def __init__(self, settings: Settings = default_settings):
        self.settings = settings
        self._http_client = stripe.RequestsClient(
            timeout=settings.STRIPE_TIMEOUT_SECONDS
        )

    def create_customer_credit(
        self,
        customer_id: str,
        amount_cents: int,
        description: str,
        idempotency_key: Optional[str] = None,
    ) -> str:
        """고객 잔액에 크레딧 적립 (음수 balance transaction) - transaction id 반환"""
        if not self.settings.STRIPE_SECRET_KEY:
            raise RuntimeError("Stripe secret key is not configured")
        if amount_cents <= 0:
            raise ValueError(f"Invalid credit amount: {amount_cents}")

        stripe.default_http_client = self._http_client
        transaction = stripe.Customer.create_balance_transaction(
            customer_id,
            amount=-amount_cents,
            currency=self.settings.STRIPE_CURRENCY,
            description=description,
            api_key=self.settings.STRIPE_SECRET_KEY,
            idempotency_key=idempotency_key,
        )
        logger.info(
            f"Stripe credit applied: customer={customer_id} amount_cents={amount_cents} "
            f"transaction={transaction['id']}"
        )
        return transaction["id"]
