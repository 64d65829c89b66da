"""
Final charge calculation for a payment.

CASH and PIX get a flat instant-payment discount. CARD is charged at gross
for up to FREE_INSTALLMENTS installments and gets a linear surcharge for each
installment beyond that. Rounding happens once, at the end of each formula.
"""
import logging
from decimal import Decimal, InvalidOperation

from django.conf import settings

from .exceptions import DomainRuleError, InvalidInputError
from .models import MAX_INSTALLMENTS, Payment
from .money import quantize_money

logger = logging.getLogger(__name__)

INSTANT_PAYMENT_METHODS = ("CASH", "PIX")
INSTANT_PAYMENT_FACTOR = Decimal("0.95")
FREE_INSTALLMENTS = 2

_UNSET = object()


class BillingCalculator:
    """Turns an appointment's gross total into the amount actually charged."""

    def __init__(self, interest_rate=_UNSET):
        if interest_rate is _UNSET:
            interest_rate = getattr(settings, "CARD_INTEREST_PER_EXTRA_INSTALLMENT", None)
        self.interest_rate = interest_rate

    @staticmethod
    def resolve_installments(method, installments):
        """
        Validate the installment count for a method.

        Returns:
            int: installments to record (always 1 for CASH/PIX)

        Raises:
            InvalidInputError: unknown method, missing or out-of-range count
        """
        if method not in dict(Payment.METHOD_CHOICES):
            raise InvalidInputError(f"Unsupported payment method: {method!r}.")

        if method == "CARD":
            if installments is None:
                raise InvalidInputError("Installments are required for CARD payments.")
            if not 1 <= installments <= MAX_INSTALLMENTS:
                raise InvalidInputError(f"Installments must be between 1 and {MAX_INSTALLMENTS}.")
            return installments

        if installments not in (None, 1):
            raise InvalidInputError("Installments must be 1 for PIX/CASH payments.")
        return 1

    def calculate_final_amount(self, total_gross, method, installments):
        """
        Compute the final charge.

        Raises:
            DomainRuleError: non-positive gross total, or invalid interest rate configuration
        """
        if total_gross is None or total_gross <= 0:
            raise DomainRuleError("Invalid appointment total gross.")

        gross = quantize_money(total_gross)

        if method in INSTANT_PAYMENT_METHODS:
            return quantize_money(gross * INSTANT_PAYMENT_FACTOR)

        if installments <= FREE_INSTALLMENTS:
            return gross

        rate = self._rate()
        multiplier = Decimal("1") + rate * (installments - FREE_INSTALLMENTS)
        return quantize_money(gross * multiplier)

    def _rate(self):
        rate = self.interest_rate
        if rate is None:
            logger.error("Card interest rate is not configured")
            raise DomainRuleError("Invalid card interest rate configuration.")
        try:
            rate = Decimal(str(rate))
        except InvalidOperation:
            logger.error("Card interest rate is not a number", extra={"rate": str(self.interest_rate)})
            raise DomainRuleError("Invalid card interest rate configuration.")
        if rate < 0:
            logger.error("Card interest rate is negative", extra={"rate": str(rate)})
            raise DomainRuleError("Invalid card interest rate configuration.")
        return rate
