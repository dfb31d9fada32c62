"""Purchase limit administration: command and handler."""

from protean import handle
from protean.fields import Float, Identifier
from protean.utils.globals import current_domain

from ordering.compliance.allowance import PurchaseAllowance, load_allowance
from ordering.domain import ordering


@ordering.command(part_of="PurchaseAllowance")
class SetDailyPurchaseLimit:
    """Override a customer's daily limit, e.g. for a medical card holder."""

    customer_id = Identifier(required=True)
    daily_limit_grams = Float(required=True, min_value=0.0)


@ordering.command_handler(part_of=PurchaseAllowance)
class PurchaseLimitHandler:
    @handle(SetDailyPurchaseLimit)
    def set_daily_limit(self, command):
        allowance = load_allowance(command.customer_id)
        allowance.daily_limit_grams = command.daily_limit_grams
        current_domain.repository_for(PurchaseAllowance).add(allowance)
