"""Social stake fulfillment status."""

from src.rp_common.enums import FulfillmentStatus


def calculate_fulfillment_status(winner_count: int, confirmation_count: int) -> FulfillmentStatus:
    if winner_count == 0:
        return FulfillmentStatus.FULFILLED
    if confirmation_count == 0:
        return FulfillmentStatus.PENDING
    if confirmation_count < winner_count:
        return FulfillmentStatus.PARTIALLY_FULFILLED
    return FulfillmentStatus.FULFILLED
