from decimal import Decimal

import pytest
import pytest_asyncio

from marketplace.domain.common.exceptions import (
    InvalidInputError,
    InvalidTransitionError,
    NotOwnerError,
    PermissionDeniedError,
)
from marketplace.domain.disputes import DisputeService

from .conftest import create_account


@pytest.fixture
def disputes(session, settings):
    return DisputeService.with_session(session, settings=settings.payments)


@pytest_asyncio.fixture
async def delivered_order(gateway, paid_order, freelance):
    return await gateway.orders.deliver_order(paid_order.id, freelance.id)


async def test_open_dispute_moves_order(disputes, gateway, delivered_order, client):
    dispute = await disputes.open_dispute(delivered_order.id, client.id, "Work does not match the brief")

    assert dispute.status == "open"
    assert dispute.freelance_id == delivered_order.freelance_id
    order = await gateway.orders.require_order(delivered_order.id)
    assert order.status == "in_dispute"


async def test_dispute_needs_a_reason(disputes, delivered_order, client):
    with pytest.raises(InvalidInputError):
        await disputes.open_dispute(delivered_order.id, client.id, "   ")


async def test_only_delivered_orders_can_be_disputed(disputes, paid_order, client):
    with pytest.raises(InvalidTransitionError):
        await disputes.open_dispute(paid_order.id, client.id, "Nothing delivered yet")


async def test_only_the_client_opens_disputes(disputes, delivered_order, freelance):
    with pytest.raises(NotOwnerError):
        await disputes.open_dispute(delivered_order.id, freelance.id, "Client is unresponsive")


async def test_messages_are_visible_to_participants_only(session, disputes, delivered_order, client, freelance, admin):
    dispute = await disputes.open_dispute(delivered_order.id, client.id, "Late delivery")
    await disputes.add_message(dispute.id, freelance, "I sent the files yesterday")
    await disputes.add_message(dispute.id, client, "Nothing arrived", attachment_url="https://example.com/shot.png")

    messages = await disputes.list_messages(dispute.id, admin)

    assert [message.user_id for message in messages] == [freelance.id, client.id]
    assert messages[1].attachment_url == "https://example.com/shot.png"
    stranger = await create_account(session, "stranger")
    with pytest.raises(NotOwnerError):
        await disputes.list_messages(dispute.id, stranger)
    assert await disputes.list_disputes(stranger) == []
    assert [item.id for item in await disputes.list_disputes(freelance)] == [dispute.id]


async def test_resolve_in_favour_of_freelance_settles(disputes, gateway, delivered_order, client, freelance, admin):
    dispute = await disputes.open_dispute(delivered_order.id, client.id, "Late delivery")

    resolved = await disputes.resolve_dispute(dispute.id, admin, "complete", "Delivered as agreed")

    assert resolved.status == "resolved"
    assert resolved.resolved_by == admin.id
    assert resolved.resolution == "Delivered as agreed"
    wallet = await gateway.wallets.get_wallet(freelance.id)
    assert wallet.balance == Decimal("5000")
    assert wallet.pending_balance == 0
    assert (await gateway.orders.require_order(delivered_order.id)).status == "completed"


async def test_resolve_in_favour_of_client_refunds(disputes, gateway, delivered_order, client, freelance, admin):
    dispute = await disputes.open_dispute(delivered_order.id, client.id, "Never received")

    await disputes.resolve_dispute(dispute.id, admin, "cancel", "Refund issued")

    assert (await gateway.wallets.get_wallet(client.id)).balance == Decimal("5000")
    freelance_wallet = await gateway.wallets.get_wallet(freelance.id)
    assert freelance_wallet.balance == 0
    assert freelance_wallet.pending_balance == 0
    assert (await gateway.orders.require_order(delivered_order.id)).status == "cancelled"


async def test_resolution_rules(disputes, delivered_order, client, admin):
    dispute = await disputes.open_dispute(delivered_order.id, client.id, "Late delivery")

    with pytest.raises(PermissionDeniedError):
        await disputes.resolve_dispute(dispute.id, client, "cancel")
    with pytest.raises(InvalidInputError):
        await disputes.resolve_dispute(dispute.id, admin, "split")

    await disputes.resolve_dispute(dispute.id, admin, "complete")
    with pytest.raises(InvalidTransitionError):
        await disputes.resolve_dispute(dispute.id, admin, "cancel")
    with pytest.raises(InvalidTransitionError):
        await disputes.add_message(dispute.id, client, "One more thing")
