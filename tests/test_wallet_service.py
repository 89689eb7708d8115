import pytest

from app.core.config import settings
from app.core.errors import ConflictError, InsufficientBalanceError, InternalError, NotFoundError, ValidationError
from app.database.models import Payment, UserWallet
from app.database.models.user_wallet_model import NFTItem


def _nft(mint="mint-A", amount=5):
    return NFTItem(mint_address=mint, filename="deed.pdf", metadata_uri=f"https://gateway.test/ipfs/{mint}", amount=amount)


async def _amount(user_id, mint="mint-A"):
    wallet = await UserWallet.find_one(UserWallet.user_id == user_id)
    if not wallet:
        return 0
    item = wallet.find_item(mint)
    return item.amount if item else 0


@pytest.mark.asyncio
async def test_wallet_is_created_lazily(services):
    first = await services.wallets.get_wallet("u1")
    second = await services.wallets.get_wallet("u1")
    assert first.id == second.id
    assert first.nft_items == []
    assert await UserWallet.find_all().count() == 1


@pytest.mark.asyncio
async def test_add_nft_rejects_duplicate_mint(services):
    await services.wallets.add_nft_to_wallet("u1", _nft())
    with pytest.raises(ConflictError):
        await services.wallets.add_nft_to_wallet("u1", _nft(amount=1))
    assert await _amount("u1") == 5

    wallet = await UserWallet.find_one(UserWallet.user_id == "u1")
    assert wallet.nft_items[0].owner == "u1"
    assert wallet.version == 1


@pytest.mark.asyncio
async def test_transfer_conserves_copies(services, collaborators, make_user):
    sender = await make_user("sender@example.com")
    recipient = await make_user("recipient@example.com")
    await services.wallets.add_nft_to_wallet(str(sender.id), _nft(amount=5))

    result = await services.wallets.transfer_nft(str(sender.id), "recipient@example.com", "mint-A", 2)
    assert result["sender_remaining"] == 3
    assert result["to_user_id"] == str(recipient.id)
    assert await _amount(str(sender.id)) == 3
    assert await _amount(str(recipient.id)) == 2

    await services.wallets.transfer_nft(str(sender.id), "recipient@example.com", "mint-A", 3)
    assert await _amount(str(sender.id)) == 0
    assert await _amount(str(recipient.id)) == 5

    recipient_wallet = await UserWallet.find_one(UserWallet.user_id == str(recipient.id))
    assert len(recipient_wallet.nft_items) == 1
    assert recipient_wallet.nft_items[0].owner == str(recipient.id)
    assert (await services.wallets.get_item(str(recipient.id), "mint-A")).amount == 5
    assert await services.wallets.get_item(str(recipient.id), "mint-missing") is None

    notices = [m for m in collaborators.email.sent if m["template"] == "nft_transfer"]
    assert len(notices) == 2
    assert notices[0]["to"] == "recipient@example.com"


@pytest.mark.asyncio
async def test_transfer_rejections_leave_balances_untouched(services, make_user):
    sender = await make_user("sender@example.com")
    await make_user("recipient@example.com")
    sender_id = str(sender.id)
    await services.wallets.add_nft_to_wallet(sender_id, _nft(amount=2))

    with pytest.raises(InsufficientBalanceError):
        await services.wallets.transfer_nft(sender_id, "recipient@example.com", "mint-A", 3)
    with pytest.raises(ValidationError):
        await services.wallets.transfer_nft(sender_id, "recipient@example.com", "mint-A", 0)
    with pytest.raises(ValidationError):
        await services.wallets.transfer_nft(sender_id, "sender@example.com", "mint-A", 1)
    with pytest.raises(NotFoundError):
        await services.wallets.transfer_nft(sender_id, "ghost@example.com", "mint-A", 1)
    with pytest.raises(NotFoundError):
        await services.wallets.transfer_nft(sender_id, "recipient@example.com", "mint-Z", 1)
    with pytest.raises(NotFoundError):
        await services.wallets.transfer_nft("no-wallet", "recipient@example.com", "mint-A", 1)

    assert await _amount(sender_id) == 2


@pytest.mark.asyncio
async def test_failed_credit_restores_sender(services, make_user, monkeypatch):
    sender = await make_user("sender@example.com")
    recipient = await make_user("recipient@example.com")
    sender_id, recipient_id = str(sender.id), str(recipient.id)
    await services.wallets.add_nft_to_wallet(sender_id, _nft(amount=4))

    real_credit = services.wallets._credit

    async def flaky_credit(user_id, source, amount):
        if user_id == recipient_id:
            raise RuntimeError("recipient wallet unavailable")
        return await real_credit(user_id, source, amount)

    monkeypatch.setattr(services.wallets, "_credit", flaky_credit)
    with pytest.raises(InternalError):
        await services.wallets.transfer_nft(sender_id, "recipient@example.com", "mint-A", 3)

    assert await _amount(sender_id) == 4
    assert await _amount(recipient_id) == 0


@pytest.mark.asyncio
async def test_lost_version_race_is_retried(services, monkeypatch):
    await services.wallets.add_nft_to_wallet("u1", _nft(amount=1))
    real_write = services.wallets._write
    attempts = []

    async def racing_write(wallet, items):
        attempts.append(wallet.version)
        if len(attempts) == 1:
            await UserWallet.get_motor_collection().update_one({"_id": wallet.id}, {"$inc": {"version": 1}})
        return await real_write(wallet, items)

    monkeypatch.setattr(services.wallets, "_write", racing_write)
    await services.wallets.add_nft_to_wallet("u1", _nft("mint-B", amount=1))

    assert len(attempts) == 2
    wallet = await UserWallet.find_one(UserWallet.user_id == "u1")
    assert {i.mint_address for i in wallet.nft_items} == {"mint-A", "mint-B"}


@pytest.mark.asyncio
async def test_write_gives_up_after_repeated_conflicts(services, monkeypatch):
    async def always_lose(wallet, items):
        return False

    monkeypatch.setattr(services.wallets, "_write", always_lose)
    with pytest.raises(ConflictError):
        await services.wallets.add_nft_to_wallet("u1", _nft())


@pytest.mark.asyncio
async def test_decrease_is_all_or_nothing(services):
    a = await services.wallets.add_nft_to_wallet("u1", _nft("mint-A", amount=2))
    b = await services.wallets.add_nft_to_wallet("u1", _nft("mint-B", amount=1))

    with pytest.raises(InsufficientBalanceError):
        await services.wallets.decrease_nft_amount("u1", [a.item_id, b.item_id, b.item_id])
    assert await _amount("u1", "mint-A") == 2
    assert await _amount("u1", "mint-B") == 1

    with pytest.raises(NotFoundError):
        await services.wallets.decrease_nft_amount("u1", [a.item_id, "missing"])
    assert await _amount("u1", "mint-A") == 2

    wallet = await services.wallets.decrease_nft_amount("u1", [a.item_id, a.item_id, b.item_id])
    assert wallet.find_item("mint-A").amount == 0
    assert wallet.find_item("mint-B").amount == 0

    with pytest.raises(ValidationError):
        await services.wallets.decrease_nft_amount("u1", [])


@pytest.mark.asyncio
async def test_purchase_credits_copies_and_opens_payment(services, collaborators):
    item = await services.wallets.add_nft_to_wallet("u1", _nft(amount=1))

    result = await services.wallets.purchase_document("u1", "buyer@example.com", item.item_id, 3)
    payment = result["payment"]
    assert payment.amount == 3 * settings.COPY_PRICE
    assert payment.wallet_item_id == item.item_id
    assert payment.status == "pending"
    assert result["item"].amount == 4
    assert await _amount("u1") == 4

    stored = await Payment.get(payment.id)
    assert stored.checkout_url

    email = collaborators.email.sent[-1]
    assert email["template"] == "nft_payment"
    assert email["data"]["checkout_url"] == payment.checkout_url

    with pytest.raises(NotFoundError):
        await services.wallets.purchase_document("u1", "buyer@example.com", "unknown-item", 1)
    with pytest.raises(ValidationError):
        await services.wallets.purchase_document("u1", "buyer@example.com", item.item_id, 0)


@pytest.mark.asyncio
async def test_purchase_without_checkout_link_credits_nothing(services, collaborators):
    from app.core.errors import ExternalServiceError

    item = await services.wallets.add_nft_to_wallet("u1", _nft(amount=1))
    collaborators.payments.fail_links = True

    with pytest.raises(ExternalServiceError):
        await services.wallets.purchase_document("u1", "buyer@example.com", item.item_id, 2)
    assert await _amount("u1") == 1
