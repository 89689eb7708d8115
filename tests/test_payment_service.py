import pytest

from app.core.errors import ConflictError, ExternalServiceError, NotFoundError, ValidationError
from app.database.models import NotarizationDocument, Payment, UserWallet
from app.services.payment_service import ORDER_CODE_MAX, draw_order_code


def test_order_codes_stay_in_range():
    for _ in range(200):
        code = draw_order_code()
        assert 1 <= code <= ORDER_CODE_MAX


@pytest.mark.asyncio
async def test_create_payment_requests_checkout_link(services, collaborators):
    payment = await services.payments.create_payment(amount=150000, description="NOTARY abc", user_id="u1")

    assert payment.status == "pending"
    assert payment.checkout_url == f"https://pay.test/{payment.order_code}"
    assert payment.return_url.endswith("/payment/success")
    assert payment.cancel_url.endswith("/payment/cancel")
    assert collaborators.payments.links[0]["amount"] == 150000

    stored = await Payment.get(payment.id)
    assert stored.checkout_url == payment.checkout_url


@pytest.mark.asyncio
async def test_create_payment_validates_input(services):
    with pytest.raises(ValidationError):
        await services.payments.create_payment(amount=0, description="x", user_id="u1")
    with pytest.raises(ValidationError):
        await services.payments.create_payment(amount=10, description="  ", user_id="u1")
    assert await Payment.find_all().count() == 0


@pytest.mark.asyncio
async def test_link_failure_keeps_pending_record_for_retry(services, collaborators):
    collaborators.payments.fail_links = True
    with pytest.raises(ExternalServiceError):
        await services.payments.create_payment(amount=1000, description="retry me", user_id="u1")

    payment = await Payment.find_one(Payment.user_id == "u1")
    assert payment.status == "pending"
    assert payment.checkout_url is None

    status = await services.payments.get_payment_status(str(payment.id))
    assert status["gateway_status"] == "SKIPPED"

    collaborators.payments.fail_links = False
    retried = await services.payments.retry_checkout_link(str(payment.id))
    assert retried.checkout_url is not None


@pytest.mark.asyncio
async def test_unknown_payment(services):
    with pytest.raises(NotFoundError):
        await services.payments.get_payment_by_id("nope")
    with pytest.raises(NotFoundError):
        await services.payments.handle_payment_callback(42)


@pytest.mark.asyncio
async def test_paid_callback_mints_once(services, collaborators, create_document, advance):
    document = await create_document(user_id="owner-1", amount=2)
    document = await advance(document, "accepted")
    payment = await services.payments.get_payment_by_id(document.payment_id)

    collaborators.payments.statuses[payment.order_code] = "PAID"
    result = await services.payments.handle_payment_callback(payment.order_code, "PAID")
    assert result["status"] == "success"

    minted = await NotarizationDocument.get(document.id)
    assert minted.mint_status == "minted"
    assert minted.is_minted
    assert len(collaborators.mint.calls) == 1

    wallet = await UserWallet.find_one(UserWallet.user_id == "owner-1")
    assert len(wallet.nft_items) == 1
    assert wallet.nft_items[0].amount == 2
    assert wallet.nft_items[0].document_id == str(document.id)

    with pytest.raises(ConflictError):
        await services.payments.handle_payment_callback(payment.order_code, "PAID")

    await services.payments.retry_mint(str(payment.id))
    assert len(collaborators.mint.calls) == 1
    wallet = await UserWallet.find_one(UserWallet.user_id == "owner-1")
    assert wallet.nft_items[0].amount == 2


@pytest.mark.asyncio
async def test_callback_trusts_gateway_over_reported_status(services, collaborators, create_document, advance):
    document = await create_document()
    document = await advance(document, "accepted")
    payment = await services.payments.get_payment_by_id(document.payment_id)

    result = await services.payments.handle_payment_callback(payment.order_code, "PAID")
    assert result["status"] == "pending"
    assert result["gateway_status"] == "PENDING"
    assert collaborators.mint.calls == []


@pytest.mark.asyncio
async def test_cancelled_callback(services, collaborators):
    payment = await services.payments.create_payment(amount=1000, description="x", user_id="u1")
    collaborators.payments.statuses[payment.order_code] = "CANCELLED"

    result = await services.payments.handle_payment_callback(payment.order_code)
    assert result["status"] == "cancelled"
    assert (await Payment.get(payment.id)).status == "cancelled"


@pytest.mark.asyncio
async def test_session_hook_runs_for_session_payments(services, collaborators):
    seen = []

    async def hook(payment):
        seen.append(payment.session_id)

    services.payments.register_session_hook(hook)
    payment = await services.payments.create_payment(amount=500, description="session", user_id="u1", session_id="s-1")
    collaborators.payments.statuses[payment.order_code] = "PAID"

    await services.payments.handle_payment_callback(payment.order_code)
    assert seen == ["s-1"]


@pytest.mark.asyncio
async def test_failed_mint_is_recovered_by_reconciliation(services, collaborators, create_document, advance):
    document = await create_document(user_id="owner-1")
    document = await advance(document, "accepted")
    payment = await services.payments.get_payment_by_id(document.payment_id)
    collaborators.payments.statuses[payment.order_code] = "PAID"

    collaborators.mint.fail = True
    with pytest.raises(ExternalServiceError):
        await services.payments.handle_payment_callback(payment.order_code)

    assert (await Payment.get(payment.id)).status == "success"
    failed = await NotarizationDocument.get(document.id)
    assert failed.mint_status == "failed"
    assert failed.mint_error

    collaborators.mint.fail = False
    report = await services.payments.update_all_payments()
    assert report["stats"]["processed"] == 1

    recovered = await NotarizationDocument.get(document.id)
    assert recovered.mint_status == "minted"
    assert len(collaborators.mint.calls) == 1


@pytest.mark.asyncio
async def test_reconciliation_is_idempotent(services, collaborators):
    paid = await services.payments.create_payment(amount=100, description="paid", user_id="u1")
    waiting = await services.payments.create_payment(amount=100, description="waiting", user_id="u1")
    collaborators.payments.fail_links = True
    with pytest.raises(ExternalServiceError):
        await services.payments.create_payment(amount=100, description="no link", user_id="u1")
    collaborators.payments.statuses[paid.order_code] = "PAID"

    first = await services.payments.update_all_payments()
    assert first["message"] == "Payment reconciliation completed"
    assert first["stats"] == {"total": 3, "processed": 2, "skipped": 1, "failed": 0}
    assert (await Payment.get(paid.id)).status == "success"
    assert (await Payment.get(waiting.id)).status == "pending"
    assert (await Payment.get(waiting.id)).gateway_status == "PENDING"

    second = await services.payments.update_all_payments()
    assert second["stats"]["failed"] == 0
    assert (await Payment.get(paid.id)).status == "success"


@pytest.mark.asyncio
async def test_retry_mint_requires_successful_payment(services):
    payment = await services.payments.create_payment(amount=100, description="x", user_id="u1")
    with pytest.raises(ConflictError):
        await services.payments.retry_mint(str(payment.id))


@pytest.mark.asyncio
async def test_only_the_document_payment_releases_the_mint(services, collaborators, create_document, advance):
    document = await create_document(user_id="owner-1", amount=2)
    document = await advance(document, "accepted")
    owner_payment = await services.payments.get_payment_by_id(document.payment_id)
    assert owner_payment.amount == 100000

    stray = await services.payments.create_payment(
        amount=1, description="stray", user_id="someone-else", document_id=str(document.id)
    )
    collaborators.payments.statuses[stray.order_code] = "PAID"
    with pytest.raises(ConflictError):
        await services.payments.handle_payment_callback(stray.order_code, "PAID")
    with pytest.raises(ConflictError):
        await services.payments.retry_mint(str(stray.id))

    untouched = await NotarizationDocument.get(document.id)
    assert untouched.mint_status != "minted"
    assert collaborators.mint.calls == []
    assert await UserWallet.find_one(UserWallet.user_id == "someone-else") is None

    stats = await services.payments.update_all_payments()
    assert stats["failed"] == 0
    assert collaborators.mint.calls == []

    collaborators.payments.statuses[owner_payment.order_code] = "PAID"
    await services.payments.handle_payment_callback(owner_payment.order_code, "PAID")
    wallet = await UserWallet.find_one(UserWallet.user_id == "owner-1")
    assert [(i.document_id, i.amount) for i in wallet.nft_items] == [(str(document.id), 2)]


@pytest.mark.asyncio
async def test_underpaid_document_payment_is_not_minted(services, collaborators, create_document, advance):
    document = await create_document(user_id="owner-1", amount=2)
    document = await advance(document, "accepted")
    payment = await services.payments.get_payment_by_id(document.payment_id)
    await Payment.get_motor_collection().update_one({"_id": payment.id}, {"$set": {"amount": 1}})

    collaborators.payments.statuses[payment.order_code] = "PAID"
    with pytest.raises(ConflictError):
        await services.payments.handle_payment_callback(payment.order_code, "PAID")
    assert collaborators.mint.calls == []
