import logging
import uuid
from collections import Counter
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from pymongo.errors import DuplicateKeyError

from app.clients import Collaborators
from app.core.config import settings
from app.core.errors import (
    ConflictError,
    InsufficientBalanceError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from app.database.models import User, UserWallet
from app.database.models.user_wallet_model import NFTItem

logger = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 5


class WalletService:
    """Per-user NFT ledger.

    Every write replaces ``nft_items`` under a compare-and-swap on the
    wallet's ``version``; a lost race reloads and reapplies the change.
    """

    def __init__(self, collaborators: Collaborators, payment_service=None):
        self.email = collaborators.email
        self.payments = payment_service

    async def get_wallet(self, user_id: str) -> UserWallet:
        wallet = await UserWallet.find_one(UserWallet.user_id == user_id)
        if wallet:
            return wallet

        wallet = UserWallet(user_id=user_id)
        try:
            await wallet.insert()
            logger.info(f"Created wallet for user {user_id}")
            return wallet
        except DuplicateKeyError:
            return await UserWallet.find_one(UserWallet.user_id == user_id)

    async def _write(self, wallet: UserWallet, items: List[NFTItem]) -> bool:
        result = await UserWallet.get_motor_collection().update_one(
            {"_id": wallet.id, "version": wallet.version},
            {
                "$set": {"nft_items": [i.model_dump() for i in items], "updated_at": datetime.utcnow()},
                "$inc": {"version": 1},
            },
        )
        return result.modified_count == 1

    async def _mutate(self, user_id: str, change: Callable[[UserWallet, List[NFTItem]], Any], create: bool = True):
        """Apply ``change`` to a copy of the items and write it back, retrying lost races.

        ``change`` raises to abort and returns the value handed back to the caller.
        """
        for _ in range(MAX_WRITE_ATTEMPTS):
            if create:
                wallet = await self.get_wallet(user_id)
            else:
                wallet = await UserWallet.find_one(UserWallet.user_id == user_id)
                if not wallet:
                    raise NotFoundError("Wallet not found")
            items = [i.model_copy() for i in wallet.nft_items]
            outcome = change(wallet, items)
            if await self._write(wallet, items):
                return outcome
            logger.debug(f"Wallet {user_id} changed concurrently; retrying")
        raise ConflictError("Wallet was modified concurrently; please retry")

    async def add_nft_to_wallet(self, user_id: str, nft: Union[NFTItem, Dict[str, Any]]) -> NFTItem:
        item = nft if isinstance(nft, NFTItem) else NFTItem(**nft)
        if not item.owner:
            item.owner = user_id

        def change(wallet, items):
            if any(i.mint_address == item.mint_address for i in items):
                raise ConflictError(f"NFT {item.mint_address} is already in the wallet")
            items.append(item)
            return item

        added = await self._mutate(user_id, change)
        logger.info(f"Added NFT {item.mint_address} to wallet of user {user_id}")
        return added

    async def _credit(self, user_id: str, source: NFTItem, amount: int) -> NFTItem:
        def change(wallet, items):
            for i in items:
                if i.mint_address == source.mint_address:
                    i.amount += amount
                    return i
            received = source.model_copy(update={
                "item_id": str(uuid.uuid4()),
                "amount": amount,
                "owner": user_id,
            })
            items.append(received)
            return received

        return await self._mutate(user_id, change)

    async def _debit(self, user_id: str, mint_address: str, amount: int) -> NFTItem:
        def change(wallet, items):
            for i in items:
                if i.mint_address == mint_address:
                    if i.amount < amount:
                        raise InsufficientBalanceError(f"Insufficient balance: holding {i.amount}, requested {amount}")
                    i.amount -= amount
                    return i
            raise NotFoundError("NFT not found in wallet")

        return await self._mutate(user_id, change, create=False)

    async def transfer_nft(self, from_user_id: str, to_user_email: str, mint_address: str, amount: int) -> Dict[str, Any]:
        if not isinstance(amount, int) or amount <= 0:
            raise ValidationError("amount must be a positive integer")

        sender = await UserWallet.find_one(UserWallet.user_id == from_user_id)
        if not sender:
            raise NotFoundError("Sender wallet not found")
        item = sender.find_item(mint_address)
        if not item:
            raise NotFoundError("NFT not found in wallet")
        recipient = await User.find_one(User.email == to_user_email)
        if not recipient:
            raise NotFoundError("Recipient not found")
        recipient_id = str(recipient.id)
        if recipient_id == from_user_id:
            raise ValidationError("Cannot transfer an NFT to yourself")
        if item.amount < amount:
            raise InsufficientBalanceError(f"Insufficient balance: holding {item.amount}, requested {amount}")

        remaining = await self._debit(from_user_id, mint_address, amount)

        try:
            await self._credit(recipient_id, item, amount)
        except Exception as e:
            logger.error(f"Credit of {amount} x {mint_address} to {recipient_id} failed; re-crediting sender: {e}")
            try:
                await self._credit(from_user_id, item, amount)
            except Exception as comp_error:
                logger.critical(
                    f"Compensation failed: {amount} x {mint_address} debited from {from_user_id} "
                    f"but credited to nobody: {comp_error}"
                )
            raise InternalError("Transfer could not be completed; no balance was moved") from e

        try:
            await self.email.send(recipient.email, "nft_transfer", {"amount": amount, "filename": item.filename})
        except Exception as e:
            logger.warning(f"Transfer notification to {recipient_id} not sent: {e}")

        logger.info(f"Transferred {amount} x {mint_address} from {from_user_id} to {recipient_id}")
        return {
            "message": "NFT transferred successfully",
            "from_user_id": from_user_id,
            "to_user_id": recipient_id,
            "mint_address": mint_address,
            "amount": amount,
            "sender_remaining": remaining.amount,
        }

    async def decrease_nft_amount(self, user_id: str, item_ids: List[str]) -> UserWallet:
        if not item_ids:
            raise ValidationError("item_ids must not be empty")
        wanted = Counter(item_ids)

        def change(wallet, items):
            by_id = {i.item_id: i for i in items}
            for item_id, count in wanted.items():
                if item_id not in by_id:
                    raise NotFoundError(f"Wallet item {item_id} not found")
                if by_id[item_id].amount < count:
                    raise InsufficientBalanceError(f"Insufficient balance for item {item_id}")
            for item_id, count in wanted.items():
                by_id[item_id].amount -= count

        await self._mutate(user_id, change, create=False)
        return await UserWallet.find_one(UserWallet.user_id == user_id)

    async def purchase_document(self, user_id: str, user_email: str, item_id: str, amount: int) -> Dict[str, Any]:
        if not isinstance(amount, int) or amount <= 0:
            raise ValidationError("amount must be a positive integer")

        wallet = await UserWallet.find_one(UserWallet.user_id == user_id)
        if not wallet:
            raise NotFoundError("Wallet not found")
        item = wallet.find_item_by_id(item_id)
        if not item:
            raise NotFoundError("Wallet item not found")

        payment = await self.payments.create_payment(
            amount=amount * settings.COPY_PRICE,
            description=f"COPY {item_id[-8:]}",
            user_id=user_id,
            wallet_item_id=item_id,
        )

        try:
            await self.email.send(user_email, "nft_payment", {
                "amount": amount,
                "filename": item.filename,
                "checkout_url": payment.checkout_url,
            })
        except Exception as e:
            logger.warning(f"Purchase email for payment {payment.id} not sent: {e}")

        # provisional: copies are granted before the payment settles
        def change(wallet, items):
            for i in items:
                if i.item_id == item_id:
                    i.amount += amount
                    return i
            raise NotFoundError("Wallet item not found")

        updated = await self._mutate(user_id, change, create=False)
        logger.info(f"User {user_id} purchased {amount} cop(ies) of item {item_id}; payment {payment.id}")
        return {"payment": payment, "item": updated}

    async def get_item(self, user_id: str, mint_address: str) -> Optional[NFTItem]:
        wallet = await UserWallet.find_one(UserWallet.user_id == user_id)
        return wallet.find_item(mint_address) if wallet else None
