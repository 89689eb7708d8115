from beanie import Document, Indexed
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
import uuid


class NFTItem(BaseModel):
    item_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    mint_address: str = Field(..., description="Mint address of the NFT, unique per wallet")
    metadata_address: Optional[str] = None
    transaction_signature: Optional[str] = None
    program_id: Optional[str] = None
    filename: str = Field(..., description="Original document filename")
    metadata_uri: str = Field(..., description="Pinned metadata URI")
    amount: int = Field(default=1, ge=0, description="Number of copies owned")
    owner: Optional[str] = None
    document_id: Optional[str] = None
    minted_at: datetime = Field(default_factory=datetime.utcnow)
    explorer_link: Optional[str] = None
    solscan_link: Optional[str] = None
    ipfs_link: Optional[str] = None


class UserWallet(Document):
    user_id: Indexed(str, unique=True)
    nft_items: List[NFTItem] = Field(default_factory=list)
    # Bumped on every write; writers compare-and-swap on it.
    version: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def find_item(self, mint_address: str) -> Optional[NFTItem]:
        return next((i for i in self.nft_items if i.mint_address == mint_address), None)

    def find_item_by_id(self, item_id: str) -> Optional[NFTItem]:
        return next((i for i in self.nft_items if i.item_id == item_id), None)

    class Settings:
        name = "user_wallets"
