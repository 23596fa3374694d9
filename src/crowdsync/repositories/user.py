"""Repository for user records."""

from crowdsync.models.user import User
from crowdsync.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for User database operations."""

    model = User

    async def ensure_exists(self, wallet_address: str) -> bool:
        """Create the user if absent.

        A concurrent insert of the same address surfaces as an IntegrityError
        when the session flushes or commits.

        @param wallet_address - Wallet address
        @returns True if a row was created
        """
        if await self.get_by_id(wallet_address) is not None:
            return False
        await self.create({"wallet_address": wallet_address})
        return True
