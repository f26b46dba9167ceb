"""Account manager for login, signup and the current session."""

from typing import Optional

from ..db.schemas import User, UserRole, generate_id
from ..sync.mirror import PersistenceMirror


class AccountError(Exception):
    """Base exception for account operations."""

    pass


class InvalidCredentialsError(AccountError):
    """Raised when no account matches a library id and password."""

    pass


class DuplicateAccountError(AccountError):
    """Raised when signing up with a library id that is already taken."""

    pass


class AccountManager:
    """Manages accounts and the device session through the mirror."""

    def __init__(self, mirror: PersistenceMirror):
        """Initialize account manager.

        Args:
            mirror: Persistence mirror holding users, admins and the session
        """
        self.mirror = mirror

    async def _accounts(self, role: UserRole) -> list[User]:
        if role == UserRole.ADMIN:
            return await self.mirror.get_admins()
        return await self.mirror.get_users()

    async def login(self, library_id: str, password: str, role: UserRole = UserRole.USER) -> User:
        """Start a session for the matching account.

        Args:
            library_id: Library id typed by the member
            password: Password typed by the member
            role: Which collection to look the account up in

        Returns:
            The logged-in user

        Raises:
            InvalidCredentialsError: If no account matches
        """
        for account in await self._accounts(role):
            if account.library_id == library_id and account.password == password:
                await self.mirror.save_session(account)
                return account
        raise InvalidCredentialsError("Invalid credentials.")

    async def signup(
        self,
        name: str,
        library_id: str,
        password: str,
        email: str = "",
        role: UserRole = UserRole.USER,
    ) -> User:
        """Create an account and start a session for it.

        Raises:
            DuplicateAccountError: If the library id is already registered
        """
        existing = await self._accounts(role)
        if any(account.library_id == library_id for account in existing):
            raise DuplicateAccountError(f"Library ID {library_id} is already registered")

        user = User(
            id=generate_id(),
            name=name,
            library_id=library_id,
            password=password,
            email=email,
            role=role,
            xp=0 if role == UserRole.USER else None,
        )
        if role == UserRole.ADMIN:
            await self.mirror.update_admin(user)
        else:
            await self.mirror.update_user(user)
        await self.mirror.save_session(user)
        return user

    async def logout(self) -> None:
        await self.mirror.save_session(None)

    async def current_user(self) -> Optional[User]:
        return await self.mirror.get_current_user()
