from __future__ import annotations

from typing import List, Optional, Tuple

from db.kv import KeyValueStore
from db.models import InitState, Session, User
from stores.passwords import PasswordHasher, make_hasher
from utils.config import IdentifierPolicy, LoginPolicy, Settings
from utils.errors import (
    AuthenticationError,
    DuplicateUserError,
    NotFoundError,
    ValidationError,
)
from utils.logger import get_logger
from utils.pure import normalize_phone, normalize_username

_logger = get_logger(__name__)

PHONE_DIGITS = 10
MIN_PASSWORD_LENGTH = {IdentifierPolicy.USERNAME: 1, IdentifierPolicy.PHONE: 4}


class SessionStore:
    """
    Known users plus the single active session of this client.

    `init_state` tells "not loaded yet" apart from "loaded, logged out":
    it starts UNINITIALIZED and only `initialize()` (or a successful
    login/register) moves it on.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        settings: Settings,
        hasher: Optional[PasswordHasher] = None,
    ):
        self._kv = kv
        self._settings = settings
        self._hasher = hasher or make_hasher(settings.hasher)
        self._users_key = settings.key("known_users")
        self._session_key = settings.key("auth_user")

        self.init_state = InitState.UNINITIALIZED
        self.current: Optional[Session] = None

    @property
    def policy(self) -> IdentifierPolicy:
        return self._settings.identifier_policy

    # ---------------------------
    # Validation
    # ---------------------------

    def normalize_identifier(self, raw: Optional[str]) -> str:
        """Trimmed username, or digits-only phone number, depending on policy."""
        if self.policy == IdentifierPolicy.PHONE:
            ident = normalize_phone(raw)
            if len(ident) != PHONE_DIGITS:
                raise ValidationError(
                    f"Enter a valid {PHONE_DIGITS}-digit mobile number."
                )
            return ident
        ident = normalize_username(raw)
        if not ident:
            raise ValidationError("Username is required.")
        return ident

    def _check_password(self, password: Optional[str]) -> str:
        password = password or ""
        if not password.strip():
            raise ValidationError("Password is required.")
        min_len = MIN_PASSWORD_LENGTH[self.policy]
        if len(password) < min_len:
            raise ValidationError(f"Password must be at least {min_len} characters.")
        return password

    def _same_identifier(self, a: str, b: str) -> bool:
        if self.policy == IdentifierPolicy.PHONE:
            return normalize_phone(a) == normalize_phone(b)
        return a.lower() == b.lower()

    # ---------------------------
    # Persistence
    # ---------------------------

    async def known_users(self) -> List[User]:
        return await self._kv.load_records(self._users_key, User.from_record)

    async def _find_user(self, identifier: str) -> Tuple[List[User], Optional[User]]:
        users = await self.known_users()
        for user in users:
            if self._same_identifier(user.identifier, identifier):
                return users, user
        return users, None

    async def _add_user(self, users: List[User], user: User) -> None:
        await self._kv.save_records(
            self._users_key, [*users, user], User.to_record
        )

    async def _establish(self, user: User) -> Session:
        session = Session.for_user(user)
        await self._kv.save(self._session_key, session.to_record())
        self.current = session
        self.init_state = InitState.WITH_SESSION
        return session

    def _new_user(self, identifier: str, display_name: str, password: str) -> User:
        phone = identifier if self.policy == IdentifierPolicy.PHONE else None
        return User(
            identifier=identifier,
            display_name=display_name,
            password_digest=self._hasher.digest(password),
            phone=phone,
        )

    # ---------------------------
    # Operations
    # ---------------------------

    async def initialize(self) -> InitState:
        """Rehydrate the persisted session, if any."""
        raw = await self._kv.load(self._session_key)
        session = None
        if raw is not None:
            try:
                session = Session.from_record(raw)
            except (KeyError, TypeError, AttributeError):
                _logger.warning("Discarding malformed persisted session")
        self.current = session
        self.init_state = (
            InitState.WITH_SESSION if session else InitState.NO_SESSION
        )
        return self.init_state

    async def register(
        self, identifier: str, display_name: str, password: str
    ) -> Session:
        ident = self.normalize_identifier(identifier)
        name = (display_name or "").strip()
        if not name:
            raise ValidationError("Display name is required.")
        password = self._check_password(password)

        users, existing = await self._find_user(ident)
        if existing is not None:
            raise DuplicateUserError(
                "An account with this identifier already exists. Please log in."
            )

        user = self._new_user(ident, name, password)
        await self._add_user(users, user)
        _logger.info(f"Registered user {ident}")
        return await self._establish(user)

    async def login(self, identifier: str, password: str) -> Session:
        if not (identifier or "").strip() or not (password or "").strip():
            raise ValidationError("Identifier and password are required.")
        ident = self.normalize_identifier(identifier)

        users, existing = await self._find_user(ident)
        if existing is None:
            if self._settings.login_policy == LoginPolicy.STRICT:
                raise NotFoundError("No account found. Please register first.")
            # length rules only apply to new accounts
            password = self._check_password(password)
            user = self._new_user(ident, ident, password)
            await self._add_user(users, user)
            _logger.info(f"Auto-provisioned account for {ident}")
            return await self._establish(user)

        if not self._hasher.verify(password, existing.password_digest):
            _logger.debug(f"Rejected login for {ident}")
            raise AuthenticationError("Incorrect password.")
        return await self._establish(existing)

    async def logout(self) -> None:
        await self._kv.remove(self._session_key)
        if self.current is not None:
            _logger.info(f"Logged out {self.current.identifier}")
        self.current = None
        self.init_state = InitState.NO_SESSION
