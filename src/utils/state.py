from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from db.catalog import CatalogBackend, OfflineCatalog, SqliteCatalog
from db.kv import KeyValueStore
from db.models import InitState, OrderLine, Session
from stores.cart_store import CartStore
from stores.catalog_store import CatalogStore
from stores.order_ledger import LocalOrderSink, OrderLedger, RemoteOrderSink
from stores.session_store import SessionStore
from utils.config import Settings
from utils.errors import CommerceError, ValidationError


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a login/registration attempt, safe to render as a form error."""

    success: bool
    error: Optional[str] = None
    session: Optional[Session] = None


@dataclass(frozen=True)
class CustomerOverview:
    identifier: str
    display_name: str
    phone: Optional[str]
    order_count: int
    last_address: Optional[str]


@dataclass
class GlobalState:
    """
    Centralized application state shared by screens.

    Fields:
      - settings: deployment configuration
      - session: known users and the active session
      - cart: the shopping cart of this client
      - catalog: overlay stores/products merged with the remote catalog
      - orders: the local order ledger
    """

    settings: Settings
    session: SessionStore
    cart: CartStore
    catalog: CatalogStore
    orders: OrderLedger

    @classmethod
    def create(
        cls,
        settings: Optional[Settings] = None,
        remote: Optional[CatalogBackend] = None,
    ) -> GlobalState:
        settings = settings or Settings.from_env()
        if remote is None:
            remote = (
                OfflineCatalog()
                if settings.offline
                else SqliteCatalog(settings.catalog_db_path)
            )
        kv = KeyValueStore(settings.kv_db_path)
        return cls(
            settings=settings,
            session=SessionStore(kv, settings),
            cart=CartStore(kv, settings),
            catalog=CatalogStore(kv, settings, remote),
            orders=OrderLedger(LocalOrderSink(kv, settings), RemoteOrderSink(remote)),
        )

    @property
    def current_user(self) -> Optional[Session]:
        return self.session.current

    @property
    def is_initializing(self) -> bool:
        return self.session.init_state == InitState.UNINITIALIZED

    async def start(self) -> InitState:
        """Rehydrate the session and the cart from persisted state."""
        await self.cart.restore()
        return await self.session.initialize()

    async def login(self, identifier: str, password: str) -> AuthResult:
        try:
            session = await self.session.login(identifier, password)
        except CommerceError as e:
            return AuthResult(False, str(e))
        return AuthResult(True, session=session)

    async def register(
        self, identifier: str, display_name: str, password: str
    ) -> AuthResult:
        try:
            session = await self.session.register(identifier, display_name, password)
        except CommerceError as e:
            return AuthResult(False, str(e))
        return AuthResult(True, session=session)

    async def logout(self) -> None:
        await self.session.logout()

    async def checkout(self, address: str) -> str:
        """
        Place an order for the logged-in user from the cart contents, then empty
        the cart. Returns the order id.
        """
        user = self.session.current
        if user is None:
            raise ValidationError("Log in to place an order.")
        lines = [
            OrderLine(
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=line.quantity,
                unit_price=line.unit_price,
            )
            for line in self.cart.lines
        ]
        order_id = await self.orders.place_order(user.identifier, lines, address)
        await self.cart.clear_cart()
        return order_id

    async def customers_overview(self) -> List[CustomerOverview]:
        """Every known user with their order count and most recent delivery address."""
        orders = await self.orders.get_all_orders()
        overview = []
        for user in await self.session.known_users():
            # oldest first; ties keep ledger order
            mine = sorted(
                (o for o in orders if o.user_identifier.lower() == user.identifier.lower()),
                key=lambda o: o.created_at,
            )
            overview.append(
                CustomerOverview(
                    identifier=user.identifier,
                    display_name=user.display_name,
                    phone=user.phone,
                    order_count=len(mine),
                    last_address=mine[-1].delivery_address if mine else None,
                )
            )
        return overview
