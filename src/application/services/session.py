"""
application.services.session - Signed-in identity drives the repositories.

The controller listens to the auth provider (push, never polled). Entering
signed_in(uid) watches the profile document and subscribes both
repositories for that uid; entering signed_out cancels all three feeds and
clears profile, orders and menu. On start() the provider is asked once, synchronously, before the
listener is attached, so an existing session never shows as signed out.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from domain.entities import UserProfile
from domain.models import SessionState
from domain.ports import AuthProvider, ListenerRegistration
from application.repositories.menu import MenuRepository
from application.repositories.orders import OrderRepository
from application.services.profile import ProfileService

logger = logging.getLogger(__name__)

StateListener = Callable[[SessionState], None]


class SessionController:
    """Owns the session state and the profile; wires repositories to it."""

    def __init__(
        self,
        auth: AuthProvider,
        orders: OrderRepository,
        menu: MenuRepository,
        profiles: ProfileService,
    ):
        self._auth = auth
        self._orders = orders
        self._menu = menu
        self._profiles = profiles
        self._state = SessionState.signed_out()
        self._profile: Optional[UserProfile] = None
        self._profile_registration: Optional[ListenerRegistration] = None
        self._profile_generation = 0
        self._detach: Optional[Callable[[], None]] = None
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def profile(self) -> Optional[UserProfile]:
        return self._profile

    @property
    def orders(self) -> OrderRepository:
        return self._orders

    @property
    def menu(self) -> MenuRepository:
        return self._menu

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Apply the provider's current user, then follow its notifications."""
        if self._detach is not None:
            return
        logger.info("Starting auth listener")
        self._apply(self._auth.current_user_id())
        self._detach = self._auth.on_auth_state_changed(self._apply)

    def stop(self) -> None:
        """Detach from the provider and tear the session down."""
        if self._detach is not None:
            self._detach()
            self._detach = None
        self._enter_signed_out()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _apply(self, user_id: Optional[str]) -> None:
        if user_id:
            self._enter_signed_in(user_id)
        else:
            self._enter_signed_out()

    def _enter_signed_in(self, user_id: str) -> None:
        logger.info("Auth state changed -> signed in: %s", user_id)
        if self._state.user_id != user_id:
            # A different account; nothing local belongs to it.
            self._orders.clear()
            self._menu.clear()
            self._profile = None
        self._state = SessionState.signed_in(user_id)
        self._watch_profile(user_id)
        self._orders.subscribe(user_id)
        self._menu.subscribe(user_id)
        self._notify()

    def _enter_signed_out(self) -> None:
        was_signed_in = self._state.is_signed_in
        if was_signed_in:
            logger.info("Auth state changed -> signed out")
        self._orders.unsubscribe()
        self._menu.unsubscribe()
        self._stop_profile_watch()
        self._profile = None
        self._orders.clear()
        self._menu.clear()
        self._state = SessionState.signed_out()
        if was_signed_in:
            self._notify()

    def _watch_profile(self, user_id: str) -> None:
        self._stop_profile_watch()
        generation = self._profile_generation

        def _on_profile(profile: Optional[UserProfile]) -> None:
            if generation == self._profile_generation:
                self._profile = profile

        self._profile_registration = self._profiles.watch(user_id, _on_profile)

    def _stop_profile_watch(self) -> None:
        self._profile_generation += 1
        if self._profile_registration is not None:
            self._profile_registration.remove()
            self._profile_registration = None

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Session listener raised")
