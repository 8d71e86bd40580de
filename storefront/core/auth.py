from typing import Callable, List, Optional
import logging

from storefront.client.api import StorefrontError

log = logging.getLogger(__name__)

AuthListener = Callable[[bool], None]


class AuthSession:
    """Token de acceso y perfil del usuario, persistidos en el almacenamiento del cliente."""

    def __init__(self, api, storage, key: str = "savage_rise_token"):
        self.api = api
        self.storage = storage
        self.key = key
        self.token: Optional[str] = None
        self.user: Optional[dict] = None
        self._listeners: List[AuthListener] = []

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_active(self) -> bool:
        return bool(self.user and self.user.get("is_active"))

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, authenticated: bool) -> None:
        for listener in list(self._listeners):
            try:
                listener(authenticated)
            except Exception as err:
                log.error(f"Suscriptor de auth falló: {err}")

    def _read_token(self) -> Optional[str]:
        try:
            return self.storage.get(self.key)
        except Exception as err:
            log.warning(f"No se pudo leer el token guardado ({err}).")
            return None

    def _write_token(self, token: Optional[str]) -> None:
        try:
            if token:
                self.storage.set(self.key, token)
            else:
                self.storage.remove(self.key)
        except Exception as err:
            log.warning(f"No se pudo actualizar el token guardado ({err}).")

    async def refresh_user(self) -> Optional[dict]:
        """Carga el perfil con el token actual; si falla, se descarta el token."""
        was_authenticated = self.is_authenticated
        if not self.token:
            return None
        try:
            self.user = await self.api.get_profile(self.token)
        except StorefrontError as err:
            log.warning(f"No se pudo refrescar el usuario: {err}")
            self.token = None
            self.user = None
            self._write_token(None)
            if was_authenticated:
                self._notify(False)
            return None
        if not was_authenticated:
            self._notify(True)
        return self.user

    async def restore(self) -> Optional[dict]:
        self.token = self._read_token()
        if not self.token:
            return None
        return await self.refresh_user()

    async def login(self, email: str, password: str) -> dict:
        """Obtiene el token y el perfil. Los errores de la API se propagan al llamador."""
        tokens = await self.api.login(email, password)
        access_token = (tokens or {}).get("access_token")
        if not access_token:
            raise StorefrontError("Login failed")
        self.token = access_token
        self._write_token(access_token)
        user = await self.refresh_user()
        if user is None:
            raise StorefrontError("Login failed")
        log.info(f"Usuario {user.get('email')} autenticado.")
        return user

    def logout(self) -> None:
        was_authenticated = self.is_authenticated
        self.token = None
        self.user = None
        self._write_token(None)
        if was_authenticated:
            self._notify(False)
        log.info("Sesión cerrada.")
