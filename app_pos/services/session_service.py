# ==============================================================================
# SERVICIO DE SESIÓN
# ==============================================================================
# El motor no autentica: consume el rol actual y un logout().
# Aquí vive la sesión de la terminal y el manejo de sesión expirada (401):
#
#   1. logout forzado
#   2. aviso al cajero
#   3. borrador guardado (best-effort)
#   4. confirmación antes de redirigir al login
#
# La confirmación bloquea solo la redirección; el estado en memoria queda
# intacto para recuperarlo.
# ==============================================================================

import logging
from typing import Optional

from app_pos import config
from app_pos.models.entities import Sale, UserRole
from app_pos.repositories.interfaces import ConfirmPrompt, IAuthProvider, INotifier
from app_pos.services.draft_service import DraftService

logger = logging.getLogger(__name__)

SESSION_EXPIRED_MESSAGE = 'Tu sesión expiró. Se guardó un borrador de la venta.'
SESSION_REDIRECT_PROMPT = 'Tu sesión expiró. ¿Ir a iniciar sesión ahora?'


class AuthSession:
    """
    Sesión del usuario en la terminal (implementa IAuthProvider).

    Attributes:
        username: Usuario logueado
        role: admin | manager | cashier
        token: Token para el API (None si no hay sesión)
    """

    def __init__(self, username: str = '', role: str = config.DEFAULT_ROLE,
                 token: Optional[str] = None):
        self.username = username
        self._role = role if role in {r.value for r in UserRole} else config.DEFAULT_ROLE
        self.token = token
        self._authenticated = token is not None

    @property
    def role(self) -> str:
        return self._role

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated

    def login(self, username: str, role: str, token: str) -> None:
        self.username = username
        self._role = role if role in {r.value for r in UserRole} else config.DEFAULT_ROLE
        self.token = token
        self._authenticated = True

    def logout(self) -> None:
        logger.info("[SESION] Logout de %s", self.username or 'usuario')
        self.token = None
        self._authenticated = False


async def _always_confirm(message: str) -> bool:
    return True


class SessionService:
    """Manejo de sesión expirada durante la venta."""

    def __init__(
        self,
        auth: IAuthProvider,
        notifier: INotifier,
        drafts: Optional[DraftService] = None,
        confirm: Optional[ConfirmPrompt] = None
    ):
        self.auth = auth
        self.notifier = notifier
        self.drafts = drafts
        self.confirm = confirm or _always_confirm

    async def handle_session_expired(self, sale: Optional[Sale] = None) -> bool:
        """
        Procesa un 401.

        Args:
            sale: Venta en curso a preservar

        Returns:
            True si el cajero aceptó ir al login
        """
        self.auth.logout()
        self.notifier.show_warning(SESSION_EXPIRED_MESSAGE)
        if sale is not None and self.drafts is not None:
            self.drafts.autosave(sale)
        redirect = await self.confirm(SESSION_REDIRECT_PROMPT)
        logger.info("[SESION] Sesión expirada, redirección %s",
                    'aceptada' if redirect else 'pospuesta')
        return bool(redirect)
