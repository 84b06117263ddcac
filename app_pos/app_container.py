# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Punto único donde se arman repositorios, colaboradores externos y
# servicios del motor de ventas. Facilita:
#   - Inyección de dependencias (sin estado global en los servicios)
#   - Testing (se reemplazan api, auth o almacén por fakes)
#   - Cambiar el almacenamiento sin tocar servicios
# ==============================================================================

from typing import Optional

from app_pos import config

# ═══════════════════════════════════════════════════════════════════════════════
# REPOSITORIOS - Persistencia local
# ═══════════════════════════════════════════════════════════════════════════════
from app_pos.repositories import (
    IApiClient,
    IKeyValueStore,
    JsonKeyValueStore,
    PendingActionRepository,
    SettingsRepository,
)

# ═══════════════════════════════════════════════════════════════════════════════
# SERVICIOS
# ═══════════════════════════════════════════════════════════════════════════════
from app_pos.services import (
    AuthSession,
    CartService,
    CatalogService,
    DraftService,
    EventBus,
    NotificationService,
    OfflineQueueService,
    PaymentValidator,
    PricingService,
    RequestsApiClient,
    SaleSubmissionService,
    SalesListService,
    SessionService,
    TaxConfig,
)


class AppContainer:
    """
    Contenedor de dependencias de la terminal.

    Implementa Singleton con carga perezosa de cada pieza.

    Uso:
        container = AppContainer(data_dir='/var/pos')
        cart = container.cart_service
        result = await container.submission_service.submit()
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(
        self,
        data_dir: str = None,
        api: Optional[IApiClient] = None,
        auth: Optional[AuthSession] = None,
        store: Optional[IKeyValueStore] = None,
        confirm=None
    ):
        """
        Args:
            data_dir: Carpeta de los JSON locales
            api: Cliente HTTP (por defecto RequestsApiClient)
            auth: Sesión actual (por defecto sin autenticar, rol cajero)
            store: Almacén de borradores (por defecto drafts.json)
            confirm: Diálogo de confirmación para sesión expirada
        """
        if self._initialized:
            return

        self._data_dir = data_dir or config.DATA_DIR
        self._api = api
        self._auth = auth
        self._store = store
        self._confirm = confirm

        self._settings_repo: Optional[SettingsRepository] = None
        self._pending_action_repo: Optional[PendingActionRepository] = None

        self._notifier: Optional[NotificationService] = None
        self._events: Optional[EventBus] = None
        self._pricing_service: Optional[PricingService] = None
        self._draft_service: Optional[DraftService] = None
        self._cart_service: Optional[CartService] = None
        self._payment_validator: Optional[PaymentValidator] = None
        self._offline_queue: Optional[OfflineQueueService] = None
        self._session_service: Optional[SessionService] = None
        self._catalog_service: Optional[CatalogService] = None
        self._sales_list_service: Optional[SalesListService] = None
        self._submission_service: Optional[SaleSubmissionService] = None

        self._initialized = True

    # =========================================================================
    # REPOSITORIOS Y COLABORADORES
    # =========================================================================

    @property
    def data_dir(self) -> str:
        return self._data_dir

    @property
    def settings_repo(self) -> SettingsRepository:
        if self._settings_repo is None:
            self._settings_repo = SettingsRepository(self._data_dir)
        return self._settings_repo

    @property
    def pending_action_repo(self) -> PendingActionRepository:
        if self._pending_action_repo is None:
            self._pending_action_repo = PendingActionRepository(
                self._data_dir, config.PENDING_ACTIONS_FILE
            )
        return self._pending_action_repo

    @property
    def store(self) -> IKeyValueStore:
        """Almacén de borradores y respaldos."""
        if self._store is None:
            self._store = JsonKeyValueStore(self._data_dir, config.DRAFT_STORE_FILE)
        return self._store

    @property
    def auth(self) -> AuthSession:
        if self._auth is None:
            self._auth = AuthSession()
        return self._auth

    @property
    def api(self) -> IApiClient:
        if self._api is None:
            self._api = RequestsApiClient(config.API_BASE_URL, token=self.auth.token)
        return self._api

    @property
    def notifier(self) -> NotificationService:
        if self._notifier is None:
            self._notifier = NotificationService()
        return self._notifier

    @property
    def events(self) -> EventBus:
        if self._events is None:
            self._events = EventBus()
        return self._events

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def pricing_service(self) -> PricingService:
        """Servicio de precios con el IVA configurado en la terminal."""
        if self._pricing_service is None:
            self._pricing_service = PricingService(TaxConfig(
                rate=self.settings_repo.get_tax_rate(),
                enabled=self.settings_repo.get_apply_tax(),
            ))
        return self._pricing_service

    @property
    def draft_service(self) -> DraftService:
        if self._draft_service is None:
            self._draft_service = DraftService(self.store, config.DRAFT_KEY)
        return self._draft_service

    @property
    def cart_service(self) -> CartService:
        if self._cart_service is None:
            self._cart_service = CartService(
                self.pricing_service,
                self.auth,
                self.settings_repo.get_role_max_discount(),
                self.notifier,
                self.draft_service,
            )
        return self._cart_service

    @property
    def payment_validator(self) -> PaymentValidator:
        if self._payment_validator is None:
            self._payment_validator = PaymentValidator()
        return self._payment_validator

    @property
    def offline_queue(self) -> OfflineQueueService:
        if self._offline_queue is None:
            self._offline_queue = OfflineQueueService(self.pending_action_repo, self.api)
        return self._offline_queue

    @property
    def session_service(self) -> SessionService:
        if self._session_service is None:
            self._session_service = SessionService(
                self.auth, self.notifier, self.draft_service, self._confirm
            )
        return self._session_service

    @property
    def catalog_service(self) -> CatalogService:
        if self._catalog_service is None:
            self._catalog_service = CatalogService(
                self.api, self.notifier, self.offline_queue, self.session_service
            )
        return self._catalog_service

    @property
    def sales_list_service(self) -> SalesListService:
        if self._sales_list_service is None:
            self._sales_list_service = SalesListService(
                self.api, self.notifier, self.offline_queue, self.session_service
            )
        return self._sales_list_service

    @property
    def submission_service(self) -> SaleSubmissionService:
        if self._submission_service is None:
            self._submission_service = SaleSubmissionService(
                cart=self.cart_service,
                drafts=self.draft_service,
                api=self.api,
                offline=self.offline_queue,
                notifier=self.notifier,
                events=self.events,
                validator=self.payment_validator,
                catalog=self.catalog_service,
                sales_list=self.sales_list_service,
                session=self.session_service,
            )
        return self._submission_service

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    def reset(self) -> None:
        """Reinicia los servicios (los colaboradores inyectados se conservan)."""
        self._settings_repo = None
        self._pending_action_repo = None
        self._notifier = None
        self._events = None
        self._pricing_service = None
        self._draft_service = None
        self._cart_service = None
        self._payment_validator = None
        self._offline_queue = None
        self._session_service = None
        self._catalog_service = None
        self._sales_list_service = None
        self._submission_service = None

    @classmethod
    def get_instance(cls, data_dir: str = None, **kwargs) -> 'AppContainer':
        if cls._instance is None:
            return cls(data_dir, **kwargs)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Elimina la instancia singleton (tests)."""
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None


def get_container(data_dir: str = None, **kwargs) -> AppContainer:
    """
    Obtiene el contenedor global.

    Args:
        data_dir: Carpeta de datos (solo se usa en la primera llamada)
    """
    return AppContainer.get_instance(data_dir, **kwargs)
