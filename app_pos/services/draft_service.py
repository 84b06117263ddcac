# ==============================================================================
# SERVICIO DE BORRADORES
# ==============================================================================
# Durabilidad local de la venta en curso:
#
# - AUTOSAVE: un único borrador bajo DRAFT_KEY, sobrescrito en cada cambio
# - RESTORE:  al abrir la caja, rehidrata el borrador contra el catálogo
# - BACKUP:   antes de una operación riesgosa, copia con timestamp propio
#             (<DRAFT_KEY>:backup:<ms>) que nunca pisa a otra
# - CLEANUP:  tras una venta confirmada, borra borrador y respaldos
#
# FORMATO: JSON compatible con el borrador del frontend web
# ==============================================================================

import json
import logging
from typing import List, Mapping, Optional

from app_pos import config
from app_pos.models.entities import (
    Agency,
    DraftSnapshot,
    Employee,
    Guide,
    Product,
    Sale,
    SaleItem,
    now_ms,
)
from app_pos.repositories.interfaces import IKeyValueStore

logger = logging.getLogger(__name__)


class DraftService:
    """
    Servicio de borradores y respaldos.

    Uso:
        drafts = DraftService(JsonKeyValueStore(data_dir))
        drafts.autosave(sale)
        drafts.restore_into(sale, products_by_id)
    """

    def __init__(
        self,
        store: IKeyValueStore,
        draft_key: str = config.DRAFT_KEY
    ):
        """
        Args:
            store: Almacén clave-valor durable
            draft_key: Clave del borrador actual
        """
        self.store = store
        self.draft_key = draft_key
        self.backup_prefix = f'{draft_key}:backup:'

    # =========================================================================
    # BORRADOR ACTUAL
    # =========================================================================

    def autosave(self, sale: Sale) -> bool:
        """
        Guarda la proyección mínima de la venta (last-write-wins).

        Returns:
            True si se escribió
        """
        snapshot = DraftSnapshot.from_sale(sale)
        try:
            self.store.set(self.draft_key, json.dumps(snapshot.to_dict(), ensure_ascii=False))
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.warning("[BORRADOR] No se pudo guardar el borrador: %s", e)
            return False

    def load_draft(self, key: Optional[str] = None) -> Optional[DraftSnapshot]:
        """
        Lee un borrador (el actual por defecto).

        Returns:
            DraftSnapshot o None si no existe o está corrupto
        """
        raw = self.store.get(key or self.draft_key)
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("[BORRADOR] Borrador ilegible en %s, se ignora", key or self.draft_key)
            return None
        if not isinstance(data, dict):
            return None
        return DraftSnapshot.from_dict(data)

    def has_draft(self) -> bool:
        return bool(self.store.get(self.draft_key))

    def discard_draft(self) -> None:
        """Elimina solo el borrador actual (los respaldos se mantienen)."""
        self.store.remove(self.draft_key)

    def restore_into(
        self,
        sale: Sale,
        products: Mapping[str, Product],
        agencies: Optional[Mapping[str, Agency]] = None,
        guides: Optional[Mapping[str, Guide]] = None,
        employees: Optional[Mapping[str, Employee]] = None
    ) -> int:
        """
        Rehidrata el borrador sobre la venta usando el catálogo actual.

        Las líneas cuyo producto ya no existe se descartan en silencio.

        Args:
            sale: Venta a sobrescribir
            products: Catálogo por id
            agencies / guides / employees: Entidades por id (opcional)

        Returns:
            Cantidad de líneas restauradas (-1 si no había borrador)
        """
        snapshot = self.load_draft()
        if snapshot is None:
            return -1

        restored = []
        for draft_item in snapshot.items:
            product = products.get(draft_item.product_id)
            if product is None:
                continue
            restored.append(SaleItem(
                product=product,
                quantity=max(1, draft_item.quantity),
                unit_price=max(0.0, draft_item.unit_price),
                discount_percent=max(0.0, draft_item.discount),
            ))

        sale.items = restored
        sale.payment_method = snapshot.payment_method
        sale.payment_details = snapshot.payment_details
        sale.cash_received = snapshot.cash_received
        sale.sale_type = snapshot.sale_type
        sale.client = snapshot.client
        if agencies is not None and snapshot.agency_id:
            sale.agency = agencies.get(snapshot.agency_id)
        if guides is not None and snapshot.guide_id:
            sale.guide = guides.get(snapshot.guide_id)
        if employees is not None and snapshot.employee_id:
            sale.employee = employees.get(snapshot.employee_id)

        dropped = len(snapshot.items) - len(restored)
        if dropped:
            logger.info("[BORRADOR] %d línea(s) descartadas: producto inexistente", dropped)
        return len(restored)

    # =========================================================================
    # RESPALDOS
    # =========================================================================

    def create_backup(self, sale: Sale) -> Optional[str]:
        """
        Crea un respaldo con timestamp propio antes de una operación riesgosa.

        Si ya existe un respaldo con el mismo milisegundo se avanza el
        timestamp, así el orden lexicográfico sigue siendo el cronológico.

        Returns:
            Clave del respaldo o None si no se pudo escribir
        """
        existing = set(self.list_backups())
        stamp = now_ms()
        key = f'{self.backup_prefix}{stamp}'
        while key in existing:
            stamp += 1
            key = f'{self.backup_prefix}{stamp}'

        snapshot = DraftSnapshot.from_sale(sale)
        snapshot.timestamp = stamp
        try:
            self.store.set(key, json.dumps(snapshot.to_dict(), ensure_ascii=False))
        except (OSError, TypeError, ValueError) as e:
            logger.warning("[BORRADOR] No se pudo crear respaldo: %s", e)
            return None
        return key

    def list_backups(self) -> List[str]:
        """Claves de respaldo ordenadas (la más antigua primero)."""
        return sorted(self.store.keys(self.backup_prefix))

    def latest_backup_key(self) -> Optional[str]:
        backups = self.list_backups()
        return backups[-1] if backups else None

    def restore_latest_backup(self) -> bool:
        """
        Copia el respaldo más reciente al slot del borrador actual.

        Returns:
            True si había respaldo
        """
        key = self.latest_backup_key()
        if key is None:
            return False
        raw = self.store.get(key)
        if not raw:
            return False
        self.store.set(self.draft_key, raw)
        logger.info("[BORRADOR] Respaldo %s restaurado como borrador actual", key)
        return True

    def cleanup(self) -> int:
        """
        Borra el borrador y todos los respaldos (venta confirmada).

        Returns:
            Cantidad de respaldos eliminados
        """
        backups = self.list_backups()
        for key in backups:
            self.store.remove(key)
        self.store.remove(self.draft_key)
        return len(backups)
