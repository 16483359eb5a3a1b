"""
Servicio: Datos Pendientes del Cliente
app/services/datos_pendientes.py

Consultas al libro de cobros que alimentan la decisión de modo_pago:
  - fecha del último historial_reportes (→ mes activo)
  - conteo de registros pendientes del cliente en un mes
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import (
    Caso,
    EstadoComprobante,
    EstadoPago,
    Gasto,
    HistorialReporte,
    PaymentReceipt,
    ServicioProfesional,
    Solicitud,
    TipoCliente,
    TrabajoPorHora,
)
from app.services.aprobacion_utils import (
    SIN_PENDIENTES,
    DatosPendientes,
    MesAnio,
    get_mes_activo,
)

logger = logging.getLogger(__name__)

ESTADOS_CERRADOS = (EstadoPago.PAGADO.value, EstadoPago.CANCELADO.value)


def obtener_ultima_fecha_reporte(db: Session, cliente_id: str, tipo_cliente: str) -> Optional[str]:
    """Fecha del historial_reportes más reciente del cliente, o None."""
    reporte = (
        db.query(HistorialReporte)
        .filter(
            HistorialReporte.cliente_id == cliente_id,
            HistorialReporte.tipo_cliente == tipo_cliente,
        )
        .order_by(HistorialReporte.fecha.desc(), HistorialReporte.id.desc())
        .first()
    )
    return reporte.fecha if reporte else None


def obtener_mes_activo(db: Session, cliente_id: str, tipo_cliente: str) -> Optional[str]:
    return get_mes_activo(obtener_ultima_fecha_reporte(db, cliente_id, tipo_cliente))


def obtener_datos_pendientes(
    db: Session,
    cliente_id: str,
    tipo_cliente: str,
    mes: Optional[str],
    excluir_receipt_id: Optional[str] = None,
) -> DatosPendientes:
    """
    Cuenta los registros pendientes del cliente en el mes indicado.

    Args:
        mes:                 Mes a revisar (YYYY-MM), normalmente el mes activo
        excluir_receipt_id:  Comprobante que se está aprobando (no cuenta como pendiente)

    Un mes inválido retorna un snapshot vacío.
    """
    mes_obj = MesAnio.parse(mes)
    if mes_obj is None:
        return SIN_PENDIENTES

    inicio, fin = mes_obj.rango()

    # ── Trabajos por hora: empresas vía casos, clientes directo ──────────────
    trabajos_q = db.query(TrabajoPorHora).filter(
        TrabajoPorHora.fecha >= inicio,
        TrabajoPorHora.fecha <= fin,
        _no_cerrado(TrabajoPorHora.estado_pago),
    )
    if tipo_cliente == TipoCliente.EMPRESA.value:
        casos_ids = select(Caso.id).where(Caso.id_cliente == cliente_id)
        trabajos_q = trabajos_q.filter(TrabajoPorHora.caso_asignado.in_(casos_ids))
    else:
        trabajos_q = trabajos_q.filter(TrabajoPorHora.id_cliente == cliente_id)
    trabajos = trabajos_q.count()

    gastos = db.query(Gasto).filter(
        Gasto.id_cliente == cliente_id,
        Gasto.fecha >= inicio,
        Gasto.fecha <= fin,
        _no_cerrado(Gasto.estado_pago),
    ).count()

    servicios = db.query(ServicioProfesional).filter(
        ServicioProfesional.id_cliente == cliente_id,
        ServicioProfesional.fecha >= inicio,
        ServicioProfesional.fecha <= fin,
        _no_cerrado(ServicioProfesional.estado_pago),
    ).count()

    # ── Mensualidades con saldo (no dependen del mes) ─────────────────────────
    mensualidades = db.query(Solicitud).filter(
        Solicitud.id_cliente == cliente_id,
        Solicitud.modalidad_pago.ilike("%mensualidad%"),
        Solicitud.saldo_pendiente > 0,
    ).count()

    receipts_q = db.query(PaymentReceipt).filter(
        PaymentReceipt.user_id == cliente_id,
        PaymentReceipt.tipo_cliente == tipo_cliente,
        PaymentReceipt.estado == EstadoComprobante.PENDIENTE.value,
        PaymentReceipt.mes_pago == str(mes_obj),
    )
    if excluir_receipt_id:
        receipts_q = receipts_q.filter(PaymentReceipt.id != excluir_receipt_id)
    receipts = receipts_q.count()

    datos = DatosPendientes(
        trabajos_por_hora=trabajos,
        gastos=gastos,
        servicios_profesionales=servicios,
        mensualidades_activas=mensualidades,
        receipts_pendientes=receipts,
    )
    logger.debug(f"Pendientes {tipo_cliente} {cliente_id} en {mes_obj}: {datos.to_dict()}")
    return datos


def _no_cerrado(columna):
    # estado_pago NULL cuenta como pendiente
    return (columna.is_(None)) | (columna.notin_(ESTADOS_CERRADOS))
