"""
Utilidades de Aprobación de Pagos y control de modo_pago
app/services/aprobacion_utils.py

Lógica pura (sin side effects) para decidir si se debe desactivar
modo_pago al aprobar un comprobante de pago.

El problema que resuelve: cuando se aprueba un comprobante de un mes anterior
(ej: diciembre), no se debe desactivar modo_pago si el cliente tiene datos
pendientes en el mes actualmente cobrado (ej: enero).

Los meses se comparan como MesAnio, no como strings, para que el orden
no dependa del formato YYYY-MM.
"""

import calendar
import re
from dataclasses import dataclass
from datetime import date
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

_RE_MES = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")
_RE_FECHA = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# ═══════════════════════════════════════════════════════════
# 1. MES DE FACTURACIÓN
# ═══════════════════════════════════════════════════════════

@dataclass(frozen=True, order=True)
class MesAnio:
    """Mes de facturación. El orden es cronológico (año, mes)."""
    anio: int
    mes: int

    @classmethod
    def parse(cls, texto: Optional[str]) -> Optional["MesAnio"]:
        """'2026-01' → MesAnio(2026, 1). Retorna None si el formato no es YYYY-MM."""
        if not texto or not isinstance(texto, str):
            return None
        m = _RE_MES.match(texto)
        if not m or int(m.group(1)) < 1:
            return None
        return cls(int(m.group(1)), int(m.group(2)))

    @classmethod
    def de_fecha(cls, fecha: date) -> "MesAnio":
        return cls(fecha.year, fecha.month)

    def anterior(self) -> "MesAnio":
        return MesAnio.de_fecha(date(self.anio, self.mes, 1) - relativedelta(months=1))

    def rango(self) -> tuple:
        """(primer_dia, ultimo_dia) del mes como date."""
        ultimo_dia = calendar.monthrange(self.anio, self.mes)[1]
        return date(self.anio, self.mes, 1), date(self.anio, self.mes, ultimo_dia)

    def __str__(self) -> str:
        return f"{self.anio:04d}-{self.mes:02d}"


MesLike = Union[str, MesAnio, None]


def _como_mes(valor: MesLike) -> Optional[MesAnio]:
    if isinstance(valor, MesAnio):
        return valor
    return MesAnio.parse(valor)


# ═══════════════════════════════════════════════════════════
# 2. MES ACTIVO
# ═══════════════════════════════════════════════════════════

def get_mes_activo(ultima_fecha_reporte: Optional[str]) -> Optional[str]:
    """
    Calcula el mes activo (el que se está cobrando) a partir de la fecha
    del último registro de historial_reportes.

    mes_a_cobrar = fecha - 1 mes
      "2026-02-03"           → "2026-01"
      "2026-01-15"           → "2025-12"
      "2026-02-03T10:30:00Z" → "2026-01"  (se ignora la hora)

    Retorna None si no hay fecha o no es una fecha de calendario válida.
    """
    if not ultima_fecha_reporte or not isinstance(ultima_fecha_reporte, str):
        return None

    solo_fecha = ultima_fecha_reporte[:10]
    if not _RE_FECHA.match(solo_fecha):
        return None
    try:
        fecha = date.fromisoformat(solo_fecha)
        # 0001-01 no tiene mes anterior representable
        return str(MesAnio.de_fecha(fecha).anterior())
    except (ValueError, OverflowError):
        return None


def is_older_month(mes_pago: MesLike, mes_activo: MesLike) -> bool:
    """True si mes_pago es estrictamente anterior a mes_activo. Entradas vacías → False."""
    pago = _como_mes(mes_pago)
    activo = _como_mes(mes_activo)
    if pago is None or activo is None:
        return False
    return pago < activo


# ═══════════════════════════════════════════════════════════
# 3. DECISIÓN DE DESACTIVACIÓN
# ═══════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DatosPendientes:
    """Conteo de registros pendientes del cliente en el mes activo."""
    trabajos_por_hora: int = 0
    gastos: int = 0
    servicios_profesionales: int = 0
    mensualidades_activas: int = 0
    receipts_pendientes: int = 0

    @property
    def tiene_datos(self) -> bool:
        return any((
            self.trabajos_por_hora,
            self.gastos,
            self.servicios_profesionales,
            self.mensualidades_activas,
            self.receipts_pendientes,
        ))

    def to_dict(self) -> dict:
        return {
            "tieneDatos":              self.tiene_datos,
            "trabajosPorHora":         self.trabajos_por_hora,
            "gastos":                  self.gastos,
            "serviciosProfesionales":  self.servicios_profesionales,
            "mensualidadesActivas":    self.mensualidades_activas,
            "receiptsPendientes":      self.receipts_pendientes,
        }


SIN_PENDIENTES = DatosPendientes()


def should_deactivate_modo_pago(
    mes_pago: MesLike,
    mes_activo: MesLike,
    datos_pendientes: DatosPendientes,
) -> bool:
    """
    Determina si se debe desactivar modo_pago al aprobar un comprobante.

    Reglas (en este orden):
    1. Sin mes activo (no hay historial_reportes) → NO desactivar
    2. mes_pago > mes_activo → pago adelantado, desactivar sin mirar pendientes
    3. mes_pago < mes_activo → pagó un mes viejo; desactivar solo si el mes
       activo no tiene datos pendientes
    4. mes_pago == mes_activo → desactivar solo si no quedan pendientes

    datos_pendientes debe corresponder al mes ACTIVO, no al mes del comprobante.
    Un mes_pago con formato inválido conserva el estado actual.
    """
    activo = _como_mes(mes_activo)
    if activo is None:
        return False

    pago = _como_mes(mes_pago)
    if pago is None:
        return False

    if pago > activo:
        return True

    return not datos_pendientes.tiene_datos


# ═══════════════════════════════════════════════════════════
# 4. RANGO DE FECHAS
# ═══════════════════════════════════════════════════════════

def get_rango_fechas_mes(mes_pago: Optional[str]) -> Optional[dict]:
    """
    "2026-02" → {"inicio": "2026-02-01", "fin": "2026-02-28"}
    "2024-02" → {"inicio": "2024-02-01", "fin": "2024-02-29"}
    Formato inválido → None
    """
    mes = MesAnio.parse(mes_pago)
    if mes is None:
        return None
    inicio, fin = mes.rango()
    return {"inicio": inicio.isoformat(), "fin": fin.isoformat()}
