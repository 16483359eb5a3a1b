"""
Tests de los endpoints de comprobantes (FastAPI TestClient).
"""

from datetime import datetime, timezone

from app.models import Empresa, PaymentReceipt, Usuario
from tests.factories import (
    ENERO,
    crear_empresa,
    crear_receipt,
    crear_reporte,
    crear_trabajo,
    crear_usuario,
    headers_de,
)


# =========================================================================
# Autenticación
# =========================================================================


class TestAutorizacion:
    def test_sin_token(self, client):
        resp = client.get("/api/payment-receipts")
        assert resp.status_code == 401
        assert resp.json()["detail"]["codigo"] == "AUTH_REQUIRED"

    def test_token_invalido(self, client):
        resp = client.get("/api/payment-receipts", headers={"Authorization": "Bearer basura"})
        assert resp.status_code == 401

    def test_cliente_no_puede_revisar(self, client):
        resp = client.patch(
            "/api/payment-receipts",
            json={"receiptId": "x", "action": "aprobar"},
            headers=headers_de("cli-1", "cliente"),
        )
        assert resp.status_code == 403
        assert resp.json()["detail"]["codigo"] == "FORBIDDEN"

    def test_token_en_cookie(self, client, db):
        crear_usuario(db)
        token = headers_de("cli-1", "cliente")["Authorization"].split()[1]
        client.cookies.set("access_token", token)
        resp = client.get("/api/payment-status")
        assert resp.status_code == 200


# =========================================================================
# Admin
# =========================================================================


class TestListarComprobantes:
    def test_lista_receipts_y_clientes_con_modo_pago(self, client, db, admin_headers):
        crear_usuario(db, id="cli-1", modo_pago=True)
        crear_usuario(db, id="cli-2", modo_pago=False)
        crear_empresa(db, id="emp-1", modo_pago=True)
        crear_receipt(db, "cli-1", "cliente", "2026-01", id="r-viejo",
                      uploaded_at=datetime(2026, 2, 1, tzinfo=timezone.utc))
        crear_receipt(db, "emp-1", "empresa", "2026-01", id="r-nuevo",
                      uploaded_at=datetime(2026, 2, 5, tzinfo=timezone.utc))

        resp = client.get("/api/payment-receipts", headers=admin_headers)

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert [r["id"] for r in data["receipts"]] == ["r-nuevo", "r-viejo"]
        clientes = {(c["id"], c["tipo"]) for c in data["clientesConModoPago"]}
        assert clientes == {("cli-1", "cliente"), ("emp-1", "empresa")}


class TestRevisarComprobante:
    def test_aprobar_conserva_modo_pago_con_pendientes(self, client, db, admin_headers):
        crear_empresa(db, id="emp-1")
        crear_reporte(db, "emp-1", "empresa", "2026-02-03")
        crear_receipt(db, "emp-1", "empresa", "2025-12", id="r-1")
        crear_receipt(db, "emp-1", "empresa", "2026-01", id="r-2")

        resp = client.patch(
            "/api/payment-receipts",
            json={"receiptId": "r-1", "action": "aprobar", "nota": None},
            headers=admin_headers,
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["modo_pago_desactivado"] is False
        assert body["datos_pendientes"]["tieneDatos"] is True
        assert db.get(Empresa, "emp-1").modo_pago is True
        assert db.get(PaymentReceipt, "r-1").reviewed_by == "admin-1"

    def test_aprobar_desactiva(self, client, db, admin_headers):
        crear_usuario(db)
        crear_reporte(db, "cli-1", "cliente", "2026-02-03")
        crear_receipt(db, "cli-1", "cliente", "2026-01", id="r-1")

        resp = client.patch(
            "/api/payment-receipts",
            json={"receiptId": "r-1", "action": "aprobar"},
            headers=admin_headers,
        )

        assert resp.status_code == 200
        assert resp.json()["modo_pago_desactivado"] is True
        db.expire_all()
        assert db.get(Usuario, "cli-1").modo_pago is False

    def test_rechazar(self, client, db, admin_headers):
        crear_receipt(db, "cli-1", "cliente", "2026-01", id="r-1")

        resp = client.patch(
            "/api/payment-receipts",
            json={"receiptId": "r-1", "action": "rechazar", "nota": "Comprobante ilegible"},
            headers=admin_headers,
        )

        assert resp.status_code == 200
        assert resp.json()["mensaje"] == "Comprobante rechazado"

    def test_rechazar_sin_nota(self, client, db, admin_headers):
        crear_receipt(db, "cli-1", "cliente", "2026-01", id="r-1")

        resp = client.patch(
            "/api/payment-receipts",
            json={"receiptId": "r-1", "action": "rechazar"},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert resp.json()["detail"]["codigo"] == "NOTA_REQUERIDA"

    def test_parametros_requeridos(self, client, admin_headers):
        resp = client.patch("/api/payment-receipts", json={"action": "aprobar"}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json()["detail"]["codigo"] == "PARAMS_REQUERIDOS"

    def test_accion_invalida(self, client, admin_headers):
        resp = client.patch(
            "/api/payment-receipts",
            json={"receiptId": "r-1", "action": "borrar"},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert resp.json()["detail"]["codigo"] == "ACCION_INVALIDA"

    def test_no_encontrado(self, client, admin_headers):
        resp = client.patch(
            "/api/payment-receipts",
            json={"receiptId": "no-existe", "action": "aprobar"},
            headers=admin_headers,
        )
        assert resp.status_code == 404

    def test_estado_invalido(self, client, db, admin_headers):
        crear_receipt(db, "cli-1", "cliente", "2026-01", id="r-1", estado="rechazado")

        resp = client.patch(
            "/api/payment-receipts",
            json={"receiptId": "r-1", "action": "aprobar"},
            headers=admin_headers,
        )
        assert resp.status_code == 409


class TestEvaluar:
    def test_simula_sin_escribir(self, client, db, admin_headers):
        crear_usuario(db)
        crear_reporte(db, "cli-1", "cliente", "2026-02-03")
        crear_trabajo(db, ENERO, id_cliente="cli-1")

        resp = client.get(
            "/api/payment-receipts/evaluar",
            params={"cliente_id": "cli-1", "tipo_cliente": "cliente", "mes_pago": "2025-12"},
            headers=admin_headers,
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["mes_activo"] == "2026-01"
        assert body["es_mes_anterior"] is True
        assert body["desactivaria"] is False
        assert db.get(Usuario, "cli-1").modo_pago is True

    def test_mes_invalido(self, client, admin_headers):
        resp = client.get(
            "/api/payment-receipts/evaluar",
            params={"cliente_id": "cli-1", "tipo_cliente": "cliente", "mes_pago": "2026-13"},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert resp.json()["detail"]["codigo"] == "MES_INVALIDO"


def test_reset_modo_pago(client, db, admin_headers):
    crear_usuario(db, id="cli-1", modo_pago=True)
    crear_empresa(db, id="emp-1", modo_pago=True)

    resp = client.post("/api/reset-modo-pago", headers=admin_headers)

    assert resp.status_code == 200
    assert resp.json()["success"] is True
    db.expire_all()
    assert db.get(Usuario, "cli-1").modo_pago is False
    assert db.get(Empresa, "emp-1").modo_pago is False


# =========================================================================
# Cliente
# =========================================================================


class TestCliente:
    def test_historial_solo_propios(self, client, db):
        crear_receipt(db, "cli-1", "cliente", "2025-12", id="r-1")
        crear_receipt(db, "cli-1", "cliente", "2026-01", id="r-2")
        crear_receipt(db, "cli-2", "cliente", "2026-01", id="r-3")

        resp = client.get("/api/payment-receipts/history", headers=headers_de("cli-1", "cliente"))

        assert resp.status_code == 200
        assert {c["id"] for c in resp.json()["comprobantes"]} == {"r-1", "r-2"}

    def test_estado_pago(self, client, db):
        crear_empresa(db, id="emp-1", modo_pago=True)
        crear_reporte(db, "emp-1", "empresa", "2026-02-03")
        crear_receipt(db, "emp-1", "empresa", "2025-12", id="r-1",
                      uploaded_at=datetime(2026, 1, 5, tzinfo=timezone.utc))
        crear_receipt(db, "emp-1", "empresa", "2026-01", id="r-2",
                      uploaded_at=datetime(2026, 2, 5, tzinfo=timezone.utc))

        resp = client.get("/api/payment-status", headers=headers_de("emp-1", "empresa"))

        assert resp.status_code == 200
        body = resp.json()
        assert body["modoPago"] is True
        assert body["mesActivo"] == "2026-01"
        assert body["lastReceipt"]["id"] == "r-2"

    def test_estado_pago_sin_comprobantes(self, client, db):
        crear_usuario(db)

        resp = client.get("/api/payment-status", headers=headers_de("cli-1", "cliente"))

        assert resp.json()["lastReceipt"] is None
        assert resp.json()["mesActivo"] is None

    def test_admin_no_usa_endpoints_de_cliente(self, client, admin_headers):
        resp = client.get("/api/payment-status", headers=admin_headers)
        assert resp.status_code == 403
