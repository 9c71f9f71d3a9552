import logging
from typing import Callable, List, Optional

import requests
import resend
from django.template.loader import render_to_string
from django.utils import timezone

from calibrasil.core.entities import ItemEstoqueBaixo
from calibrasil.core.exceptions import FalhaServicoExternoError
from calibrasil.core.ports import IEmailService, INotificadorEstoque

logger = logging.getLogger(__name__)


# ====================================================================
# GATEWAYS: Implementações concretas que se comunicam com APIs externas.
# ====================================================================

class ResendEmailGateway(IEmailService):
    """
    Envia o alerta de estoque baixo pela API do Resend.
    O HTML é renderizado a partir de `emails/estoque_baixo.html`.
    """
    TEMPLATE = 'emails/estoque_baixo.html'

    def __init__(self, api_key: Optional[str], remetente: str, destinatarios: List[str],
                 url_admin_produtos: str):
        self.api_key = (api_key or '').strip()
        self.remetente = remetente
        self.destinatarios = list(destinatarios)
        self.url_admin_produtos = url_admin_produtos

    def montar_assunto(self, itens: List[ItemEstoqueBaixo]) -> str:
        return f"⚠️ Alerta: {len(itens)} produto(s) com estoque baixo"

    def renderizar_html(self, itens: List[ItemEstoqueBaixo]) -> str:
        return render_to_string(self.TEMPLATE, {
            'itens': itens,
            'total_itens': len(itens),
            'url_admin_produtos': self.url_admin_produtos,
            'gerado_em': timezone.localtime().strftime('%d/%m/%Y %H:%M:%S'),
        })

    def enviar_alerta_estoque_baixo(self, itens: List[ItemEstoqueBaixo]) -> dict:
        if not self.api_key:
            logger.error("[LOW-STOCK] RESEND_API_KEY não configurada")
            raise FalhaServicoExternoError("RESEND_API_KEY não configurada")

        payload = {
            'from': self.remetente,
            'to': self.destinatarios,
            'subject': self.montar_assunto(itens),
            'html': self.renderizar_html(itens),
        }

        resend.api_key = self.api_key
        try:
            resposta = resend.Emails.send(payload)
        except Exception as e:
            logger.error("[LOW-STOCK] Erro do provedor de e-mail: %s", e)
            raise FalhaServicoExternoError(str(e) or "Erro ao enviar e-mail") from e

        return dict(resposta or {})


# ====================================================================
# NOTIFICADORES DE ESTOQUE (usados pelo checkout)
# ====================================================================

class NotificadorEstoqueLocal(INotificadorEstoque):
    """
    Dispara o alerta no próprio processo, chamando o caso de uso com a
    chave de serviço (mesmo caminho de autorização do endpoint HTTP).
    """
    def __init__(self, fabrica_caso_de_uso: Callable, chave_servico: Optional[str]):
        self.fabrica_caso_de_uso = fabrica_caso_de_uso
        self.chave_servico = chave_servico

    def notificar(self, itens: List[ItemEstoqueBaixo]) -> None:
        caso_de_uso = self.fabrica_caso_de_uso()
        caso_de_uso.executar(f"Bearer {self.chave_servico or ''}", itens)


class NotificadorEstoqueHttp(INotificadorEstoque):
    """POST no endpoint /send-low-stock-email (instâncias separadas)."""

    def __init__(self, url: str, chave_servico: Optional[str], timeout: int = 10):
        self.url = url
        self.chave_servico = chave_servico
        self.timeout = timeout

    def notificar(self, itens: List[ItemEstoqueBaixo]) -> None:
        headers = {
            "Authorization": f"Bearer {self.chave_servico or ''}",
            "Content-Type": "application/json",
        }
        payload = {"items": [item.to_payload() for item in itens]}
        try:
            response = requests.post(self.url, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise FalhaServicoExternoError(f"Erro ao chamar o alerta de estoque: {e}") from e
