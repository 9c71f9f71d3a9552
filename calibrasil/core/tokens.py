# calibrasil/core/tokens.py
"""
Funções puras de assinatura e privacidade usadas pelos links enviados por e-mail.

- Token de confirmação: HMAC-SHA256 do ID do pedido com o segredo do servidor.
  Não é armazenado; é verificado por recomputação.
- Token de recebimento: valor aleatório de uso único; apenas o SHA-256 é salvo.
"""
import hashlib
import hmac
import secrets
from typing import Optional


def gerar_token_confirmacao(pedido_id: str, segredo: str) -> str:
    """Retorna o HMAC-SHA256 (hex minúsculo) do ID do pedido."""
    return hmac.new(
        segredo.encode('utf-8'),
        str(pedido_id).encode('utf-8'),
        hashlib.sha256,
    ).hexdigest()


def token_confirmacao_valido(pedido_id: str, token: str, segredo: str) -> bool:
    esperado = gerar_token_confirmacao(pedido_id, segredo)
    return hmac.compare_digest(esperado.encode('utf-8'), str(token).encode('utf-8'))


def gerar_token_recebimento() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def mascarar_email(email: Optional[str]) -> Optional[str]:
    """
    Mascara o e-mail no formato `abc***@dominio`.

    Retorna None quando o e-mail está vazio ou não tem exatamente um '@'
    com as duas partes preenchidas.
    """
    if not email or email.count('@') != 1:
        return None
    local, dominio = email.split('@')
    if not local or not dominio:
        return None
    return f"{local[:3]}***@{dominio}"
