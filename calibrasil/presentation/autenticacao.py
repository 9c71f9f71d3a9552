"""
Identificação de quem está chamando a API:
- IP do cliente (chave do limitador de taxa);
- usuário final a partir de um bearer JWT (djangorestframework-simplejwt).
"""
from typing import Optional

from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken, TokenError

from calibrasil.core.ports import IResolvedorCredencial

CLIENTE_DESCONHECIDO = 'unknown'


def identificar_cliente(request) -> str:
    """
    Primeiro IP de X-Forwarded-For, depois CF-Connecting-IP.
    Sem nenhum dos dois, todos caem na mesma chave 'unknown'.
    """
    encaminhado = request.META.get('HTTP_X_FORWARDED_FOR', '')
    if encaminhado:
        primeiro = encaminhado.split(',')[0].strip()
        if primeiro:
            return primeiro
    cloudflare = request.META.get('HTTP_CF_CONNECTING_IP', '').strip()
    return cloudflare or CLIENTE_DESCONHECIDO


class ResolvedorCredencialJWT(IResolvedorCredencial):
    """Valida o access token e devolve o ID do usuário ativo (ou None)."""

    def __init__(self):
        self.autenticacao = JWTAuthentication()

    def resolver_usuario_id(self, credencial: str) -> Optional[str]:
        try:
            token_validado = self.autenticacao.get_validated_token(credencial)
            usuario = self.autenticacao.get_user(token_validado)
        except (InvalidToken, TokenError, AuthenticationFailed):
            return None
        return str(usuario.pk)
