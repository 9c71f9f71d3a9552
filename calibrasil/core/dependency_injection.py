# calibrasil/core/dependency_injection.py
"""
Módulo de Injeção de Dependência (DI).
Responsável por instanciar os Use Cases com suas dependências de Repositórios/Gateways
concretos da camada de Infraestrutura.
"""
from datetime import timedelta

from django.conf import settings

from calibrasil.infrastructure.repositories import (
    AuditoriaRepositoryDjango,
    PapelUsuarioRepositoryDjango,
    PedidoRepositoryDjango,
    ProdutoRepositoryDjango,
    TokenRecebimentoRepositoryDjango,
    VarianteRepositoryDjango,
)
from calibrasil.infrastructure.gateways import (
    NotificadorEstoqueHttp,
    NotificadorEstoqueLocal,
    ResendEmailGateway,
)
from calibrasil.infrastructure.limitadores import LimitadorTaxaCache, LimitadorTaxaMemoria
from calibrasil.presentation.autenticacao import ResolvedorCredencialJWT
from .use_cases import (
    ConfirmarRecebimentoUseCase,
    ConsultarConfirmacaoPedidoUseCase,
    CriarPedidoUseCase,
    EmitirTokenRecebimentoUseCase,
    NotificarEstoqueBaixoUseCase,
)

# Repositórios Concretos
produto_repo = ProdutoRepositoryDjango()
pedido_repo = PedidoRepositoryDjango()
variante_repo = VarianteRepositoryDjango()
papel_repo = PapelUsuarioRepositoryDjango()
token_recebimento_repo = TokenRecebimentoRepositoryDjango()
auditoria_repo = AuditoriaRepositoryDjango()


# ====================================================================
# Limitadores de Taxa (um por endpoint, vivem enquanto o processo viver)
# ====================================================================

def _criar_limitador(prefixo: str, limite: int):
    if settings.RATE_LIMIT_BACKEND == 'cache':
        return LimitadorTaxaCache(limite, settings.RATE_LIMIT_WINDOW_SECONDS, prefixo=prefixo)
    return LimitadorTaxaMemoria(limite, settings.RATE_LIMIT_WINDOW_SECONDS)

limitador_pedidos = _criar_limitador('create-order', settings.ORDER_RATE_LIMIT)
limitador_confirmacao = _criar_limitador('get-order-confirmation', settings.CONFIRMATION_RATE_LIMIT)


# ====================================================================
# Gateways
# ====================================================================

def get_email_service() -> ResendEmailGateway:
    return ResendEmailGateway(
        api_key=settings.RESEND_API_KEY,
        remetente=settings.LOW_STOCK_EMAIL_FROM,
        destinatarios=settings.LOW_STOCK_EMAIL_TO,
        url_admin_produtos=settings.ADMIN_PRODUCTS_URL,
    )

def get_notificador_estoque():
    if settings.LOW_STOCK_NOTIFIER == 'http':
        return NotificadorEstoqueHttp(settings.LOW_STOCK_NOTIFY_URL, settings.SERVICE_ROLE_KEY)
    return NotificadorEstoqueLocal(get_notificar_estoque_baixo_use_case, settings.SERVICE_ROLE_KEY)


# ====================================================================
# Use Cases de Pedido
# ====================================================================

def get_criar_pedido_use_case() -> CriarPedidoUseCase:
    return CriarPedidoUseCase(
        produto_repo=produto_repo,
        pedido_repo=pedido_repo,
        variante_repo=variante_repo,
        notificador_estoque=get_notificador_estoque(),
        limite_estoque=settings.LOW_STOCK_THRESHOLD,
    )

def get_consultar_confirmacao_use_case() -> ConsultarConfirmacaoPedidoUseCase:
    return ConsultarConfirmacaoPedidoUseCase(pedido_repo, settings.INTERNAL_API_SECRET)

def get_notificar_estoque_baixo_use_case() -> NotificarEstoqueBaixoUseCase:
    return NotificarEstoqueBaixoUseCase(
        email_service=get_email_service(),
        resolvedor_credencial=ResolvedorCredencialJWT(),
        papel_repo=papel_repo,
        chave_servico=settings.SERVICE_ROLE_KEY,
    )


# ====================================================================
# Use Cases de Recebimento
# ====================================================================

def get_emitir_token_recebimento_use_case() -> EmitirTokenRecebimentoUseCase:
    return EmitirTokenRecebimentoUseCase(
        pedido_repo=pedido_repo,
        token_repo=token_recebimento_repo,
        validade=timedelta(days=settings.RECEIPT_TOKEN_TTL_DAYS),
    )

def get_confirmar_recebimento_use_case() -> ConfirmarRecebimentoUseCase:
    return ConfirmarRecebimentoUseCase(
        pedido_repo=pedido_repo,
        token_repo=token_recebimento_repo,
        auditoria_repo=auditoria_repo,
    )
