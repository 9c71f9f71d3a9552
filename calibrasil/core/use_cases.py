# calibrasil/core/use_cases.py
"""
Implementação dos Casos de Uso (Lógica de Negócio) da aplicação.
Esta camada depende apenas das Entidades e Portas (Interfaces) do Core,
garantindo o isolamento da lógica de negócio.
"""
import hmac
import logging
from typing import Callable, List, Optional
from decimal import Decimal
from datetime import datetime, timedelta, timezone

from calibrasil.core.entities import (
    EnderecoEntrega, ItemCarrinho, ItemEstoqueBaixo, ItemPedido, Pedido,
    ResultadoConfirmacaoRecebimento, ResumoConfirmacao, TokenRecebimento,
)
from calibrasil.core.exceptions import (
    AcessoNegadoError,
    ConfiguracaoServidorError,
    DadosInvalidosError,
    FalhaServicoExternoError,
    NaoAutenticadoError,
    PedidoNaoEncontradoError,
    ProdutoNaoEncontradoError,
)
from calibrasil.core.ports import (
    IAuditoriaRepository,
    IEmailService,
    INotificadorEstoque,
    IPapelUsuarioRepository,
    IPedidoRepository,
    IProdutoRepository,
    IResolvedorCredencial,
    ITokenRecebimentoRepository,
    IVarianteRepository,
)
from calibrasil.core import tokens

logger = logging.getLogger(__name__)

LIMITE_ESTOQUE_BAIXO = 5
PAPEL_ADMIN = 'admin'


def _agora_utc() -> datetime:
    return datetime.now(timezone.utc)


# ====================================================================
# 1. CHECKOUT
# ====================================================================

class CriarPedidoUseCase:
    """
    Transforma um carrinho proposto pelo cliente em um pedido com preços
    autoritativos: revalida cada item no catálogo, persiste pedido e itens
    e, depois do commit, verifica o estoque das variantes.
    """
    def __init__(self,
                 produto_repo: IProdutoRepository,
                 pedido_repo: IPedidoRepository,
                 variante_repo: IVarianteRepository,
                 notificador_estoque: INotificadorEstoque,
                 limite_estoque: int = LIMITE_ESTOQUE_BAIXO):
        self.produto_repo = produto_repo
        self.pedido_repo = pedido_repo
        self.variante_repo = variante_repo
        self.notificador_estoque = notificador_estoque
        self.limite_estoque = limite_estoque

    def executar(
        self,
        itens: List[ItemCarrinho],
        email: Optional[str],
        endereco_entrega: Optional[EnderecoEntrega],
        telefone: Optional[str] = None,
        usuario_id: Optional[str] = None,
        total_cliente: Optional[Decimal] = None,
        frete: Optional[Decimal] = None,
        forma_pagamento: Optional[str] = None,
    ) -> Pedido:
        logger.info(
            "[CREATE-ORDER] Pedido recebido: %s itens, email=%s, telefone=%s, endereco=%s, pagamento=%s",
            len(itens or []), bool(email), bool(telefone), bool(endereco_entrega), forma_pagamento,
        )
        self._validar(itens, email, endereco_entrega)
        frete = Decimal(frete) if frete is not None else Decimal('0')
        if frete < 0:
            raise DadosInvalidosError("Valor de frete inválido")

        # 1. Preços reais do catálogo (nunca os do cliente)
        produto_ids = sorted({item.produto_id for item in itens})
        produtos = {p.id: p for p in self.produto_repo.buscar_por_ids(produto_ids)}
        if len(produtos) != len(produto_ids):
            logger.error(
                "[CREATE-ORDER] Divergência de produtos: solicitados=%s encontrados=%s",
                len(produto_ids), len(produtos),
            )
            raise ProdutoNaoEncontradoError()

        itens_pedido = [
            ItemPedido(
                produto_id=item.produto_id,
                nome_produto=produtos[item.produto_id].nome,
                preco_unitario=produtos[item.produto_id].preco,
                quantidade=item.quantidade,
            )
            for item in itens
        ]
        subtotal = sum((item.subtotal for item in itens_pedido), Decimal('0'))
        total = subtotal + frete

        if total_cliente is not None and Decimal(total_cliente) != total:
            logger.warning(
                "[CREATE-ORDER] Total do cliente diverge do calculado: cliente=%s calculado=%s frete=%s",
                total_cliente, total, frete,
            )

        # 2. Pedido e itens (rollback compensatório se os itens falharem)
        pedido = self.pedido_repo.inserir(Pedido(
            total=total,
            endereco_entrega=endereco_entrega.to_dict(),
            forma_pagamento=forma_pagamento or 'pending',
            usuario_id=usuario_id,
            email_convidado=None if usuario_id else email,
            telefone=telefone or None,
        ))
        logger.info("[CREATE-ORDER] Pedido criado: %s", pedido.id)

        try:
            self.pedido_repo.inserir_itens(pedido.id, itens_pedido)
        except Exception as e:
            logger.error("[CREATE-ORDER] Erro ao criar itens do pedido %s: %s", pedido.id, e)
            self._desfazer_pedido(pedido.id)
            raise FalhaServicoExternoError("Erro ao criar itens do pedido") from e

        pedido.itens = itens_pedido

        # 3. Alerta de estoque (melhor esforço, nunca falha o pedido)
        self._verificar_estoque(produto_ids)

        logger.info("[CREATE-ORDER] Pedido concluído: %s", pedido.id)
        return pedido

    def _validar(self, itens, email, endereco_entrega):
        if not itens:
            raise DadosInvalidosError("Carrinho vazio")
        if not email:
            raise DadosInvalidosError("Email é obrigatório")
        if endereco_entrega is None:
            raise DadosInvalidosError("Endereço de entrega é obrigatório")
        if not endereco_entrega.campos_preenchidos():
            raise DadosInvalidosError("Todos os campos do endereço são obrigatórios")
        for item in itens:
            if not item.produto_id:
                raise DadosInvalidosError("Item do carrinho sem identificador de produto")
            if isinstance(item.quantidade, bool) or not isinstance(item.quantidade, int) or item.quantidade < 1:
                raise DadosInvalidosError(f"Quantidade inválida para o produto {item.produto_id}")

    def _desfazer_pedido(self, pedido_id: str):
        try:
            self.pedido_repo.deletar(pedido_id)
        except Exception:
            # Sem transação entre as duas escritas: o pedido pode ficar órfão.
            logger.exception("[CREATE-ORDER] Falha no rollback do pedido %s", pedido_id)

    def _verificar_estoque(self, produto_ids: List[str]):
        try:
            variantes = self.variante_repo.listar_por_produtos(produto_ids)
            itens_baixos = [
                variante.to_item_estoque_baixo()
                for variante in variantes
                if variante.quantidade_estoque <= self.limite_estoque
            ]
            if itens_baixos:
                logger.info("[CREATE-ORDER] %s itens com estoque baixo, enviando alerta", len(itens_baixos))
                self.notificador_estoque.notificar(itens_baixos)
                logger.info("[CREATE-ORDER] Alerta de estoque baixo enviado")
        except Exception:
            logger.exception("[CREATE-ORDER] Erro ao verificar estoque baixo")


# ====================================================================
# 2. CONFIRMAÇÃO DO PEDIDO (LINK ASSINADO)
# ====================================================================

class ConsultarConfirmacaoPedidoUseCase:
    """Verifica o token HMAC do link e devolve um resumo do pedido sem dados sensíveis."""

    def __init__(self, pedido_repo: IPedidoRepository, segredo: Optional[str]):
        self.pedido_repo = pedido_repo
        self.segredo = segredo

    def executar(self, pedido_id: Optional[str], token: Optional[str]) -> ResumoConfirmacao:
        if not pedido_id:
            raise DadosInvalidosError("order_id is required")
        if not token:
            raise DadosInvalidosError("token is required")
        if not self.segredo:
            logger.error("[GET-ORDER-CONFIRMATION] INTERNAL_API_SECRET não configurado")
            raise ConfiguracaoServidorError()

        if not tokens.token_confirmacao_valido(pedido_id, token, self.segredo):
            logger.info("[GET-ORDER-CONFIRMATION] Token inválido para o pedido %s", pedido_id)
            raise AcessoNegadoError("Invalid or expired token")

        pedido = self.pedido_repo.buscar_resumo(pedido_id)
        if pedido is None:
            logger.info("[GET-ORDER-CONFIRMATION] Pedido não encontrado: %s", pedido_id)
            raise PedidoNaoEncontradoError()

        logger.info(
            "[GET-ORDER-CONFIRMATION] Pedido encontrado: %s status=%s pagamento=%s",
            pedido.id, pedido.status, pedido.status_pagamento,
        )
        return ResumoConfirmacao(
            id=pedido.id,
            status=pedido.status,
            status_pagamento=pedido.status_pagamento,
            total=pedido.total,
            criado_em=pedido.criado_em,
            forma_pagamento=pedido.forma_pagamento,
            email_mascarado=tokens.mascarar_email(pedido.email_convidado),
        )


# ====================================================================
# 3. ALERTA DE ESTOQUE BAIXO
# ====================================================================

class NotificarEstoqueBaixoUseCase:
    """
    Envia o alerta de estoque baixo para a equipe de operações.

    Aceita a chave de serviço (chamadas internas) ou a credencial de um
    usuário com papel `admin`.
    """
    def __init__(self,
                 email_service: IEmailService,
                 resolvedor_credencial: IResolvedorCredencial,
                 papel_repo: IPapelUsuarioRepository,
                 chave_servico: Optional[str]):
        self.email_service = email_service
        self.resolvedor_credencial = resolvedor_credencial
        self.papel_repo = papel_repo
        self.chave_servico = chave_servico

    def autorizar(self, cabecalho_autorizacao: Optional[str]) -> None:
        if not cabecalho_autorizacao:
            logger.error("[LOW-STOCK] Cabeçalho Authorization ausente")
            raise NaoAutenticadoError()

        credencial = cabecalho_autorizacao.replace('Bearer ', '', 1).strip()
        if not credencial:
            raise NaoAutenticadoError()

        if self.chave_servico and hmac.compare_digest(
            credencial.encode('utf-8'), self.chave_servico.encode('utf-8')
        ):
            return

        usuario_id = self.resolvedor_credencial.resolver_usuario_id(credencial)
        if usuario_id is None:
            logger.error("[LOW-STOCK] Credencial de usuário inválida")
            raise NaoAutenticadoError()

        if self.papel_repo.buscar_papel(usuario_id) != PAPEL_ADMIN:
            logger.error("[LOW-STOCK] Usuário %s sem permissão de admin", usuario_id)
            raise AcessoNegadoError("Forbidden - Admin role required")

    def executar(self, cabecalho_autorizacao: Optional[str], itens: List[ItemEstoqueBaixo]) -> dict:
        self.autorizar(cabecalho_autorizacao)
        return self.enviar(itens)

    def enviar(self, itens: List[ItemEstoqueBaixo]) -> dict:
        """Envia o alerta. Quem chama já deve ter passado por `autorizar`."""
        if not itens:
            return {'success': True, 'message': "No low stock items to report"}

        logger.info("[LOW-STOCK] Enviando alerta para %s itens", len(itens))
        resultado = self.email_service.enviar_alerta_estoque_baixo(itens)
        logger.info("[LOW-STOCK] E-mail enviado")
        return {'success': True, 'emailResult': resultado}


# ====================================================================
# 4. CONFIRMAÇÃO DE RECEBIMENTO
# ====================================================================

class EmitirTokenRecebimentoUseCase:
    """Gera (ou regenera) o token de uso único do link "recebi meu pedido"."""

    def __init__(self,
                 pedido_repo: IPedidoRepository,
                 token_repo: ITokenRecebimentoRepository,
                 validade: timedelta = timedelta(days=7),
                 relogio: Callable[[], datetime] = _agora_utc):
        self.pedido_repo = pedido_repo
        self.token_repo = token_repo
        self.validade = validade
        self.relogio = relogio

    def executar(self, pedido_id: str) -> str:
        if self.pedido_repo.buscar_resumo(pedido_id) is None:
            raise PedidoNaoEncontradoError(f"Pedido {pedido_id} não encontrado.")

        token = tokens.gerar_token_recebimento()
        self.token_repo.salvar(TokenRecebimento(
            pedido_id=pedido_id,
            token_hash=tokens.hash_token(token),
            expira_em=self.relogio() + self.validade,
        ))
        return token


class ConfirmarRecebimentoUseCase:
    """
    Confirma o recebimento a partir do link enviado por e-mail.

    Idempotente: um pedido já entregue responde `already_confirmed` sem
    revalidar o token, para que links antigos continuem funcionando.
    Toda tentativa é registrada na auditoria.
    """
    TIPO_ENTIDADE = 'order_confirmation'

    def __init__(self,
                 pedido_repo: IPedidoRepository,
                 token_repo: ITokenRecebimentoRepository,
                 auditoria_repo: IAuditoriaRepository,
                 relogio: Callable[[], datetime] = _agora_utc):
        self.pedido_repo = pedido_repo
        self.token_repo = token_repo
        self.auditoria_repo = auditoria_repo
        self.relogio = relogio

    def executar(self, pedido_id: Optional[str], token: Optional[str],
                 user_agent: Optional[str] = None) -> ResultadoConfirmacaoRecebimento:
        inicio = self.relogio()
        try:
            return self._confirmar(pedido_id, token, user_agent, inicio)
        except Exception as e:
            logger.exception("[CONFIRM-RECEIVED] Erro inesperado")
            return self._resultado('error', 'confirm_attempt_failed', pedido_id, user_agent, {'error': str(e)})

    def _confirmar(self, pedido_id, token, user_agent, inicio):
        if not pedido_id:
            return self._resultado('not_found', 'confirm_attempt_failed', None, user_agent,
                                   {'reason': 'missing_order_id'})
        if not token:
            return self._resultado('invalid_token', 'confirm_attempt_failed', pedido_id, user_agent,
                                   {'reason': 'missing_token'})

        pedido = self.pedido_repo.buscar_resumo(pedido_id)
        if pedido is None:
            return self._resultado('not_found', 'confirm_attempt_failed', pedido_id, user_agent,
                                   {'reason': 'order_not_found'})

        if pedido.ja_entregue:
            logger.info("[CONFIRM-RECEIVED] Pedido %s já confirmado em %s", pedido_id, pedido.recebido_em)
            return self._resultado('already_confirmed', 'confirm_already', pedido_id, user_agent)

        erro_token = self._validar_token(pedido_id, token, inicio)
        if erro_token:
            status, codigo = erro_token
            return self._resultado(status, 'confirm_attempt_failed', pedido_id, user_agent,
                                   {'token_error': codigo})

        if not self.token_repo.consumir_e_marcar_entregue(pedido_id, inicio):
            return self._resultado('used', 'confirm_attempt_failed', pedido_id, user_agent,
                                   {'token_error': 'token_already_used'})

        duracao_ms = int((self.relogio() - inicio).total_seconds() * 1000)
        logger.info("[CONFIRM-RECEIVED] Pedido %s confirmado em %sms", pedido_id, duracao_ms)
        return self._resultado('confirmed', 'confirm_success', pedido_id, user_agent,
                               {'duration_ms': duracao_ms})

    def _validar_token(self, pedido_id, token, agora):
        registro = self.token_repo.buscar_por_pedido(pedido_id)
        if registro is None:
            return 'invalid_token', 'token_not_found'
        if registro.usado_em is not None:
            return 'used', 'token_already_used'
        if registro.expirado(agora):
            return 'expired', 'token_expired'
        if not hmac.compare_digest(registro.token_hash, tokens.hash_token(token)):
            return 'invalid_token', 'token_invalid'
        return None

    def _resultado(self, status, acao, pedido_id, user_agent, metadados=None):
        self._auditar(acao, pedido_id, status, user_agent, metadados or {})
        return ResultadoConfirmacaoRecebimento(status)

    def _auditar(self, acao, pedido_id, status, user_agent, metadados):
        try:
            self.auditoria_repo.registrar(
                acao=acao,
                tipo_entidade=self.TIPO_ENTIDADE,
                entidade_id=pedido_id,
                user_agent=(user_agent or '')[:500] or None,
                metadados={'status': status, **metadados, 'timestamp': self.relogio().isoformat()},
            )
        except Exception:
            logger.exception("[CONFIRM-RECEIVED] Falha ao registrar auditoria")
