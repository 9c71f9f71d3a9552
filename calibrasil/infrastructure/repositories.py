"""
Camada de Infraestrutura: Implementação dos Repositórios.

Esta camada traduz as operações abstratas definidas nas Portas do Core
em chamadas concretas ao Django ORM. Erros de banco são convertidos em
FalhaServicoExternoError.
"""
import logging
import uuid
from datetime import datetime
from typing import Iterable, List, Optional

from django.apps import apps
from django.db import DatabaseError, transaction

from calibrasil.core.entities import (
    ItemPedido, Pedido, ProdutoPreco, STATUS_ENTREGUE, TokenRecebimento, VarianteEstoque,
)
from calibrasil.core.exceptions import FalhaServicoExternoError
from calibrasil.core.ports import (
    IAuditoriaRepository,
    IPapelUsuarioRepository,
    IPedidoRepository,
    IProdutoRepository,
    ITokenRecebimentoRepository,
    IVarianteRepository,
)

from .mappers import (
    ItemPedidoMapper, PedidoMapper, ProdutoMapper, TokenRecebimentoMapper, VarianteMapper,
)

logger = logging.getLogger(__name__)


# Helper para Lazy Loading
def get_model(app_label, model_name):
    """Busca o modelo Django de forma segura (Lazy Loading)."""
    return apps.get_model(app_label, model_name)


def _uuids_validos(ids: Iterable[str]) -> List[uuid.UUID]:
    """Descarta IDs que não são UUID (nunca existirão na base)."""
    validos = []
    for valor in ids:
        try:
            validos.append(uuid.UUID(str(valor)))
        except (ValueError, AttributeError):
            continue
    return validos


def _uuid_ou_none(valor: str) -> Optional[uuid.UUID]:
    validos = _uuids_validos([valor])
    return validos[0] if validos else None


# ====================================================================
# 1. CATÁLOGO
# ====================================================================

class ProdutoRepositoryDjango(IProdutoRepository):
    """Leitura de preço e nome dos produtos usando o Django ORM."""

    @property
    def ProdutoModel(self):
        return get_model('infrastructure', 'Produto')

    def buscar_por_ids(self, produto_ids: Iterable[str]) -> List[ProdutoPreco]:
        ids = _uuids_validos(produto_ids)
        if not ids:
            return []
        try:
            qs = self.ProdutoModel.objects.filter(pk__in=ids).only('id', 'nome', 'preco')
            return [ProdutoMapper.to_entity(model) for model in qs]
        except DatabaseError as e:
            logger.error("Erro ao buscar produtos: %s", e)
            raise FalhaServicoExternoError("Erro ao validar produtos") from e


class VarianteRepositoryDjango(IVarianteRepository):

    @property
    def VarianteModel(self):
        return get_model('infrastructure', 'VarianteProduto')

    def listar_por_produtos(self, produto_ids: Iterable[str]) -> List[VarianteEstoque]:
        ids = _uuids_validos(produto_ids)
        if not ids:
            return []
        qs = self.VarianteModel.objects.filter(produto_id__in=ids).select_related('produto')
        return [VarianteMapper.to_entity(model) for model in qs]


# ====================================================================
# 2. PEDIDOS
# ====================================================================

class PedidoRepositoryDjango(IPedidoRepository):
    """Implementação do PedidoRepository usando o Django ORM."""

    CAMPOS_RESUMO = (
        'id', 'status', 'status_pagamento', 'total', 'criado_em',
        'forma_pagamento', 'email_convidado', 'recebido_em',
    )

    @property
    def PedidoModel(self):
        return get_model('infrastructure', 'Pedido')

    @property
    def ItemPedidoModel(self):
        return get_model('infrastructure', 'ItemPedido')

    def inserir(self, pedido: Pedido) -> Pedido:
        model = PedidoMapper.to_model(pedido)
        try:
            model.save()
        except (DatabaseError, ValueError) as e:
            logger.error("Erro ao criar pedido: %s", e)
            raise FalhaServicoExternoError("Erro ao criar pedido") from e

        pedido.id = str(model.id)
        pedido.criado_em = model.criado_em
        return pedido

    def inserir_itens(self, pedido_id: str, itens: List[ItemPedido]) -> None:
        """Insere todos os itens ou nenhum."""
        models_itens = [ItemPedidoMapper.to_model(item, pedido_id) for item in itens]
        try:
            with transaction.atomic():
                self.ItemPedidoModel.objects.bulk_create(models_itens)
        except DatabaseError as e:
            raise FalhaServicoExternoError("Erro ao criar itens do pedido") from e

        for item in itens:
            item.pedido_id = pedido_id

    def deletar(self, pedido_id: str) -> None:
        pk = _uuid_ou_none(pedido_id)
        if pk is None:
            return
        try:
            self.PedidoModel.objects.filter(pk=pk).delete()
        except DatabaseError as e:
            raise FalhaServicoExternoError(f"Erro ao remover pedido {pedido_id}") from e

    def buscar_resumo(self, pedido_id: str) -> Optional[Pedido]:
        pk = _uuid_ou_none(pedido_id)
        if pk is None:
            return None
        try:
            model = self.PedidoModel.objects.only(*self.CAMPOS_RESUMO).filter(pk=pk).first()
        except DatabaseError as e:
            logger.error("Erro ao buscar pedido %s: %s", pedido_id, e)
            raise FalhaServicoExternoError("Failed to fetch order") from e
        return PedidoMapper.to_entity(model)

    def buscar_completo(self, pedido_id: str) -> Optional[Pedido]:
        """Pedido com endereço e itens (uso administrativo)."""
        pk = _uuid_ou_none(pedido_id)
        if pk is None:
            return None
        model = self.PedidoModel.objects.prefetch_related('itens').filter(pk=pk).first()
        return PedidoMapper.to_entity(model, com_itens=True)


# ====================================================================
# 3. PAPÉIS DE USUÁRIO
# ====================================================================

class PapelUsuarioRepositoryDjango(IPapelUsuarioRepository):

    @property
    def PapelModel(self):
        return get_model('infrastructure', 'PapelUsuario')

    def buscar_papel(self, usuario_id: str) -> Optional[str]:
        """Retorna 'admin' se o usuário tiver esse papel entre os seus; senão o primeiro."""
        papeis = list(self.PapelModel.objects.filter(usuario_id=usuario_id).values_list('papel', flat=True))
        if not papeis:
            return None
        return 'admin' if 'admin' in papeis else papeis[0]


# ====================================================================
# 4. TOKENS DE RECEBIMENTO E AUDITORIA
# ====================================================================

class TokenRecebimentoRepositoryDjango(ITokenRecebimentoRepository):

    @property
    def TokenModel(self):
        return get_model('infrastructure', 'TokenConfirmacaoPedido')

    @property
    def PedidoModel(self):
        return get_model('infrastructure', 'Pedido')

    def salvar(self, token: TokenRecebimento) -> TokenRecebimento:
        self.TokenModel.objects.update_or_create(
            pedido_id=token.pedido_id,
            defaults={
                'token_hash': token.token_hash,
                'expira_em': token.expira_em,
                'usado_em': None,
            },
        )
        token.usado_em = None
        return token

    def buscar_por_pedido(self, pedido_id: str) -> Optional[TokenRecebimento]:
        pk = _uuid_ou_none(pedido_id)
        if pk is None:
            return None
        return TokenRecebimentoMapper.to_entity(self.TokenModel.objects.filter(pedido_id=pk).first())

    def consumir_e_marcar_entregue(self, pedido_id: str, agora: datetime) -> bool:
        with transaction.atomic():
            # Condicional em usado_em: de dois cliques simultâneos, só um consome.
            consumidos = self.TokenModel.objects.filter(
                pedido_id=pedido_id, usado_em__isnull=True,
            ).update(usado_em=agora)
            if not consumidos:
                return False
            self.PedidoModel.objects.filter(pk=pedido_id).update(
                status=STATUS_ENTREGUE, recebido_em=agora,
            )
        return True


class AuditoriaRepositoryDjango(IAuditoriaRepository):

    @property
    def RegistroModel(self):
        return get_model('infrastructure', 'RegistroAuditoria')

    def registrar(self, acao: str, tipo_entidade: str, entidade_id: Optional[str],
                  user_agent: Optional[str], metadados: dict) -> None:
        self.RegistroModel.objects.create(
            acao=acao,
            tipo_entidade=tipo_entidade,
            entidade_id=entidade_id,
            user_agent=user_agent,
            metadados=metadados,
        )
