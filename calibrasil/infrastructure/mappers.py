"""
Mapeadores (Mappers) para converter entre:
1. Modelos do Django ORM
2. Entidades de Domínio (calibrasil.core.entities)
"""
from typing import Any, Optional, Type
from django.db import models
from django.apps import apps

from calibrasil.core.entities import (
    ProdutoPreco as ProdutoPrecoEntity,
    VarianteEstoque as VarianteEstoqueEntity,
    Pedido as PedidoEntity,
    ItemPedido as ItemPedidoEntity,
    TokenRecebimento as TokenRecebimentoEntity,
)


# ====================================================================
# Uso de apps.get_model para evitar dependências circulares
# ====================================================================

def get_model(app_label: str, model_name: str):
    """Retorna um modelo do Django de forma segura (lazy loading)."""
    return apps.get_model(app_label, model_name)


def _id_str(valor) -> Optional[str]:
    return str(valor) if valor is not None else None


# ====================================================================
# MAPPERS DO CATÁLOGO
# ====================================================================

class ProdutoMapper:

    @staticmethod
    def to_entity(model: Any) -> Optional[ProdutoPrecoEntity]:
        if not model: return None
        return ProdutoPrecoEntity(id=str(model.id), nome=model.nome, preco=model.preco)


class VarianteMapper:
    """Variante + nome do produto (exige `select_related('produto')`)."""

    @staticmethod
    def to_entity(model: Any) -> Optional[VarianteEstoqueEntity]:
        if not model: return None
        return VarianteEstoqueEntity(
            produto_id=str(model.produto_id),
            nome_produto=model.produto.nome,
            quantidade_estoque=model.quantidade_estoque,
            cor=model.cor,
            modelo=model.modelo,
        )


# ====================================================================
# MAPPERS DE PEDIDO
# ====================================================================

class ItemPedidoMapper:

    @classmethod
    def model_class(cls) -> Type[models.Model]:
        return get_model('infrastructure', 'ItemPedido')

    @staticmethod
    def to_entity(model: Any) -> Optional[ItemPedidoEntity]:
        if not model: return None
        return ItemPedidoEntity(
            produto_id=str(model.produto_id),
            nome_produto=model.nome_produto,
            preco_unitario=model.preco,
            quantidade=model.quantidade,
            pedido_id=str(model.pedido_id),
        )

    @classmethod
    def to_model(cls, entity: ItemPedidoEntity, pedido_id: str) -> Any:
        """Snapshot do item: nome e preço copiados, não lidos via FK depois."""
        return cls.model_class()(
            pedido_id=pedido_id,
            produto_id=entity.produto_id,
            nome_produto=entity.nome_produto,
            preco=entity.preco_unitario,
            quantidade=entity.quantidade,
        )


class PedidoMapper:

    @classmethod
    def model_class(cls) -> Type[models.Model]:
        return get_model('infrastructure', 'Pedido')

    @staticmethod
    def to_entity(model: Any, com_itens: bool = False) -> Optional[PedidoEntity]:
        """
        Converte Pedido Model para Pedido Entity.
        Com `com_itens=False` funciona sobre querysets com `.only(...)`.
        """
        if not model: return None
        itens = [ItemPedidoMapper.to_entity(item) for item in model.itens.all()] if com_itens else []
        return PedidoEntity(
            id=str(model.id),
            total=model.total,
            endereco_entrega=model.endereco_entrega if com_itens else {},
            forma_pagamento=model.forma_pagamento,
            status=model.status,
            status_pagamento=model.status_pagamento,
            usuario_id=_id_str(model.usuario_id) if com_itens else None,
            email_convidado=model.email_convidado,
            telefone=model.telefone if com_itens else None,
            itens=itens,
            criado_em=model.criado_em,
            recebido_em=model.recebido_em,
        )

    @classmethod
    def to_model(cls, entity: PedidoEntity) -> Any:
        return cls.model_class()(
            usuario_id=entity.usuario_id,
            email_convidado=entity.email_convidado,
            telefone=entity.telefone,
            total=entity.total,
            status=entity.status,
            status_pagamento=entity.status_pagamento,
            forma_pagamento=entity.forma_pagamento,
            endereco_entrega=entity.endereco_entrega,
        )


# ====================================================================
# MAPPER DO TOKEN DE RECEBIMENTO
# ====================================================================

class TokenRecebimentoMapper:

    @staticmethod
    def to_entity(model: Any) -> Optional[TokenRecebimentoEntity]:
        if not model: return None
        return TokenRecebimentoEntity(
            pedido_id=str(model.pedido_id),
            token_hash=model.token_hash,
            expira_em=model.expira_em,
            usado_em=model.usado_em,
        )
