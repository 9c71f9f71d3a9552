from decimal import Decimal, InvalidOperation
from typing import List, Optional

from rest_framework import serializers

from calibrasil.core.entities import EnderecoEntrega, ItemCarrinho, ItemEstoqueBaixo


def primeira_mensagem_erro(erros) -> str:
    """Extrai a primeira mensagem de `serializer.errors` (dicts e listas aninhados)."""
    if isinstance(erros, dict):
        for chave, valor in erros.items():
            mensagem = primeira_mensagem_erro(valor)
            if mensagem:
                return mensagem if chave == 'non_field_errors' else f"{chave}: {mensagem}"
    elif isinstance(erros, list):
        for valor in erros:
            mensagem = primeira_mensagem_erro(valor)
            if mensagem:
                return mensagem
    elif erros:
        return str(erros)
    return ''


# ====================================================================
# SERIALIZERS PARA O CHECKOUT
# Campos obrigatórios são checados no caso de uso, na ordem das mensagens
# de negócio; aqui só se garante o tipo.
# ====================================================================

class ItemCarrinhoSerializer(serializers.Serializer):
    """Linha do carrinho. Nome e preço enviados pelo cliente são ignorados."""
    id = serializers.CharField(required=False, allow_blank=True, default='')
    quantity = serializers.IntegerField(min_value=1)


class EnderecoEntregaSerializer(serializers.Serializer):
    firstName = serializers.CharField(required=False, allow_blank=True, default='')
    lastName = serializers.CharField(required=False, allow_blank=True, default='')
    address = serializers.CharField(required=False, allow_blank=True, default='')
    city = serializers.CharField(required=False, allow_blank=True, default='')
    zip = serializers.CharField(required=False, allow_blank=True, default='')


class ValorInformativoField(serializers.Field):
    """Número que só vai para o log: valor ilegível vira None em vez de erro."""

    def to_internal_value(self, data):
        try:
            valor = Decimal(str(data))
        except (InvalidOperation, ValueError):
            return None
        return valor if valor.is_finite() else None

    def to_representation(self, value):
        return value


class CriarPedidoSerializer(serializers.Serializer):
    """
    Corpo do POST /create-order.
    `total` é apenas informativo: o servidor recalcula com os preços do catálogo.
    O dono do pedido vem do bearer JWT, nunca do corpo.
    """
    items = ItemCarrinhoSerializer(many=True, required=False)
    email = serializers.EmailField(required=False, allow_blank=True, allow_null=True)
    phone = serializers.CharField(max_length=30, required=False, allow_blank=True, allow_null=True)
    shipping_address = EnderecoEntregaSerializer(required=False, allow_null=True)
    total = ValorInformativoField(required=False, allow_null=True)
    shipping = serializers.DecimalField(max_digits=None, decimal_places=None, min_value=0,
                                        required=False, allow_null=True)
    payment_method = serializers.CharField(max_length=30, required=False, allow_blank=True, allow_null=True)

    def to_itens(self) -> List[ItemCarrinho]:
        return [
            ItemCarrinho(produto_id=item['id'], quantidade=item['quantity'])
            for item in self.validated_data.get('items') or []
        ]

    def to_endereco(self) -> Optional[EnderecoEntrega]:
        dados = self.validated_data.get('shipping_address')
        if dados is None:
            return None
        return EnderecoEntrega(
            nome=dados['firstName'].strip(),
            sobrenome=dados['lastName'].strip(),
            endereco=dados['address'].strip(),
            cidade=dados['city'].strip(),
            cep=dados['zip'].strip(),
        )


# ====================================================================
# SERIALIZERS DE CONFIRMAÇÃO E ESTOQUE
# ====================================================================

class ConfirmacaoPedidoSerializer(serializers.Serializer):
    order_id = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    token = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ResumoPedidoSerializer(serializers.Serializer):
    """Formato da resposta do link de confirmação (usado na documentação da API)."""
    id = serializers.CharField()
    status = serializers.CharField()
    payment_status = serializers.CharField()
    total = serializers.DecimalField(max_digits=10, decimal_places=2, coerce_to_string=False)
    created_at = serializers.DateTimeField()
    payment_method = serializers.CharField()
    masked_email = serializers.CharField(allow_null=True)


class ItemEstoqueBaixoSerializer(serializers.Serializer):
    productName = serializers.CharField()
    productId = serializers.CharField()
    color = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    model = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    currentStock = serializers.IntegerField()


class AlertaEstoqueBaixoSerializer(serializers.Serializer):
    items = ItemEstoqueBaixoSerializer(many=True, required=False)

    def to_itens(self) -> List[ItemEstoqueBaixo]:
        return [
            ItemEstoqueBaixo(
                nome_produto=item['productName'],
                produto_id=item['productId'],
                estoque_atual=item['currentStock'],
                cor=item.get('color') or None,
                modelo=item.get('model') or None,
            )
            for item in self.validated_data.get('items') or []
        ]
