from dataclasses import dataclass, field
from decimal import Decimal
from datetime import datetime
from typing import List, Optional, Dict

# ====================================================================
# ENTIDADES CORE
# Representam os objetos de negócio puros.
# ====================================================================

STATUS_PENDENTE = 'pending'
STATUS_ENTREGUE = 'delivered'
PAGAMENTO_PENDENTE = 'pending'


@dataclass
class ItemCarrinho:
    """Linha do carrinho proposta pelo cliente (preço nunca é confiável)."""
    produto_id: str
    quantidade: int


@dataclass
class EnderecoEntrega:
    """Endereço de entrega estruturado enviado no checkout."""
    nome: str
    sobrenome: str
    endereco: str
    cidade: str
    cep: str

    def campos_preenchidos(self) -> bool:
        return all([self.nome, self.sobrenome, self.endereco, self.cidade, self.cep])

    def to_dict(self) -> Dict[str, str]:
        """Formato persistido (o mesmo recebido pela API)."""
        return {
            'firstName': self.nome,
            'lastName': self.sobrenome,
            'address': self.endereco,
            'city': self.cidade,
            'zip': self.cep,
        }


@dataclass
class ProdutoPreco:
    """Preço e nome autoritativos de um produto, lidos do catálogo."""
    id: str
    nome: str
    preco: Decimal


@dataclass
class ItemPedido:
    """Snapshot de um item no momento da compra (imutável)."""
    produto_id: str
    nome_produto: str
    preco_unitario: Decimal
    quantidade: int
    pedido_id: Optional[str] = None

    @property
    def subtotal(self) -> Decimal:
        return self.preco_unitario * self.quantidade


@dataclass
class Pedido:
    """Entidade do Pedido de Venda."""
    total: Decimal
    endereco_entrega: Dict[str, str]
    forma_pagamento: str = 'pending'
    status: str = STATUS_PENDENTE
    status_pagamento: str = PAGAMENTO_PENDENTE
    usuario_id: Optional[str] = None
    email_convidado: Optional[str] = None
    telefone: Optional[str] = None
    itens: List[ItemPedido] = field(default_factory=list)
    id: Optional[str] = None
    criado_em: Optional[datetime] = None
    recebido_em: Optional[datetime] = None

    @property
    def ja_entregue(self) -> bool:
        return self.status == STATUS_ENTREGUE and self.recebido_em is not None


@dataclass
class ResumoConfirmacao:
    """Projeção do pedido exibida a quem abriu o link de confirmação."""
    id: str
    status: str
    status_pagamento: str
    total: Decimal
    criado_em: datetime
    forma_pagamento: str
    email_mascarado: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'status': self.status,
            'payment_status': self.status_pagamento,
            'total': self.total,
            'created_at': self.criado_em,
            'payment_method': self.forma_pagamento,
            'masked_email': self.email_mascarado,
        }


@dataclass
class ItemEstoqueBaixo:
    """Variante de produto com estoque no limite ou abaixo dele."""
    nome_produto: str
    produto_id: str
    estoque_atual: int
    cor: Optional[str] = None
    modelo: Optional[str] = None

    @property
    def critico(self) -> bool:
        return self.estoque_atual <= 2

    def to_payload(self) -> dict:
        return {
            'productName': self.nome_produto,
            'productId': self.produto_id,
            'color': self.cor,
            'model': self.modelo,
            'currentStock': self.estoque_atual,
        }


@dataclass
class VarianteEstoque:
    """Combinação cor/modelo de um produto com sua quantidade em estoque."""
    produto_id: str
    nome_produto: str
    quantidade_estoque: int
    cor: Optional[str] = None
    modelo: Optional[str] = None

    def to_item_estoque_baixo(self) -> ItemEstoqueBaixo:
        return ItemEstoqueBaixo(
            nome_produto=self.nome_produto,
            produto_id=self.produto_id,
            estoque_atual=self.quantidade_estoque,
            cor=self.cor,
            modelo=self.modelo,
        )


@dataclass
class TokenRecebimento:
    """Token de uso único do link "recebi meu pedido" (só o hash é guardado)."""
    pedido_id: str
    token_hash: str
    expira_em: datetime
    usado_em: Optional[datetime] = None

    def expirado(self, agora: datetime) -> bool:
        return self.expira_em < agora


@dataclass
class ResultadoConfirmacaoRecebimento:
    """Resposta padronizada do fluxo de confirmação de recebimento."""
    status: str

    MENSAGENS = {
        'confirmed': "Recebimento confirmado com sucesso! Obrigado por comprar conosco.",
        'already_confirmed': "Este pedido já foi confirmado anteriormente.",
        'invalid_token': "O link de confirmação é inválido. Por favor, use o link mais recente do seu e-mail.",
        'expired': "O link de confirmação expirou. Entre em contato conosco se precisar de ajuda.",
        'used': "Este link já foi utilizado. O pedido está confirmado.",
        'not_found': "Pedido não encontrado. Verifique se o link está correto.",
        'error': "Ocorreu um erro inesperado. Por favor, tente novamente ou entre em contato.",
    }

    @property
    def ok(self) -> bool:
        return self.status in ('confirmed', 'already_confirmed', 'used')

    @property
    def mensagem(self) -> str:
        return self.MENSAGENS[self.status]

    def to_dict(self) -> dict:
        return {'ok': self.ok, 'status': self.status, 'message_pt': self.mensagem}
