# calibrasil/core/ports.py
"""
Definição das Portas (Interfaces/Protocolos) da Arquitetura Limpa.

Estes protocolos definem o contrato que a camada de Infraestrutura (Repositorios, Gateways)
DEVE seguir para se conectar à camada Core (Casos de Uso).
"""

from typing import Protocol, List, Optional, Iterable
from abc import abstractmethod
from datetime import datetime

from calibrasil.core.entities import (
    Pedido, ItemPedido, ProdutoPreco, VarianteEstoque, ItemEstoqueBaixo, TokenRecebimento
)


# ====================================================================
# 1. REPOSITÓRIOS (Portas de Persistência)
# ====================================================================

class IProdutoRepository(Protocol):
    """Leitura do catálogo: preço e nome autoritativos."""

    @abstractmethod
    def buscar_por_ids(self, produto_ids: Iterable[str]) -> List[ProdutoPreco]: ...


class IPedidoRepository(Protocol):
    """Persistência de Pedidos e de seus itens."""

    @abstractmethod
    def inserir(self, pedido: Pedido) -> Pedido:
        """Grava a linha do pedido e devolve a entidade com `id` e `criado_em`."""
        ...

    @abstractmethod
    def inserir_itens(self, pedido_id: str, itens: List[ItemPedido]) -> None: ...

    @abstractmethod
    def deletar(self, pedido_id: str) -> None: ...

    @abstractmethod
    def buscar_resumo(self, pedido_id: str) -> Optional[Pedido]:
        """Projeção mínima do pedido (sem endereço e sem itens). None se não existir."""
        ...


class IVarianteRepository(Protocol):
    """Leitura do estoque por variante (cor/modelo)."""

    @abstractmethod
    def listar_por_produtos(self, produto_ids: Iterable[str]) -> List[VarianteEstoque]: ...


class IPapelUsuarioRepository(Protocol):

    @abstractmethod
    def buscar_papel(self, usuario_id: str) -> Optional[str]: ...


class ITokenRecebimentoRepository(Protocol):
    """Tokens de uso único do link de confirmação de recebimento."""

    @abstractmethod
    def salvar(self, token: TokenRecebimento) -> TokenRecebimento:
        """Cria ou substitui o token do pedido (zera `usado_em`)."""
        ...

    @abstractmethod
    def buscar_por_pedido(self, pedido_id: str) -> Optional[TokenRecebimento]: ...

    @abstractmethod
    def consumir_e_marcar_entregue(self, pedido_id: str, agora: datetime) -> bool:
        """
        Marca o token como usado e o pedido como entregue, atomicamente.
        Retorna False se o token já havia sido consumido.
        """
        ...


class IAuditoriaRepository(Protocol):

    @abstractmethod
    def registrar(self, acao: str, tipo_entidade: str, entidade_id: Optional[str],
                  user_agent: Optional[str], metadados: dict) -> None: ...


# ====================================================================
# 2. GATEWAYS (Portas de Serviços Externos)
# ====================================================================

class IEmailService(Protocol):
    """Protocolo para o provedor de e-mails transacionais."""

    @abstractmethod
    def enviar_alerta_estoque_baixo(self, itens: List[ItemEstoqueBaixo]) -> dict:
        """Envia o alerta para a equipe de operações. Retorna a resposta do provedor."""
        ...


class INotificadorEstoque(Protocol):
    """Canal usado pelo checkout para disparar o alerta de estoque baixo."""

    @abstractmethod
    def notificar(self, itens: List[ItemEstoqueBaixo]) -> None: ...


class IResolvedorCredencial(Protocol):
    """Resolve uma credencial de usuário final (bearer) para o ID do usuário."""

    @abstractmethod
    def resolver_usuario_id(self, credencial: str) -> Optional[str]: ...


class ILimitadorTaxa(Protocol):
    """Contador por janela fixa, chaveado pela identidade do cliente."""

    @abstractmethod
    def permitir(self, chave: str) -> bool: ...
