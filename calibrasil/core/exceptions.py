class BaseErroCore(Exception):
    """Classe base para todas as exceções da Camada Core."""
    message = "Erro interno do servidor"

    def __init__(self, message=None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class DadosInvalidosError(BaseErroCore):
    """Erro levantado quando dados obrigatórios estão ausentes ou malformados."""
    message = "Os dados fornecidos são inválidos."


class LimiteRequisicoesExcedidoError(BaseErroCore):
    """Erro levantado quando o cliente excede o limite de requisições da janela."""
    message = "Muitas tentativas. Por favor, aguarde um minuto antes de tentar novamente."


# ===============================================
# ERROS DE PERSISTÊNCIA E ENTIDADE
# ===============================================

class ProdutoNaoEncontradoError(BaseErroCore):
    """
    Erro levantado quando o carrinho referencia um produto que não existe
    no catálogo (carrinho desatualizado ou adulterado).
    """
    message = "Um ou mais produtos não foram encontrados"


class PedidoNaoEncontradoError(BaseErroCore):
    """Erro específico para Pedidos não encontrados."""
    message = "Order not found"


# ===============================================
# ERROS DE AUTENTICAÇÃO E AUTORIZAÇÃO
# ===============================================

class NaoAutenticadoError(BaseErroCore):
    """Credencial ausente ou inválida."""
    message = "Unauthorized"


class AcessoNegadoError(BaseErroCore):
    """Credencial válida, mas sem permissão (token divergente ou papel insuficiente)."""
    message = "Forbidden"


# ===============================================
# ERROS DE SERVIDOR
# ===============================================

class ConfiguracaoServidorError(BaseErroCore):
    """Configuração obrigatória ausente no ambiente (ex: segredo de assinatura)."""
    message = "Server configuration error"


class FalhaServicoExternoError(BaseErroCore):
    """Falha do banco de dados ou do provedor de e-mail."""
    message = "Erro ao comunicar com serviço externo"
