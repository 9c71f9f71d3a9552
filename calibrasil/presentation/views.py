import logging

from drf_spectacular.utils import OpenApiParameter, extend_schema, inline_serializer
from rest_framework import serializers, status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.authentication import JWTAuthentication

from calibrasil.core import dependency_injection
from calibrasil.core.exceptions import (
    AcessoNegadoError,
    BaseErroCore,
    ConfiguracaoServidorError,
    DadosInvalidosError,
    FalhaServicoExternoError,
    LimiteRequisicoesExcedidoError,
    NaoAutenticadoError,
    PedidoNaoEncontradoError,
    ProdutoNaoEncontradoError,
)
from .autenticacao import identificar_cliente
from .serializers import (
    AlertaEstoqueBaixoSerializer,
    ConfirmacaoPedidoSerializer,
    CriarPedidoSerializer,
    ResumoPedidoSerializer,
    primeira_mensagem_erro,
)

logger = logging.getLogger(__name__)


# ====================================================================
# VIEWS: Orquestram a requisição, a execução dos casos de uso e a resposta.
# ====================================================================

STATUS_POR_ERRO = {
    DadosInvalidosError: status.HTTP_400_BAD_REQUEST,
    ProdutoNaoEncontradoError: status.HTTP_400_BAD_REQUEST,
    LimiteRequisicoesExcedidoError: status.HTTP_429_TOO_MANY_REQUESTS,
    NaoAutenticadoError: status.HTTP_401_UNAUTHORIZED,
    AcessoNegadoError: status.HTTP_403_FORBIDDEN,
    PedidoNaoEncontradoError: status.HTTP_404_NOT_FOUND,
    ConfiguracaoServidorError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    FalhaServicoExternoError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class EndpointPublicoAPIView(APIView):
    """
    Base dos endpoints chamados pela loja: sem sessão/CSRF, erros do Core
    convertidos em JSON com o status HTTP correspondente.
    """
    authentication_classes = []
    permission_classes = [AllowAny]
    tag_log = ''
    mensagem_erro_inesperado = "Internal server error"

    def corpo_erro(self, mensagem: str) -> dict:
        return {'error': mensagem}

    def resposta_erro(self, erro: BaseErroCore) -> Response:
        codigo = STATUS_POR_ERRO.get(type(erro), status.HTTP_500_INTERNAL_SERVER_ERROR)
        return Response(self.corpo_erro(erro.message), status=codigo)

    def resposta_erro_inesperado(self) -> Response:
        logger.exception("%s Erro inesperado", self.tag_log)
        return Response(self.corpo_erro(self.mensagem_erro_inesperado),
                        status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    def verificar_limite(self, limitador, request, mensagem=None):
        cliente = identificar_cliente(request)
        if not limitador.permitir(cliente):
            logger.warning("%s Limite de requisições excedido: %s", self.tag_log, cliente)
            raise LimiteRequisicoesExcedidoError(mensagem)

    def validar(self, serializer):
        if not serializer.is_valid():
            raise DadosInvalidosError(primeira_mensagem_erro(serializer.errors))
        return serializer


class CriarPedidoAPIView(EndpointPublicoAPIView):
    """
    Checkout: cria o pedido com preços do catálogo.
    Limite de 5 requisições por minuto por IP.
    """
    # Convidado sem cabeçalho; com bearer, o pedido fica na conta do usuário
    authentication_classes = [JWTAuthentication]
    tag_log = '[CREATE-ORDER]'
    mensagem_erro_inesperado = "Erro ao criar pedido"

    def corpo_erro(self, mensagem: str) -> dict:
        return {'success': False, 'error': mensagem}

    @extend_schema(
        request=CriarPedidoSerializer,
        responses={200: inline_serializer('PedidoCriado', {
            'success': serializers.BooleanField(),
            'order_id': serializers.CharField(),
            'message': serializers.CharField(),
        })},
    )
    def post(self, request):
        try:
            self.verificar_limite(dependency_injection.limitador_pedidos, request)
            serializer = self.validar(CriarPedidoSerializer(data=request.data))
            dados = serializer.validated_data

            pedido = dependency_injection.get_criar_pedido_use_case().executar(
                itens=serializer.to_itens(),
                email=dados.get('email'),
                endereco_entrega=serializer.to_endereco(),
                telefone=dados.get('phone'),
                usuario_id=str(request.user.pk) if request.user.is_authenticated else None,
                total_cliente=dados.get('total'),
                frete=dados.get('shipping'),
                forma_pagamento=dados.get('payment_method'),
            )
        except BaseErroCore as e:
            logger.error("%s %s", self.tag_log, e.message)
            return self.resposta_erro(e)
        except Exception:
            return self.resposta_erro_inesperado()

        return Response(
            {'success': True, 'order_id': pedido.id, 'message': 'Pedido criado com sucesso!'},
            status=status.HTTP_200_OK,
        )


class ConfirmacaoPedidoAPIView(EndpointPublicoAPIView):
    """
    Página "pedido confirmado": devolve o resumo do pedido para quem tem o
    link assinado. Limite de 10 requisições por minuto por IP.
    """
    tag_log = '[GET-ORDER-CONFIRMATION]'

    @extend_schema(
        request=ConfirmacaoPedidoSerializer,
        responses={200: inline_serializer('ConfirmacaoPedido', {'order': ResumoPedidoSerializer()})},
    )
    def post(self, request):
        try:
            self.verificar_limite(dependency_injection.limitador_confirmacao, request,
                                  "Too many requests. Please try again later.")
            serializer = self.validar(ConfirmacaoPedidoSerializer(data=request.data))

            resumo = dependency_injection.get_consultar_confirmacao_use_case().executar(
                pedido_id=serializer.validated_data.get('order_id'),
                token=serializer.validated_data.get('token'),
            )
        except BaseErroCore as e:
            return self.resposta_erro(e)
        except Exception:
            return self.resposta_erro_inesperado()

        return Response({'order': ResumoPedidoSerializer(resumo.to_dict()).data}, status=status.HTTP_200_OK)


class AlertaEstoqueBaixoAPIView(EndpointPublicoAPIView):
    """
    Envia o e-mail de estoque baixo. Aceita a chave de serviço (chamada
    interna do checkout) ou o JWT de um usuário admin.
    """
    tag_log = '[LOW-STOCK]'

    @extend_schema(request=AlertaEstoqueBaixoSerializer, responses={200: dict})
    def post(self, request):
        caso_de_uso = dependency_injection.get_notificar_estoque_baixo_use_case()
        try:
            caso_de_uso.autorizar(request.META.get('HTTP_AUTHORIZATION'))
            serializer = self.validar(AlertaEstoqueBaixoSerializer(data=request.data))
            resultado = caso_de_uso.enviar(serializer.to_itens())
        except BaseErroCore as e:
            return self.resposta_erro(e)
        except Exception:
            return self.resposta_erro_inesperado()

        return Response(resultado, status=status.HTTP_200_OK)


class ConfirmarRecebimentoAPIView(EndpointPublicoAPIView):
    """
    Link "recebi meu pedido" enviado por e-mail.
    POST com `orderId`/`token` no corpo ou GET com os mesmos parâmetros na URL.
    """
    tag_log = '[CONFIRM-RECEIVED]'

    def _responder(self, request, pedido_id, token):
        resultado = dependency_injection.get_confirmar_recebimento_use_case().executar(
            pedido_id=pedido_id,
            token=token,
            user_agent=request.META.get('HTTP_USER_AGENT'),
        )
        codigo = status.HTTP_200_OK if resultado.ok else status.HTTP_400_BAD_REQUEST
        return Response(resultado.to_dict(), status=codigo)

    @extend_schema(parameters=[
        OpenApiParameter('orderId', str, OpenApiParameter.QUERY),
        OpenApiParameter('token', str, OpenApiParameter.QUERY),
    ])
    def get(self, request):
        return self._responder(request, request.query_params.get('orderId'), request.query_params.get('token'))

    def post(self, request):
        dados = request.data if isinstance(request.data, dict) else {}
        return self._responder(request, dados.get('orderId'), dados.get('token'))
