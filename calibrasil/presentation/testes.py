import uuid
from decimal import Decimal
from datetime import timedelta
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase
from rest_framework_simplejwt.tokens import AccessToken

from calibrasil.core import dependency_injection
from calibrasil.core.exceptions import FalhaServicoExternoError
from calibrasil.core.tokens import gerar_token_confirmacao, hash_token
from calibrasil.infrastructure.models import (
    PapelUsuario,
    Pedido as PedidoModel,
    Produto,
    RegistroAuditoria,
    TokenConfirmacaoPedido,
    VarianteProduto,
)

SEGREDO = 'segredo-links'
CHAVE_SERVICO = 'chave-servico'
ENVIO_RESEND = 'calibrasil.infrastructure.gateways.resend.Emails.send'


class BaseAPITestCase(APITestCase):

    def setUp(self):
        # Os limitadores vivem no processo: zerados a cada teste
        dependency_injection.limitador_pedidos.resetar()
        dependency_injection.limitador_confirmacao.resetar()

    def criar_pedido_model(self, **kwargs):
        dados = {
            'total': Decimal('210.00'),
            'email_convidado': 'joaozinho@example.com',
            'endereco_entrega': {'firstName': 'João'},
        }
        dados.update(kwargs)
        return PedidoModel.objects.create(**dados)


# ====================================================================
# POST /create-order
# ====================================================================

@override_settings(SERVICE_ROLE_KEY=CHAVE_SERVICO, RESEND_API_KEY='re_teste')
class CriarPedidoAPITest(BaseAPITestCase):

    def setUp(self):
        super().setUp()
        self.url = reverse('create_order')
        self.produto = Produto.objects.create(nome='Biquíni Ipanema', preco=Decimal('100.00'))
        VarianteProduto.objects.create(produto=self.produto, cor='Azul', modelo='P', quantidade_estoque=20)

    def corpo(self, **kwargs):
        dados = {
            'items': [{'id': str(self.produto.id), 'quantity': 2, 'price': 1}],
            'email': 'ana@example.com',
            'phone': '21999990000',
            'shipping_address': {
                'firstName': 'Ana', 'lastName': 'Souza', 'address': 'Rua A, 10',
                'city': 'Rio de Janeiro', 'zip': '22000-000',
            },
            'total': 50,
            'shipping': 10,
            'payment_method': 'pix',
        }
        dados.update(kwargs)
        return dados

    def test_cria_pedido_com_total_recalculado(self):
        response = self.client.post(self.url, self.corpo(), format='json', HTTP_X_FORWARDED_FOR='10.0.0.1')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['message'], 'Pedido criado com sucesso!')

        pedido = PedidoModel.objects.get(pk=response.data['order_id'])
        self.assertEqual(pedido.total, Decimal('210.00'))
        self.assertEqual(pedido.status, 'pending')
        self.assertEqual(pedido.forma_pagamento, 'pix')
        self.assertEqual(pedido.email_convidado, 'ana@example.com')
        self.assertEqual(pedido.endereco_entrega['city'], 'Rio de Janeiro')
        item = pedido.itens.get()
        self.assertEqual(item.preco, Decimal('100.00'))
        self.assertEqual(item.quantidade, 2)

    def test_produto_desconhecido_nao_grava_nada(self):
        itens = [{'id': str(self.produto.id), 'quantity': 1}, {'id': str(uuid.uuid4()), 'quantity': 1}]

        response = self.client.post(self.url, self.corpo(items=itens), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'success': False, 'error': 'Um ou mais produtos não foram encontrados'})
        self.assertEqual(PedidoModel.objects.count(), 0)

    def test_campos_obrigatorios(self):
        response = self.client.post(self.url, self.corpo(items=[]), format='json')
        self.assertEqual(response.data['error'], 'Carrinho vazio')

        response = self.client.post(self.url, self.corpo(shipping_address={'firstName': 'Ana'}), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Todos os campos do endereço são obrigatórios')

    def test_quantidade_invalida(self):
        itens = [{'id': str(self.produto.id), 'quantity': 0}]

        response = self.client.post(self.url, self.corpo(items=itens), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])

    def test_sexta_requisicao_do_mesmo_ip_e_bloqueada(self):
        for _ in range(5):
            response = self.client.post(self.url, {}, format='json', HTTP_X_FORWARDED_FOR='10.0.0.9, 172.16.0.1')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(self.url, {}, format='json', HTTP_X_FORWARDED_FOR='10.0.0.9, 172.16.0.1')
        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertFalse(response.data['success'])
        self.assertIn('aguarde', response.data['error'])

        response = self.client.post(self.url, {}, format='json', HTTP_CF_CONNECTING_IP='10.0.0.10')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_falha_nos_itens_desfaz_o_pedido(self):
        with patch.object(dependency_injection.pedido_repo, 'inserir_itens',
                          side_effect=FalhaServicoExternoError('banco fora')):
            response = self.client.post(self.url, self.corpo(), format='json')

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertFalse(response.data['success'])
        self.assertEqual(PedidoModel.objects.count(), 0)

    def test_user_id_no_corpo_e_ignorado(self):
        for user_id in ('3f1c-uuid-like', '999'):
            response = self.client.post(self.url, self.corpo(user_id=user_id), format='json')

            self.assertEqual(response.status_code, status.HTTP_200_OK)
            pedido = PedidoModel.objects.get(pk=response.data['order_id'])
            self.assertIsNone(pedido.usuario_id)
            self.assertEqual(pedido.email_convidado, 'ana@example.com')

    def test_pedido_de_usuario_logado_usa_o_jwt(self):
        usuario = get_user_model().objects.create_user(username='ana', password='senha-forte-123')
        outro = get_user_model().objects.create_user(username='bia', password='senha-forte-123')
        token = str(AccessToken.for_user(usuario))

        response = self.client.post(self.url, self.corpo(user_id=str(outro.pk)), format='json',
                                    HTTP_AUTHORIZATION=f'Bearer {token}')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        pedido = PedidoModel.objects.get(pk=response.data['order_id'])
        self.assertEqual(pedido.usuario_id, usuario.pk)
        self.assertIsNone(pedido.email_convidado)

    def test_jwt_invalido_no_checkout(self):
        response = self.client.post(self.url, self.corpo(), format='json', HTTP_AUTHORIZATION='Bearer nao.e.jwt')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(PedidoModel.objects.count(), 0)

    def test_total_do_cliente_ilegivel_nao_bloqueia(self):
        response = self.client.post(self.url, self.corpo(total='abc'), format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        pedido = PedidoModel.objects.get(pk=response.data['order_id'])
        self.assertEqual(pedido.total, Decimal('210.00'))

    @patch(ENVIO_RESEND)
    def test_estoque_baixo_envia_alerta(self, send_mock):
        send_mock.return_value = {'id': 'email-1'}
        VarianteProduto.objects.create(produto=self.produto, cor='Rosa', modelo='G', quantidade_estoque=2)

        response = self.client.post(self.url, self.corpo(), format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        send_mock.assert_called_once()
        payload = send_mock.call_args[0][0]
        self.assertEqual(payload['subject'], '⚠️ Alerta: 1 produto(s) com estoque baixo')
        self.assertIn('Cor: Rosa', payload['html'])

    @patch(ENVIO_RESEND)
    def test_falha_no_alerta_nao_afeta_o_pedido(self, send_mock):
        send_mock.side_effect = Exception('resend fora do ar')
        VarianteProduto.objects.create(produto=self.produto, quantidade_estoque=0)

        response = self.client.post(self.url, self.corpo(), format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(PedidoModel.objects.count(), 1)

    def test_preflight_cors(self):
        response = self.client.options(
            self.url,
            HTTP_ORIGIN='https://calibrasil.com',
            HTTP_ACCESS_CONTROL_REQUEST_METHOD='POST',
            HTTP_ACCESS_CONTROL_REQUEST_HEADERS='authorization, x-client-info, apikey, content-type',
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['access-control-allow-origin'], '*')
        self.assertIn('x-client-info', response['access-control-allow-headers'])


# ====================================================================
# POST /get-order-confirmation
# ====================================================================

@override_settings(INTERNAL_API_SECRET=SEGREDO)
class ConfirmacaoPedidoAPITest(BaseAPITestCase):

    def setUp(self):
        super().setUp()
        self.url = reverse('get_order_confirmation')
        self.pedido = self.criar_pedido_model()
        self.pedido_id = str(self.pedido.id)

    def test_token_valido_retorna_resumo(self):
        token = gerar_token_confirmacao(self.pedido_id, SEGREDO)

        response = self.client.post(self.url, {'order_id': self.pedido_id, 'token': token}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        pedido = response.json()['order']
        self.assertEqual(pedido['id'], self.pedido_id)
        self.assertEqual(pedido['total'], 210.0)
        self.assertEqual(pedido['status'], 'pending')
        self.assertEqual(pedido['payment_status'], 'pending')
        self.assertEqual(pedido['payment_method'], 'pending')
        self.assertEqual(pedido['masked_email'], 'joa***@example.com')
        self.assertNotIn('shipping_address', pedido)

    def test_token_invalido_e_proibido_mesmo_para_pedido_inexistente(self):
        for pedido_id in (self.pedido_id, str(uuid.uuid4())):
            response = self.client.post(self.url, {'order_id': pedido_id, 'token': 'f' * 64}, format='json')
            self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
            self.assertEqual(response.data, {'error': 'Invalid or expired token'})

    def test_pedido_inexistente_com_token_valido(self):
        pedido_id = str(uuid.uuid4())
        token = gerar_token_confirmacao(pedido_id, SEGREDO)

        response = self.client.post(self.url, {'order_id': pedido_id, 'token': token}, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data, {'error': 'Order not found'})

    def test_campos_ausentes(self):
        response = self.client.post(self.url, {'token': 'abc'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'error': 'order_id is required'})

        response = self.client.post(self.url, {'order_id': self.pedido_id}, format='json')
        self.assertEqual(response.data, {'error': 'token is required'})

    @override_settings(INTERNAL_API_SECRET='')
    def test_sem_segredo_configurado(self):
        response = self.client.post(self.url, {'order_id': self.pedido_id, 'token': 'abc'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data, {'error': 'Server configuration error'})

    def test_decima_primeira_requisicao_e_bloqueada(self):
        for _ in range(10):
            self.client.post(self.url, {}, format='json', HTTP_X_FORWARDED_FOR='10.1.1.1')

        response = self.client.post(self.url, {}, format='json', HTTP_X_FORWARDED_FOR='10.1.1.1')

        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertEqual(response.data, {'error': 'Too many requests. Please try again later.'})


# ====================================================================
# POST /send-low-stock-email
# ====================================================================

@override_settings(SERVICE_ROLE_KEY=CHAVE_SERVICO, RESEND_API_KEY='re_teste')
class AlertaEstoqueBaixoAPITest(BaseAPITestCase):

    def setUp(self):
        super().setUp()
        self.url = reverse('send_low_stock_email')
        self.corpo = {'items': [
            {'productName': 'Biquíni Ipanema', 'productId': 'p1', 'color': 'Azul', 'model': 'P', 'currentStock': 1},
        ]}

    def criar_usuario(self, username, papel):
        usuario = get_user_model().objects.create_user(username=username, password='senha-forte-123')
        PapelUsuario.objects.create(usuario=usuario, papel=papel)
        return str(AccessToken.for_user(usuario))

    def test_sem_autorizacao(self):
        response = self.client.post(self.url, self.corpo, format='json')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data, {'error': 'Unauthorized'})

    @patch(ENVIO_RESEND)
    def test_chave_de_servico(self, send_mock):
        send_mock.return_value = {'id': 'email-1'}

        response = self.client.post(self.url, self.corpo, format='json', HTTP_AUTHORIZATION=f'Bearer {CHAVE_SERVICO}')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'success': True, 'emailResult': {'id': 'email-1'}})

    @patch(ENVIO_RESEND)
    def test_usuario_admin(self, send_mock):
        send_mock.return_value = {'id': 'email-2'}
        token = self.criar_usuario('arthur', 'admin')

        response = self.client.post(self.url, self.corpo, format='json', HTTP_AUTHORIZATION=f'Bearer {token}')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        send_mock.assert_called_once()

    @patch(ENVIO_RESEND)
    def test_usuario_sem_papel_admin(self, send_mock):
        token = self.criar_usuario('cliente', 'customer')

        response = self.client.post(self.url, self.corpo, format='json', HTTP_AUTHORIZATION=f'Bearer {token}')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data, {'error': 'Forbidden - Admin role required'})
        send_mock.assert_not_called()

    def test_jwt_invalido(self):
        response = self.client.post(self.url, self.corpo, format='json', HTTP_AUTHORIZATION='Bearer nao.e.jwt')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    @patch(ENVIO_RESEND)
    def test_lista_vazia(self, send_mock):
        response = self.client.post(self.url, {'items': []}, format='json', HTTP_AUTHORIZATION=f'Bearer {CHAVE_SERVICO}')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'success': True, 'message': 'No low stock items to report'})
        send_mock.assert_not_called()

    @patch(ENVIO_RESEND)
    def test_erro_do_provedor(self, send_mock):
        send_mock.side_effect = Exception('domain not verified')

        response = self.client.post(self.url, self.corpo, format='json', HTTP_AUTHORIZATION=f'Bearer {CHAVE_SERVICO}')

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data, {'error': 'domain not verified'})


# ====================================================================
# GET/POST /confirm-order-received
# ====================================================================

class ConfirmarRecebimentoAPITest(BaseAPITestCase):

    def setUp(self):
        super().setUp()
        self.url = reverse('confirm_order_received')
        self.pedido = self.criar_pedido_model(status='shipped')
        self.pedido_id = str(self.pedido.id)
        self.token = dependency_injection.get_emitir_token_recebimento_use_case().executar(self.pedido_id)

    def test_confirma_e_depois_responde_ja_confirmado(self):
        response = self.client.get(self.url, {'orderId': self.pedido_id, 'token': self.token},
                                   HTTP_USER_AGENT='Mozilla/5.0')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'confirmed')
        self.assertTrue(response.data['ok'])
        self.pedido.refresh_from_db()
        self.assertEqual(self.pedido.status, 'delivered')
        self.assertIsNotNone(self.pedido.recebido_em)

        response = self.client.post(self.url, {'orderId': self.pedido_id, 'token': self.token}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'already_confirmed')

        acoes = list(RegistroAuditoria.objects.order_by('id').values_list('acao', flat=True))
        self.assertEqual(acoes, ['confirm_success', 'confirm_already'])
        self.assertEqual(RegistroAuditoria.objects.filter(user_agent='Mozilla/5.0').count(), 1)

    def test_token_errado(self):
        response = self.client.post(self.url, {'orderId': self.pedido_id, 'token': 'errado'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['status'], 'invalid_token')
        self.assertFalse(response.data['ok'])

    def test_token_expirado(self):
        TokenConfirmacaoPedido.objects.filter(pedido=self.pedido).update(
            expira_em=timezone.now() - timedelta(minutes=1),
        )

        response = self.client.get(self.url, {'orderId': self.pedido_id, 'token': self.token})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['status'], 'expired')

    def test_token_ja_usado(self):
        TokenConfirmacaoPedido.objects.filter(pedido=self.pedido).update(
            token_hash=hash_token(self.token), usado_em=timezone.now(),
        )

        response = self.client.get(self.url, {'orderId': self.pedido_id, 'token': self.token})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'used')

    def test_pedido_inexistente(self):
        response = self.client.get(self.url, {'orderId': str(uuid.uuid4()), 'token': self.token})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['status'], 'not_found')
