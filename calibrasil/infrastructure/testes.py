from io import StringIO
from decimal import Decimal
from datetime import timedelta
from unittest.mock import Mock, patch

import requests
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone

# Importamos as classes que queremos testar
from calibrasil.infrastructure.models import (
    ItemPedido as ItemPedidoModel,
    PapelUsuario,
    Pedido as PedidoModel,
    Produto,
    RegistroAuditoria,
    TokenConfirmacaoPedido,
    VarianteProduto,
)
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
from calibrasil.core.entities import ItemEstoqueBaixo, ItemPedido, Pedido, TokenRecebimento
from calibrasil.core.exceptions import FalhaServicoExternoError
from calibrasil.core.tokens import gerar_token_confirmacao, hash_token


def criar_pedido_model(**kwargs):
    dados = {
        'total': Decimal('210.00'),
        'email_convidado': 'cliente@example.com',
        'endereco_entrega': {'firstName': 'Ana', 'lastName': 'Souza', 'address': 'Rua A', 'city': 'Rio', 'zip': '22000'},
    }
    dados.update(kwargs)
    return PedidoModel.objects.create(**dados)


# ====================================================================
# REPOSITÓRIOS
# ====================================================================

class ProdutoRepositoryTestCase(TestCase):

    def setUp(self):
        self.repository = ProdutoRepositoryDjango()
        self.produto = Produto.objects.create(nome='Biquíni Ipanema', preco=Decimal('100.00'))

    def test_buscar_por_ids(self):
        produtos = self.repository.buscar_por_ids([str(self.produto.id)])

        self.assertEqual(len(produtos), 1)
        self.assertEqual(produtos[0].id, str(self.produto.id))
        self.assertEqual(produtos[0].preco, Decimal('100.00'))

    def test_ids_que_nao_sao_uuid_sao_ignorados(self):
        produtos = self.repository.buscar_por_ids([str(self.produto.id), 'p1'])

        self.assertEqual(len(produtos), 1)
        self.assertEqual(self.repository.buscar_por_ids(['p1']), [])


class VarianteRepositoryTestCase(TestCase):

    def test_listar_por_produtos_traz_nome_do_produto(self):
        produto = Produto.objects.create(nome='Saída de Praia', preco=Decimal('80.00'))
        VarianteProduto.objects.create(produto=produto, cor='Azul', modelo='P', quantidade_estoque=3)
        VarianteProduto.objects.create(produto=produto, cor='Rosa', modelo='M', quantidade_estoque=9)
        outro = Produto.objects.create(nome='Canga', preco=Decimal('40.00'))
        VarianteProduto.objects.create(produto=outro, quantidade_estoque=1)

        variantes = VarianteRepositoryDjango().listar_por_produtos([str(produto.id)])

        self.assertEqual(len(variantes), 2)
        self.assertEqual({v.nome_produto for v in variantes}, {'Saída de Praia'})
        self.assertEqual(sorted(v.quantidade_estoque for v in variantes), [3, 9])


class PedidoRepositoryTestCase(TestCase):

    def setUp(self):
        self.repository = PedidoRepositoryDjango()
        self.produto = Produto.objects.create(nome='Biquíni Ipanema', preco=Decimal('100.00'))

    def test_inserir_pedido_e_itens(self):
        pedido = self.repository.inserir(Pedido(
            total=Decimal('210.00'),
            endereco_entrega={'firstName': 'Ana'},
            email_convidado='ana@example.com',
        ))
        itens = [ItemPedido(str(self.produto.id), 'Biquíni Ipanema', Decimal('100.00'), 2)]
        self.repository.inserir_itens(pedido.id, itens)

        self.assertIsNotNone(pedido.id)
        self.assertIsNotNone(pedido.criado_em)
        model = PedidoModel.objects.get(pk=pedido.id)
        self.assertEqual(model.status, 'pending')
        self.assertEqual(model.itens.count(), 1)
        self.assertEqual(itens[0].pedido_id, pedido.id)

        completo = self.repository.buscar_completo(pedido.id)
        self.assertEqual(completo.itens[0].preco_unitario, Decimal('100.00'))
        self.assertEqual(completo.endereco_entrega, {'firstName': 'Ana'})

    def test_falha_nos_itens_nao_deixa_itens_parciais(self):
        pedido = self.repository.inserir(Pedido(total=Decimal('10'), endereco_entrega={}))
        itens = [
            ItemPedido(str(self.produto.id), 'Biquíni', Decimal('5'), 1),
            # Quantidade negativa viola o CHECK da coluna
            ItemPedido(str(self.produto.id), 'Biquíni', Decimal('5'), -1),
        ]

        with self.assertRaises(FalhaServicoExternoError):
            self.repository.inserir_itens(pedido.id, itens)

        self.assertEqual(ItemPedidoModel.objects.filter(pedido_id=pedido.id).count(), 0)

    def test_deletar_remove_pedido(self):
        model = criar_pedido_model()

        self.repository.deletar(str(model.id))

        self.assertIsNone(self.repository.buscar_resumo(str(model.id)))

    def test_buscar_resumo_nao_traz_endereco(self):
        model = criar_pedido_model()

        resumo = self.repository.buscar_resumo(str(model.id))

        self.assertEqual(resumo.id, str(model.id))
        self.assertEqual(resumo.total, Decimal('210.00'))
        self.assertEqual(resumo.email_convidado, 'cliente@example.com')
        self.assertEqual(resumo.endereco_entrega, {})
        self.assertEqual(resumo.itens, [])

    def test_buscar_resumo_id_invalido(self):
        self.assertIsNone(self.repository.buscar_resumo('nao-e-uuid'))


class PapelUsuarioRepositoryTestCase(TestCase):

    def test_admin_tem_prioridade(self):
        usuario = get_user_model().objects.create_user(username='arthur', password='senha-forte-123')
        PapelUsuario.objects.create(usuario=usuario, papel='customer')
        PapelUsuario.objects.create(usuario=usuario, papel='admin')

        self.assertEqual(PapelUsuarioRepositoryDjango().buscar_papel(str(usuario.pk)), 'admin')

    def test_usuario_sem_papel(self):
        usuario = get_user_model().objects.create_user(username='maria', password='senha-forte-123')

        self.assertIsNone(PapelUsuarioRepositoryDjango().buscar_papel(str(usuario.pk)))


class TokenRecebimentoRepositoryTestCase(TestCase):

    def setUp(self):
        self.repository = TokenRecebimentoRepositoryDjango()
        self.pedido = criar_pedido_model(status='shipped')
        self.pedido_id = str(self.pedido.id)
        self.agora = timezone.now()

    def test_salvar_substitui_token_anterior(self):
        self.repository.salvar(TokenRecebimento(self.pedido_id, hash_token('a'), self.agora))
        TokenConfirmacaoPedido.objects.filter(pedido_id=self.pedido.id).update(usado_em=self.agora)

        self.repository.salvar(TokenRecebimento(self.pedido_id, hash_token('b'), self.agora + timedelta(days=7)))

        self.assertEqual(TokenConfirmacaoPedido.objects.count(), 1)
        token = self.repository.buscar_por_pedido(self.pedido_id)
        self.assertEqual(token.token_hash, hash_token('b'))
        self.assertIsNone(token.usado_em)

    def test_consumir_marca_pedido_como_entregue_uma_unica_vez(self):
        self.repository.salvar(TokenRecebimento(self.pedido_id, hash_token('a'), self.agora + timedelta(days=7)))

        self.assertTrue(self.repository.consumir_e_marcar_entregue(self.pedido_id, self.agora))
        self.assertFalse(self.repository.consumir_e_marcar_entregue(self.pedido_id, self.agora))

        self.pedido.refresh_from_db()
        self.assertEqual(self.pedido.status, 'delivered')
        self.assertEqual(self.pedido.recebido_em, self.agora)


class AuditoriaRepositoryTestCase(TestCase):

    def test_registrar(self):
        AuditoriaRepositoryDjango().registrar(
            acao='confirm_success', tipo_entidade='order_confirmation',
            entidade_id='abc', user_agent='curl/8', metadados={'status': 'confirmed'},
        )

        registro = RegistroAuditoria.objects.get()
        self.assertEqual(registro.acao, 'confirm_success')
        self.assertEqual(registro.metadados, {'status': 'confirmed'})


# ====================================================================
# LIMITADORES DE TAXA
# ====================================================================

class RelogioFalso:
    def __init__(self):
        self.agora = 1000.0

    def __call__(self):
        return self.agora


class LimitadorTaxaMemoriaTestCase(SimpleTestCase):

    def setUp(self):
        self.relogio = RelogioFalso()
        self.limitador = LimitadorTaxaMemoria(5, 60, relogio=self.relogio)

    def test_sexta_requisicao_na_janela_e_bloqueada(self):
        resultados = [self.limitador.permitir('1.2.3.4') for _ in range(6)]

        self.assertEqual(resultados, [True] * 5 + [False])

    def test_clientes_sao_contados_separadamente(self):
        for _ in range(5):
            self.limitador.permitir('1.2.3.4')

        self.assertFalse(self.limitador.permitir('1.2.3.4'))
        self.assertTrue(self.limitador.permitir('5.6.7.8'))

    def test_janela_nova_zera_a_contagem(self):
        for _ in range(6):
            self.limitador.permitir('1.2.3.4')

        self.relogio.agora += 61
        self.assertTrue(self.limitador.permitir('1.2.3.4'))
        for _ in range(4):
            self.assertTrue(self.limitador.permitir('1.2.3.4'))
        self.assertFalse(self.limitador.permitir('1.2.3.4'))

    def test_limpeza_remove_registros_vencidos(self):
        self.limitador.permitir('1.1.1.1')
        self.relogio.agora += 30
        self.limitador.permitir('2.2.2.2')

        self.relogio.agora += 45
        self.assertEqual(self.limitador.limpar_expirados(), 1)
        self.assertEqual(len(self.limitador), 1)

    def test_limpeza_periodica_acontece_em_permitir(self):
        self.limitador.permitir('1.1.1.1')
        self.relogio.agora += 120

        self.limitador.permitir('2.2.2.2')

        self.assertEqual(len(self.limitador), 1)


class LimitadorTaxaCacheTestCase(SimpleTestCase):

    def setUp(self):
        cache.clear()
        self.limitador = LimitadorTaxaCache(3, 60, prefixo='teste')

    def tearDown(self):
        cache.clear()

    def test_bloqueia_apos_o_limite(self):
        resultados = [self.limitador.permitir('9.9.9.9') for _ in range(4)]

        self.assertEqual(resultados, [True, True, True, False])
        self.assertTrue(self.limitador.permitir('8.8.8.8'))


# ====================================================================
# GATEWAYS
# ====================================================================

class ResendEmailGatewayTestCase(SimpleTestCase):

    def setUp(self):
        self.gateway = ResendEmailGateway(
            api_key='re_teste',
            remetente='Cali Brasil <pedidos@calibrasil.com>',
            destinatarios=['arthur@calibrasil.com'],
            url_admin_produtos='https://calibrasil.com/admin/products',
        )
        self.itens = [
            ItemEstoqueBaixo('Biquíni Ipanema', 'p1', 1, cor='Azul', modelo='P'),
            ItemEstoqueBaixo('Canga Floral', 'p2', 4),
        ]

    @patch('calibrasil.infrastructure.gateways.resend.Emails.send')
    def test_envia_payload_com_assunto_e_html(self, send_mock):
        send_mock.return_value = {'id': 'email-123'}

        resultado = self.gateway.enviar_alerta_estoque_baixo(self.itens)

        self.assertEqual(resultado, {'id': 'email-123'})
        payload = send_mock.call_args[0][0]
        self.assertEqual(payload['from'], 'Cali Brasil <pedidos@calibrasil.com>')
        self.assertEqual(payload['to'], ['arthur@calibrasil.com'])
        self.assertEqual(payload['subject'], '⚠️ Alerta: 2 produto(s) com estoque baixo')
        self.assertIn('Alerta de Estoque Baixo', payload['html'])

    def test_html_destaca_estoque_critico(self):
        html = self.gateway.renderizar_html(self.itens)

        self.assertIn('Cor: Azul', html)
        self.assertIn('Modelo: P', html)
        self.assertIn('1 unidade\n', html)
        self.assertIn('4 unidades', html)
        self.assertIn('#dc2626', html)
        self.assertIn('#d97706', html)
        self.assertIn('2 produtos estão', html)
        self.assertIn('https://calibrasil.com/admin/products', html)

    def test_html_escapa_nome_do_produto(self):
        html = self.gateway.renderizar_html([ItemEstoqueBaixo('<script>x</script>', 'p3', 2)])

        self.assertNotIn('<script>x</script>', html)
        self.assertIn('1 produto está', html)

    @patch('calibrasil.infrastructure.gateways.resend.Emails.send')
    def test_erro_do_provedor_vira_falha_de_servico(self, send_mock):
        send_mock.side_effect = Exception('invalid api key')

        with self.assertRaises(FalhaServicoExternoError) as ctx:
            self.gateway.enviar_alerta_estoque_baixo(self.itens)
        self.assertEqual(ctx.exception.message, 'invalid api key')

    def test_sem_api_key(self):
        gateway = ResendEmailGateway('', 'a@b.com', ['c@d.com'], 'https://x')

        with self.assertRaises(FalhaServicoExternoError):
            gateway.enviar_alerta_estoque_baixo(self.itens)


class NotificadoresEstoqueTestCase(SimpleTestCase):

    def setUp(self):
        self.itens = [ItemEstoqueBaixo('Biquíni', 'p1', 2, cor='Azul')]

    def test_local_chama_o_caso_de_uso_com_a_chave_de_servico(self):
        caso_de_uso = Mock()

        NotificadorEstoqueLocal(lambda: caso_de_uso, 'chave').notificar(self.itens)

        caso_de_uso.executar.assert_called_once_with('Bearer chave', self.itens)

    @patch('calibrasil.infrastructure.gateways.requests.post')
    def test_http_envia_bearer_e_itens(self, post_mock):
        NotificadorEstoqueHttp('http://api/send-low-stock-email', 'chave').notificar(self.itens)

        kwargs = post_mock.call_args.kwargs
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer chave')
        self.assertEqual(kwargs['json']['items'][0]['productName'], 'Biquíni')
        self.assertEqual(kwargs['json']['items'][0]['currentStock'], 2)
        post_mock.return_value.raise_for_status.assert_called_once()

    @patch('calibrasil.infrastructure.gateways.requests.post')
    def test_http_erro_vira_falha_de_servico(self, post_mock):
        post_mock.side_effect = requests.exceptions.ConnectionError('recusado')

        with self.assertRaises(FalhaServicoExternoError):
            NotificadorEstoqueHttp('http://api/send-low-stock-email', 'chave').notificar(self.itens)


# ====================================================================
# MANAGEMENT COMMAND
# ====================================================================

@override_settings(INTERNAL_API_SECRET='segredo-links', SITE_URL='https://loja.test')
class EmitirLinksPedidoTestCase(TestCase):

    def test_gera_links_de_confirmacao_e_recebimento(self):
        pedido = criar_pedido_model()
        saida = StringIO()

        call_command('emitir_links_pedido', str(pedido.id), stdout=saida)

        texto = saida.getvalue()
        self.assertIn(gerar_token_confirmacao(str(pedido.id), 'segredo-links'), texto)
        self.assertIn('https://loja.test/confirm-order-received?orderId=', texto)
        self.assertTrue(TokenConfirmacaoPedido.objects.filter(pedido=pedido).exists())

    def test_sem_recebimento_nao_cria_token(self):
        pedido = criar_pedido_model()

        call_command('emitir_links_pedido', str(pedido.id), '--sem-recebimento', stdout=StringIO())

        self.assertFalse(TokenConfirmacaoPedido.objects.exists())

    def test_pedido_inexistente(self):
        with self.assertRaises(CommandError):
            call_command('emitir_links_pedido', '00000000-0000-0000-0000-000000000000', stdout=StringIO())
