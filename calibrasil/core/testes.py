# calibrasil/core/testes.py

import hashlib
import hmac
import unittest
from unittest.mock import Mock
from decimal import Decimal
from datetime import datetime, timedelta, timezone

# Importamos as classes que queremos testar
from calibrasil.core.use_cases import (
    ConfirmarRecebimentoUseCase,
    ConsultarConfirmacaoPedidoUseCase,
    CriarPedidoUseCase,
    EmitirTokenRecebimentoUseCase,
    NotificarEstoqueBaixoUseCase,
)
from calibrasil.core.entities import (
    EnderecoEntrega, ItemCarrinho, ItemEstoqueBaixo, Pedido, ProdutoPreco, TokenRecebimento, VarianteEstoque,
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
from calibrasil.core import tokens

SEGREDO = 'segredo-de-teste'
AGORA = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def endereco_completo():
    return EnderecoEntrega(nome='Ana', sobrenome='Souza', endereco='Rua A, 10', cidade='Rio', cep='22000-000')


class TestCriarPedido(unittest.TestCase):

    def setUp(self):
        """
        Prepara o caso de uso com Mocks no lugar do banco e do notificador.
        """
        self.produto_repo = Mock()
        self.pedido_repo = Mock()
        self.variante_repo = Mock()
        self.notificador = Mock()

        self.produto_repo.buscar_por_ids.return_value = [
            ProdutoPreco(id='p1', nome='Biquíni Ipanema', preco=Decimal('100.00')),
        ]
        self.variante_repo.listar_por_produtos.return_value = []

        def inserir(pedido):
            pedido.id = 'pedido-1'
            return pedido
        self.pedido_repo.inserir.side_effect = inserir

        self.use_case = CriarPedidoUseCase(
            produto_repo=self.produto_repo,
            pedido_repo=self.pedido_repo,
            variante_repo=self.variante_repo,
            notificador_estoque=self.notificador,
        )

    def executar(self, **kwargs):
        dados = {
            'itens': [ItemCarrinho(produto_id='p1', quantidade=2)],
            'email': 'ana@example.com',
            'endereco_entrega': endereco_completo(),
        }
        dados.update(kwargs)
        return self.use_case.executar(**dados)

    def test_total_usa_precos_do_catalogo_e_ignora_total_do_cliente(self):
        """
        Cenário: o cliente envia total 50, mas 2 x 100 + frete 10 = 210.
        """
        pedido = self.executar(total_cliente=Decimal('50'), frete=Decimal('10'))

        self.assertEqual(pedido.id, 'pedido-1')
        self.assertEqual(pedido.total, Decimal('210.00'))
        pedido_salvo = self.pedido_repo.inserir.call_args[0][0]
        self.assertEqual(pedido_salvo.total, Decimal('210.00'))
        self.assertEqual(pedido_salvo.status, 'pending')
        self.assertEqual(pedido_salvo.status_pagamento, 'pending')
        self.assertEqual(pedido_salvo.forma_pagamento, 'pending')
        self.assertEqual(pedido_salvo.email_convidado, 'ana@example.com')
        self.assertEqual(pedido_salvo.endereco_entrega['firstName'], 'Ana')

        itens = self.pedido_repo.inserir_itens.call_args[0][1]
        self.assertEqual(len(itens), 1)
        self.assertEqual(itens[0].nome_produto, 'Biquíni Ipanema')
        self.assertEqual(itens[0].preco_unitario, Decimal('100.00'))
        self.assertEqual(itens[0].quantidade, 2)

    def test_usuario_logado_nao_grava_email_de_convidado(self):
        self.executar(usuario_id='42', forma_pagamento='pix', telefone='21999990000')

        pedido_salvo = self.pedido_repo.inserir.call_args[0][0]
        self.assertEqual(pedido_salvo.usuario_id, '42')
        self.assertIsNone(pedido_salvo.email_convidado)
        self.assertEqual(pedido_salvo.forma_pagamento, 'pix')
        self.assertEqual(pedido_salvo.telefone, '21999990000')

    def test_ids_repetidos_sao_buscados_uma_vez(self):
        pedido = self.executar(itens=[ItemCarrinho('p1', 1), ItemCarrinho('p1', 3)])

        self.produto_repo.buscar_por_ids.assert_called_once_with(['p1'])
        self.assertEqual(pedido.total, Decimal('400.00'))

    def test_validacao_segue_a_ordem_das_mensagens(self):
        casos = [
            ({'itens': [], 'email': None}, "Carrinho vazio"),
            ({'email': ''}, "Email é obrigatório"),
            ({'endereco_entrega': None}, "Endereço de entrega é obrigatório"),
            ({'endereco_entrega': EnderecoEntrega('Ana', '', 'Rua A', 'Rio', '22000')},
             "Todos os campos do endereço são obrigatórios"),
        ]
        for kwargs, mensagem in casos:
            with self.subTest(mensagem=mensagem):
                with self.assertRaises(DadosInvalidosError) as ctx:
                    self.executar(**kwargs)
                self.assertEqual(ctx.exception.message, mensagem)

        self.produto_repo.buscar_por_ids.assert_not_called()
        self.pedido_repo.inserir.assert_not_called()

    def test_quantidade_invalida_falha(self):
        with self.assertRaises(DadosInvalidosError):
            self.executar(itens=[ItemCarrinho('p1', 0)])

    def test_produto_inexistente_nao_grava_nada(self):
        self.produto_repo.buscar_por_ids.return_value = []

        with self.assertRaises(ProdutoNaoEncontradoError) as ctx:
            self.executar(itens=[ItemCarrinho('p1', 1), ItemCarrinho('fantasma', 1)])

        self.assertEqual(ctx.exception.message, "Um ou mais produtos não foram encontrados")
        self.pedido_repo.inserir.assert_not_called()
        self.pedido_repo.inserir_itens.assert_not_called()

    def test_falha_nos_itens_remove_o_pedido(self):
        """
        Cenário: o pedido foi gravado mas os itens falharam -> delete compensatório.
        """
        self.pedido_repo.inserir_itens.side_effect = FalhaServicoExternoError("banco fora")

        with self.assertRaises(FalhaServicoExternoError):
            self.executar()

        self.pedido_repo.deletar.assert_called_once_with('pedido-1')
        self.notificador.notificar.assert_not_called()

    def test_estoque_baixo_dispara_alerta(self):
        self.variante_repo.listar_por_produtos.return_value = [
            VarianteEstoque('p1', 'Biquíni Ipanema', 3, cor='Azul', modelo='P'),
            VarianteEstoque('p1', 'Biquíni Ipanema', 6, cor='Verde', modelo='M'),
        ]

        self.executar()

        self.notificador.notificar.assert_called_once()
        itens = self.notificador.notificar.call_args[0][0]
        self.assertEqual(len(itens), 1)
        self.assertEqual(itens[0].estoque_atual, 3)
        self.assertEqual(itens[0].to_payload()['color'], 'Azul')

    def test_estoque_no_limite_tambem_alerta(self):
        self.variante_repo.listar_por_produtos.return_value = [VarianteEstoque('p1', 'Biquíni', 5)]

        self.executar()

        self.notificador.notificar.assert_called_once()

    def test_sem_estoque_baixo_nao_alerta(self):
        self.variante_repo.listar_por_produtos.return_value = [VarianteEstoque('p1', 'Biquíni', 20)]

        self.executar()

        self.notificador.notificar.assert_not_called()

    def test_falha_no_alerta_nao_derruba_o_pedido(self):
        self.variante_repo.listar_por_produtos.return_value = [VarianteEstoque('p1', 'Biquíni', 1)]
        self.notificador.notificar.side_effect = RuntimeError("provedor fora do ar")

        with self.assertLogs('calibrasil.core.use_cases', level='ERROR'):
            pedido = self.executar()

        self.assertEqual(pedido.id, 'pedido-1')


class TestConsultarConfirmacaoPedido(unittest.TestCase):

    def setUp(self):
        self.pedido_repo = Mock()
        self.pedido_repo.buscar_resumo.return_value = Pedido(
            id='pedido-1',
            total=Decimal('210.00'),
            endereco_entrega={},
            email_convidado='joaozinho@example.com',
            criado_em=AGORA,
        )
        self.use_case = ConsultarConfirmacaoPedidoUseCase(self.pedido_repo, SEGREDO)
        self.token = tokens.gerar_token_confirmacao('pedido-1', SEGREDO)

    def test_token_valido_retorna_resumo_com_email_mascarado(self):
        resumo = self.use_case.executar('pedido-1', self.token)

        dados = resumo.to_dict()
        self.assertEqual(dados['id'], 'pedido-1')
        self.assertEqual(dados['total'], Decimal('210.00'))
        self.assertEqual(dados['payment_status'], 'pending')
        self.assertEqual(dados['masked_email'], 'joa***@example.com')
        self.assertNotIn('shipping_address', dados)

    def test_token_invalido_e_recusado_sem_consultar_o_banco(self):
        with self.assertRaises(AcessoNegadoError) as ctx:
            self.use_case.executar('pedido-1', 'a' * 64)

        self.assertEqual(ctx.exception.message, "Invalid or expired token")
        self.pedido_repo.buscar_resumo.assert_not_called()

    def test_campos_obrigatorios(self):
        with self.assertRaises(DadosInvalidosError) as ctx:
            self.use_case.executar('', self.token)
        self.assertEqual(ctx.exception.message, "order_id is required")

        with self.assertRaises(DadosInvalidosError) as ctx:
            self.use_case.executar('pedido-1', None)
        self.assertEqual(ctx.exception.message, "token is required")

    def test_sem_segredo_configurado(self):
        use_case = ConsultarConfirmacaoPedidoUseCase(self.pedido_repo, '')

        with self.assertRaises(ConfiguracaoServidorError):
            use_case.executar('pedido-1', self.token)

    def test_pedido_inexistente(self):
        self.pedido_repo.buscar_resumo.return_value = None

        with self.assertRaises(PedidoNaoEncontradoError):
            self.use_case.executar('pedido-1', self.token)

    def test_pedido_de_usuario_logado_nao_tem_email_mascarado(self):
        self.pedido_repo.buscar_resumo.return_value.email_convidado = None

        resumo = self.use_case.executar('pedido-1', self.token)

        self.assertIsNone(resumo.email_mascarado)


class TestNotificarEstoqueBaixo(unittest.TestCase):

    def setUp(self):
        self.email_service = Mock()
        self.email_service.enviar_alerta_estoque_baixo.return_value = {'id': 'email-1'}
        self.resolvedor = Mock()
        self.papel_repo = Mock()
        self.use_case = NotificarEstoqueBaixoUseCase(
            email_service=self.email_service,
            resolvedor_credencial=self.resolvedor,
            papel_repo=self.papel_repo,
            chave_servico='chave-servico',
        )
        self.itens = [ItemEstoqueBaixo(nome_produto='Saída de Praia', produto_id='p1', estoque_atual=2)]

    def test_sem_cabecalho_e_nao_autenticado(self):
        with self.assertRaises(NaoAutenticadoError):
            self.use_case.executar(None, self.itens)
        self.email_service.enviar_alerta_estoque_baixo.assert_not_called()

    def test_chave_de_servico_envia(self):
        resultado = self.use_case.executar('Bearer chave-servico', self.itens)

        self.assertEqual(resultado, {'success': True, 'emailResult': {'id': 'email-1'}})
        self.email_service.enviar_alerta_estoque_baixo.assert_called_once_with(self.itens)
        self.resolvedor.resolver_usuario_id.assert_not_called()

    def test_usuario_admin_envia(self):
        self.resolvedor.resolver_usuario_id.return_value = '7'
        self.papel_repo.buscar_papel.return_value = 'admin'

        self.use_case.executar('Bearer jwt-do-admin', self.itens)

        self.resolvedor.resolver_usuario_id.assert_called_once_with('jwt-do-admin')
        self.email_service.enviar_alerta_estoque_baixo.assert_called_once()

    def test_usuario_sem_papel_admin_e_proibido(self):
        self.resolvedor.resolver_usuario_id.return_value = '8'
        self.papel_repo.buscar_papel.return_value = 'customer'

        with self.assertRaises(AcessoNegadoError) as ctx:
            self.use_case.executar('Bearer jwt-do-cliente', self.itens)

        self.assertEqual(ctx.exception.message, "Forbidden - Admin role required")
        self.email_service.enviar_alerta_estoque_baixo.assert_not_called()

    def test_credencial_invalida(self):
        self.resolvedor.resolver_usuario_id.return_value = None

        with self.assertRaises(NaoAutenticadoError):
            self.use_case.executar('Bearer lixo', self.itens)

    def test_lista_vazia_nao_envia_email(self):
        resultado = self.use_case.executar('Bearer chave-servico', [])

        self.assertEqual(resultado, {'success': True, 'message': "No low stock items to report"})
        self.email_service.enviar_alerta_estoque_baixo.assert_not_called()

    def test_falha_do_provedor_propaga(self):
        self.email_service.enviar_alerta_estoque_baixo.side_effect = FalhaServicoExternoError("quota")

        with self.assertRaises(FalhaServicoExternoError):
            self.use_case.executar('Bearer chave-servico', self.itens)


class TestEmitirTokenRecebimento(unittest.TestCase):

    def setUp(self):
        self.pedido_repo = Mock()
        self.token_repo = Mock()
        self.use_case = EmitirTokenRecebimentoUseCase(
            self.pedido_repo, self.token_repo, relogio=lambda: AGORA,
        )

    def test_salva_apenas_o_hash_com_validade_de_sete_dias(self):
        token = self.use_case.executar('pedido-1')

        salvo = self.token_repo.salvar.call_args[0][0]
        self.assertEqual(len(token), 64)
        self.assertEqual(salvo.pedido_id, 'pedido-1')
        self.assertEqual(salvo.token_hash, hashlib.sha256(token.encode()).hexdigest())
        self.assertNotEqual(salvo.token_hash, token)
        self.assertEqual(salvo.expira_em, AGORA + timedelta(days=7))

    def test_pedido_inexistente(self):
        self.pedido_repo.buscar_resumo.return_value = None

        with self.assertRaises(PedidoNaoEncontradoError):
            self.use_case.executar('pedido-x')
        self.token_repo.salvar.assert_not_called()


class TestConfirmarRecebimento(unittest.TestCase):

    def setUp(self):
        self.pedido_repo = Mock()
        self.token_repo = Mock()
        self.auditoria_repo = Mock()

        self.pedido_repo.buscar_resumo.return_value = Pedido(
            id='pedido-1', total=Decimal('10'), endereco_entrega={}, status='shipped',
        )
        self.token_repo.buscar_por_pedido.return_value = TokenRecebimento(
            pedido_id='pedido-1',
            token_hash=tokens.hash_token('token-bruto'),
            expira_em=AGORA + timedelta(days=3),
        )
        self.token_repo.consumir_e_marcar_entregue.return_value = True

        self.use_case = ConfirmarRecebimentoUseCase(
            self.pedido_repo, self.token_repo, self.auditoria_repo, relogio=lambda: AGORA,
        )

    def test_token_valido_confirma(self):
        resultado = self.use_case.executar('pedido-1', 'token-bruto', 'Mozilla/5.0')

        self.assertEqual(resultado.status, 'confirmed')
        self.assertTrue(resultado.ok)
        self.token_repo.consumir_e_marcar_entregue.assert_called_once_with('pedido-1', AGORA)

        kwargs = self.auditoria_repo.registrar.call_args.kwargs
        self.assertEqual(kwargs['acao'], 'confirm_success')
        self.assertEqual(kwargs['tipo_entidade'], 'order_confirmation')
        self.assertEqual(kwargs['user_agent'], 'Mozilla/5.0')
        self.assertEqual(kwargs['metadados']['status'], 'confirmed')

    def test_pedido_ja_entregue_e_idempotente(self):
        pedido = self.pedido_repo.buscar_resumo.return_value
        pedido.status = 'delivered'
        pedido.recebido_em = AGORA - timedelta(days=1)

        resultado = self.use_case.executar('pedido-1', 'qualquer-coisa')

        self.assertEqual(resultado.status, 'already_confirmed')
        self.assertTrue(resultado.ok)
        self.token_repo.consumir_e_marcar_entregue.assert_not_called()

    def test_token_expirado(self):
        self.token_repo.buscar_por_pedido.return_value.expira_em = AGORA - timedelta(seconds=1)

        resultado = self.use_case.executar('pedido-1', 'token-bruto')

        self.assertEqual(resultado.status, 'expired')
        self.assertFalse(resultado.ok)

    def test_token_ja_usado(self):
        self.token_repo.buscar_por_pedido.return_value.usado_em = AGORA - timedelta(hours=1)

        resultado = self.use_case.executar('pedido-1', 'token-bruto')

        self.assertEqual(resultado.status, 'used')
        self.assertTrue(resultado.ok)

    def test_clique_concorrente_perde_a_corrida(self):
        self.token_repo.consumir_e_marcar_entregue.return_value = False

        resultado = self.use_case.executar('pedido-1', 'token-bruto')

        self.assertEqual(resultado.status, 'used')

    def test_token_errado(self):
        resultado = self.use_case.executar('pedido-1', 'outro-token')

        self.assertEqual(resultado.status, 'invalid_token')
        self.assertEqual(
            resultado.to_dict()['message_pt'],
            "O link de confirmação é inválido. Por favor, use o link mais recente do seu e-mail.",
        )

    def test_parametros_ausentes(self):
        self.assertEqual(self.use_case.executar(None, 'token-bruto').status, 'not_found')
        self.assertEqual(self.use_case.executar('pedido-1', '').status, 'invalid_token')

    def test_pedido_inexistente(self):
        self.pedido_repo.buscar_resumo.return_value = None

        self.assertEqual(self.use_case.executar('pedido-1', 'token-bruto').status, 'not_found')

    def test_erro_inesperado_vira_status_error(self):
        self.token_repo.buscar_por_pedido.side_effect = RuntimeError("conexão perdida")

        with self.assertLogs('calibrasil.core.use_cases', level='ERROR'):
            resultado = self.use_case.executar('pedido-1', 'token-bruto')

        self.assertEqual(resultado.status, 'error')
        self.assertFalse(resultado.ok)

    def test_falha_na_auditoria_nao_muda_a_resposta(self):
        self.auditoria_repo.registrar.side_effect = RuntimeError("audit_logs indisponível")

        with self.assertLogs('calibrasil.core.use_cases', level='ERROR'):
            resultado = self.use_case.executar('pedido-1', 'token-bruto')

        self.assertEqual(resultado.status, 'confirmed')


class TestTokens(unittest.TestCase):

    def test_token_de_confirmacao_e_hmac_sha256_hex(self):
        esperado = hmac.new(SEGREDO.encode(), b'pedido-1', hashlib.sha256).hexdigest()

        self.assertEqual(tokens.gerar_token_confirmacao('pedido-1', SEGREDO), esperado)
        self.assertTrue(tokens.token_confirmacao_valido('pedido-1', esperado, SEGREDO))
        self.assertFalse(tokens.token_confirmacao_valido('pedido-2', esperado, SEGREDO))
        self.assertFalse(tokens.token_confirmacao_valido('pedido-1', esperado, 'outro-segredo'))

    def test_mascarar_email(self):
        self.assertEqual(tokens.mascarar_email('joaozinho@example.com'), 'joa***@example.com')
        self.assertEqual(tokens.mascarar_email('ab@x.com'), 'ab***@x.com')
        self.assertIsNone(tokens.mascarar_email(None))
        self.assertIsNone(tokens.mascarar_email('sem-arroba'))
        self.assertIsNone(tokens.mascarar_email('a@b@c.com'))
        self.assertIsNone(tokens.mascarar_email('@example.com'))


if __name__ == '__main__':
    unittest.main()
