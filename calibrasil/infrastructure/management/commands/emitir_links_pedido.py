"""
Management command que gera os links enviados por e-mail ao cliente:
- link de confirmação do pedido (token HMAC, sem estado);
- link "recebi meu pedido" (token de uso único, regenerado a cada execução).
"""
from urllib.parse import urlencode

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from calibrasil.core import dependency_injection
from calibrasil.core.exceptions import PedidoNaoEncontradoError
from calibrasil.core.tokens import gerar_token_confirmacao


class Command(BaseCommand):
    help = 'Gera os links de confirmação e de recebimento de um pedido'

    def add_arguments(self, parser):
        parser.add_argument('pedido_id', help='UUID do pedido')
        parser.add_argument(
            '--sem-recebimento', action='store_true',
            help='Gera apenas o link de confirmação (não invalida o token de recebimento atual)',
        )

    def handle(self, *args, **options):
        pedido_id = options['pedido_id']
        segredo = settings.INTERNAL_API_SECRET
        if not segredo:
            raise CommandError('INTERNAL_API_SECRET não configurado.')

        pedido = dependency_injection.pedido_repo.buscar_completo(pedido_id)
        if pedido is None:
            raise CommandError(f'Pedido {pedido_id} não encontrado.')

        base = settings.SITE_URL.rstrip('/')
        token = gerar_token_confirmacao(pedido_id, segredo)
        link_confirmacao = f"{base}/pedido-confirmado?{urlencode({'order_id': pedido_id, 'token': token})}"

        self.stdout.write(f'Pedido {pedido.id} ({len(pedido.itens)} itens, total {pedido.total})')
        self.stdout.write(f'Confirmação: {link_confirmacao}')

        if options['sem_recebimento']:
            return

        try:
            token_recebimento = dependency_injection.get_emitir_token_recebimento_use_case().executar(pedido_id)
        except PedidoNaoEncontradoError as e:
            raise CommandError(e.message)

        link_recebimento = f"{base}/confirm-order-received?{urlencode({'orderId': pedido_id, 'token': token_recebimento})}"
        self.stdout.write(self.style.SUCCESS(f'Recebimento: {link_recebimento}'))
