# Define os modelos do banco de dados da camada de infraestrutura.

import uuid
from decimal import Decimal

from django.db import models
from django.conf import settings


# ====================================================================
# 1. CATÁLOGO (somente leitura para o checkout)
# ====================================================================

class Produto(models.Model):
    """Produto do catálogo. Fonte autoritativa de nome e preço."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    nome = models.CharField(max_length=255, verbose_name="Nome do Produto")
    preco = models.DecimalField(max_digits=10, decimal_places=2, verbose_name="Preço")
    criado_em = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Produto"
        verbose_name_plural = "Produtos"
        db_table = 'products'
        ordering = ['nome']

    def __str__(self):
        return self.nome


class VarianteProduto(models.Model):
    """Combinação cor/modelo de um produto, com estoque próprio."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    produto = models.ForeignKey(Produto, on_delete=models.CASCADE, related_name='variantes')
    cor = models.CharField(max_length=100, blank=True, null=True, verbose_name="Cor")
    modelo = models.CharField(max_length=100, blank=True, null=True, verbose_name="Modelo")
    quantidade_estoque = models.IntegerField(default=0, verbose_name="Estoque")

    class Meta:
        verbose_name = "Variante de Produto"
        verbose_name_plural = "Variantes de Produto"
        db_table = 'product_variants'

    def __str__(self):
        return f"{self.produto.nome} ({self.cor or '-'} / {self.modelo or '-'})"


# ====================================================================
# 2. PEDIDOS
# ====================================================================

class Pedido(models.Model):
    """
    Pedido criado pelo checkout. O total é sempre calculado no servidor.
    """
    STATUS_CHOICES = [
        ('pending', 'Pendente'),
        ('confirmed', 'Confirmado'),
        ('shipped', 'Enviado'),
        ('delivered', 'Entregue'),
        ('cancelled', 'Cancelado'),
    ]
    STATUS_PAGAMENTO_CHOICES = [
        ('pending', 'Pendente'),
        ('paid', 'Pago'),
        ('failed', 'Falhou'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    usuario = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        blank=True, null=True, related_name='pedidos',
    )
    email_convidado = models.EmailField(blank=True, null=True)
    telefone = models.CharField(max_length=30, blank=True, null=True)

    total = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    status_pagamento = models.CharField(max_length=20, choices=STATUS_PAGAMENTO_CHOICES, default='pending')
    forma_pagamento = models.CharField(max_length=30, default='pending')

    # Snapshot do endereço como recebido no checkout (firstName, lastName, address, city, zip)
    endereco_entrega = models.JSONField(default=dict)

    criado_em = models.DateTimeField(auto_now_add=True)
    recebido_em = models.DateTimeField(blank=True, null=True)

    class Meta:
        verbose_name = 'Pedido'
        verbose_name_plural = 'Pedidos'
        db_table = 'orders'
        ordering = ['-criado_em']

    def __str__(self):
        return f"Pedido #{self.id}"


class ItemPedido(models.Model):
    """
    Item dentro de um pedido.
    Mantém um snapshot do nome e do preço do produto no momento da compra.
    """
    pedido = models.ForeignKey(Pedido, related_name='itens', on_delete=models.CASCADE)
    produto = models.ForeignKey(Produto, related_name='itens_pedido', on_delete=models.PROTECT)
    nome_produto = models.CharField(max_length=255)
    preco = models.DecimalField(max_digits=10, decimal_places=2)
    quantidade = models.PositiveIntegerField()

    class Meta:
        verbose_name = 'Item do Pedido'
        verbose_name_plural = 'Itens do Pedido'
        db_table = 'order_items'

    def __str__(self):
        return f"{self.quantidade}x {self.nome_produto}"

    @property
    def subtotal(self):
        return self.preco * self.quantidade


# ====================================================================
# 3. PAPÉIS, TOKENS E AUDITORIA
# ====================================================================

class PapelUsuario(models.Model):
    PAPEL_CHOICES = [
        ('admin', 'Administrador'),
        ('seller', 'Vendedor'),
        ('customer', 'Cliente'),
    ]

    usuario = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='papeis')
    papel = models.CharField(max_length=20, choices=PAPEL_CHOICES, default='customer')

    class Meta:
        verbose_name = 'Papel do Usuário'
        verbose_name_plural = 'Papéis do Usuário'
        db_table = 'user_roles'
        unique_together = ('usuario', 'papel')

    def __str__(self):
        return f"{self.usuario_id}: {self.papel}"


class TokenConfirmacaoPedido(models.Model):
    """Token de uso único do link de confirmação de recebimento (guarda só o hash)."""
    pedido = models.OneToOneField(Pedido, on_delete=models.CASCADE, related_name='token_confirmacao')
    token_hash = models.CharField(max_length=64)
    expira_em = models.DateTimeField()
    usado_em = models.DateTimeField(blank=True, null=True)
    criado_em = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Token de Confirmação'
        verbose_name_plural = 'Tokens de Confirmação'
        db_table = 'order_confirm_tokens'


class RegistroAuditoria(models.Model):
    acao = models.CharField(max_length=100)
    tipo_entidade = models.CharField(max_length=100)
    entidade_id = models.CharField(max_length=64, blank=True, null=True)
    user_agent = models.CharField(max_length=500, blank=True, null=True)
    metadados = models.JSONField(default=dict)
    criado_em = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Registro de Auditoria'
        verbose_name_plural = 'Registros de Auditoria'
        db_table = 'audit_logs'
        ordering = ['-criado_em']

    def __str__(self):
        return f"{self.acao} ({self.tipo_entidade} {self.entidade_id})"
