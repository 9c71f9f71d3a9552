"""
Define as URLs da API de pedidos chamada pela loja.
Os caminhos são os mesmos usados pelo frontend (sem prefixo /api/).
"""
from django.urls import path
from . import views


urlpatterns = [
    # ====================================================================
    # 1. CHECKOUT
    # ====================================================================
    path('create-order', views.CriarPedidoAPIView.as_view(), name='create_order'),

    # ====================================================================
    # 2. CONFIRMAÇÃO DO PEDIDO E DO RECEBIMENTO
    # ====================================================================
    path('get-order-confirmation', views.ConfirmacaoPedidoAPIView.as_view(), name='get_order_confirmation'),
    path('confirm-order-received', views.ConfirmarRecebimentoAPIView.as_view(), name='confirm_order_received'),

    # ====================================================================
    # 3. OPERAÇÕES INTERNAS
    # ====================================================================
    path('send-low-stock-email', views.AlertaEstoqueBaixoAPIView.as_view(), name='send_low_stock_email'),
]
