from django.urls import path

from .views import InvoiceViewSet

invoice_collection = InvoiceViewSet.as_view({'get': 'list', 'post': 'create', 'delete': 'remove'})
invoice_detail = InvoiceViewSet.as_view({'get': 'retrieve', 'put': 'update_header'})

urlpatterns = [
    path('', invoice_collection, name='invoice-list'),
    path('from-order/', InvoiceViewSet.as_view({'post': 'from_order'}), name='invoice-from-order'),
    path('status/', InvoiceViewSet.as_view({'patch': 'update_status'}), name='invoice-status'),
    path('mark-paid/', InvoiceViewSet.as_view({'patch': 'mark_paid'}), name='invoice-mark-paid'),
    path(
        'items/',
        InvoiceViewSet.as_view({'post': 'add_item', 'put': 'update_item', 'delete': 'delete_item'}),
        name='invoice-items',
    ),
    path('bulk-create/', InvoiceViewSet.as_view({'post': 'bulk_create'}), name='invoice-bulk-create'),
    path('bulk-delete/', InvoiceViewSet.as_view({'post': 'bulk_delete', 'delete': 'bulk_delete'}), name='invoice-bulk-delete'),
    path('<str:pk>/', invoice_detail, name='invoice-detail'),
]
