# backend/core/urls.py
from django.urls import path
from . import views

urlpatterns = [
    path("ping", views.ping),
    path("scans/", views.create_scan),
    path("scans/<str:scan_id>/", views.scan_detail),
    path("scans/<str:scan_id>/image/", views.scan_image),
    path("history/", views.scan_history),
    path("products/<str:barcode>/", views.product_lookup),
    path("compare/", views.compare_products),
]
