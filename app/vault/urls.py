"""
URL configuration for the vault app.

Routes:
    POST /api/v1/vault/actions/ - Action dispatch (see vault.views)
"""

from django.urls import path

from vault.views import VaultActionView

app_name = "vault"

urlpatterns = [
    path("actions/", VaultActionView.as_view(), name="actions"),
]
