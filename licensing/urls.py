"""
URL Configuration for the licensing API
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import AssetViewSet, BrandViewSet, LicenseViewSet, RenewalAnalyticsView, RenewalOfferViewSet

app_name = 'licensing'

router = DefaultRouter()
router.register(r'licenses', LicenseViewSet, basename='license')
router.register(r'renewal-offers', RenewalOfferViewSet, basename='renewal-offer')
router.register(r'assets', AssetViewSet, basename='asset')
router.register(r'brands', BrandViewSet, basename='brand')

urlpatterns = [
    path('analytics/renewals/', RenewalAnalyticsView.as_view(), name='renewal-analytics'),
    path('', include(router.urls)),
]
