"""
ViewSets for the licensing API.

Business operations go through LicenseService; views only translate between
HTTP and the service. LicensingError subclasses carry their own status code
and payload.
"""
import logging

from rest_framework import filters, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .exceptions import LicensingError
from .filters import LicenseFilter, RenewalOfferFilter
from .models import Asset, Brand, License, RenewalOffer
from .permissions import IsLicensingAdmin
from .serializers import (
    AnalyticsQuerySerializer,
    AssetSerializer,
    BrandSerializer,
    ConflictCheckSerializer,
    LicenseCreateSerializer,
    LicenseSerializer,
    LicenseStatusHistorySerializer,
    LicenseUpdateSerializer,
    OfferResponseSerializer,
    RenewalOfferRequestSerializer,
    RenewalOfferSerializer,
    SignSerializer,
    TransitionSerializer,
)
from .services import LicenseService

logger = logging.getLogger(__name__)

ADMIN_ACTIONS = ('activate', 'suspend', 'terminate')


def error_response(exc):
    return Response(exc.to_dict(), status=exc.status_code)


class AssetViewSet(viewsets.ModelViewSet):
    queryset = Asset.objects.all()
    serializer_class = AssetSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [filters.SearchFilter, filters.OrderingFilter]
    search_fields = ['title', 'category', 'owner_name']
    ordering = ['title']


class BrandViewSet(viewsets.ModelViewSet):
    queryset = Brand.objects.all()
    serializer_class = BrandSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [filters.SearchFilter, filters.OrderingFilter]
    search_fields = ['company_name']
    ordering = ['company_name']


class LicenseViewSet(mixins.CreateModelMixin,
                     mixins.RetrieveModelMixin,
                     mixins.UpdateModelMixin,
                     mixins.ListModelMixin,
                     viewsets.GenericViewSet):
    """
    Licenses and their renewal workflow.

    Licenses are never deleted; they are terminated. PATCH changes terms
    within what the license's status allows.
    """
    permission_classes = [IsAuthenticated]
    filterset_class = LicenseFilter
    http_method_names = ['get', 'post', 'patch', 'head', 'options']

    def get_queryset(self):
        return License.objects.select_related('asset', 'brand', 'parent_license', 'created_by')

    def get_serializer_class(self):
        if self.action == 'create':
            return LicenseCreateSerializer
        if self.action == 'partial_update':
            return LicenseUpdateSerializer
        return LicenseSerializer

    def get_permissions(self):
        if self.action in ADMIN_ACTIONS:
            return [IsAuthenticated(), IsLicensingAdmin()]
        return super().get_permissions()

    @property
    def service(self):
        return LicenseService()

    def create(self, request, *args, **kwargs):
        serializer = LicenseCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = dict(serializer.validated_data)
        submit = data.pop('submit', False)
        try:
            license = self.service.create_license(data, created_by=request.user, submit=submit)
        except LicensingError as e:
            return error_response(e)

        return Response(LicenseSerializer(license).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        license = self.get_object()
        serializer = LicenseUpdateSerializer(data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            license = self.service.update_terms(license.pk, serializer.validated_data, changed_by=request.user)
        except LicensingError as e:
            return error_response(e)

        return Response(LicenseSerializer(license).data)

    @action(detail=False, methods=['post'], url_path='check-conflicts')
    def check_conflicts(self, request):
        """Check proposed terms against the asset's binding licenses without saving anything."""
        serializer = ConflictCheckSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = dict(serializer.validated_data)
        exclude_license_id = data.pop('exclude_license_id', None)
        try:
            result = self.service.check_conflicts(data, exclude_license_id=exclude_license_id)
        except LicensingError as e:
            return error_response(e)

        return Response(result.to_dict())

    # Status workflow

    def _transition(self, request, method_name):
        license = self.get_object()
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        method = getattr(self.service, method_name)
        kwargs = {'changed_by': request.user}
        if method_name in ('suspend', 'terminate'):
            kwargs['reason'] = serializer.validated_data['reason']
        try:
            license = method(license.pk, **kwargs)
        except LicensingError as e:
            return error_response(e)

        return Response(LicenseSerializer(license).data)

    @action(detail=True, methods=['post'])
    def submit(self, request, pk=None):
        return self._transition(request, 'submit_for_approval')

    @action(detail=True, methods=['post'])
    def activate(self, request, pk=None):
        return self._transition(request, 'activate')

    @action(detail=True, methods=['post'])
    def suspend(self, request, pk=None):
        return self._transition(request, 'suspend')

    @action(detail=True, methods=['post'])
    def terminate(self, request, pk=None):
        return self._transition(request, 'terminate')

    @action(detail=True, methods=['post'])
    def sign(self, request, pk=None):
        """Record a party's signature; the last one activates the license."""
        license = self.get_object()
        serializer = SignSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            license = self.service.sign(license.pk, serializer.validated_data['party'], signed_by=request.user)
        except LicensingError as e:
            return error_response(e)

        return Response(LicenseSerializer(license).data)

    @action(detail=True, methods=['get'], url_path='status-history')
    def status_history(self, request, pk=None):
        license = self.get_object()
        serializer = LicenseStatusHistorySerializer(license.status_history.all(), many=True)
        return Response(serializer.data)

    # Renewals

    @action(detail=True, methods=['get'], url_path='renewal-eligibility')
    def renewal_eligibility(self, request, pk=None):
        license = self.get_object()
        try:
            result = self.service.evaluate_renewal_eligibility(license.pk)
        except LicensingError as e:
            return error_response(e)
        return Response(result.to_dict())

    @action(detail=True, methods=['get', 'post'], url_path='renewal-offer')
    def renewal_offer(self, request, pk=None):
        """
        GET: the license's current active renewal offer.
        POST: price and create a new offer, superseding any active one.
        """
        license = self.get_object()

        if request.method == 'GET':
            offer = self.service.current_renewal_offer(license.pk)
            if offer is None:
                return Response(
                    {'error': 'No active renewal offer', 'code': 'offer_not_found'},
                    status=status.HTTP_404_NOT_FOUND
                )
            return Response(RenewalOfferSerializer(offer).data)

        serializer = RenewalOfferRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            offer = self.service.generate_renewal_offer(
                license.pk,
                serializer.validated_data['strategy'],
                serializer.validated_data.get('custom_adjustment_percent'),
                created_by=request.user,
            )
        except LicensingError as e:
            return error_response(e)

        return Response(RenewalOfferSerializer(offer).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='accept-renewal')
    def accept_renewal(self, request, pk=None):
        """Accept the current offer; responds with the new successor license."""
        license = self.get_object()
        serializer = OfferResponseSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            successor = self.service.accept_renewal_offer(
                license.pk,
                serializer.validated_data['offer_id'],
                accepted_by=request.user,
            )
        except LicensingError as e:
            return error_response(e)

        return Response(LicenseSerializer(successor).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='reject-renewal')
    def reject_renewal(self, request, pk=None):
        license = self.get_object()
        serializer = OfferResponseSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            offer = self.service.reject_renewal_offer(
                license.pk,
                serializer.validated_data['offer_id'],
                serializer.validated_data['reason'],
                rejected_by=request.user,
            )
        except LicensingError as e:
            return error_response(e)

        return Response(RenewalOfferSerializer(offer).data)

    @action(detail=True, methods=['get'], url_path='renewal-chain')
    def renewal_chain(self, request, pk=None):
        license = self.get_object()
        chain = self.service.renewal_chain(license.pk)
        return Response(LicenseSerializer(chain, many=True).data)


class RenewalOfferViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = RenewalOfferSerializer
    permission_classes = [IsAuthenticated]
    filterset_class = RenewalOfferFilter

    def get_queryset(self):
        return RenewalOffer.objects.select_related('license', 'successor_license', 'created_by')


class RenewalAnalyticsView(APIView):
    """GET ?start_date=YYYY-MM-DD&end_date=YYYY-MM-DD"""
    permission_classes = [IsAuthenticated, IsLicensingAdmin]

    def get(self, request):
        serializer = AnalyticsQuerySerializer(data=request.query_params)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            summary = LicenseService().get_renewal_analytics(
                serializer.validated_data['start_date'],
                serializer.validated_data['end_date'],
            )
        except LicensingError as e:
            return error_response(e)

        return Response(summary.to_dict())
