from django.apps import AppConfig


class LicensingConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'licensing'

    def ready(self):
        """Register models with django-auditlog and connect signal receivers."""
        from auditlog.registry import auditlog
        from .models import License, RenewalOffer

        auditlog.register(
            License,
            include_fields=[
                'status', 'start_date', 'end_date', 'fee_cents', 'rev_share_bps',
                'auto_renew', 'signed_at', 'terminated_at', 'termination_reason',
            ]
        )

        auditlog.register(
            RenewalOffer,
            include_fields=['status', 'new_fee_cents', 'new_rev_share_bps', 'responded_at', 'rejection_reason']
        )

        from . import signals
