"""
Error kinds raised by the licensing core.

Each error carries an HTTP status and a stable `code` so views can render it
without knowing which operation failed.
"""


class LicensingError(Exception):
    """Base class for all licensing errors."""

    code = 'licensing_error'
    status_code = 400
    retryable = False

    def __init__(self, message=None):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class ValidationError(LicensingError):
    """Malformed license terms."""

    code = 'validation_error'
    status_code = 400

    def __init__(self, message=None, errors=None):
        self.errors = errors or {}
        if message is None and self.errors:
            message = '; '.join(
                f"{field}: {', '.join(msgs)}" for field, msgs in sorted(self.errors.items())
            )
        super().__init__(message)

    def to_dict(self):
        data = super().to_dict()
        data['errors'] = self.errors
        return data


class ConflictError(LicensingError):
    """Candidate license conflicts with existing grants."""

    code = 'conflict'
    status_code = 409

    def __init__(self, result, message=None):
        self.result = result
        if message is None:
            message = f"License conflicts with {len(result.conflicts)} existing license(s)"
        super().__init__(message)

    def to_dict(self):
        data = super().to_dict()
        data.update(self.result.to_dict())
        return data


class IneligibleError(LicensingError):
    """License is not eligible for renewal."""

    code = 'ineligible'
    status_code = 422

    def __init__(self, reasons, message=None):
        self.reasons = list(reasons)
        super().__init__(message or f"License not eligible for renewal: {'; '.join(self.reasons)}")

    def to_dict(self):
        data = super().to_dict()
        data['reasons'] = self.reasons
        return data


class StaleOfferError(LicensingError):
    """Offer is no longer the license's current active offer."""

    code = 'stale_offer'
    status_code = 409


class ConcurrencyAbortError(LicensingError):
    """Concurrent write on the same asset or license; safe to retry."""

    code = 'concurrency_abort'
    status_code = 503
    retryable = True


class LicenseNotFound(LicensingError):
    """License not found."""

    code = 'license_not_found'
    status_code = 404


class OfferNotFound(LicensingError):
    """Renewal offer not found."""

    code = 'offer_not_found'
    status_code = 404
