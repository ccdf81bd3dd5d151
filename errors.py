class PricingError(Exception):
    """Base class for registration pricing errors."""


class InvalidPricingInput(PricingError, ValueError):
    """Input rejected at the boundary (bad dates, negative amounts, bad tokens)."""


class FeeNotFound(PricingError, LookupError):
    def __init__(self, fee_id: str):
        self.fee_id = fee_id
        super().__init__(f"Registration fee {fee_id} not found")


class ConferenceNotFound(PricingError, LookupError):
    def __init__(self, ref: str):
        self.ref = ref
        super().__init__(f"Conference {ref} not found")


class RegistrationNotFound(PricingError, LookupError):
    def __init__(self, registration_id: str):
        self.registration_id = registration_id
        super().__init__(f"Registration {registration_id} not found")


class NotAuthenticated(Exception):
    pass


class PermissionDenied(Exception):
    pass
