class ValidationError(Exception):
    """Bad or missing input. Routes turn it into a 400 envelope."""


class AuthError(Exception):
    """Missing, invalid, expired or insufficient bearer token."""


class IntegrationError(Exception):
    """A third-party provider call failed."""


class EmailDeliveryError(IntegrationError):
    pass


class ImageUploadError(IntegrationError):
    pass


class PushDeliveryError(IntegrationError):
    pass
