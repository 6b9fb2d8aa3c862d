"""Exception taxonomy shared by the decoder, router and reconciler."""

# purpose: classify message failures into drop (unrecoverable) and requeue (ordering race / store error)
# status: active


class PlatesyncError(Exception):
    """Base class for every error raised by the plate sync consumer."""


class InvalidSettingsError(PlatesyncError):
    """Broker or store settings are incomplete."""


class MalformedEvent(PlatesyncError):
    """Payload is missing required fields or is not valid JSON."""


class UnsupportedModel(PlatesyncError):
    """No decoder is registered for the payload's top-level model name."""

    def __init__(self, model: str) -> None:
        super().__init__(f"no decoder registered for model '{model}'")
        self.model = model


class PlateNotFound(PlatesyncError):
    """The external UUID has no mapping in the store yet."""

    def __init__(self, external_uuid: str) -> None:
        super().__init__(f"plate {external_uuid} is not mapped in the store")
        self.external_uuid = external_uuid


class TransactionFailure(PlatesyncError):
    """A store write failed and its transaction was rolled back."""
