class BasePortierException(Exception):
    """
    Base exception that can take an error message and context information.
    """

    message: str
    context: dict
    default_message = "An error occurred."

    def __init__(self, message: str = default_message, **kwargs):
        self.message = message.format(**kwargs)
        self.context = dict(**kwargs)
        super().__init__()

    def __str__(self):
        return str(dict(message=self.message, context=self.context))

    def update_context(self, **kwargs):
        self.context.update(dict(**kwargs))


class InvalidFormatException(BasePortierException):
    pass


class MalformedRequestError(InvalidFormatException):
    pass


class InvalidImageFormatError(InvalidFormatException):
    pass


class InvalidConfigurationFormatError(InvalidFormatException):
    pass


class InvalidPatchError(InvalidFormatException):
    pass


class PathTraversalError(InvalidFormatException):
    pass


class NotFoundException(BasePortierException):
    pass


class NoSuchClassError(NotFoundException):
    pass


class RuleFailure(BasePortierException):
    """
    A rule body could not produce a result. Handled by the rule's failure policy.
    """


class RuleTimeoutError(RuleFailure):
    pass


class RuleExecutionError(RuleFailure):
    pass


class AdmissionDenied(BasePortierException):
    """
    Terminal signal of a pipeline run, carrying the authoritative reason.
    """


class PatchConflictError(BasePortierException):
    pass


class AlertingException(Exception):

    message: str

    def __init__(self, message: str):
        self.message = message
        super().__init__()

    def __str__(self):
        return str(self.message)


class ConfigurationError(AlertingException):
    pass


class AlertSendingError(AlertingException):
    pass
