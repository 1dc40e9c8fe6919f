class UsageError(Exception):
    """
    base class for failures raised while building a usage response.
    """


class ProviderNotConfiguredError(UsageError):
    def __init__(self, provider: "str", env_var: "str") -> "None":
        super().__init__(f"{env_var} not configured")
        self.provider = provider
        self.env_var = env_var


class AdminKeyRequiredError(UsageError):
    """
    raised when the upstream rejects the credential class (401/403),
    typically because a regular API key was used instead of an
    administrative one.
    """

    def __init__(self, provider: "str", status_code: "int") -> "None":
        super().__init__(f"{provider} rejected credential with status {status_code}")
        self.provider = provider
        self.status_code = status_code


class UpstreamError(UsageError):
    def __init__(self, status_code: "int", body: "str") -> "None":
        super().__init__(f"{status_code} - {body}")
        self.status_code = status_code
        self.body = body


class InvalidDateRangeError(UsageError):
    pass


class UnknownProviderError(UsageError):
    def __init__(self, provider: "str") -> "None":
        super().__init__(f"unknown provider: {provider}")
        self.provider = provider
