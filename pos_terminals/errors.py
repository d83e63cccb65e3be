# Each error renders as {"error": ..., **extra} with its status code


class TerminalError(Exception):
    status_code = 500
    default_error = "Internal server error"

    def __init__(self, error=None, status_code=None, **extra):
        self.error = error or self.default_error
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra
        super().__init__(self.error)

    def to_dict(self):
        return {"error": self.error, **self.extra}


class Unauthenticated(TerminalError):
    status_code = 401
    default_error = "Unauthorized"


class InvalidInput(TerminalError):
    status_code = 400
    default_error = "Missing required parameters"


class NotConfigured(TerminalError):
    status_code = 503
    default_error = "Provider is not configured"

    def __init__(self, error=None, **extra):
        extra.setdefault("message", "Contact the administrator to configure the integration")
        extra.setdefault("demo_mode", True)
        super().__init__(error, **extra)


class NoActiveConnection(TerminalError):
    status_code = 400
    default_error = "No active terminal connection"

    def __init__(self, error=None, **extra):
        extra.setdefault("needsConnection", True)
        super().__init__(error, **extra)


class TokenExpired(TerminalError):
    status_code = 401
    default_error = "Provider token expired, reconnect your account"

    def __init__(self, error=None, **extra):
        extra.setdefault("needsReconnection", True)
        super().__init__(error, **extra)


class UpstreamError(TerminalError):
    status_code = 500
    default_error = "Payment provider request failed"

    def __init__(self, error=None, status_code=None, **extra):
        extra.setdefault("status", "error")
        super().__init__(error, status_code=status_code, **extra)


class UnsupportedProvider(TerminalError):
    status_code = 400
    default_error = "Unsupported provider"

    def __init__(self, error=None, **extra):
        extra.setdefault("status", "error")
        super().__init__(error, **extra)
