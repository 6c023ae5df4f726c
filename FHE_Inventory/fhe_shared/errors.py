class DisclosureError(Exception):
    pass

class CapabilityUnavailableError(DisclosureError):
    def __init__(self , capability):
        self.capability = capability
        message = f"Capability unavailable: {capability}"
        super().__init__(message)

class LoadFailedError(DisclosureError):
    def __init__(self , owner , cause):
        self.owner = owner
        message = f"Failed to load inventory for {owner}: {cause}"
        super().__init__(message)

class LedgerUnavailableError(DisclosureError):
    def __init__(self , message):
        message = f"Ledger_error = {message}"
        super().__init__(message)

class UserRejectedError(DisclosureError):
    def __init__(self , message="User rejected the signature request"):
        super().__init__(message)

class SignerUnavailableError(DisclosureError):
    def __init__(self , message):
        message = f"Signer_error = {message}"
        super().__init__(message)

class RelayUnavailableError(DisclosureError):
    def __init__(self , message):
        message = f"Relay_error = {message}"
        super().__init__(message)

class RelayTimeoutError(RelayUnavailableError):
    def __init__(self , timeout):
        self.timeout = timeout
        super().__init__(f"no response within {timeout}s")

class RelayRejectedError(DisclosureError):
    def __init__(self , message , missing=()):
        self.missing = tuple(missing)
        super().__init__(message)

class StaleContextError(DisclosureError):
    def __init__(self , token_id):
        self.token_id = token_id
        message = f"Result for token {token_id} arrived after its session ended"
        super().__init__(message)

class InvalidScopeError(DisclosureError):
    def __init__(self , scope):
        self.scope = scope
        message = f"Invalid scope {scope}"
        super().__init__(message)

class InvalidDurationError(DisclosureError):
    def __init__(self , days):
        self.days = days
        message = f"Invalid validity duration {days} days"
        super().__init__(message)

class UnknownItemError(DisclosureError):
    def __init__(self , token_id):
        self.token_id = token_id
        message = f"Token {token_id} not in inventory"
        super().__init__(message)


class RelayServerError(Exception):
    pass

class HandleStoreUnavailableError(RelayServerError):
    def __init__(self , message):
        message = f"Handle_store_error = {message}"
        super().__init__(message)

class HandleNotFoundError(RelayServerError):
    def __init__(self , handle):
        self.handle = handle
        message = f"Handle {handle} not found"
        super().__init__(message)
