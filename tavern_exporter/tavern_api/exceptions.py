# tavern_exporter/tavern_api/exceptions.py
#
#
#######################################################################################################################
#
# Functions:

class TavernAPIError(Exception):
    """Base exception for tavern_api errors."""
    pass

class APIConnectionError(TavernAPIError):
    """Raised for network or connection issues."""
    pass

class APIResponseError(TavernAPIError):
    """Raised for non-2xx responses or issues parsing the response."""
    def __init__(self, status_code: int, message: str, response_data: dict = None):
        super().__init__(f"API Error {status_code}: {message}")
        self.status_code = status_code
        self.response_data = response_data or {}

class ChatRetrievalError(TavernAPIError):
    """Raised when a chunked retrieval is aborted before it completes."""
    def __init__(self, what: str, reason: str):
        super().__init__(f"Could not retrieve {what}: {reason}")
        self.what = what
        self.reason = reason

#
# End of tavern_exporter/tavern_api/exceptions.py
########################################################################################################################
